"""Protocol checkers: TCP reachability, HTTP status and GSP status query.

Every checker is a coroutine that returns a CheckResult and never raises
for network or protocol failures. Sockets are released on every exit path.
"""

import asyncio
import time

import aiohttp

from . import __version__
from ._timeouts import close_writer, elapsed_ms, guard, to_seconds
from .gsp import ProtocolError, build_handshake, build_status_request, frame_complete, parse_status_response
from .models import CheckResult, Players

USER_AGENT = f"StatusPulse/{__version__}"

# Bytes requested per read while waiting for a GSP response.
READ_CHUNK_SIZE = 4096


def _is_success_status(status_code: int) -> bool:
    """2xx and 3xx responses count as online."""
    return 200 <= status_code < 400


async def check_tcp(host: str, port: int, timeout_ms: int) -> CheckResult:
    """Check that a TCP connection to host:port can be established.

    Args:
        host: Host name or address to dial.
        port: TCP port.
        timeout_ms: Connection timeout in milliseconds.

    Returns:
        CheckResult whose round-trip time spans the connection attempt.
    """
    start = time.monotonic()
    writer: asyncio.StreamWriter | None = None
    error_message: str | None = None

    try:
        async with guard(timeout_ms):
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=to_seconds(timeout_ms),
            )
        online = True
    except TimeoutError:
        online = False
        error_message = f"Connection timeout after {timeout_ms}ms"
    except Exception as e:
        online = False
        error_message = str(e) or e.__class__.__name__
    finally:
        rtt_ms = elapsed_ms(start)
        await close_writer(writer)

    return CheckResult(online=online, rtt_ms=rtt_ms, error_message=error_message)


async def check_http(
    url: str,
    timeout_ms: int,
    session: aiohttp.ClientSession | None = None,
) -> CheckResult:
    """Perform a GET request, following redirects.

    Args:
        url: HTTP or HTTPS URL.
        timeout_ms: Total timeout for the request, redirects included.
        session: Shared client session. A private one is opened when omitted.

    Returns:
        CheckResult, online iff the final status is in [200, 400).
    """
    start = time.monotonic()
    own_session = session is None
    if own_session:
        session = aiohttp.ClientSession()

    error_message: str | None = None
    try:
        async with session.get(
            url,
            allow_redirects=True,
            timeout=aiohttp.ClientTimeout(total=to_seconds(timeout_ms)),
            headers={"User-Agent": USER_AGENT},
        ) as response:
            status_code = response.status
        online = _is_success_status(status_code)
        if not online:
            error_message = f"HTTP {status_code}: {response.reason}"
    except TimeoutError:
        online = False
        error_message = f"Request timeout after {timeout_ms}ms"
    except Exception as e:
        online = False
        error_message = str(e) or e.__class__.__name__
    finally:
        rtt_ms = elapsed_ms(start)
        if own_session:
            await session.close()

    return CheckResult(online=online, rtt_ms=rtt_ms, error_message=error_message)


async def _exchange_status(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    host: str,
    port: int,
) -> bytes:
    """Send handshake + status request, then accumulate the response bytes.

    Reading stops when the peer closes the connection or a whole frame
    has been buffered, whichever comes first. A malformed or oversized
    length prefix raises ProtocolError as soon as it is received.
    """
    writer.write(build_handshake(host, port))
    writer.write(build_status_request())
    await writer.drain()

    buffer = bytearray()
    while not frame_complete(buffer):
        chunk = await reader.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        buffer.extend(chunk)
    return bytes(buffer)


async def check_gsp(host: str, port: int, timeout_ms: int) -> CheckResult:
    """Query a game server's status over the GSP status-only handshake.

    Args:
        host: Server host (also sent inside the handshake).
        port: Server port.
        timeout_ms: Timeout for the whole exchange.

    Returns:
        CheckResult with players/version when the status document carries
        them. Round-trip time spans connection open to connection close.
    """
    start = time.monotonic()
    writer: asyncio.StreamWriter | None = None
    players: Players | None = None
    version: str | None = None
    error_message: str | None = None

    try:
        async with guard(timeout_ms):
            async with asyncio.timeout(to_seconds(timeout_ms)):
                reader, writer = await asyncio.open_connection(host, port)
                payload = await _exchange_status(reader, writer, host, port)
        status = parse_status_response(payload)
        online = True
        players = status.players
        version = status.version
    except TimeoutError:
        online = False
        error_message = f"Status query timeout after {timeout_ms}ms"
    except ProtocolError as e:
        online = False
        error_message = f"Malformed status response: {e}"
    except Exception as e:
        online = False
        error_message = str(e) or e.__class__.__name__
    finally:
        await close_writer(writer)

    return CheckResult(
        online=online,
        rtt_ms=elapsed_ms(start),
        players=players,
        version=version,
        error_message=error_message,
    )
