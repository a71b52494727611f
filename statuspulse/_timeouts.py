"""Timeout and socket-teardown helpers shared by the checkers."""

import asyncio
import logging
import time

logger = logging.getLogger(__name__)

# Extra time granted to the outer guard so the inner socket timeout fires first.
GRACE_MS = 250


def to_seconds(timeout_ms: int) -> float:
    return timeout_ms / 1000


def elapsed_ms(start: float) -> int:
    """Milliseconds since ``start`` (a ``time.monotonic()`` reading)."""
    return int((time.monotonic() - start) * 1000)


def guard(timeout_ms: int) -> asyncio.Timeout:
    """Outer timeout guard: the requested timeout plus the grace margin."""
    return asyncio.timeout(to_seconds(timeout_ms + GRACE_MS))


async def close_writer(writer: asyncio.StreamWriter | None) -> None:
    """Close a stream writer and wait for the transport to go away.

    Safe to call with None. Errors raised while the peer tears the
    connection down are ignored since the socket is being released anyway.
    """
    if writer is None:
        return
    writer.close()
    try:
        await asyncio.wait_for(writer.wait_closed(), timeout=to_seconds(GRACE_MS))
    except (OSError, TimeoutError) as e:
        logger.debug("Ignoring error while closing connection: %s", e)
