"""Shared fixtures: local listeners for checker tests."""

import asyncio
import socket
from collections.abc import Awaitable, Callable

import pytest

Handler = Callable[[asyncio.StreamReader, asyncio.StreamWriter], Awaitable[None]]


async def _drain_until_closed(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    """Accept a connection and never answer."""
    try:
        while await reader.read(1024):
            pass
    except ConnectionError:
        pass
    finally:
        writer.close()


async def _close_immediately(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    writer.close()


@pytest.fixture
async def start_server():
    """Factory starting asyncio TCP servers on 127.0.0.1; returns the bound port."""
    servers: list[asyncio.Server] = []

    async def _start(handler: Handler) -> int:
        server = await asyncio.start_server(handler, "127.0.0.1", 0)
        servers.append(server)
        return server.sockets[0].getsockname()[1]

    yield _start

    for server in servers:
        server.close()
        await server.wait_closed()


@pytest.fixture
async def listening_port(start_server) -> int:
    """Port with a listener that accepts and closes connections."""
    return await start_server(_close_immediately)


@pytest.fixture
async def silent_port(start_server) -> int:
    """Port with a listener that accepts connections but never responds."""
    return await start_server(_drain_until_closed)


@pytest.fixture
def closed_port() -> int:
    """Port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
