"""
Tests for the server entry point.
"""

import asyncio

import pytest

from chuk_mcp_musicgen.errors import CacheProductionFailed
from chuk_mcp_musicgen.generation import ContentCache
from chuk_mcp_musicgen.server import serve


class FakeServer:
    """Stands in for ChukMCPServer's transport runners."""

    def __init__(self, error: BaseException | None = None) -> None:
        self.error = error
        self.ran: list[tuple[str, int | None]] = []

    async def run_stdio(self) -> None:
        self.ran.append(("stdio", None))
        if self.error is not None:
            raise self.error

    async def run_http(self, port: int = 8000) -> None:
        self.ran.append(("http", port))
        if self.error is not None:
            raise self.error


class TestServe:
    """The content cache is closed whenever the server stops."""

    @pytest.mark.asyncio
    async def test_stdio_closes_cache(self) -> None:
        """A clean stdio shutdown closes the cache."""
        server, cache = FakeServer(), ContentCache()
        await serve(server, cache, "stdio")
        assert server.ran == [("stdio", None)]
        assert cache.closed

    @pytest.mark.asyncio
    async def test_http_uses_port(self) -> None:
        """The http transport gets the requested port."""
        server, cache = FakeServer(), ContentCache()
        await serve(server, cache, "http", port=9123)
        assert server.ran == [("http", 9123)]
        assert cache.closed

    @pytest.mark.asyncio
    async def test_cache_closed_on_error(self) -> None:
        """A transport that dies still closes the cache, and the error propagates."""
        server, cache = FakeServer(RuntimeError("socket closed")), ContentCache()
        with pytest.raises(RuntimeError, match="socket closed"):
            await serve(server, cache, "stdio")
        assert cache.closed

    @pytest.mark.asyncio
    async def test_in_flight_production_cancelled(self) -> None:
        """Productions still running at shutdown are cancelled."""
        cache = ContentCache()
        started = asyncio.Event()

        async def produce():
            started.set()
            await asyncio.sleep(10)

        waiter = asyncio.create_task(cache.get_or_create("f" * 64, produce))
        await started.wait()
        await serve(FakeServer(), cache, "stdio")

        assert cache.closed
        assert not cache.in_flight("f" * 64)
        with pytest.raises(CacheProductionFailed):
            await waiter
