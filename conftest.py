"""
Shared fixtures for the test suite.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

import pytest

from astra.client.models import StreamRequest


class ScriptedTransport:
    """
    ByteTransport that replays a fixed script.

    Items in `chunks` are bytes to return from read(), or exceptions to raise.
    When `hold_open` is set, read() blocks forever after the script runs out,
    like a backend that stopped sending without closing the connection.
    """

    def __init__(
        self,
        chunks: Iterable[bytes | Exception] = (),
        *,
        status_code: int = 200,
        open_error: Exception | None = None,
        hold_open: bool = False,
    ):
        self.chunks = list(chunks)
        self.status_code = status_code
        self.open_error = open_error
        self.hold_open = hold_open
        self.requests: list[StreamRequest] = []
        self.reads = 0
        self.aborted = False
        self.read_started = asyncio.Event()

    async def open(self, request: StreamRequest) -> int:
        self.requests.append(request)
        if self.open_error is not None:
            raise self.open_error
        return self.status_code

    async def read(self) -> bytes | None:
        self.reads += 1
        self.read_started.set()
        if self.chunks:
            item = self.chunks.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        if self.hold_open:
            await asyncio.Event().wait()
        return None

    async def abort(self) -> None:
        self.aborted = True


@pytest.fixture
def scripted_transport():
    """Factory fixture for ScriptedTransport."""
    return ScriptedTransport


@pytest.fixture
def stream_request() -> StreamRequest:
    return StreamRequest(
        url="https://backend.test/functions/v1/quick-api",
        headers={"Authorization": "Bearer test-key"},
        body={"query": "q", "mode": "search", "stream": True},
    )
