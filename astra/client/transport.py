"""
Byte-chunk transports for the answer stream.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol

import httpx

from astra.exceptions import TransportError

from .models import StreamRequest


class ByteTransport(Protocol):
    """What a StreamSession needs from the network layer."""

    async def open(self, request: StreamRequest) -> int:
        """Send the request and return the response status code."""
        ...

    async def read(self) -> bytes | None:
        """Next chunk of the response body, None at end of data."""
        ...

    async def abort(self) -> None:
        """Release the connection. Safe to call more than once."""
        ...


class HttpxTransport:
    """ByteTransport over a shared httpx.AsyncClient."""

    def __init__(self, client: httpx.AsyncClient, chunk_size: int | None = None):
        self.client = client
        self.chunk_size = chunk_size
        self._response: httpx.Response | None = None
        self._chunks: AsyncIterator[bytes] | None = None

    async def open(self, request: StreamRequest) -> int:
        http_request = self.client.build_request(
            request.method,
            request.url,
            headers=request.headers,
            json=request.body,
        )
        try:
            self._response = await self.client.send(http_request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error: {e!s}") from e

        self._chunks = self._response.aiter_bytes(self.chunk_size)
        return self._response.status_code

    async def read(self) -> bytes | None:
        if self._chunks is None:
            raise TransportError("Transport read before open")
        try:
            return await anext(self._chunks)
        except StopAsyncIteration:
            return None
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error during streaming: {e!s}") from e

    async def abort(self) -> None:
        if self._response is not None and not self._response.is_closed:
            await self._response.aclose()
