"""
Answer backend client.

Builds outbound requests and owns at most one live StreamSession. Starting a
new stream cancels the previous one first; nothing suspends between the two
steps, so on a single event loop two sessions can never both be current.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

import httpx
import structlog

from astra.exceptions import BadResponseError, StreamingError
from astra.logging_utils import handle_stream_errors, log_operation

from .models import StreamOutcome, StreamQuery, StreamRequest
from .streaming.citations import DEFAULT_SOURCE_LABELS
from .streaming.decoder import FrameDecoder
from .streaming.parser import (
    DATA_PREFIX,
    DONE_SENTINEL,
    EventParser,
    PayloadExtractor,
    extract_text,
)
from .streaming.session import OutcomeSink, StreamSession, TextSink
from .transport import ByteTransport, HttpxTransport

logger = structlog.get_logger(__name__)

TransportFactory = Callable[[], ByteTransport]


class StreamHandle:
    """Caller-side view of one started stream."""

    def __init__(self, session: StreamSession, task: asyncio.Task):
        self.session = session
        self._task = task

    def cancel(self) -> bool:
        return self.session.cancel()

    def done(self) -> bool:
        return self._task.done()

    async def wait(self) -> StreamOutcome | None:
        """Wait for the session to finish; None means it was cancelled."""
        await asyncio.wait({self._task})
        return self.session.outcome


class StreamClient:
    """HTTP client for the streaming answer backend."""

    def __init__(
        self,
        config: dict[str, Any],
        api_key: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport_factory: TransportFactory | None = None,
        source_labels: Mapping[str, str] | None = None,
    ) -> None:
        # Validate required configuration parameters
        required_keys = ["endpoint"]
        for key in required_keys:
            if not config.get(key):
                raise ValueError(
                    f"Required client configuration parameter '{key}' not found."
                )
        if not api_key:
            raise ValueError("An API key is required for the answer backend")

        self.config: dict[str, Any] = config
        self.api_key: str = api_key
        self.endpoint: str = config["endpoint"]
        self.source_labels = (
            DEFAULT_SOURCE_LABELS if source_labels is None else source_labels
        )

        self._owns_http_client = http_client is None
        self.http_client: httpx.AsyncClient = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                config.get("write_timeout", 10.0),
                connect=config.get("connect_timeout", 10.0),
                read=config.get("read_timeout"),
            ),
        )
        self._transport_factory = transport_factory or self._default_transport
        self._current: StreamHandle | None = None

    def _default_transport(self) -> ByteTransport:
        return HttpxTransport(self.http_client, self.config.get("chunk_size"))

    @property
    def current(self) -> StreamHandle | None:
        """Handle of the live stream, if any."""
        return self._current

    def make_request(self, query: StreamQuery, stream: bool) -> StreamRequest:
        """Build the outbound request for a query."""
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "apikey": self.api_key,
        }
        if stream:
            headers["Accept"] = "text/event-stream"

        return StreamRequest(
            url=self.endpoint,
            method="POST",
            headers=headers,
            body=query.to_payload(stream),
        )

    def start_stream(
        self,
        query: StreamQuery,
        on_text: TextSink,
        on_outcome: OutcomeSink,
    ) -> StreamHandle:
        """
        Start streaming an answer, cancelling any stream still running.

        Must be called from a running event loop. `on_text` receives deltas in
        arrival order; `on_outcome` is called once unless the stream is
        cancelled.
        """
        self.cancel()

        request = self.make_request(query, stream=True)
        session = StreamSession(
            self._transport_factory(),
            request,
            on_text=on_text,
            on_outcome=on_outcome,
            collect_citations=query.should_collect_citations,
            decoder=FrameDecoder(self.config.get("encoding", "utf-8")),
            parser=EventParser(
                prefix=self.config.get("event_prefix", DATA_PREFIX),
                sentinel=self.config.get("done_sentinel", DONE_SENTINEL),
            ),
            extractor=PayloadExtractor(self.source_labels),
        )

        logger.info(
            "Starting answer stream",
            session_id=session.session_id,
            mode=query.mode.value,
            collect_citations=query.should_collect_citations,
        )
        logger.debug("Answer stream query", session_id=session.session_id, query=query.query)

        task = asyncio.create_task(
            session.run(), name=f"answer-stream-{session.session_id}"
        )
        handle = StreamHandle(session, task)
        self._current = handle
        task.add_done_callback(lambda _task: self._release(handle))
        return handle

    def cancel(self) -> bool:
        """Cancel the live stream, if there is one."""
        handle = self._current
        self._current = None
        if handle is None:
            return False
        return handle.cancel()

    def _release(self, handle: StreamHandle) -> None:
        if self._current is handle:
            self._current = None

    async def stream_answer(
        self, query: StreamQuery, on_text: TextSink
    ) -> StreamOutcome | None:
        """Stream an answer and wait for its outcome."""
        handle = self.start_stream(query, on_text, lambda _outcome: None)
        return await handle.wait()

    @log_operation("answer")
    @handle_stream_errors("answer")
    async def answer(self, query: StreamQuery) -> str:
        """Get a complete, non-streamed answer."""
        request = self.make_request(query, stream=False)
        response = await self.http_client.request(
            request.method, request.url, headers=request.headers, json=request.body
        )

        if not response.is_success:
            logger.warning(
                "Answer request rejected",
                status_code=response.status_code,
                body=response.text[:200],
            )
            raise BadResponseError(
                f"Server error: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise StreamingError("Could not parse response") from e

        content = extract_text(data)
        if content is None:
            raise StreamingError(
                "Could not parse response",
                status_code=response.status_code,
                response_data=data if isinstance(data, dict) else None,
            )
        return content

    async def close(self) -> None:
        """Cancel any live stream and close the HTTP client."""
        handle = self._current
        if self.cancel() and handle is not None:
            await handle.wait()
        if self._owns_http_client:
            await self.http_client.aclose()

    async def __aenter__(self) -> StreamClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
