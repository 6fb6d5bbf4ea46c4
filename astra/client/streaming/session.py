"""
Single-request stream session.

A StreamSession owns one transport for the lifetime of one answer. It runs
bytes through the decoder, parser and extractor, forwards text deltas to the
caller and reports exactly one outcome. Every terminal transition goes through
`_transition`, so late bytes or late transport callbacks after completion,
failure or cancellation are ignored.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable

from astra.exceptions import (
    BadResponseError,
    EmptyStreamError,
    StreamError,
    StreamingError,
    TransportError,
)
from astra.logging_utils import ContextualLogger, StreamErrorHandler

from ..models import Citation, Completed, Failed, StreamOutcome, StreamRequest
from ..transport import ByteTransport
from .decoder import FrameDecoder
from .models import SessionState, SSEEventType
from .parser import EventParser, PayloadExtractor, extract_error_message

TextSink = Callable[[str], None]
OutcomeSink = Callable[[StreamOutcome], None]

BAD_RESPONSE_MESSAGE = "Bad server response"


class StreamSession:
    """State machine for one streamed answer: ACTIVE -> COMPLETED | FAILED | CANCELLED."""

    def __init__(
        self,
        transport: ByteTransport,
        request: StreamRequest,
        *,
        on_text: TextSink,
        on_outcome: OutcomeSink,
        collect_citations: bool = False,
        decoder: FrameDecoder | None = None,
        parser: EventParser | None = None,
        extractor: PayloadExtractor | None = None,
    ):
        self.transport = transport
        self.request = request
        self.collect_citations = collect_citations
        self.session_id = uuid.uuid4().hex[:12]

        self._on_text = on_text
        self._on_outcome = on_outcome
        self._decoder = decoder or FrameDecoder()
        self._parser = parser or EventParser()
        self._extractor = extractor or PayloadExtractor()

        self._state = SessionState.ACTIVE
        self._outcome: StreamOutcome | None = None
        self._citations: list[Citation] = []
        self._content_received = False
        self._task: asyncio.Task | None = None

        self.logger = ContextualLogger({
            "session_id": self.session_id,
            "mode": request.body.get("mode"),
        })

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    @property
    def outcome(self) -> StreamOutcome | None:
        return self._outcome

    @property
    def citations(self) -> list[Citation]:
        return list(self._citations)

    @property
    def content_received(self) -> bool:
        return self._content_received

    async def run(self) -> StreamOutcome | None:
        """
        Drive the session until it reaches a terminal state.

        Returns the outcome, or None when the session was cancelled.
        Cancelling the task running this coroutine cancels the session.
        """
        if not self.is_active:
            return self._outcome

        self._task = asyncio.current_task()
        self.logger.info("Stream started", url=self.request.url)

        try:
            status_code = await self.transport.open(self.request)
            if not 200 <= status_code < 300:
                await self._fail_with_error_body(status_code)
                return self._outcome

            while self.is_active:
                chunk = await self.transport.read()
                if chunk is None:
                    self.finish()
                    break
                self.feed(chunk)

        except asyncio.CancelledError:
            if self._transition(SessionState.CANCELLED):
                self.logger.info("Stream cancelled by task cancellation")
                raise
            if self._state is not SessionState.CANCELLED:
                raise
            # cancel() already handled it; swallow our own cancellation
            current = asyncio.current_task()
            if current is not None:
                current.uncancel()
        except TransportError as e:
            self.fail(e)
        except Exception as e:
            self.fail(StreamErrorHandler.to_stream_error(
                e, "stream session", {"session_id": self.session_id}
            ))
        finally:
            await self.transport.abort()

        return self._outcome

    def feed(self, chunk: bytes) -> None:
        """Process one transport chunk."""
        if not self.is_active:
            return
        for line in self._decoder.feed(chunk):
            self._process_line(line)
            if not self.is_active:
                return

    def finish(self) -> None:
        """Handle end of data from the transport."""
        if not self.is_active:
            return
        for line in self._decoder.flush():
            self._process_line(line)
            if not self.is_active:
                return

        if self._content_received:
            self.complete()
        else:
            self.fail(EmptyStreamError())

    def complete(self) -> bool:
        if not self._transition(SessionState.COMPLETED):
            return False
        self._outcome = Completed(citations=list(self._citations))
        self.logger.info(
            "Stream completed",
            citation_count=len(self._citations),
            **self._parser.get_stats(),
            **self._extractor.get_stats(),
        )
        self._deliver_outcome()
        return True

    def fail(self, cause: StreamError) -> bool:
        if not self._transition(SessionState.FAILED):
            return False
        self._outcome = Failed(cause=cause)
        self.logger.warning(
            "Stream failed",
            error_category=StreamErrorHandler.classify_error(cause),
            error_message=str(cause),
            status_code=cause.status_code,
        )
        self._deliver_outcome()
        return True

    def cancel(self) -> bool:
        """
        Cancel the session without reporting an outcome.

        Interrupts a pending transport read when the session is running in
        another task. Returns False if the session had already finished.
        """
        if not self._transition(SessionState.CANCELLED):
            return False
        self.logger.info("Stream cancelled")

        task = self._task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
        return True

    def _deliver_outcome(self) -> None:
        # The outcome is already settled; a failing sink must not change it
        try:
            self._on_outcome(self._outcome)
        except Exception as e:
            self.logger.error(
                "Outcome callback failed",
                outcome=type(self._outcome).__name__,
                error_type=type(e).__name__,
                error_message=str(e),
            )

    def _transition(self, state: SessionState) -> bool:
        if self._state is not SessionState.ACTIVE:
            return False
        self._state = state
        return True

    def _process_line(self, line: str) -> None:
        event = self._parser.parse(line)
        if event is None:
            return

        if event.event_type is SSEEventType.COMPLETION:
            self.complete()
            return

        want_citations = self.collect_citations and not self._citations
        extracted = self._extractor.extract(event.payload, want_citations=want_citations)
        if extracted is None:
            return

        if want_citations and extracted.citations:
            self._citations = list(extracted.citations)
            self.logger.debug("Citations captured", count=len(self._citations))

        if extracted.text:
            self._content_received = True
            self._on_text(extracted.text)

    async def _fail_with_error_body(self, status_code: int) -> None:
        body = bytearray()
        try:
            while (chunk := await self.transport.read()) is not None:
                body.extend(chunk)
        except TransportError as e:
            self.logger.debug("Error body read failed", error_message=str(e))

        message = extract_error_message(bytes(body))
        if message is None:
            message = BAD_RESPONSE_MESSAGE

        self.fail(BadResponseError(message, status_code=status_code))
