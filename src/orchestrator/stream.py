"""Folds one streamed model call into a message draft and ledger writes.

States: IDLE -> STREAMING -> COMPLETED | FAILED. Text deltas only grow the
draft; tool lifecycle events upsert ledger steps; the terminal completed
event replaces the draft text with the authoritative final text. A stream
that stops without that event is a failure, never a quiet partial success.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from typing import AsyncIterator, Callable

from .errors import ServiceRequestError, StreamTerminationError
from .items import (
    IgnoredEvent,
    ModelResponse,
    ResponseCompleted,
    ResponseFailed,
    StreamEvent,
    TextDelta,
    ToolLifecycle,
)
from .logging import get_logger
from .trace import TraceLedger

logger = get_logger("stream")

DeltaListener = Callable[[str, str], None]

LIFECYCLE_STEPS: dict[str, tuple[str, str]] = {
    "web_search_call": ("web-search", "Web search"),
    "file_search_call": ("file-search", "File search"),
    "mcp_call": ("mcp-call", "MCP tool call"),
    "mcp_list_tools": ("mcp-list", "MCP tool listing"),
    "code_interpreter_call": ("code-interpreter", "Code interpreter"),
    "image_generation_call": ("image-generation", "Image generation"),
}


class StreamState(str, enum.Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class MessageDraft:
    """The in-progress assistant message; becomes immutable only when appended."""

    content: str = ""
    response: ModelResponse | None = None


def lifecycle_step_id(kind: str, correlation_id: str) -> str:
    prefix = LIFECYCLE_STEPS.get(kind, (kind.replace("_", "-"), ""))[0]
    return f"{prefix}-{correlation_id}"


def _lifecycle_label(event: ToolLifecycle) -> str:
    name = LIFECYCLE_STEPS.get(event.kind, ("", event.kind))[1]
    if event.phase == "completed":
        return f"{name} completed"
    if event.phase == "failed":
        return f"{name} failed"
    if event.detail == "in_progress":
        return f"{name} in progress…"
    return f"{name}: {event.detail.replace('_', ' ')}…"


class StreamDemultiplexer:
    def __init__(
        self,
        ledger: TraceLedger,
        *,
        step_prefix: str = "stream",
        on_delta: DeltaListener | None = None,
    ) -> None:
        self._ledger = ledger
        self._on_delta = on_delta
        self.complete_step_id = f"{step_prefix}-complete"
        self.state = StreamState.IDLE
        self.draft = MessageDraft()
        self.response: ModelResponse | None = None

    def feed(self, event: StreamEvent) -> None:
        if self.state in (StreamState.COMPLETED, StreamState.FAILED):
            logger.debug("stream_event_after_terminal", extra={"extra": {"state": self.state.value}})
            return
        self.state = StreamState.STREAMING

        match event:
            case TextDelta(delta=delta):
                # No ledger write: deltas arrive far too often.
                self.draft.content += delta
                if self._on_delta is not None:
                    self._on_delta(delta, self.draft.content)
            case ToolLifecycle(phase=phase, kind=kind, correlation_id=correlation_id):
                status = {"begin": "pending", "completed": "completed", "failed": "error"}[phase]
                self._ledger.push(lifecycle_step_id(kind, correlation_id), _lifecycle_label(event), status)
            case ResponseCompleted(response=response):
                self.state = StreamState.COMPLETED
                self.response = response
                self.draft.content = response.output_text or self.draft.content
                self.draft.response = response
                self._ledger.push(self.complete_step_id, "Response complete", "completed", response.raw_output())
            case ResponseFailed(message=message, code=code):
                raise self._fail(message, code)
            case IgnoredEvent(type=event_type):
                logger.debug("stream_ignored_event", extra={"extra": {"type": event_type}})

    def finish(self) -> ModelResponse:
        """Return the final response, or fail if the stream never completed."""
        if self.state is StreamState.COMPLETED and self.response is not None:
            return self.response
        raise self._fail("Stream ended before the response completed", "STREAM_TERMINATED")

    async def consume(
        self,
        events: AsyncIterator[StreamEvent],
        *,
        event_timeout: float | None = None,
    ) -> ModelResponse:
        iterator = events.__aiter__()
        try:
            while self.state is not StreamState.COMPLETED:
                try:
                    event = await asyncio.wait_for(iterator.__anext__(), event_timeout)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError as exc:
                    raise self._fail("Timed out waiting for the next stream event", "TIMEOUT") from exc
                except ServiceRequestError as exc:
                    raise self._fail(exc.message, exc.code) from exc
                self.feed(event)
        except asyncio.CancelledError:
            if self.state is not StreamState.FAILED:
                self.state = StreamState.FAILED
                self._ledger.push(self.complete_step_id, "Cancelled", "error", {"partial_content": self.draft.content})
            raise
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()
        return self.finish()

    def _fail(self, message: str, code: str) -> StreamTerminationError:
        self.state = StreamState.FAILED
        self._ledger.push(
            self.complete_step_id,
            message,
            "error",
            {"code": code, "partial_content": self.draft.content},
        )
        logger.info("stream_terminated", extra={"extra": {"code": code, "message": message}})
        return StreamTerminationError(message, code=code)
