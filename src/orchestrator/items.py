"""Typed views of what the model service sends back.

Raw service payloads (SDK objects or plain dicts) are converted once, here,
into closed sets of variants. Everything downstream matches on these classes
instead of on ``type`` strings; anything unrecognized becomes an explicit
``UnknownItem`` / ``IgnoredEvent`` so newer protocol versions do not break us.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union

from .errors import ServiceRequestError
from .state import ToolCallRequest

# Tools the service runs itself; we only observe their lifecycle.
NATIVE_TOOL_KINDS = frozenset(
    {
        "web_search_call",
        "file_search_call",
        "mcp_call",
        "mcp_list_tools",
        "code_interpreter_call",
        "image_generation_call",
    }
)

LifecyclePhase = Literal["begin", "completed", "failed"]


def as_dict(obj: Any) -> dict[str, Any]:
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, "model_dump"):
        return obj.model_dump(exclude_none=True)
    raise ServiceRequestError(f"Unexpected payload from model service: {type(obj).__name__}", code="MALFORMED_RESPONSE")


@dataclass(frozen=True)
class AssistantMessage:
    text: str
    raw: dict[str, Any]


@dataclass(frozen=True)
class FunctionCall:
    request: ToolCallRequest
    raw: dict[str, Any]


@dataclass(frozen=True)
class NativeToolCall:
    kind: str
    item_id: str
    status: str | None
    raw: dict[str, Any]


@dataclass(frozen=True)
class UnknownItem:
    type: str | None
    raw: dict[str, Any]


OutputItem = Union[AssistantMessage, FunctionCall, NativeToolCall, UnknownItem]


def _message_text(raw: dict[str, Any]) -> str:
    parts = raw.get("content") or []
    if isinstance(parts, str):
        return parts
    return "".join(part.get("text", "") for part in parts if part.get("type") == "output_text")


def parse_output_item(obj: Any) -> OutputItem:
    raw = as_dict(obj)
    item_type = raw.get("type")
    if item_type == "message":
        return AssistantMessage(text=_message_text(raw), raw=raw)
    if item_type == "function_call":
        try:
            request = ToolCallRequest(id=raw["call_id"], name=raw["name"], arguments=raw.get("arguments") or "")
        except KeyError as exc:
            raise ServiceRequestError(f"function_call item missing {exc}", code="MALFORMED_RESPONSE") from exc
        return FunctionCall(request=request, raw=raw)
    if item_type in NATIVE_TOOL_KINDS:
        return NativeToolCall(kind=item_type, item_id=str(raw.get("id", "")), status=raw.get("status"), raw=raw)
    return UnknownItem(type=item_type, raw=raw)


@dataclass(frozen=True)
class ModelResponse:
    """Non-streaming response shape; also carried by the terminal stream event."""

    id: str | None
    output: list[OutputItem] = field(default_factory=list)
    output_text: str = ""

    @classmethod
    def from_raw(cls, obj: Any) -> ModelResponse:
        raw = as_dict(obj)
        if "output" not in raw:
            raise ServiceRequestError("Response has no output", code="MALFORMED_RESPONSE")
        output = [parse_output_item(item) for item in raw.get("output") or []]
        text = raw.get("output_text")
        if text is None:
            # Plain dict payloads do not carry the SDK's convenience property.
            text = "".join(item.text for item in output if isinstance(item, AssistantMessage))
        return cls(id=raw.get("id"), output=output, output_text=text)

    @property
    def function_calls(self) -> list[ToolCallRequest]:
        return [item.request for item in self.output if isinstance(item, FunctionCall)]

    def raw_output(self) -> list[dict[str, Any]]:
        return [item.raw for item in self.output]


@dataclass(frozen=True)
class TextDelta:
    delta: str


@dataclass(frozen=True)
class ToolLifecycle:
    phase: LifecyclePhase
    kind: str
    correlation_id: str
    detail: str


@dataclass(frozen=True)
class ResponseCompleted:
    response: ModelResponse


@dataclass(frozen=True)
class ResponseFailed:
    message: str
    code: str


@dataclass(frozen=True)
class IgnoredEvent:
    type: str | None


StreamEvent = Union[TextDelta, ToolLifecycle, ResponseCompleted, ResponseFailed, IgnoredEvent]


def _lifecycle(event_type: str, raw: dict[str, Any]) -> ToolLifecycle | None:
    # e.g. "response.web_search_call.searching"
    parts = event_type.split(".")
    if len(parts) != 3 or parts[0] != "response" or parts[1] not in NATIVE_TOOL_KINDS:
        return None
    kind, detail = parts[1], parts[2]
    if detail == "completed":
        phase: LifecyclePhase = "completed"
    elif detail == "failed":
        phase = "failed"
    else:
        phase = "begin"
    return ToolLifecycle(phase=phase, kind=kind, correlation_id=str(raw.get("item_id", "")), detail=detail)


def parse_stream_event(obj: Any) -> StreamEvent:
    raw = as_dict(obj)
    event_type = raw.get("type")
    if event_type == "response.output_text.delta":
        return TextDelta(delta=raw.get("delta") or "")
    if event_type == "response.completed":
        return ResponseCompleted(response=ModelResponse.from_raw(raw.get("response") or {}))
    if event_type == "response.failed":
        error = (raw.get("response") or {}).get("error") or {}
        return ResponseFailed(message=error.get("message") or "Response failed", code=error.get("code") or "RESPONSE_FAILED")
    if event_type == "response.incomplete":
        details = (raw.get("response") or {}).get("incomplete_details") or {}
        return ResponseFailed(message=f"Response incomplete: {details.get('reason', 'unknown')}", code="RESPONSE_INCOMPLETE")
    if event_type == "error":
        return ResponseFailed(message=raw.get("message") or "Stream error", code=raw.get("code") or "STREAM_ERROR")
    if isinstance(event_type, str):
        lifecycle = _lifecycle(event_type, raw)
        if lifecycle is not None:
            return lifecycle
    return IgnoredEvent(type=event_type)
