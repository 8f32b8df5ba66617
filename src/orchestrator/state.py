"""Conversation and trace data model."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

Role = Literal["user", "assistant"]
StepStatus = Literal["pending", "completed", "error"]


@dataclass(frozen=True)
class ConversationMessage:
    """A display-level chat message. Never mutated once appended."""

    role: Role
    content: str
    metadata: dict[str, Any] | None = None

    def to_input_item(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ToolCallRequest:
    id: str
    name: str
    arguments: str


@dataclass(frozen=True)
class ToolExecutionResult:
    """Exactly one per ToolCallRequest id; failures carry an error descriptor."""

    id: str
    name: str
    ok: bool
    data: Any = None
    error: dict[str, Any] | None = None
    latency_ms: int | None = None

    @property
    def payload(self) -> Any:
        return self.data if self.ok else {"error": self.error}

    def to_input_item(self) -> dict[str, Any]:
        return {
            "type": "function_call_output",
            "call_id": self.id,
            "output": json.dumps(self.payload, ensure_ascii=False),
        }


@dataclass
class ConversationState:
    """Protocol items sent on every round, plus the chat transcript.

    ``items`` is append-only; only ``clear`` removes anything.
    """

    messages: list[ConversationMessage] = field(default_factory=list)
    items: list[dict[str, Any]] = field(default_factory=list)

    def append_message(self, message: ConversationMessage, *, include_in_input: bool = True) -> None:
        self.messages.append(message)
        if include_in_input:
            self.items.append(message.to_input_item())

    def extend_items(self, items: list[dict[str, Any]]) -> None:
        self.items.extend(items)

    def append_result(self, result: ToolExecutionResult) -> None:
        self.items.append(result.to_input_item())

    def answered_call_ids(self) -> set[str]:
        return {item["call_id"] for item in self.items if item.get("type") == "function_call_output"}

    def clear(self) -> None:
        self.messages.clear()
        self.items.clear()


@dataclass(frozen=True)
class TraceStep:
    id: str
    label: str
    status: StepStatus
    timestamp: float
    payload: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "status": self.status,
            "timestamp": self.timestamp,
            "payload": self.payload,
        }


@dataclass
class ToolExecutionRecord:
    round: int
    call_id: str
    function_name: str
    arguments: Any
    result: Any
    latency_ms: int | None = None


@dataclass
class TurnSummary:
    """Per-turn bookkeeping attached to the final assistant message."""

    total_rounds: int = 0
    function_executions: list[ToolExecutionRecord] = field(default_factory=list)

    def to_metadata(self, response_id: str | None, output: list[dict[str, Any]]) -> dict[str, Any]:
        metadata: dict[str, Any] = {"response_id": response_id, "output": output}
        if self.function_executions:
            metadata["total_rounds"] = self.total_rounds
            metadata["function_executions"] = [asdict(record) for record in self.function_executions]
        return metadata
