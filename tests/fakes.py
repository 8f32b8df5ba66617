"""Scripted stand-ins for the model service used across the suites."""

from __future__ import annotations

import json
from typing import Any

from orchestrator.items import ModelResponse, ResponseCompleted, TextDelta
from orchestrator.service import ModelRequest


def function_call(call_id: str, name: str, arguments: Any = None) -> dict[str, Any]:
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments or {})
    return {
        "type": "function_call",
        "id": f"fc_{call_id}",
        "call_id": call_id,
        "name": name,
        "arguments": arguments,
        "status": "completed",
    }


def message(text: str) -> dict[str, Any]:
    return {
        "type": "message",
        "id": f"msg_{abs(hash(text)) % 10_000}",
        "role": "assistant",
        "status": "completed",
        "content": [{"type": "output_text", "text": text, "annotations": []}],
    }


def response(*items: dict[str, Any], response_id: str = "resp_1") -> dict[str, Any]:
    return {"id": response_id, "output": list(items)}


def completed(text: str, response_id: str = "resp_s") -> ResponseCompleted:
    return ResponseCompleted(response=ModelResponse.from_raw(response(message(text), response_id=response_id)))


def deltas(*fragments: str) -> list[TextDelta]:
    return [TextDelta(delta=fragment) for fragment in fragments]


class ScriptedService:
    """Replays canned responses (or raises canned errors) in order."""

    def __init__(self, responses: list[Any] | None = None, streams: list[list[Any]] | None = None) -> None:
        self.responses = list(responses or [])
        self.streams = list(streams or [])
        self.requests: list[ModelRequest] = []

    async def create(self, request: ModelRequest) -> ModelResponse:
        self.requests.append(request)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return ModelResponse.from_raw(item)

    async def stream(self, request: ModelRequest):
        self.requests.append(request)
        for event in self.streams.pop(0):
            if isinstance(event, Exception):
                raise event
            yield event
