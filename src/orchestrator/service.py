"""Model service contract and the OpenAI Responses API implementation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Protocol

import httpx
from openai import AsyncOpenAI, OpenAIError

from tool_server.schemas import ToolSpec

from .errors import ServiceRequestError
from .items import ModelResponse, StreamEvent, parse_stream_event
from .settings import OrchestratorSettings

# The SDK wraps most transport failures, but a connection dropped mid-stream
# can surface as a raw httpx error.
SERVICE_ERRORS = (OpenAIError, httpx.HTTPError)


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    parameters: dict[str, Any]
    strict: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
            "strict": self.strict,
        }


def build_tool_definitions(specs: list[ToolSpec]) -> list[ToolDefinition]:
    """Translate internal tool specs into function tool definitions."""
    return [
        ToolDefinition(
            name=spec.name,
            description=spec.description,
            parameters=spec.input_model.model_json_schema(),
            strict=spec.strict,
        )
        for spec in specs
    ]


@dataclass
class ModelRequest:
    model: str
    input: list[dict[str, Any]]
    tools: list[ToolDefinition] = field(default_factory=list)
    native_tools: list[dict[str, Any]] = field(default_factory=list)
    instructions: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            # Copy so later appends to the conversation do not leak into a sent request.
            "input": list(self.input),
        }
        tools = [tool.to_payload() for tool in self.tools] + list(self.native_tools)
        if tools:
            payload["tools"] = tools
        if self.instructions:
            payload["instructions"] = self.instructions
        return payload


class ModelService(Protocol):
    async def create(self, request: ModelRequest) -> ModelResponse:
        ...

    def stream(self, request: ModelRequest) -> AsyncIterator[StreamEvent]:
        ...


class OpenAIModelService:
    """Talks to the Responses API with the async OpenAI client."""

    def __init__(self, settings: OrchestratorSettings, client: AsyncOpenAI | None = None) -> None:
        self._client = client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.openai_timeout_s,
        )

    async def create(self, request: ModelRequest) -> ModelResponse:
        try:
            response = await self._client.responses.create(**request.to_payload())
        except SERVICE_ERRORS as exc:
            raise ServiceRequestError(str(exc), code=type(exc).__name__) from exc
        return ModelResponse.from_raw(response)

    async def stream(self, request: ModelRequest) -> AsyncIterator[StreamEvent]:
        try:
            events = await self._client.responses.create(**request.to_payload(), stream=True)
        except SERVICE_ERRORS as exc:
            raise ServiceRequestError(str(exc), code=type(exc).__name__) from exc
        try:
            async for event in events:
                yield parse_stream_event(event)
        except SERVICE_ERRORS as exc:
            raise ServiceRequestError(str(exc), code=type(exc).__name__) from exc
        finally:
            await events.close()
