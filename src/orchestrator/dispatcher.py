"""Unified tool calling layer.

Turns a model's tool-call request into exactly one ToolExecutionResult. Every
failure (bad JSON, unknown name, validation, handler crash, tool server down)
comes back as an error payload instead of an exception, so the loop keeps
going and the model gets to see what went wrong.
"""

from __future__ import annotations

import json
import time
from typing import Any, Mapping

import httpx
from pydantic import ValidationError

from tool_server.adapters import AdapterError
from tool_server.schemas import ToolError, ToolMeta, ToolResponse, ToolSpec
from tool_server.settings import ToolServerSettings
from tool_server.settings import get_settings as get_tool_settings
from tool_server.tools import TOOL_HANDLERS, TOOL_SPECS, ToolHandler, invoke_handler

from .logging import get_logger
from .settings import OrchestratorSettings
from .state import ToolCallRequest, ToolExecutionResult

logger = get_logger("dispatcher")

INPROC = "inproc"


def parse_arguments(raw: str) -> dict[str, Any]:
    """Decode the model's JSON argument text; an empty string means no arguments."""
    if not raw or not raw.strip():
        return {}
    args = json.loads(raw)
    if not isinstance(args, dict):
        raise ValueError(f"arguments must be a JSON object, got {type(args).__name__}")
    return args


class ToolDispatcher:
    def __init__(
        self,
        settings: OrchestratorSettings,
        *,
        specs: Mapping[str, ToolSpec] | None = None,
        handlers: Mapping[str, ToolHandler] | None = None,
        tool_settings: ToolServerSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._specs = dict(TOOL_SPECS if specs is None else specs)
        self._handlers = dict(TOOL_HANDLERS if handlers is None else handlers)
        self._tool_settings = tool_settings
        self._transport = transport

    def list_specs(self) -> list[ToolSpec]:
        return list(self._specs.values())

    async def execute(self, request: ToolCallRequest) -> ToolExecutionResult:
        start = time.time()
        try:
            args = parse_arguments(request.arguments)
        except ValueError as exc:
            response = _failure(request, "INVALID_ARGUMENT", f"Could not parse arguments: {exc}")
        else:
            if request.name not in self._specs:
                response = _failure(request, "NOT_FOUND", f"Unknown tool: {request.name}")
            elif self._settings.tool_base_url == INPROC:
                response = await self._call_inproc(request, args)
            else:
                response = await self._call_http(request, args)

        latency_ms = int((time.time() - start) * 1000)
        error = response.error.model_dump() if response.error else None
        logger.info(
            "tool_call" if response.ok else "tool_call_failed",
            extra={
                "extra": {
                    "call_id": request.id,
                    "tool": request.name,
                    "latency_ms": latency_ms,
                    "ok": response.ok,
                    "error_code": error["code"] if error else None,
                }
            },
        )
        return ToolExecutionResult(
            id=request.id,
            name=request.name,
            ok=response.ok,
            data=response.data if response.ok else None,
            error=error,
            latency_ms=latency_ms,
        )

    async def _call_inproc(self, request: ToolCallRequest, args: dict[str, Any]) -> ToolResponse:
        # Local in-process handler avoids HTTP overhead.
        spec = self._specs[request.name]
        handler = self._handlers.get(request.name)
        if handler is None:
            return _failure(request, "NOT_FOUND", f"No handler registered for tool: {request.name}")
        try:
            input_obj = spec.input_model.model_validate(args)
        except ValidationError as exc:
            return _failure(request, "INVALID_ARGUMENT", str(exc))
        try:
            result = await invoke_handler(handler, input_obj, self._tool_settings or get_tool_settings(), request.id)
        except AdapterError as exc:
            return ToolResponse(
                ok=False,
                error=exc.to_tool_error(),
                meta=ToolMeta(tool_name=request.name, call_id=request.id, source=INPROC),
            )
        except Exception as exc:  # noqa: BLE001
            return _failure(request, "TOOL_ERROR", str(exc) or type(exc).__name__)
        data = result.model_dump() if hasattr(result, "model_dump") else result
        return ToolResponse(
            ok=True,
            data=data,
            meta=ToolMeta(tool_name=request.name, call_id=request.id, source=INPROC),
        )

    async def _call_http(self, request: ToolCallRequest, args: dict[str, Any]) -> ToolResponse:
        # Standard path: HTTP request to the tool server.
        url = f"{self._settings.tool_base_url}/tools/{request.name}"
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.request_timeout_s,
                trust_env=False,
                transport=self._transport,
            ) as client:
                resp = await client.post(url, json=args, headers={"x-call-id": request.id})
        except httpx.RequestError as exc:
            return _failure(request, "TOOL_UNAVAILABLE", str(exc) or type(exc).__name__)

        if resp.status_code == 404:
            return _failure(request, "NOT_FOUND", f"Unknown tool: {request.name}")
        if resp.status_code >= 500:
            return _failure(request, "TOOL_UPSTREAM_5XX", f"Tool server error: {resp.status_code}")
        try:
            return ToolResponse.model_validate(resp.json())
        except ValueError as exc:
            return _failure(request, "TOOL_BAD_RESPONSE", str(exc))


def _failure(
    request: ToolCallRequest,
    code: str,
    message: str,
) -> ToolResponse:
    return ToolResponse(
        ok=False,
        data=None,
        error=ToolError(code=code, message=message),
        meta=ToolMeta(tool_name=request.name, call_id=request.id),
    )
