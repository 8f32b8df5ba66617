"""FastAPI app exposing the tool registry over HTTP.

The orchestrator calls this server when ``tool_base_url`` is not ``inproc``.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from pydantic import ValidationError

from .adapters import AdapterError
from .logging import get_logger
from .schemas import ToolError, ToolMeta, ToolResponse
from .settings import get_settings
from .tools import get_tool_handler, get_tool_spec, invoke_handler, list_tool_specs

logger = get_logger("server")

app = FastAPI(title="Tool Loop Tool Server", version="0.1.0")


@app.on_event("startup")
def log_startup_config() -> None:
    settings = get_settings()
    logger.info(
        "tool_server_config",
        extra={
            "extra": {
                "tools": [spec.name for spec in list_tool_specs()],
                "nominatim_base_url": settings.nominatim_base_url,
                "open_meteo_base_url": settings.open_meteo_base_url,
            }
        },
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/tools")
def list_tools() -> list[dict[str, Any]]:
    return [
        {
            "name": spec.name,
            "description": spec.description,
            "strict": spec.strict,
            "input_schema": spec.input_model.model_json_schema(),
            "output_schema": spec.output_model.model_json_schema(),
        }
        for spec in list_tool_specs()
    ]


@app.post("/tools/{tool_name}")
async def call_tool(tool_name: str, request: Request) -> ToolResponse:
    # The orchestrator forwards the model's call id so both logs line up.
    call_id = request.headers.get("x-call-id") or str(uuid.uuid4())
    start = time.time()
    settings = get_settings()

    spec = get_tool_spec(tool_name)
    handler = get_tool_handler(tool_name)
    if not spec or not handler:
        raise HTTPException(status_code=404, detail=f"Unknown tool: {tool_name}")

    error: ToolError | None = None
    data: Any = None
    try:
        payload = await request.json()
    except ValueError as exc:
        payload = None
        error = ToolError(code="INVALID_ARGUMENT", message=f"Body is not valid JSON: {exc}")

    try:
        if error is None:
            input_obj = spec.input_model.model_validate(payload)
            result = await invoke_handler(handler, input_obj, settings, call_id)
            data = result.model_dump()
    except ValidationError as exc:
        error = ToolError(code="INVALID_ARGUMENT", message=str(exc))
    except AdapterError as exc:
        error = exc.to_tool_error()
    except Exception as exc:  # noqa: BLE001
        error = ToolError(code="TOOL_ERROR", message=str(exc))

    latency_ms = int((time.time() - start) * 1000)
    logger.info(
        "tool_call" if error is None else "tool_error",
        extra={
            "extra": {
                "call_id": call_id,
                "tool": tool_name,
                "latency_ms": latency_ms,
                "ok": error is None,
                "error_code": error.code if error else None,
            }
        },
    )
    return ToolResponse(
        ok=error is None,
        data=data,
        error=error,
        meta=ToolMeta(tool_name=tool_name, call_id=call_id, latency_ms=latency_ms, source="http"),
    )


def main() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "tool_server.server:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
