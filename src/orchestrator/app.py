"""FastAPI entry for the orchestrator."""

from __future__ import annotations

import asyncio
import json
from functools import lru_cache
from typing import Any, AsyncGenerator

from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from .errors import SessionBusyError
from .executor import AskRequest, AskResponse, ChatSession
from .logging import configure_logging, get_logger
from .settings import get_settings

app = FastAPI(title="Tool Loop Orchestrator", version="0.1.0")
logger = get_logger("app")


@lru_cache(maxsize=1)
def get_session() -> ChatSession:
    return ChatSession(get_settings())


@app.on_event("startup")
def log_startup_config() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(
        "orchestrator_config",
        extra={
            "extra": {
                "openai_model": settings.openai_model,
                "mock_llm": settings.mock_llm or not settings.openai_api_key,
                "tool_base_url": settings.tool_base_url,
                "max_rounds": settings.max_rounds,
                "parallel_tool_calls": settings.parallel_tool_calls,
                "native_tools": [tool.get("type") for tool in settings.native_tools],
            }
        },
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/agent-card")
def agent_card() -> dict[str, object]:
    session = get_session()
    return {
        "name": "tool-loop-orchestrator",
        "version": "0.1.0",
        "description": "Round-trip tool-calling loop with a live trace ledger.",
        "endpoints": {
            "ask": "/v1/ask",
            "ask_stream": "/v1/ask/stream",
            "trace": "/v1/trace",
            "messages": "/v1/messages",
            "clear": "/v1/clear",
        },
        "tools": [tool.name for tool in session.loop.tool_definitions],
    }


@app.post("/v1/ask")
async def ask(payload: AskRequest) -> AskResponse:
    try:
        return await get_session().ask(payload.query)
    except SessionBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@app.post("/v1/ask/stream")
async def ask_stream(payload: AskRequest) -> StreamingResponse:
    session = get_session()
    try:
        # The turn task inherits this claim.
        session.reserve()
    except SessionBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    turn = _SSETurn(session, payload.query)
    return StreamingResponse(
        turn.events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        background=BackgroundTask(turn.release_if_unstarted),
    )


@app.get("/v1/trace")
def trace() -> list[dict[str, Any]]:
    return [step.to_dict() for step in get_session().ledger.snapshot()]


@app.get("/v1/messages")
def messages() -> list[dict[str, Any]]:
    return get_session().messages()


@app.post("/v1/clear")
def clear() -> dict[str, str]:
    try:
        get_session().clear()
    except SessionBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"status": "cleared"}


class _SSETurn:
    """Relays one reserved turn as SSE while it runs in its own task.

    If the client disconnects, the generator is closed and the turn is
    cancelled. If the turn never starts (body never iterated, or task
    cancelled before its first step), the reservation is returned once.
    """

    def __init__(self, session: ChatSession, query: str) -> None:
        self._session = session
        self._query = query
        self._claimed = True

    def release_if_unstarted(self) -> None:
        if self._claimed:
            self._claimed = False
            self._session.release()

    async def events(self) -> AsyncGenerator[str, None]:
        queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
        unsubscribe = self._session.ledger.subscribe(
            lambda step: queue.put_nowait({"type": "trace", "step": step.to_dict()})
        )

        def on_delta(delta: str, _content: str) -> None:
            queue.put_nowait({"type": "delta", "delta": delta})

        async def run() -> None:
            # From here on ChatSession.ask owns the reservation.
            self._claimed = False
            try:
                response = await self._session.ask(self._query, stream=True, on_delta=on_delta, reserved=True)
                queue.put_nowait({"type": "final", "message": response.model_dump()})
            except Exception as exc:  # noqa: BLE001
                logger.exception("stream_turn_failed")
                queue.put_nowait({"type": "error", "message": str(exc)})
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(run())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield f"data: {json.dumps(event, ensure_ascii=False, default=str)}\n\n"
        finally:
            unsubscribe()
            if not task.done():
                task.cancel()
                task.add_done_callback(lambda _task: self.release_if_unstarted())
