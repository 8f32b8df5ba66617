"""Protocol adapter between HTTP requests and the conversation loop.

Keep this layer thin so protocol changes do not affect core loop logic.
"""

from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, Field

from .dispatcher import ToolDispatcher
from .engine import ConversationLoop
from .errors import SessionBusyError
from .logging import get_logger
from .mock import MockModelService
from .service import ModelService, OpenAIModelService
from .settings import OrchestratorSettings
from .state import ConversationMessage, ConversationState
from .stream import DeltaListener
from .trace import TraceLedger, write_trace

logger = get_logger("executor")


class AskRequest(BaseModel):
    query: str = Field(..., min_length=1)


class AskResponse(BaseModel):
    answer: str
    turn_id: str
    trace: list[dict[str, Any]]
    metadata: dict[str, Any] | None = None


def build_model_service(settings: OrchestratorSettings) -> ModelService:
    if settings.mock_llm or not settings.openai_api_key:
        return MockModelService()
    return OpenAIModelService(settings)


class ChatSession:
    """The single active conversation: its state, its ledger and its loop.

    Callers must not start a turn while another is in flight; a second
    request gets SessionBusyError instead of interleaving with the first.
    """

    def __init__(
        self,
        settings: OrchestratorSettings,
        *,
        service: ModelService | None = None,
        dispatcher: ToolDispatcher | None = None,
    ) -> None:
        self.settings = settings
        self.conversation = ConversationState()
        self.ledger = TraceLedger()
        self.loop = ConversationLoop(
            settings,
            service or build_model_service(settings),
            dispatcher or ToolDispatcher(settings),
            self.ledger,
        )
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def reserve(self) -> None:
        """Claim the session for one turn; ``ask(..., reserved=True)`` consumes the claim."""
        if self._busy:
            raise SessionBusyError("A turn is already in progress")
        self._busy = True

    def release(self) -> None:
        self._busy = False

    async def ask(
        self,
        query: str,
        *,
        stream: bool = False,
        on_delta: DeltaListener | None = None,
        reserved: bool = False,
    ) -> AskResponse:
        if not reserved:
            self.reserve()
        turn_id = str(uuid.uuid4())
        try:
            if stream:
                message = await self.loop.advance_stream(self.conversation, query, on_delta=on_delta)
            else:
                message = await self.loop.advance(self.conversation, query)
        finally:
            self.release()
            self._write_trace(turn_id, query)
        return self._response(turn_id, message)

    def clear(self) -> None:
        if self._busy:
            raise SessionBusyError("Cannot clear while a turn is in progress")
        self.conversation.clear()
        self.ledger.clear()

    def messages(self) -> list[dict[str, Any]]:
        return [message.to_dict() for message in self.conversation.messages]

    def _response(self, turn_id: str, message: ConversationMessage) -> AskResponse:
        return AskResponse(
            answer=message.content,
            turn_id=turn_id,
            trace=[step.to_dict() for step in self.ledger.snapshot()],
            metadata=message.metadata,
        )

    def _write_trace(self, turn_id: str, query: str) -> None:
        if not self.settings.trace_enabled:
            return
        messages = self.conversation.messages
        answer = messages[-1].content if messages and messages[-1].role == "assistant" else None
        try:
            write_trace(turn_id, self.ledger.snapshot(), self.settings.trace_dir, query=query, answer=answer)
        except OSError as exc:
            logger.info("trace_write_failed", extra={"extra": {"turn_id": turn_id, "error": str(exc)}})
