"""Round-trip tool-calling loop.

One turn = one user input through to one final assistant message:

1. append the user message to the conversation items;
2. send items + tool definitions + instructions to the model service;
3. if the response requests function calls, append its output verbatim,
   run each call through the dispatcher, append one result per call id in
   request order, and go back to 2;
4. otherwise the response text is the answer.

Both delivery modes share this loop; streaming only changes how a single
response is received (see ``stream.StreamDemultiplexer``).
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from .dispatcher import ToolDispatcher
from .errors import RoundLimitExceeded, ServiceRequestError
from .items import ModelResponse
from .logging import get_logger
from .prompts import TOOL_INSTRUCTIONS
from .service import ModelRequest, ModelService, build_tool_definitions
from .settings import OrchestratorSettings
from .state import (
    ConversationMessage,
    ConversationState,
    ToolCallRequest,
    ToolExecutionRecord,
    ToolExecutionResult,
    TurnSummary,
)
from .stream import DeltaListener, StreamDemultiplexer
from .trace import TraceLedger

logger = get_logger("engine")


class ConversationLoop:
    def __init__(
        self,
        settings: OrchestratorSettings,
        service: ModelService,
        dispatcher: ToolDispatcher,
        ledger: TraceLedger,
    ) -> None:
        self._settings = settings
        self._service = service
        self._dispatcher = dispatcher
        self._ledger = ledger
        self._instructions = settings.instructions or TOOL_INSTRUCTIONS
        self.tool_definitions = build_tool_definitions(dispatcher.list_specs())

    async def advance(self, state: ConversationState, user_input: str) -> ConversationMessage:
        """Run one turn with single-shot responses."""
        return await self._run_turn(state, user_input, stream=False, on_delta=None)

    async def advance_stream(
        self,
        state: ConversationState,
        user_input: str,
        on_delta: DeltaListener | None = None,
    ) -> ConversationMessage:
        """Run one turn, receiving every model response as an event stream."""
        return await self._run_turn(state, user_input, stream=True, on_delta=on_delta)

    async def _run_turn(
        self,
        state: ConversationState,
        user_input: str,
        *,
        stream: bool,
        on_delta: DeltaListener | None,
    ) -> ConversationMessage:
        # The ledger covers exactly one turn.
        self._ledger.clear()
        state.append_message(ConversationMessage(role="user", content=user_input))
        summary = TurnSummary()
        round_calls: list[ToolCallRequest] = []
        logger.info(
            "turn_started",
            extra={"extra": {"stream": stream, "input_items": len(state.items), "model": self._settings.openai_model}},
        )

        try:
            response, text = await self._request(state, 0, stream=stream, on_delta=on_delta)
            while True:
                calls = response.function_calls
                if not calls:
                    self._ledger.push(
                        f"round-{summary.total_rounds}-done",
                        "Model responded (no tool calls)" if summary.total_rounds == 0 else "Final response received",
                        "completed",
                        response.raw_output(),
                    )
                    break
                if summary.total_rounds >= self._settings.max_rounds:
                    logger.warning(
                        "round_limit_reached",
                        extra={"extra": {"max_rounds": self._settings.max_rounds, "pending_calls": len(calls)}},
                    )
                    raise RoundLimitExceeded(self._settings.max_rounds)

                summary.total_rounds += 1
                round_index = summary.total_rounds
                self._ledger.push(
                    f"round-{round_index}-calls",
                    f"Round {round_index}: {len(calls)} tool call(s)",
                    "completed",
                    [
                        {"name": call.name, "call_id": call.id, "arguments": _decoded(call.arguments)}
                        for call in calls
                    ],
                )
                state.extend_items(response.raw_output())
                round_calls = calls
                await self._execute_round(state, calls, round_index, summary)
                round_calls = []
                response, text = await self._request(state, round_index, stream=stream, on_delta=on_delta)
        except ServiceRequestError as exc:
            return self._fail_turn(state, exc)
        except asyncio.CancelledError:
            self._cancel_turn(state, round_calls)
            raise

        message = ConversationMessage(
            role="assistant",
            content=text or "No response",
            metadata=summary.to_metadata(response.id, response.raw_output()),
        )
        state.extend_items(response.raw_output())
        state.append_message(message, include_in_input=False)
        logger.info(
            "turn_completed",
            extra={"extra": {"rounds": summary.total_rounds, "tool_calls": len(summary.function_executions)}},
        )
        return message

    async def _request(
        self,
        state: ConversationState,
        round_index: int,
        *,
        stream: bool,
        on_delta: DeltaListener | None,
    ) -> tuple[ModelResponse, str]:
        request = ModelRequest(
            model=self._settings.openai_model,
            input=list(state.items),
            tools=self.tool_definitions,
            native_tools=self._settings.native_tools,
            instructions=self._instructions,
        )
        if round_index == 0:
            step_id, label = "initial-request", "Sending request to model"
        else:
            step_id, label = f"round-{round_index}-followup", f"Sending round {round_index} results to model"
        done = self._ledger.begin(
            step_id,
            label,
            {"model": request.model, "inputItemCount": len(request.input), "stream": stream},
        )
        logger.info(
            "model_request",
            extra={"extra": {"round": round_index, "input_items": len(request.input), "stream": stream}},
        )

        if stream:
            demux = StreamDemultiplexer(self._ledger, step_prefix=f"round-{round_index}", on_delta=on_delta)
            response = await demux.consume(
                self._service.stream(request),
                event_timeout=self._settings.stream_event_timeout_s,
            )
            text = demux.draft.content
        else:
            try:
                response = await asyncio.wait_for(self._service.create(request), self._settings.openai_timeout_s)
            except asyncio.TimeoutError as exc:
                raise ServiceRequestError("Timed out waiting for the model service", code="TIMEOUT") from exc
            text = response.output_text

        done(
            "Initial response received" if round_index == 0 else f"Round {round_index} response received",
            {
                "responseId": response.id,
                "outputItemCount": len(response.output),
                "toolCallCount": len(response.function_calls),
            },
        )
        logger.info(
            "model_response",
            extra={"extra": {"round": round_index, "response_id": response.id, "tool_calls": len(response.function_calls)}},
        )
        return response, text

    async def _execute_round(
        self,
        state: ConversationState,
        calls: list[ToolCallRequest],
        round_index: int,
        summary: TurnSummary,
    ) -> None:
        if self._settings.parallel_tool_calls:
            results = await asyncio.gather(*(self._execute_call(call) for call in calls))
            for call, result in zip(calls, results):
                self._record_result(state, call, result, round_index, summary)
            return
        for call in calls:
            result = await self._execute_call(call)
            self._record_result(state, call, result, round_index, summary)

    async def _execute_call(self, call: ToolCallRequest) -> ToolExecutionResult:
        arguments = _decoded(call.arguments)
        done = self._ledger.begin(
            f"exec-{call.id}",
            f"Executing {call.name}()",
            {"function": call.name, "arguments": arguments},
        )
        result = await self._dispatcher.execute(call)
        if result.ok:
            done(f"{call.name}() returned", {"function": call.name, "arguments": arguments, "result": result.data})
        else:
            done.fail(f"{call.name}() failed", {"function": call.name, "arguments": arguments, "error": result.error})
        return result

    def _record_result(
        self,
        state: ConversationState,
        call: ToolCallRequest,
        result: ToolExecutionResult,
        round_index: int,
        summary: TurnSummary,
    ) -> None:
        state.append_result(result)
        summary.function_executions.append(
            ToolExecutionRecord(
                round=round_index,
                call_id=call.id,
                function_name=call.name,
                arguments=_decoded(call.arguments),
                result=result.payload,
                latency_ms=result.latency_ms,
            )
        )

    def _fail_turn(self, state: ConversationState, exc: ServiceRequestError) -> ConversationMessage:
        error = {"code": exc.code, "message": exc.message}
        if not self._fail_pending_steps(error):
            self._ledger.push("turn-error", exc.message, "error", error)
        logger.info("model_error", extra={"extra": error})
        message = ConversationMessage(role="assistant", content=f"Error: {exc.message}", metadata={"error": error})
        # Shown to the user, never sent back to the model.
        state.append_message(message, include_in_input=False)
        return message

    def _cancel_turn(self, state: ConversationState, round_calls: list[ToolCallRequest]) -> None:
        error = {"code": "CANCELLED", "message": "Cancelled"}
        self._fail_pending_steps(error)
        # Every function call already in the items needs an output, or the
        # next turn's request would be rejected.
        answered = state.answered_call_ids()
        for call in round_calls:
            if call.id not in answered:
                state.append_result(ToolExecutionResult(id=call.id, name=call.name, ok=False, error=error))
        state.append_message(
            ConversationMessage(role="assistant", content="Error: Cancelled", metadata={"error": error}),
            include_in_input=False,
        )
        logger.info("turn_cancelled", extra={"extra": {"unanswered_calls": len(round_calls)}})

    def _fail_pending_steps(self, error: dict[str, Any]) -> bool:
        failed = False
        for step in self._ledger.snapshot():
            if step.status == "pending":
                self._ledger.push(step.id, step.label, "error", error)
                failed = True
        return failed


def _decoded(arguments: str) -> Any:
    try:
        return json.loads(arguments) if arguments else {}
    except ValueError:
        return arguments
