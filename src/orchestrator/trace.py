"""Live progress ledger for one turn.

Steps are keyed by id. Writing an existing id replaces the step where it
already sits, so observers see a stable timeline whose entries change status
in place (pending -> completed/error).

The ledger lives for one turn: ``ConversationLoop`` clears it when a turn
starts, and the session clears it again on an explicit conversation reset.
"""

from __future__ import annotations

import json
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from .logging import get_logger
from .state import StepStatus, TraceStep

logger = get_logger("trace")

TraceListener = Callable[[TraceStep], None]


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class StepCompletion:
    """Finishes a step opened with ``TraceLedger.begin`` under the same id."""

    def __init__(self, ledger: TraceLedger, step_id: str, label: str) -> None:
        self._ledger = ledger
        self.step_id = step_id
        self.label = label

    def __call__(self, label: str | None = None, payload: Any = None, *, error: bool = False) -> TraceStep:
        return self._ledger.upsert(
            TraceStep(
                id=self.step_id,
                label=label or self.label,
                status="error" if error else "completed",
                timestamp=time.time(),
                payload=payload,
            )
        )

    def fail(self, label: str | None = None, payload: Any = None) -> TraceStep:
        return self(label, payload, error=True)


class TraceLedger:
    def __init__(self) -> None:
        # dict keeps first-insertion order and reassignment keeps position.
        self._steps: dict[str, TraceStep] = {}
        self._listeners: list[TraceListener] = []

    def __len__(self) -> int:
        return len(self._steps)

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._steps

    def get(self, step_id: str) -> TraceStep | None:
        return self._steps.get(step_id)

    def upsert(self, step: TraceStep) -> TraceStep:
        self._steps[step.id] = step
        for listener in list(self._listeners):
            try:
                listener(step)
            except Exception:  # noqa: BLE001
                # A broken observer must not break the turn.
                logger.exception("trace_listener_failed", extra={"extra": {"step_id": step.id}})
        return step

    def push(
        self,
        step_id: str,
        label: str,
        status: StepStatus,
        payload: Any = None,
    ) -> TraceStep:
        return self.upsert(TraceStep(id=step_id, label=label, status=status, timestamp=time.time(), payload=payload))

    def begin(self, step_id: str, label: str, payload: Any = None) -> StepCompletion:
        self.push(step_id, label, "pending", payload)
        return StepCompletion(self, step_id, label)

    def snapshot(self) -> tuple[TraceStep, ...]:
        return tuple(self._steps.values())

    def clear(self) -> None:
        self._steps.clear()

    def subscribe(self, listener: TraceListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


def write_trace(
    turn_id: str,
    steps: tuple[TraceStep, ...],
    trace_dir: str,
    *,
    query: str | None = None,
    answer: str | None = None,
) -> Path:
    """Dump one turn's steps as JSON for offline inspection."""
    os.makedirs(trace_dir, exist_ok=True)
    ts = now_utc_iso().replace(":", "-")
    path = Path(trace_dir) / f"{ts}_{turn_id}.json"
    record = {
        "turn_id": turn_id,
        "written_at": now_utc_iso(),
        "query": query,
        "answer": answer,
        "steps": [step.to_dict() for step in steps],
    }
    path.write_text(json.dumps(record, ensure_ascii=False, indent=2, default=str), encoding="utf-8")
    return path
