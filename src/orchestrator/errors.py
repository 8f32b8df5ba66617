"""Errors that abort a turn.

Tool failures are not here: the dispatcher converts them into error payloads
so the model can react to them.
"""

from __future__ import annotations


class ServiceRequestError(RuntimeError):
    """The model service call failed (network, status, malformed response, timeout)."""

    def __init__(self, message: str, *, code: str = "SERVICE_ERROR") -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class StreamTerminationError(ServiceRequestError):
    """The event stream ended without a terminal completed event."""

    def __init__(self, message: str = "Stream ended before the response completed", *, code: str = "STREAM_TERMINATED") -> None:
        super().__init__(message, code=code)


class RoundLimitExceeded(ServiceRequestError):
    def __init__(self, max_rounds: int) -> None:
        super().__init__(
            f"Stopped after {max_rounds} rounds; the model kept requesting tools",
            code="ROUND_LIMIT",
        )
        self.max_rounds = max_rounds


class SessionBusyError(RuntimeError):
    """A turn is already in flight for this conversation."""
