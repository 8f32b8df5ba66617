"""Upstream HTTP adapters used by the tools."""

from __future__ import annotations

from ..schemas import ToolError


class AdapterError(RuntimeError):
    """Upstream failure already normalized to a tool error code."""

    def __init__(self, code: str, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_tool_error(self) -> ToolError:
        return ToolError(code=self.code, message=self.message, details=self.details or None)
