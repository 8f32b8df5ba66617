"""Orchestrator configuration.

Settings are read once by the outer layer (HTTP app, CLI) and handed to the
loop engine explicitly; nothing in the core reads ``get_settings()``.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(ENV_FILE, override=False)


class OrchestratorSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TOOL_LOOP_", env_file=str(ENV_FILE), extra="ignore")

    host: str = "0.0.0.0"
    port: int = 7002

    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "TOOL_LOOP_OPENAI_API_KEY"),
    )
    openai_model: str = "gpt-5"
    openai_timeout_s: float = 60.0
    stream_event_timeout_s: float = 60.0
    instructions: str | None = None
    # Service-side tools passed through verbatim, e.g. [{"type": "web_search"}].
    native_tools: list[dict[str, Any]] = Field(default_factory=list)

    max_rounds: int = Field(default=8, ge=1)
    parallel_tool_calls: bool = False

    tool_base_url: str = "inproc"
    request_timeout_s: float = 10.0

    mock_llm: bool = False
    trace_enabled: bool = True
    trace_dir: str = "traces"
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> OrchestratorSettings:
    return OrchestratorSettings()
