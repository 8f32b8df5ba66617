"""Tool server configuration."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(ENV_FILE, override=False)


class ToolServerSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TOOL_LOOP_TOOLS_", env_file=str(ENV_FILE), extra="ignore")

    host: str = "0.0.0.0"
    port: int = 7001

    request_timeout_s: float = 8.0
    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    open_meteo_base_url: str = "https://api.open-meteo.com/v1"
    user_agent: str = "responses-tool-loop/0.1"
    default_tip_percentage: float = 20.0
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> ToolServerSettings:
    return ToolServerSettings()
