import pytest

from orchestrator.settings import OrchestratorSettings
from tool_server.settings import ToolServerSettings


@pytest.fixture
def settings(monkeypatch, tmp_path) -> OrchestratorSettings:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return OrchestratorSettings(
        mock_llm=True,
        tool_base_url="inproc",
        trace_enabled=False,
        trace_dir=str(tmp_path / "traces"),
        max_rounds=4,
    )


@pytest.fixture
def tool_settings() -> ToolServerSettings:
    return ToolServerSettings(default_tip_percentage=20.0)
