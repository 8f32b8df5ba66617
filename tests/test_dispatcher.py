import httpx
import pytest
from pydantic import BaseModel

from orchestrator.dispatcher import ToolDispatcher, parse_arguments
from orchestrator.state import ToolCallRequest
from tool_server.adapters import AdapterError
from tool_server.schemas import ToolSpec


class EchoInput(BaseModel):
    text: str


class EchoOutput(BaseModel):
    text: str


ECHO_SPEC = ToolSpec(name="echo", description="Echo text back.", input_model=EchoInput, output_model=EchoOutput)


def _dispatcher(settings, tool_settings, handler):
    return ToolDispatcher(
        settings,
        specs={"echo": ECHO_SPEC},
        handlers={"echo": handler},
        tool_settings=tool_settings,
    )


def test_parse_arguments_accepts_empty_text():
    assert parse_arguments("") == {}
    assert parse_arguments('{"a": 1}') == {"a": 1}


def test_parse_arguments_rejects_non_objects():
    with pytest.raises(ValueError):
        parse_arguments("[1, 2]")


@pytest.mark.asyncio
async def test_tip_call_uses_default_rate(settings, tool_settings):
    dispatcher = ToolDispatcher(settings, tool_settings=tool_settings)
    request = ToolCallRequest(id="c1", name="calculate_tip", arguments='{"bill_amount":50}')

    result = await dispatcher.execute(request)

    assert result.ok
    assert result.id == "c1"
    assert result.payload["tip_amount"] == 10
    assert result.payload["total_amount"] == 60


@pytest.mark.asyncio
async def test_unknown_tool_is_an_error_payload(settings, tool_settings):
    dispatcher = ToolDispatcher(settings, tool_settings=tool_settings)

    result = await dispatcher.execute(ToolCallRequest(id="c2", name="nonexistent_tool", arguments="{}"))

    assert not result.ok
    assert result.payload == {"error": result.error}
    assert result.error["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_unparseable_arguments_are_an_error_payload(settings, tool_settings):
    dispatcher = ToolDispatcher(settings, tool_settings=tool_settings)

    result = await dispatcher.execute(ToolCallRequest(id="c3", name="calculate_tip", arguments="{bill_amount:"))

    assert not result.ok
    assert result.error["code"] == "INVALID_ARGUMENT"


@pytest.mark.asyncio
async def test_schema_violation_is_an_error_payload(settings, tool_settings):
    dispatcher = ToolDispatcher(settings, tool_settings=tool_settings)

    result = await dispatcher.execute(ToolCallRequest(id="c4", name="calculate_tip", arguments='{"tip_percentage": 15}'))

    assert not result.ok
    assert result.error["code"] == "INVALID_ARGUMENT"
    assert "bill_amount" in result.error["message"]


@pytest.mark.asyncio
async def test_handler_crash_is_caught(settings, tool_settings):
    def broken(_payload, _settings, _call_id):
        raise RuntimeError("boom")

    result = await _dispatcher(settings, tool_settings, broken).execute(
        ToolCallRequest(id="c5", name="echo", arguments='{"text": "hi"}')
    )

    assert not result.ok
    assert result.error == {"code": "TOOL_ERROR", "message": "boom", "details": None}


@pytest.mark.asyncio
async def test_adapter_error_keeps_its_code(settings, tool_settings):
    async def unavailable(_payload, _settings, _call_id):
        raise AdapterError("UPSTREAM_ERROR", "upstream said no", {"status_code": 503})

    result = await _dispatcher(settings, tool_settings, unavailable).execute(
        ToolCallRequest(id="c6", name="echo", arguments='{"text": "hi"}')
    )

    assert result.error["code"] == "UPSTREAM_ERROR"
    assert result.error["details"] == {"status_code": 503}


@pytest.mark.asyncio
async def test_async_handler_is_awaited(settings, tool_settings):
    async def echo(payload, _settings, call_id):
        return EchoOutput(text=f"{payload.text}:{call_id}")

    result = await _dispatcher(settings, tool_settings, echo).execute(
        ToolCallRequest(id="c7", name="echo", arguments='{"text": "hi"}')
    )

    assert result.ok
    assert result.data == {"text": "hi:c7"}


def _http_settings(settings):
    return settings.model_copy(update={"tool_base_url": "http://tools.test"})


@pytest.mark.asyncio
async def test_http_dispatch_returns_tool_server_payload(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/tools/calculate_tip"
        assert request.headers["x-call-id"] == "c8"
        return httpx.Response(
            200,
            json={
                "ok": True,
                "data": {"tip_amount": 10.0, "total_amount": 60.0},
                "error": None,
                "meta": {"tool_name": "calculate_tip", "call_id": "c8"},
            },
        )

    dispatcher = ToolDispatcher(_http_settings(settings), transport=httpx.MockTransport(handler))
    result = await dispatcher.execute(ToolCallRequest(id="c8", name="calculate_tip", arguments='{"bill_amount": 50}'))

    assert result.ok
    assert result.data["total_amount"] == 60.0


@pytest.mark.asyncio
async def test_http_dispatch_maps_server_errors(settings):
    dispatcher = ToolDispatcher(
        _http_settings(settings),
        transport=httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway")),
    )

    result = await dispatcher.execute(ToolCallRequest(id="c9", name="calculate_tip", arguments='{"bill_amount": 50}'))

    assert result.error["code"] == "TOOL_UPSTREAM_5XX"


@pytest.mark.asyncio
async def test_http_dispatch_maps_connection_failures(settings):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    dispatcher = ToolDispatcher(_http_settings(settings), transport=httpx.MockTransport(refuse))

    result = await dispatcher.execute(ToolCallRequest(id="c10", name="calculate_tip", arguments='{"bill_amount": 50}'))

    assert result.error["code"] == "TOOL_UNAVAILABLE"
