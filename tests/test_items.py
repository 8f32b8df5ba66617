import pytest

from fakes import function_call, message, response
from orchestrator.errors import ServiceRequestError
from orchestrator.items import (
    AssistantMessage,
    FunctionCall,
    IgnoredEvent,
    ModelResponse,
    NativeToolCall,
    ResponseCompleted,
    ResponseFailed,
    TextDelta,
    ToolLifecycle,
    UnknownItem,
    parse_output_item,
    parse_stream_event,
)


def test_output_items_map_to_variants():
    assert isinstance(parse_output_item(message("hi")), AssistantMessage)
    assert isinstance(parse_output_item(function_call("c1", "calculate_tip", {"bill_amount": 50})), FunctionCall)
    assert isinstance(parse_output_item({"type": "web_search_call", "id": "ws_1", "status": "completed"}), NativeToolCall)
    assert isinstance(parse_output_item({"type": "reasoning", "id": "rs_1"}), UnknownItem)


def test_function_call_keeps_raw_argument_text():
    item = parse_output_item(function_call("c1", "calculate_tip", '{"bill_amount":50}'))

    assert item.request.id == "c1"
    assert item.request.name == "calculate_tip"
    assert item.request.arguments == '{"bill_amount":50}'


def test_function_call_without_call_id_is_malformed():
    with pytest.raises(ServiceRequestError):
        parse_output_item({"type": "function_call", "name": "x", "arguments": "{}"})


def test_response_text_falls_back_to_message_content():
    parsed = ModelResponse.from_raw(response(message("Hello"), function_call("c1", "calculate_tip")))

    assert parsed.output_text == "Hello"
    assert [call.id for call in parsed.function_calls] == ["c1"]
    assert parsed.raw_output()[1]["call_id"] == "c1"


def test_response_without_output_is_malformed():
    with pytest.raises(ServiceRequestError):
        ModelResponse.from_raw({"id": "resp_1"})


def test_stream_events_map_to_variants():
    assert parse_stream_event({"type": "response.output_text.delta", "delta": "He"}) == TextDelta(delta="He")

    lifecycle = parse_stream_event({"type": "response.mcp_call.failed", "item_id": "mcp_1"})
    assert lifecycle == ToolLifecycle(phase="failed", kind="mcp_call", correlation_id="mcp_1", detail="failed")

    searching = parse_stream_event({"type": "response.web_search_call.searching", "item_id": "ws_1"})
    assert searching.phase == "begin"

    done = parse_stream_event({"type": "response.completed", "response": response(message("Hi"))})
    assert isinstance(done, ResponseCompleted)
    assert done.response.output_text == "Hi"


def test_terminal_failures_are_recognised():
    failed = parse_stream_event({"type": "response.failed", "response": {"error": {"code": "server_error", "message": "x"}}})
    assert failed == ResponseFailed(message="x", code="server_error")

    error = parse_stream_event({"type": "error", "message": "rate limited", "code": "rate_limit"})
    assert isinstance(error, ResponseFailed)


def test_unknown_events_are_ignored_not_rejected():
    assert parse_stream_event({"type": "response.created"}) == IgnoredEvent(type="response.created")
    assert parse_stream_event({"type": "response.brand_new.thing"}) == IgnoredEvent(type="response.brand_new.thing")
