"""Tests for decoding live server messages into raw events."""

from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace

from google.genai import types

from gemini_live_bridge.events import (
    ControlEvent,
    FunctionCallRequest,
    ServerPart,
    ServerTurn,
    TextPart,
    UserTurn,
    decode_server_message,
    function_calls,
)

from fakes import T0, text_message, tool_call_message


def test_model_text_decodes_to_server_turn() -> None:
    assert decode_server_message(text_message("Hello"), T0) == [
        ServerTurn(timestamp=T0, parts=(ServerPart(text="Hello"),))
    ]


def test_tool_call_decodes_to_function_call_parts() -> None:
    [event] = decode_server_message(tool_call_message("create_task", {"title": "Buy milk"}, "c-7"), T0)

    assert function_calls(event) == [
        FunctionCallRequest(name="create_task", args={"title": "Buy milk"}, issued_at=T0, call_id="c-7")
    ]


def test_audio_only_message_decodes_to_nothing() -> None:
    part = SimpleNamespace(text=None, function_call=None, inline_data=SimpleNamespace(data=b"\x00\x01"))
    message = SimpleNamespace(server_content=SimpleNamespace(model_turn=SimpleNamespace(parts=[part])))

    assert decode_server_message(message, T0) == []


def test_thought_parts_are_not_content() -> None:
    part = SimpleNamespace(text="**Planning**", thought=True, function_call=None)
    message = SimpleNamespace(server_content=SimpleNamespace(model_turn=SimpleNamespace(parts=[part])))

    assert decode_server_message(message, T0) == []


def test_sdk_message_with_transcriptions_and_turn_complete() -> None:
    message = types.LiveServerMessage(
        server_content=types.LiveServerContent(
            input_transcription=types.Transcription(text="create a task"),
            output_transcription=types.Transcription(text="Sure, sending that now"),
            turn_complete=True,
        )
    )

    assert decode_server_message(message, T0) == [
        UserTurn(timestamp=T0, parts=(TextPart(text="create a task"),), turn_complete=False),
        ServerTurn(timestamp=T0, parts=(ServerPart(text="Sure, sending that now"),)),
        ControlEvent(timestamp=T0, kind="turn_complete"),
    ]


def test_sdk_tool_call_message() -> None:
    message = types.LiveServerMessage(
        tool_call=types.LiveServerToolCall(
            function_calls=[types.FunctionCall(id="c1", name="search", args={"query": "kanban"})]
        )
    )

    [event] = decode_server_message(message, T0)

    assert isinstance(event, ServerTurn)
    [call] = function_calls(event)
    assert (call.name, dict(call.args), call.call_id, call.issued_at) == ("search", {"query": "kanban"}, "c1", T0)


def test_control_messages() -> None:
    message = SimpleNamespace(
        setup_complete=SimpleNamespace(),
        go_away=SimpleNamespace(time_left=timedelta(seconds=50)),
        session_resumption_update=SimpleNamespace(new_handle="h", resumable=True),
        tool_call_cancellation=SimpleNamespace(ids=["c1"]),
    )

    events = decode_server_message(message, T0)

    assert [e.kind for e in events] == [
        "tool_call_cancellation",
        "setup_complete",
        "go_away",
        "session_resumption_update",
    ]
    assert events[0].detail == {"ids": ["c1"]}
    assert events[2].detail == {"time_left": 50}
    assert events[3].detail == {"resumable": True, "has_handle": True}


def test_go_away_time_left_string() -> None:
    [event] = decode_server_message(SimpleNamespace(go_away=SimpleNamespace(time_left="30s")), T0)

    assert event.detail == {"time_left": 30}


def test_function_calls_of_non_server_events() -> None:
    assert function_calls(UserTurn(timestamp=T0)) == []
    assert function_calls(ControlEvent(timestamp=T0, kind="interrupted")) == []


def test_usage_metadata_is_a_control_event() -> None:
    [event] = decode_server_message(SimpleNamespace(usage_metadata=SimpleNamespace(total_token_count=812)), T0)

    assert event == ControlEvent(timestamp=T0, kind="usage_metadata", detail={"total_tokens": 812})
