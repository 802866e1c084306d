"""Raw session events and the decode step from google-genai live messages.

Every message received from the live session is decoded here, once, into
one of the tagged variants below. Nothing downstream inspects SDK payloads.

Based on the LiveServerMessage layout:
- server_content.model_turn.parts carries text (and audio, which is not logged)
- server_content.input_transcription / output_transcription carry transcripts
- tool_call.function_calls carries function call requests
- setup_complete, go_away, session_resumption_update, usage_metadata are
  control signals
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

_LOGGER = logging.getLogger(__name__)

# server_content flags that are logged as control events
_CONTENT_FLAGS = ("interrupted", "turn_complete", "generation_complete")


@dataclass(frozen=True)
class FunctionCallRequest:
    """A structured function call requested by the assistant."""

    name: str
    args: Mapping[str, Any] = field(default_factory=dict)
    issued_at: datetime | None = None
    # Upstream call id, used to answer the call; not part of its identity
    call_id: str | None = None


@dataclass(frozen=True)
class TextPart:
    """A user turn part."""

    text: str | None = None


@dataclass(frozen=True)
class ServerPart:
    """A model turn part: text, a function call, or both absent."""

    text: str | None = None
    function_call: FunctionCallRequest | None = None


@dataclass(frozen=True)
class UserTurn:
    """User content: text sent by the client or input transcription."""

    timestamp: datetime
    parts: tuple[TextPart, ...] = ()
    turn_complete: bool = True


@dataclass(frozen=True)
class ServerTurn:
    """Assistant content: text, output transcription or function calls."""

    timestamp: datetime
    parts: tuple[ServerPart, ...] = ()


@dataclass(frozen=True)
class ControlEvent:
    """Non content-bearing status event."""

    timestamp: datetime
    kind: str
    detail: Mapping[str, Any] = field(default_factory=dict)


RawEvent = UserTurn | ServerTurn | ControlEvent


def user_turn(text: str, timestamp: datetime, turn_complete: bool = True) -> UserTurn:
    """Build the event recorded for text sent into the session."""
    return UserTurn(timestamp=timestamp, parts=(TextPart(text=text),), turn_complete=turn_complete)


def _decode_function_call(function_call: Any, timestamp: datetime) -> FunctionCallRequest:
    args = getattr(function_call, "args", None) or {}
    return FunctionCallRequest(
        name=getattr(function_call, "name", None) or "",
        args={str(k): v for k, v in dict(args).items()},
        issued_at=timestamp,
        call_id=getattr(function_call, "id", None),
    )


def _time_left_seconds(go_away: Any) -> int | None:
    """Normalize GoAway.time_left (timedelta, number or '50s') to seconds."""
    tl = getattr(go_away, "time_left", None)
    if tl is None:
        return None
    if hasattr(tl, "total_seconds"):
        return int(tl.total_seconds())
    if isinstance(tl, (int, float)):
        return int(tl)
    if isinstance(tl, str):
        try:
            return int(float(tl.rstrip("smSM").strip()))
        except ValueError:
            _LOGGER.debug("Could not parse time_left: %s", tl)
    return None


def decode_server_message(message: Any, timestamp: datetime) -> list[RawEvent]:
    """Decode one live server message into zero or more raw events.

    Audio-only messages decode to an empty list; audio is routed to playback
    by the session client and never enters the event log.
    """
    events: list[RawEvent] = []

    server_content = getattr(message, "server_content", None)
    if server_content:
        input_trans = getattr(server_content, "input_transcription", None)
        input_text = getattr(input_trans, "text", None) if input_trans else None
        if input_text:
            events.append(
                UserTurn(
                    timestamp=timestamp,
                    parts=(TextPart(text=input_text),),
                    turn_complete=bool(getattr(input_trans, "finished", False)),
                )
            )

        parts: list[ServerPart] = []
        model_turn = getattr(server_content, "model_turn", None)
        for part in (getattr(model_turn, "parts", None) or []) if model_turn else []:
            # Thinking summaries are not spoken content
            if getattr(part, "thought", False):
                continue
            text = getattr(part, "text", None)
            if text:
                parts.append(ServerPart(text=text))
            function_call = getattr(part, "function_call", None)
            if function_call:
                parts.append(ServerPart(function_call=_decode_function_call(function_call, timestamp)))

        output_trans = getattr(server_content, "output_transcription", None)
        output_text = getattr(output_trans, "text", None) if output_trans else None
        if output_text:
            parts.append(ServerPart(text=output_text))

        if parts:
            events.append(ServerTurn(timestamp=timestamp, parts=tuple(parts)))

        for flag in _CONTENT_FLAGS:
            if getattr(server_content, flag, None):
                events.append(ControlEvent(timestamp=timestamp, kind=flag))

    tool_call = getattr(message, "tool_call", None)
    if tool_call:
        calls = [
            ServerPart(function_call=_decode_function_call(fc, timestamp))
            for fc in (getattr(tool_call, "function_calls", None) or [])
        ]
        if calls:
            events.append(ServerTurn(timestamp=timestamp, parts=tuple(calls)))

    cancellation = getattr(message, "tool_call_cancellation", None)
    if cancellation:
        events.append(
            ControlEvent(
                timestamp=timestamp,
                kind="tool_call_cancellation",
                detail={"ids": list(getattr(cancellation, "ids", None) or [])},
            )
        )

    if getattr(message, "setup_complete", None) is not None:
        events.append(ControlEvent(timestamp=timestamp, kind="setup_complete"))

    go_away = getattr(message, "go_away", None)
    if go_away:
        events.append(
            ControlEvent(timestamp=timestamp, kind="go_away", detail={"time_left": _time_left_seconds(go_away)})
        )

    update = getattr(message, "session_resumption_update", None)
    if update:
        events.append(
            ControlEvent(
                timestamp=timestamp,
                kind="session_resumption_update",
                detail={
                    "resumable": bool(getattr(update, "resumable", False)),
                    "has_handle": bool(getattr(update, "new_handle", None)),
                },
            )
        )

    usage = getattr(message, "usage_metadata", None)
    if usage:
        events.append(
            ControlEvent(
                timestamp=timestamp,
                kind="usage_metadata",
                detail={"total_tokens": getattr(usage, "total_token_count", None)},
            )
        )

    return events


def function_calls(event: RawEvent) -> list[FunctionCallRequest]:
    """Return the function calls carried by an event, in part order."""
    if not isinstance(event, ServerTurn):
        return []
    return [part.function_call for part in event.parts if part.function_call is not None]
