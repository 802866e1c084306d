"""Derive the visible conversation from the raw event log."""
from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from .events import FunctionCallRequest, RawEvent, ServerTurn, UserTurn

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationEntry:
    """One line of the conversation as shown to the user."""

    role: Literal["user", "assistant"]
    text: str
    time: datetime


def is_content(text: str | None) -> bool:
    """Return False for empty, newline-only or whitespace-only stream artifacts."""
    return bool(text) and text != "\n" and bool(text.strip())


def reduce_transcript(
    events: Iterable[RawEvent],
    announcement_for: Callable[[FunctionCallRequest, datetime], ConversationEntry | None] | None = None,
) -> list[ConversationEntry]:
    """Reduce an ordered event log to the ordered conversation.

    Pure: the same log (and the same announcement lookup) always yields the
    same conversation, so it is safe to re-run over the whole log on every
    update. `announcement_for` lets the dispatcher's announcements appear at
    the position of the function call part that produced them.
    """
    entries: list[ConversationEntry] = []
    for event in events:
        if isinstance(event, UserTurn):
            for part in event.parts:
                if is_content(part.text):
                    entries.append(ConversationEntry(ROLE_USER, part.text, event.timestamp))
        elif isinstance(event, ServerTurn):
            for part in event.parts:
                if is_content(part.text):
                    entries.append(ConversationEntry(ROLE_ASSISTANT, part.text, event.timestamp))
                if part.function_call is not None and announcement_for is not None:
                    announcement = announcement_for(part.function_call, event.timestamp)
                    if announcement is not None:
                        entries.append(announcement)
    return entries
