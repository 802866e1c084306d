"""Markdown transcript export."""
from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from .transcript import ROLE_USER, ConversationEntry


def transcript_filename(now: datetime) -> str:
    """Return the download filename for a transcript saved at `now`."""
    return now.isoformat().replace(":", "-")[:16] + ".md"


def format_transcript(
    entries: Sequence[ConversationEntry],
    *,
    user_label: str = "User",
    assistant_label: str = "Assistant",
    now: datetime | None = None,
) -> str | None:
    """Format a conversation as a dated Markdown document.

    Returns None for an empty conversation.
    """
    if not entries:
        return None
    now = now or datetime.now().astimezone()
    lines = [
        f"# Voice Chat Transcript - {now.date().isoformat()}",
        "",
        f"Started: {entries[0].time.isoformat()}",
        "",
        "---",
        "",
    ]
    for entry in entries:
        speaker = user_label if entry.role == ROLE_USER else assistant_label
        lines.append(f"**{speaker}** ({entry.time.strftime('%H:%M:%S')}): {entry.text}")
        lines.append("")
    return "\n".join(lines)
