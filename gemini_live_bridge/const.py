"""Constants for the Gemini Live voice bridge."""
from __future__ import annotations

from typing import Any, Final

DEFAULT_MODEL: Final = "gemini-2.5-flash-native-audio-preview-09-2025"
DEFAULT_VOICE: Final = "Puck"
DEFAULT_TEMPERATURE: Final = 0.8
DEFAULT_RELAY_URL: Final = "http://localhost:5052"
DEFAULT_RELAY_NAME: Final = "OpenClaw"

DEFAULT_INSTRUCTIONS: Final = (
    "You are a helpful voice assistant. Be direct and conversational. "
    "You have function calling tools available. When the user asks you to DO "
    "something (create a task, check status, build something, run the batch, "
    "search for info), use the appropriate function. ALWAYS speak to the user "
    "before calling a function, then call it. When the conversation ends, "
    "summarise key decisions or action items."
)

# Session client events
EVENT_CONNECTED: Final = "connected"
EVENT_RAW: Final = "event"
EVENT_ERROR: Final = "error"

# Relay endpoints
RELAY_ACTION_PATH: Final = "/action"
RELAY_COMMAND_PATH: Final = "/command"
RELAY_STATUS_SENT: Final = "sent"

# Function routed to the free-form command endpoint instead of /action
SEND_MESSAGE_FUNCTION: Final = "send_message"

DEFAULT_FUNCTION_DECLARATIONS: Final[list[dict[str, Any]]] = [
    {
        "name": "create_task",
        "description": "Create a new task on the kanban board",
        "parameters": {
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "Task title"},
                "description": {"type": "string", "description": "Task description"},
            },
            "required": ["title"],
        },
    },
    {
        "name": "run_batch",
        "description": "Run the batch processor to handle autonomous tasks on the kanban board",
        "parameters": {"type": "object", "properties": {}},
    },
    {
        "name": "check_status",
        "description": "Ask the automation agent for a status update on current work",
        "parameters": {"type": "object", "properties": {}},
    },
    {
        "name": "search",
        "description": "Search across vault, kanban, memory, and sessions",
        "parameters": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "What to search for"},
            },
            "required": ["query"],
        },
    },
    {
        "name": "build",
        "description": "Ask the automation agent to orchestrate building something end-to-end",
        "parameters": {
            "type": "object",
            "properties": {
                "description": {"type": "string", "description": "What to build"},
            },
            "required": ["description"],
        },
    },
    {
        "name": SEND_MESSAGE_FUNCTION,
        "description": "Send a free-form command or message to the automation agent",
        "parameters": {
            "type": "object",
            "properties": {
                "message": {"type": "string", "description": "The message or command to send"},
            },
            "required": ["message"],
        },
    },
]
