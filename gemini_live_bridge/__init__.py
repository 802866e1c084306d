"""Real-time Gemini Live voice sessions bridged to an automation relay."""
from __future__ import annotations

from .bridge import SessionBridge, create_bridge
from .config import config_from_env, validate_config
from .dispatcher import DispatchOutcome, DispatchRecord, DispatchStore, FunctionCallDispatcher
from .event_log import EventLog
from .events import ControlEvent, FunctionCallRequest, RawEvent, ServerPart, ServerTurn, TextPart, UserTurn
from .exceptions import ConfigError, DispatchError, GeminiLiveBridgeError, NotConnected
from .export import format_transcript, transcript_filename
from .live_client import GeminiLiveClient, SessionConfig
from .relay_client import RelayClient, RelayResult
from .transcript import ConversationEntry, reduce_transcript

__all__ = [
    "ConfigError",
    "ControlEvent",
    "ConversationEntry",
    "DispatchError",
    "DispatchOutcome",
    "DispatchRecord",
    "DispatchStore",
    "EventLog",
    "FunctionCallDispatcher",
    "FunctionCallRequest",
    "GeminiLiveBridgeError",
    "GeminiLiveClient",
    "NotConnected",
    "RawEvent",
    "RelayClient",
    "RelayResult",
    "ServerPart",
    "ServerTurn",
    "SessionBridge",
    "SessionConfig",
    "TextPart",
    "UserTurn",
    "config_from_env",
    "create_bridge",
    "format_transcript",
    "reduce_transcript",
    "transcript_filename",
    "validate_config",
]
