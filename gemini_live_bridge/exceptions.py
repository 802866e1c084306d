"""Exceptions raised by the Gemini Live voice bridge."""
from __future__ import annotations


class GeminiLiveBridgeError(Exception):
    """Base class for bridge errors."""


class NotConnected(GeminiLiveBridgeError):
    """Raised when input is sent without an open live session."""


class ConfigError(GeminiLiveBridgeError):
    """Raised when the bridge configuration is invalid."""


class DispatchError(GeminiLiveBridgeError):
    """A relay invocation failed.

    Only used to describe the failure recorded on a dispatch record; it is
    never raised past the dispatcher.
    """
