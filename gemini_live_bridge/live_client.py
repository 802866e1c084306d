"""Gemini Live API session client using the google-genai library.

This module owns the single bidirectional live session: it connects with a
session configuration (system instruction, response modality, function
declarations), sends user text and audio, and decodes every message it
receives into raw events appended to the event log.

Transport drops surface as a `connected=False` signal. There is no automatic
reconnection.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, cast

from google import genai
from google.genai import types

from .const import (
    DEFAULT_FUNCTION_DECLARATIONS,
    DEFAULT_INSTRUCTIONS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    DEFAULT_VOICE,
    EVENT_CONNECTED,
    EVENT_ERROR,
    EVENT_RAW,
)
from .event_log import EventLog
from .events import decode_server_message, user_turn
from .exceptions import NotConnected

_LOGGER = logging.getLogger(__name__)

# Set google_genai loggers to DEBUG to avoid warning spam about non-data parts
logging.getLogger("google_genai.types").setLevel(logging.DEBUG)
logging.getLogger("google_genai").setLevel(logging.DEBUG)

# Audio constants
SEND_SAMPLE_RATE = 16000
RECEIVE_SAMPLE_RATE = 24000


@dataclass
class SessionConfig:
    """Configuration for a Gemini Live session."""

    model: str = DEFAULT_MODEL
    voice: str = DEFAULT_VOICE
    instructions: str = DEFAULT_INSTRUCTIONS
    temperature: float = DEFAULT_TEMPERATURE
    response_modalities: list[str] = field(default_factory=lambda: ["AUDIO"])
    function_declarations: list[dict[str, Any]] = field(
        default_factory=lambda: [dict(d) for d in DEFAULT_FUNCTION_DECLARATIONS]
    )
    input_audio_transcription: bool = True
    output_audio_transcription: bool = True


def _create_genai_client(api_key: str, api_version: str) -> Any:
    return genai.Client(http_options={"api_version": api_version}, api_key=api_key)


class GeminiLiveClient:
    """Client for one Gemini Live session."""

    def __init__(
        self,
        api_key: str,
        event_log: EventLog,
        session_config: SessionConfig | None = None,
        client_factory: Callable[[str, str], Any] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the client."""
        self._api_key = api_key
        self._event_log = event_log
        self._session_config = session_config or SessionConfig()
        self._client_factory = client_factory or _create_genai_client
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._client: Any = None
        self._session = None
        self._session_context = None  # Keep context manager reference for session
        self._connected = False

        # Event handlers
        self._event_handlers: dict[str, list[Callable]] = {}

        # Queue for received audio, drained by playback
        self._audio_in_queue: asyncio.Queue | None = None

        # Background receive task
        self._receive_task: asyncio.Task | None = None

    @property
    def connected(self) -> bool:
        """Return connection status."""
        return self._connected

    @property
    def event_log(self) -> EventLog:
        """Return the log this client appends to."""
        return self._event_log

    @property
    def session_config(self) -> SessionConfig:
        """Return the active session configuration."""
        return self._session_config

    def on(self, event_type: str, handler: Callable) -> None:
        """Register an event handler."""
        handlers = self._event_handlers.setdefault(event_type, [])
        # Avoid registering the same handler more than once
        if handler not in handlers:
            handlers.append(handler)

    def off(self, event_type: str, handler: Callable) -> None:
        """Remove an event handler."""
        if event_type in self._event_handlers:
            try:
                self._event_handlers[event_type].remove(handler)
            except ValueError:
                pass

    async def _emit(self, event_type: str, data: dict[str, Any]) -> None:
        """Emit an event to registered handlers."""
        handlers = list(self._event_handlers.get(event_type, []))
        _LOGGER.debug("Emitting event '%s' to %d handlers", event_type, len(handlers))
        for handler in handlers:
            try:
                result = handler(data)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                _LOGGER.error("Error in event handler for %s: %s", event_type, e)

    def _convert_parameters(self, params: dict) -> types.Schema | None:
        """Convert an object parameter schema to google-genai Schema format."""
        properties = params.get("properties") if params else None
        if not properties:
            return None
        return types.Schema(
            type=types.Type.OBJECT,
            properties={
                name: types.Schema(
                    type=getattr(types.Type, str(prop.get("type", "string")).upper(), types.Type.STRING),
                    description=prop.get("description", ""),
                )
                for name, prop in properties.items()
            },
            required=list(params.get("required", [])),
        )

    def _build_tools(self) -> list[types.Tool]:
        """Build the tools list from the configured function declarations."""
        declarations = [
            types.FunctionDeclaration(
                name=decl["name"],
                description=decl.get("description", ""),
                parameters=self._convert_parameters(decl.get("parameters") or {}),
            )
            for decl in self._session_config.function_declarations
        ]
        if not declarations:
            return []
        _LOGGER.debug("_build_tools: %d function declarations", len(declarations))
        return [types.Tool(function_declarations=declarations)]

    def _build_config(self) -> types.LiveConnectConfig:
        """Build LiveConnectConfig for the session."""
        config_kwargs: dict[str, Any] = {
            "response_modalities": list(self._session_config.response_modalities),
            "temperature": self._session_config.temperature,
        }

        if self._session_config.instructions:
            config_kwargs["system_instruction"] = types.Content(
                parts=[types.Part.from_text(text=self._session_config.instructions)],
                role="user",
            )

        if "AUDIO" in [str(getattr(m, "value", m)).upper() for m in self._session_config.response_modalities]:
            config_kwargs["speech_config"] = types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self._session_config.voice)
                )
            )

        tools = self._build_tools()
        if tools:
            config_kwargs["tools"] = tools

        if self._session_config.output_audio_transcription:
            config_kwargs["output_audio_transcription"] = types.AudioTranscriptionConfig()

        if self._session_config.input_audio_transcription:
            config_kwargs["input_audio_transcription"] = types.AudioTranscriptionConfig()

        return types.LiveConnectConfig(**config_kwargs)

    async def connect(self, session_config: SessionConfig | None = None) -> bool:
        """Connect to the Gemini Live API.

        Returns False (after emitting `error` and `connected=False`) when the
        session cannot be established.
        """
        if self._connected:
            _LOGGER.debug("connect: already connected")
            return True

        if session_config is not None:
            self._session_config = session_config

        try:
            # Create client in executor to avoid blocking SSL operations
            loop = asyncio.get_running_loop()
            self._client = await loop.run_in_executor(
                None, self._client_factory, self._api_key, "v1beta"
            )

            self._session_context = self._client.aio.live.connect(
                model=self._session_config.model,
                config=self._build_config(),
            )
            self._session = await self._session_context.__aenter__()
        except Exception as e:
            _LOGGER.error("Failed to connect to Gemini Live API: %s", e)
            self._session = None
            self._session_context = None
            await self._emit(EVENT_ERROR, {"error": str(e)})
            await self._emit(EVENT_CONNECTED, {"connected": False, "reason": str(e)})
            return False

        self._connected = True
        self._audio_in_queue = asyncio.Queue()
        self._receive_task = asyncio.create_task(self._receive_loop())
        _LOGGER.info("Connected to Gemini Live API (model=%s)", self._session_config.model)
        await self._emit(EVENT_CONNECTED, {"connected": True})
        return True

    async def disconnect(self) -> None:
        """Disconnect from the Gemini Live API. Safe to call repeatedly."""
        if not self._connected and self._session_context is None:
            return

        was_connected = self._connected
        self._connected = False

        task = self._receive_task
        self._receive_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        await self._close_session(None)

        _LOGGER.info("Disconnected from Gemini Live API")
        if was_connected:
            await self._emit(EVENT_CONNECTED, {"connected": False, "reason": "disconnect"})

    async def _close_session(self, error: BaseException | None) -> None:
        session_context = self._session_context
        self._session = None
        self._session_context = None
        if session_context is None:
            return
        try:
            if error is None:
                await session_context.__aexit__(None, None, None)
            else:
                await session_context.__aexit__(type(error), error, error.__traceback__)
        except Exception as e:
            _LOGGER.debug("Error closing session context: %s", e)

    async def _receive_loop(self) -> None:
        """Background task receiving messages until the session ends."""
        session = self._session
        reason = "closed"
        error: Exception | None = None
        try:
            while self._connected and session is not None:
                received = 0
                async for message in session.receive():
                    received += 1
                    await self._handle_message(message)
                # A receive pass that yields nothing means the stream has ended
                if received == 0:
                    break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = e
            reason = str(e)
            if "1000" in reason or "closed" in reason.lower():
                _LOGGER.info("Live session closed: %s", reason)
            else:
                _LOGGER.error("Error in receive loop: %s", e)
                await self._emit(EVENT_ERROR, {"error": reason})

        if not self._connected:
            return
        # The transport dropped the session; events already logged are kept
        self._connected = False
        self._receive_task = None
        await self._close_session(error)
        _LOGGER.warning("Live session dropped: %s", reason)
        await self._emit(EVENT_CONNECTED, {"connected": False, "reason": reason})

    async def _handle_message(self, message: Any) -> None:
        """Route audio to playback and append decoded events to the log."""
        server_content = getattr(message, "server_content", None)
        model_turn = getattr(server_content, "model_turn", None) if server_content else None
        for part in (getattr(model_turn, "parts", None) or []) if model_turn else []:
            inline_data = getattr(part, "inline_data", None)
            data_bytes = getattr(inline_data, "data", None) if inline_data else None
            if data_bytes and isinstance(data_bytes, (bytes, bytearray)) and self._audio_in_queue is not None:
                self._audio_in_queue.put_nowait(bytes(data_bytes))

        if server_content and getattr(server_content, "interrupted", None) and self._audio_in_queue is not None:
            # Drop queued playback on interruption
            while not self._audio_in_queue.empty():
                self._audio_in_queue.get_nowait()

        for event in decode_server_message(message, self._clock()):
            self._event_log.append(event)
            if getattr(event, "kind", None) == "go_away":
                _LOGGER.warning(
                    "Received GoAway message - connection will terminate in %s seconds",
                    event.detail.get("time_left"),
                )
            await self._emit(EVENT_RAW, {"event": event})

    def _require_session(self) -> Any:
        if not self._connected or self._session is None:
            raise NotConnected("Not connected to Gemini Live API")
        return self._session

    async def send_text(self, text: str, turn_complete: bool = True) -> None:
        """Send a user text turn using send_client_content.

        The turn is recorded in the event log once sent.
        """
        session = self._require_session()
        send_client_content = cast(Callable[..., Awaitable[Any]], getattr(session, "send_client_content"))
        _LOGGER.debug("send_text: text_len=%d turn_complete=%s", len(text), turn_complete)
        await send_client_content(
            turns={"role": "user", "parts": [{"text": text}]},
            turn_complete=turn_complete,
        )
        event = user_turn(text, self._clock(), turn_complete)
        self._event_log.append(event)
        await self._emit(EVENT_RAW, {"event": event})

    async def send_audio(self, audio_data: bytes, sample_rate: int = SEND_SAMPLE_RATE) -> None:
        """Send 16-bit PCM mono audio using send_realtime_input."""
        session = self._require_session()

        if not isinstance(audio_data, (bytes, bytearray, memoryview)):
            raise TypeError(f"audio_data must be bytes-like, got {type(audio_data).__name__}")

        # Prevent sending empty payloads
        if len(audio_data) == 0:
            _LOGGER.debug("send_audio: skipping empty audio payload")
            return

        if len(audio_data) % 2 != 0:
            _LOGGER.warning("send_audio: audio payload length is odd (%d), likely not 16-bit PCM", len(audio_data))

        send_realtime = cast(Callable[..., Awaitable[Any]], getattr(session, "send_realtime_input"))
        try:
            await send_realtime(
                audio=types.Blob(data=bytes(audio_data), mime_type=f"audio/pcm;rate={sample_rate}")
            )
        except Exception as e:
            _LOGGER.error("send_audio: error sending audio (%d bytes): %s", len(audio_data), e)
            await self._emit(EVENT_ERROR, {"error": str(e)})
            raise

    async def send_audio_stream_end(self) -> None:
        """Signal end of audio stream so the server flushes cached audio."""
        if not self._connected or not self._session:
            return

        try:
            send_realtime = cast(Callable[..., Awaitable[Any]], getattr(self._session, "send_realtime_input"))
            await send_realtime(audio_stream_end=True)
        except Exception as e:
            _LOGGER.debug("Error sending audio stream end: %s", e)

    async def send_function_result(self, call_id: str, name: str, result: dict[str, Any]) -> None:
        """Send a function call result back to the model using send_tool_response."""
        if not self._connected or not self._session:
            _LOGGER.debug("send_function_result: not connected, dropping result for %s", name)
            return

        function_response = types.FunctionResponse(id=call_id, name=name, response=result)
        send_tool = cast(Callable[..., Awaitable[Any]], getattr(self._session, "send_tool_response"))
        try:
            await send_tool(function_responses=[function_response])
            _LOGGER.debug("send_function_result: sent call_id=%s name=%s", call_id, name)
        except Exception as e:
            _LOGGER.error("Error sending function result for call_id=%s: %s", call_id, e)
            await self._emit(EVENT_ERROR, {"error": str(e)})

    async def get_audio_chunk(self, timeout: float = 0.1) -> bytes | None:
        """Get a received audio chunk for playback."""
        if not self._audio_in_queue:
            return None

        try:
            return await asyncio.wait_for(self._audio_in_queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
