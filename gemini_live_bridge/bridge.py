"""Session event bridge.

Wires the live session client, the event log, the transcript reducer and
the function call dispatcher together:

    session client -> event log -> dispatcher.scan -> reduce_transcript -> listeners

and exposes the state a presentation layer needs: whether the session is
connected and the ordered conversation.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Mapping

from aiohttp import ClientSession

from .config import (
    CONF_API_KEY,
    CONF_FUNCTION_DECLARATIONS,
    CONF_INSTRUCTIONS,
    CONF_MODEL,
    CONF_RELAY_NAME,
    CONF_RELAY_SECRET,
    CONF_RELAY_URL,
    CONF_TEMPERATURE,
    CONF_VOICE,
    validate_config,
)
from .const import DEFAULT_RELAY_NAME, EVENT_CONNECTED
from .dispatcher import DispatchOutcome, DispatchRecord, DispatchStore, FunctionCallDispatcher
from .event_log import EventLog
from .events import RawEvent
from .live_client import GeminiLiveClient, SessionConfig
from .relay_client import RelayClient
from .transcript import ConversationEntry, reduce_transcript

_LOGGER = logging.getLogger(__name__)


class SessionBridge:
    """Bridge one live session to the conversation view and the relay."""

    def __init__(
        self,
        client: GeminiLiveClient,
        relay: RelayClient,
        *,
        store: DispatchStore | None = None,
        relay_name: str = DEFAULT_RELAY_NAME,
        answer_function_calls: bool = True,
    ) -> None:
        """Initialize the bridge.

        With `answer_function_calls`, the relay outcome of a function call is
        sent back to the model as its function response.
        """
        self._client = client
        self._log = client.event_log
        self._dispatcher = FunctionCallDispatcher(
            relay,
            store,
            relay_name=relay_name,
            on_outcome=self._answer_function_call if answer_function_calls else None,
        )
        self._conversation: tuple[ConversationEntry, ...] = ()
        self._listeners: list[Callable[[SessionBridge], None]] = []
        self._unsubscribe_log = self._log.subscribe(self._on_log_updated)
        client.on(EVENT_CONNECTED, self._on_connected_changed)

    @property
    def connected(self) -> bool:
        """Return whether the live session is open."""
        return self._client.connected

    @property
    def events(self) -> tuple[RawEvent, ...]:
        """Return the raw event log."""
        return self._log.snapshot()

    @property
    def conversation(self) -> list[ConversationEntry]:
        """Return the ordered conversation derived from the log."""
        return list(self._conversation)

    @property
    def dispatch_records(self) -> list[DispatchRecord]:
        """Return the dispatch records of the current session."""
        return self._dispatcher.store.records()

    @property
    def dispatcher(self) -> FunctionCallDispatcher:
        """Return the function call dispatcher."""
        return self._dispatcher

    def subscribe(self, listener: Callable[[SessionBridge], None]) -> Callable[[], None]:
        """Call `listener(bridge)` whenever the conversation or connection changes."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    async def connect(self, session_config: SessionConfig | None = None) -> bool:
        """Start a new session. Dispatch records are reset for the new session.

        Connecting while a session is open keeps that session and its records.
        """
        if self._client.connected:
            _LOGGER.debug("connect: session already open")
            return True
        self._dispatcher.begin_session(len(self._log))
        return await self._client.connect(session_config)

    async def disconnect(self) -> None:
        """Close the session. In-flight relay calls are left to complete."""
        await self._client.disconnect()

    async def reconnect(self) -> bool:
        """Close the current session, if any, and start a new one."""
        await self._client.disconnect()
        return await self.connect()

    async def send_text(self, text: str) -> None:
        """Send user text into the session."""
        await self._client.send_text(text)

    async def send_audio(self, audio_data: bytes, sample_rate: int = 16000) -> None:
        """Send user audio into the session."""
        await self._client.send_audio(audio_data, sample_rate)

    async def wait_idle(self) -> None:
        """Wait for every in-flight relay call to finish."""
        await self._dispatcher.wait_idle()

    async def close(self) -> None:
        """Disconnect and detach from the client and the log."""
        await self._client.disconnect()
        self._client.off(EVENT_CONNECTED, self._on_connected_changed)
        self._unsubscribe_log()
        self._listeners.clear()

    def _on_log_updated(self, position: int) -> None:
        snapshot = self._log.snapshot()
        self._dispatcher.scan(snapshot)
        self._conversation = tuple(reduce_transcript(snapshot, self._dispatcher.announcement_lookup()))
        self._notify()

    def _on_connected_changed(self, data: dict[str, Any]) -> None:
        if data.get("connected"):
            _LOGGER.info("Session connected")
        else:
            _LOGGER.info("Session disconnected: %s", data.get("reason"))
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                _LOGGER.error("Error in bridge listener: %s", e)

    async def _answer_function_call(self, record: DispatchRecord) -> None:
        call = record.call
        if not call.call_id or not self._client.connected:
            return
        if record.outcome is DispatchOutcome.SENT:
            response = {"result": f"Sent to relay: {record.message}"}
        else:
            response = {"error": record.message or "relay dispatch failed"}
        await self._client.send_function_result(call.call_id, call.name, response)


def create_bridge(
    config: Mapping[str, Any],
    http_session: ClientSession,
    *,
    client_factory: Callable[[str, str], Any] | None = None,
) -> SessionBridge:
    """Build a bridge from a configuration mapping (validated here)."""
    conf = validate_config(config)
    session_config = SessionConfig(
        model=conf[CONF_MODEL],
        voice=conf[CONF_VOICE],
        instructions=conf[CONF_INSTRUCTIONS],
        temperature=conf[CONF_TEMPERATURE],
        function_declarations=conf[CONF_FUNCTION_DECLARATIONS],
    )
    client = GeminiLiveClient(
        conf[CONF_API_KEY],
        EventLog(),
        session_config,
        client_factory=client_factory,
    )
    relay = RelayClient(
        http_session,
        conf[CONF_RELAY_URL],
        conf[CONF_RELAY_SECRET],
    )
    return SessionBridge(client, relay, relay_name=conf[CONF_RELAY_NAME])
