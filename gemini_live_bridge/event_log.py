"""Append-only log of raw session events."""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterator

from .events import RawEvent

_LOGGER = logging.getLogger(__name__)


class EventLog:
    """Time-ordered store of every raw event received in a session.

    Only the session client appends. Readers work from `snapshot()`, which
    is an immutable view of the log at the moment it was taken.
    """

    def __init__(self) -> None:
        """Initialize an empty log."""
        self._events: list[RawEvent] = []
        self._listeners: list[Callable[[int], None]] = []

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[RawEvent]:
        return iter(self.snapshot())

    def append(self, event: RawEvent) -> int:
        """Append an event and notify listeners. Returns its position."""
        position = len(self._events)
        self._events.append(event)
        _LOGGER.debug("Appended %s at position %d", type(event).__name__, position)
        for listener in list(self._listeners):
            try:
                listener(position)
            except Exception as e:
                _LOGGER.error("Error in event log listener: %s", e)
        return position

    def snapshot(self) -> tuple[RawEvent, ...]:
        """Return the log as it is now."""
        return tuple(self._events)

    def since(self, position: int) -> tuple[RawEvent, ...]:
        """Return the events appended at or after `position`."""
        return tuple(self._events[position:])

    def subscribe(self, listener: Callable[[int], None]) -> Callable[[], None]:
        """Call `listener(position)` after every append.

        Returns a callable that removes the listener.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe
