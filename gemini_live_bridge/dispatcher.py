"""Function call dispatch from the event log to the relay.

Each distinct function call identity is dispatched at most once. Relay
calls run as detached tasks: the event path never awaits them, and their
outcome only updates the matching DispatchRecord. Use `wait_idle()` to wait
for in-flight calls deterministically.
"""
from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from .const import DEFAULT_RELAY_NAME, SEND_MESSAGE_FUNCTION
from .events import FunctionCallRequest, RawEvent, function_calls
from .exceptions import DispatchError
from .relay_client import RelayClient
from .transcript import ROLE_ASSISTANT, ConversationEntry

_LOGGER = logging.getLogger(__name__)


class DispatchOutcome(str, Enum):
    """State of a dispatched function call."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


def canonical_args(args: Mapping[str, Any]) -> str:
    """Serialize arguments independently of key order."""
    return json.dumps(dict(args), sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def idempotency_key(call: FunctionCallRequest, timestamp: datetime | None = None) -> str:
    """Return the identity of a function call for dedup purposes.

    Combines the function name, the canonical arguments and the timestamp
    (milliseconds) of the event that carried the call.
    """
    ts = timestamp or call.issued_at
    millis = int(ts.timestamp() * 1000) if ts is not None else 0
    return f"{call.name}-{canonical_args(call.args)}-{millis}"


@dataclass
class DispatchRecord:
    """One record per distinct function call identity."""

    key: str
    call: FunctionCallRequest
    dispatched_at: datetime
    announcement: ConversationEntry
    outcome: DispatchOutcome = DispatchOutcome.PENDING
    message: str = ""

    def resolve(self, outcome: DispatchOutcome, message: str = "") -> bool:
        """Set the final outcome. Only the first resolution is kept."""
        if self.outcome is not DispatchOutcome.PENDING or outcome is DispatchOutcome.PENDING:
            return False
        self.outcome = outcome
        self.message = message
        return True


class DispatchStore:
    """Explicitly owned set of dispatch records.

    Lives for one session: the bridge resets it when a new session starts.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._records: dict[str, DispatchRecord] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[DispatchRecord]:
        return iter(list(self._records.values()))

    def get(self, key: str) -> DispatchRecord | None:
        """Return the record for a key, if any."""
        return self._records.get(key)

    def add(self, record: DispatchRecord) -> None:
        """Add a record. A key is never recorded twice."""
        if record.key in self._records:
            raise ValueError(f"Dispatch record already exists: {record.key}")
        self._records[record.key] = record

    def records(self) -> list[DispatchRecord]:
        """Return all records in creation order."""
        return list(self._records.values())

    def reset(self) -> None:
        """Forget all records."""
        self._records.clear()


class FunctionCallDispatcher:
    """Forward unseen function calls from the event log to the relay."""

    def __init__(
        self,
        relay: RelayClient,
        store: DispatchStore | None = None,
        *,
        relay_name: str = DEFAULT_RELAY_NAME,
        clock: Callable[[], datetime] | None = None,
        on_outcome: Callable[[DispatchRecord], Any] | None = None,
    ) -> None:
        """Initialize the dispatcher."""
        self._relay = relay
        self._store = store if store is not None else DispatchStore()
        self._relay_name = relay_name
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._on_outcome = on_outcome
        self._tasks: set[asyncio.Task] = set()
        # Log position up to which events have been scanned
        self._position = 0
        # Announcements from earlier sessions, kept for rendering only
        self._archived: dict[str, ConversationEntry] = {}
        # Duplicate identities skipped; instrumentation only
        self.suppressed = 0

    @property
    def store(self) -> DispatchStore:
        """Return the dispatch record store."""
        return self._store

    @property
    def pending_count(self) -> int:
        """Return the number of relay calls still in flight."""
        return len(self._tasks)

    def begin_session(self, position: int) -> None:
        """Start a new session at log `position`.

        Records are reset; events before `position` are never dispatched again.
        """
        for record in self._store.records():
            self._archived[record.key] = record.announcement
        self._store.reset()
        self._position = position
        _LOGGER.debug("Dispatch session started at log position %d", position)

    def scan(self, events: Sequence[RawEvent]) -> list[DispatchRecord]:
        """Dispatch function calls from events not scanned yet.

        Returns the records created by this pass.
        """
        created: list[DispatchRecord] = []
        for event in events[self._position:]:
            for call in function_calls(event):
                key = idempotency_key(call, event.timestamp)
                if key in self._store:
                    self.suppressed += 1
                    _LOGGER.debug("Duplicate function call suppressed: %s", key)
                    continue
                record = DispatchRecord(
                    key=key,
                    call=call,
                    dispatched_at=self._clock(),
                    announcement=ConversationEntry(
                        ROLE_ASSISTANT,
                        f"🔧 Sending to {self._relay_name}: {call.name}({canonical_args(call.args)})",
                        event.timestamp,
                    ),
                )
                # Start first: without a running loop nothing is recorded
                self._start(record)
                self._store.add(record)
                created.append(record)
        self._position = max(self._position, len(events))
        return created

    def announcement_lookup(self) -> Callable[[FunctionCallRequest, datetime], ConversationEntry | None]:
        """Return a lookup for one reduction pass.

        Repeated identities within the pass get no second announcement.
        """
        seen: set[str] = set()

        def _lookup(call: FunctionCallRequest, timestamp: datetime) -> ConversationEntry | None:
            key = idempotency_key(call, timestamp)
            if key in seen:
                return None
            seen.add(key)
            record = self._store.get(key)
            if record is not None:
                return record.announcement
            return self._archived.get(key)

        return _lookup

    async def wait_idle(self) -> None:
        """Wait until every in-flight relay call has completed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _start(self, record: DispatchRecord) -> None:
        _LOGGER.info("Dispatching %s to %s", record.call.name, self._relay_name)
        task = asyncio.get_running_loop().create_task(self._deliver(record))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, record: DispatchRecord) -> None:
        call = record.call
        try:
            if call.name == SEND_MESSAGE_FUNCTION:
                result = await self._relay.dispatch_message(str(call.args.get("message", "")))
            else:
                result = await self._relay.dispatch_action(call.name, call.args)
            if not result.success:
                raise DispatchError(result.message)
        except Exception as e:
            record.resolve(DispatchOutcome.FAILED, str(e))
            _LOGGER.error("Dispatch of %s failed: %s", call.name, e)
        else:
            record.resolve(DispatchOutcome.SENT, result.message)
            _LOGGER.info("Dispatched %s: %s", call.name, result.message)

        if self._on_outcome is None:
            return
        try:
            outcome = self._on_outcome(record)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            _LOGGER.error("Error in dispatch outcome handler for %s: %s", call.name, e)
