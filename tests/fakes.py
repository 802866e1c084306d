"""Test doubles for the google-genai live session and the aiohttp session."""
from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any

from gemini_live_bridge.events import FunctionCallRequest, ServerPart, ServerTurn, TextPart, UserTurn

T0 = datetime(2026, 2, 1, 9, 30, tzinfo=timezone.utc)

CLOSE = object()


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def user(text: str, seconds: float = 0, turn_complete: bool = True) -> UserTurn:
    return UserTurn(timestamp=at(seconds), parts=(TextPart(text=text),), turn_complete=turn_complete)


def model_text(*texts: str, seconds: float = 0) -> ServerTurn:
    return ServerTurn(timestamp=at(seconds), parts=tuple(ServerPart(text=t) for t in texts))


def model_call(name: str, args: dict[str, Any], seconds: float = 0, call_id: str | None = None) -> ServerTurn:
    call = FunctionCallRequest(name=name, args=args, issued_at=at(seconds), call_id=call_id)
    return ServerTurn(timestamp=at(seconds), parts=(ServerPart(function_call=call),))


def text_message(text: str) -> SimpleNamespace:
    part = SimpleNamespace(text=text, inline_data=None, function_call=None, thought=None)
    return SimpleNamespace(server_content=SimpleNamespace(model_turn=SimpleNamespace(parts=[part])))


def tool_call_message(name: str, args: dict[str, Any], call_id: str = "call-1") -> SimpleNamespace:
    call = SimpleNamespace(id=call_id, name=name, args=args)
    return SimpleNamespace(tool_call=SimpleNamespace(function_calls=[call]))


async def wait_for(predicate, timeout: float = 1.0) -> None:
    """Yield to the loop until `predicate()` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.001)


class FakeLiveSession:
    """Stands in for the object yielded by client.aio.live.connect()."""

    def __init__(self) -> None:
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.client_content: list[dict[str, Any]] = []
        self.realtime_input: list[dict[str, Any]] = []
        self.tool_responses: list[Any] = []

    def push(self, message: Any) -> None:
        self.incoming.put_nowait(message)

    def drop(self) -> None:
        self.incoming.put_nowait(CLOSE)

    async def receive(self):
        while True:
            message = await self.incoming.get()
            if message is CLOSE:
                raise ConnectionError("websocket closed: 1011 deadline expired")
            yield message

    async def send_client_content(self, **kwargs: Any) -> None:
        self.client_content.append(kwargs)

    async def send_realtime_input(self, **kwargs: Any) -> None:
        self.realtime_input.append(kwargs)

    async def send_tool_response(self, **kwargs: Any) -> None:
        self.tool_responses.extend(kwargs["function_responses"])


class _FakeConnect:
    def __init__(self, owner: FakeGenaiClient, session: FakeLiveSession) -> None:
        self._owner = owner
        self._session = session

    async def __aenter__(self) -> FakeLiveSession:
        if self._owner.fail_with is not None:
            raise self._owner.fail_with
        return self._session

    async def __aexit__(self, *exc_info: Any) -> bool:
        self._owner.closed += 1
        return False


class FakeGenaiClient:
    """Mimics genai.Client().aio.live.connect()."""

    def __init__(self) -> None:
        self.sessions: list[FakeLiveSession] = []
        self.configs: list[Any] = []
        self.models: list[str] = []
        self.closed = 0
        self.fail_with: Exception | None = None
        self.aio = SimpleNamespace(live=SimpleNamespace(connect=self._connect))

    @property
    def session(self) -> FakeLiveSession:
        return self.sessions[-1]

    def _connect(self, model: str, config: Any) -> _FakeConnect:
        self.models.append(model)
        self.configs.append(config)
        session = FakeLiveSession()
        self.sessions.append(session)
        return _FakeConnect(self, session)

    def factory(self, api_key: str, api_version: str) -> FakeGenaiClient:
        return self


class FakeResponse:
    def __init__(self, body: str | bytes = '{"status": "sent"}', status: int = 200) -> None:
        self.body = body
        self.status = status

    async def text(self) -> str:
        # aiohttp decodes with the response charset, utf-8 here
        return self.body.decode("utf-8") if isinstance(self.body, bytes) else self.body

    async def json(self, content_type: str | None = "application/json") -> Any:
        text = await self.text()
        if not text.strip():
            return None
        return json.loads(text)

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False


class FakeHttpSession:
    """Records aiohttp ClientSession.post() calls."""

    def __init__(self, response: FakeResponse | None = None, error: BaseException | None = None) -> None:
        self.response = response or FakeResponse()
        self.error = error
        self.posts: list[tuple[str, dict[str, Any]]] = []

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        self.posts.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response
