"""HTTP client for the automation relay.

The relay exposes two endpoints authenticated by a shared secret carried in
the request body:

    POST {base}/action   {"secret", "action", "params"}
    POST {base}/command  {"secret", "command"}

and answers {"status": "sent" | ..., "message": ...}.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from aiohttp import ClientError, ClientSession

from .const import RELAY_ACTION_PATH, RELAY_COMMAND_PATH, RELAY_STATUS_SENT

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelayResult:
    """Outcome of one relay request."""

    success: bool
    message: str


class RelayClient:
    """Best-effort delivery of actions and messages to the relay.

    Every failure is returned as `RelayResult(success=False, ...)`; nothing
    is raised to the caller and nothing is retried.
    """

    def __init__(self, session: ClientSession, base_url: str, secret: str) -> None:
        """Initialize the client on a shared aiohttp session.

        Requests use the session's own timeout; there is no per-call override.
        """
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._secret = secret

    @property
    def base_url(self) -> str:
        """Return the relay base URL."""
        return self._base_url

    async def dispatch_action(self, action: str, params: Mapping[str, Any]) -> RelayResult:
        """Send a structured action with its parameters verbatim."""
        _LOGGER.info("Relay action %s params=%s", action, dict(params))
        return await self._post(
            RELAY_ACTION_PATH,
            {"secret": self._secret, "action": action, "params": dict(params)},
        )

    async def dispatch_message(self, text: str) -> RelayResult:
        """Send a free-form command string."""
        _LOGGER.info("Relay command len=%d", len(text))
        return await self._post(RELAY_COMMAND_PATH, {"secret": self._secret, "command": text})

    async def _post(self, path: str, payload: dict[str, Any]) -> RelayResult:
        url = self._base_url + path
        try:
            async with self._session.post(url, json=payload) as resp:
                # UnicodeDecodeError from text() is a ValueError too
                try:
                    text_body = await resp.text()
                    _LOGGER.debug("Relay response from %s status=%s body=%s", url, resp.status, text_body[:500])
                    data = await resp.json(content_type=None)
                except ValueError:
                    return RelayResult(False, f"Bridge error: malformed response (HTTP {resp.status})")
        except asyncio.TimeoutError:
            _LOGGER.error("Relay request to %s timed out", url)
            return RelayResult(False, "Bridge error: request timed out")
        except (ClientError, OSError) as e:
            _LOGGER.error("Relay request to %s failed: %s", url, e)
            return RelayResult(False, f"Bridge error: {e}")

        if not isinstance(data, dict):
            return RelayResult(False, f"Bridge error: malformed response (HTTP {resp.status})")

        status = data.get("status")
        message = data.get("message") or RELAY_STATUS_SENT
        if status != RELAY_STATUS_SENT:
            _LOGGER.warning("Relay %s reported status=%s (HTTP %s): %s", path, status, resp.status, message)
            return RelayResult(False, str(data.get("message") or f"relay status: {status}"))
        return RelayResult(True, str(message))
