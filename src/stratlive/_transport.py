"""HTTP access to the strategy engine's read-only API."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import aiohttp

from stratlive._constants import USER_AGENT
from stratlive.exceptions import StratLiveTransportError

_logger = logging.getLogger(__name__)

STRATEGY_STATE_ENDPOINT = "/api/strategy-state"
HEALTH_ENDPOINT = "/health"


class StrategyApiProtocol(Protocol):
    """Structural interface for the engine's HTTP API.

    Lets tests pass a stub in place of :class:`StrategyApi`.
    """

    async def get_strategy_state(self) -> dict[str, Any]:
        ...

    async def get_health(self) -> dict[str, Any]:
        ...


class StrategyApi:
    """Thin JSON-over-HTTP client for bootstrap and health probes."""

    def __init__(self, base_url: str, http_session: aiohttp.ClientSession) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_session

    async def _get_json(self, endpoint: str) -> dict[str, Any]:
        url = f"{self._base_url}{endpoint}"
        headers = {"accept": "application/json", "user-agent": USER_AGENT}

        _logger.debug("GET %s", url)

        try:
            async with self._http.get(url, headers=headers) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise StratLiveTransportError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except StratLiveTransportError:
            raise
        except aiohttp.ClientError as exc:
            raise StratLiveTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StratLiveTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc

        if not isinstance(body, dict):
            raise StratLiveTransportError(
                f"Expected a JSON object from {endpoint}",
                endpoint=endpoint,
            )
        return body

    async def get_strategy_state(self) -> dict[str, Any]:
        """Fetch the engine's current strategy snapshot."""
        return await self._get_json(STRATEGY_STATE_ENDPOINT)

    async def get_health(self) -> dict[str, Any]:
        """Fetch the engine's health document."""
        return await self._get_json(HEALTH_ENDPOINT)
