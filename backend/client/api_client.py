"""Async HTTP client for the game API, used by guest and admin clients."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from backend.config import get_settings
from backend.services.game.exceptions import (
    ERRORS_BY_CODE,
    AuthError,
    ConflictError,
    GameError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_ERRORS_BY_STATUS = {
    400: ValidationError,
    403: AuthError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
}


class GameTransportError(GameError):
    """The API could not be reached or answered with a server error."""
    status_code = 503
    code = "transport_error"


def error_from_response(response: httpx.Response) -> GameError:
    """Build the matching GameError for an error response."""
    try:
        body = response.json()
    except ValueError:
        body = {}

    detail = str(body.get("detail") or response.reason_phrase or "Request failed")
    error_class = ERRORS_BY_CODE.get(body.get("code")) or _ERRORS_BY_STATUS.get(response.status_code)
    if error_class is None:
        return GameTransportError(f"HTTP {response.status_code}: {detail}")
    return error_class(detail)


class GameAPIClient:
    """One method per game operation; errors come back as GameError subclasses."""

    def __init__(
        self,
        base_url: str,
        timeout: float | None = None,
        vote_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout or settings.client_request_timeout_seconds
        self._vote_timeout = vote_timeout or settings.client_vote_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    @property
    def base_url(self) -> str:
        return self._base_url

    async def startup(self) -> None:
        async with self._lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self._base_url,
                    timeout=self._timeout,
                    transport=self._transport,
                )

    async def shutdown(self) -> None:
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None

    async def __aenter__(self) -> "GameAPIClient":
        await self.startup()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.shutdown()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            await self.startup()
        assert self._client is not None
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[dict[str, Any]] = None,
        timeout: float | None = None,
    ) -> dict:
        client = await self._ensure_client()
        response = await client.request(
            method,
            path,
            json=payload,
            timeout=timeout if timeout is not None else self._timeout,
        )
        if response.status_code >= 400:
            raise error_from_response(response)
        return response.json()

    async def _call(self, method: str, path: str, payload: Optional[dict[str, Any]] = None) -> dict:
        try:
            return await self._request(method, path, payload)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise GameTransportError(f"Game API unavailable: {exc}") from exc

    async def create_session(
        self,
        role_a_name: str,
        role_b_name: str,
        total_rounds: int | None = None,
        admin_name: str | None = None,
        theme: str | None = None,
        intensity: float | None = None,
        max_players: int | None = None,
    ) -> dict:
        payload = {
            "role_a_name": role_a_name,
            "role_b_name": role_b_name,
            "total_rounds": total_rounds,
            "admin_name": admin_name,
            "theme": theme,
            "intensity": intensity,
            "max_players": max_players,
        }
        return await self._call("POST", "/game/sessions", {k: v for k, v in payload.items() if v is not None})

    async def join(self, session_code: str, name: str) -> dict:
        return await self._call("POST", f"/game/sessions/{session_code}/join", {"name": name})

    async def admin_login(self, session_code: str, admin_pin: str) -> dict:
        return await self._call("POST", f"/game/sessions/{session_code}/admin", {"admin_pin": admin_pin})

    async def start(
        self,
        session_code: str,
        admin_pin: str,
        total_rounds: int | None = None,
        intensity: float | None = None,
        theme: str | None = None,
    ) -> dict:
        payload = {"admin_pin": admin_pin, "total_rounds": total_rounds, "intensity": intensity, "theme": theme}
        return await self._call(
            "POST",
            f"/game/sessions/{session_code}/start",
            {k: v for k, v in payload.items() if v is not None},
        )

    async def vote(self, session_code: str, name: str, round_number: int, choice: str) -> dict:
        """Submit a vote with the short vote timeout, retrying once on network failure.

        Votes are upserts, so resending after an unknown outcome is safe.

        Raises:
            GameTransportError: Both attempts failed to get an answer
            GameError: The server rejected the vote
        """
        path = f"/game/sessions/{session_code}/vote"
        payload = {"name": name, "round_number": round_number, "choice": choice}

        for attempt in (1, 2):
            try:
                return await self._request("POST", path, payload, timeout=self._vote_timeout)
            except httpx.HTTPError as exc:
                if attempt == 2:
                    logger.error("Vote by %s failed twice: %s", name, exc)
                    raise GameTransportError(f"Vote not delivered: {exc}") from exc
                logger.warning("Vote by %s failed (%s), retrying once", name, exc)

    async def reveal(
        self,
        session_code: str,
        admin_pin: str,
        round_number: int,
        actual_choice: str | None = None,
    ) -> dict:
        payload = {"admin_pin": admin_pin, "round_number": round_number}
        if actual_choice:
            payload["actual_choice"] = actual_choice
        return await self._call("POST", f"/game/sessions/{session_code}/reveal", payload)

    async def next_round(self, session_code: str, admin_pin: str) -> dict:
        return await self._call("POST", f"/game/sessions/{session_code}/next", {"admin_pin": admin_pin})

    async def get_status(self, session_code: str) -> dict:
        return await self._call("GET", f"/game/sessions/{session_code}")


__all__ = [
    "GameAPIClient",
    "GameTransportError",
    "InvalidStateError",
    "error_from_response",
]
