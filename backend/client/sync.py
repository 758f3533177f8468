"""Keeps a client's state in step with the server.

Push events from both session topics are the primary feed. A periodic poll of
the session snapshot reconciles anything the push channel dropped, and every
reconnect triggers an immediate resync.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional
from urllib.parse import urlencode

import websockets

from backend.client.api_client import GameAPIClient
from backend.client.state import ClientState, reduce
from backend.config import get_settings
from backend.services.game.exceptions import GameError, InvalidStateError

logger = logging.getLogger(__name__)

Subscribe = Callable[[str], AsyncIterator[dict]]


async def websocket_subscribe(url: str) -> AsyncIterator[dict]:
    """Yield decoded events from one WebSocket subscription until it closes."""
    async with websockets.connect(url) as connection:
        async for message in connection:
            try:
                event = json.loads(message)
            except (TypeError, ValueError):
                logger.warning("Ignoring non-JSON websocket frame")
                continue
            if isinstance(event, dict):
                yield event


def websocket_base_url(http_base_url: str) -> str:
    if http_base_url.startswith("https://"):
        return "wss://" + http_base_url[len("https://"):]
    if http_base_url.startswith("http://"):
        return "ws://" + http_base_url[len("http://"):]
    return http_base_url


class GameSync:
    """Async context manager owning the push and poll tasks for one client.

    Example:
        async with GameSync(api, "ABC234", player_name="Ann") as sync:
            await sync.submit_vote("A")
    """

    TOPICS = ("lobby", "game")

    def __init__(
        self,
        api: GameAPIClient,
        session_code: str,
        player_name: str = "",
        *,
        admin_pin: Optional[str] = None,
        subscribe: Optional[Subscribe] = None,
        ws_base_url: Optional[str] = None,
        poll_interval: Optional[float] = None,
        reconnect_delay: Optional[float] = None,
        on_change: Optional[Callable[[ClientState], Awaitable[None] | None]] = None,
    ) -> None:
        settings = get_settings()
        self.api = api
        self.admin_pin = admin_pin
        self._subscribe = subscribe or websocket_subscribe
        self._ws_base_url = ws_base_url or websocket_base_url(getattr(api, "base_url", ""))
        self.poll_interval = poll_interval or settings.client_poll_interval_seconds
        self.reconnect_delay = reconnect_delay or settings.client_reconnect_delay_seconds
        self._on_change = on_change
        self._tasks: list[asyncio.Task] = []
        self._listener_tasks: set[asyncio.Task] = set()
        self._state = ClientState(
            session_code=session_code.strip().upper(),
            player_name=player_name,
            is_admin=admin_pin is not None,
        )

    @property
    def state(self) -> ClientState:
        return self._state

    def dispatch(self, event: dict) -> ClientState:
        """Run an event through the reducer and notify the listener."""
        previous = self._state
        self._state = reduce(self._state, event)
        if self._on_change and self._state is not previous:
            result = self._on_change(self._state)
            if asyncio.iscoroutine(result):
                task = asyncio.create_task(result)
                self._listener_tasks.add(task)
                task.add_done_callback(self._listener_done)
        return self._state

    def _listener_done(self, task: asyncio.Task) -> None:
        self._listener_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                f"State listener for {self._state.session_code} failed",
                exc_info=task.exception(),
            )

    def topic_url(self, topic: str) -> str:
        query = {"topic": topic}
        if self._state.player_name:
            query["name"] = self._state.player_name
        return f"{self._ws_base_url}/game/sessions/{self._state.session_code}/ws?{urlencode(query)}"

    async def __aenter__(self) -> "GameSync":
        await self.resync()
        self._tasks = [
            asyncio.create_task(self._push_loop(topic), name=f"push-{topic}")
            for topic in self.TOPICS
        ]
        self._tasks.append(asyncio.create_task(self._poll_loop(), name="poll"))
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        # Let pending listeners see the final state
        if self._listener_tasks:
            await asyncio.gather(*list(self._listener_tasks), return_exceptions=True)

    async def resync(self) -> ClientState:
        """Fetch the full snapshot and replace server-derived state."""
        try:
            snapshot = await self.api.get_status(self._state.session_code)
        except GameError as e:
            logger.warning(f"Resync of {self._state.session_code} failed: {e}")
            return self.dispatch({"type": "error", "payload": {"error": str(e)}})
        return self.dispatch({"type": "snapshot", "payload": snapshot})

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.resync()

    async def _push_loop(self, topic: str) -> None:
        connected_before = False
        while True:
            try:
                if connected_before:
                    await self.resync()
                connected_before = True
                async for event in self._subscribe(self.topic_url(topic)):
                    self.dispatch(event)
                    if self._state.needs_resync:
                        await self.resync()
                logger.info(f"{topic} subscription for {self._state.session_code} closed")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"{topic} subscription for {self._state.session_code} dropped: {e}")
            await asyncio.sleep(self.reconnect_delay)

    async def submit_vote(self, choice: str) -> bool:
        """Vote on the current round.

        Returns False without sending when a vote is already in flight or
        voting is closed. A stale-state rejection is absorbed by a resync.

        Raises:
            GameError: The vote was rejected for any other reason
        """
        state = self._state
        if not state.can_vote:
            return False

        round_number = state.current_round
        previous = state.my_votes.get(round_number)
        self.dispatch({"type": "vote_submitted", "payload": {"round": round_number, "choice": choice}})

        try:
            response = await self.api.vote(state.session_code, state.player_name, round_number, choice)
        except InvalidStateError as e:
            logger.info(f"Vote on round {round_number} was stale ({e}), resyncing")
            self.dispatch({"type": "vote_failed", "payload": {"round": round_number, "previous": previous}})
            self.dispatch({"type": "stale", "payload": {}})
            await self.resync()
            return False
        except GameError as e:
            self.dispatch({
                "type": "vote_failed",
                "payload": {"round": round_number, "previous": previous, "error": str(e)},
            })
            raise

        self.dispatch({"type": "vote_confirmed", "payload": response})
        return True

    async def _admin_action(self, call: Callable[[], Awaitable[dict]]) -> dict:
        if self.admin_pin is None:
            raise GameError("This client has no admin PIN")
        try:
            return await call()
        finally:
            await self.resync()

    async def start(self, **options) -> dict:
        return await self._admin_action(
            lambda: self.api.start(self._state.session_code, self.admin_pin, **options)
        )

    async def reveal(self, actual_choice: Optional[str] = None) -> dict:
        return await self._admin_action(
            lambda: self.api.reveal(
                self._state.session_code,
                self.admin_pin,
                self._state.current_round,
                actual_choice=actual_choice,
            )
        )

    async def next_round(self) -> dict:
        return await self._admin_action(
            lambda: self.api.next_round(self._state.session_code, self.admin_pin)
        )
