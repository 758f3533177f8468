"""Realtime fan-out for game sessions.

Two topics per session: ``lobby`` (player_joined, game_started) and ``game``
(round_new, vote_update, round_reveal, game_complete). Every event is a JSON
object ``{"type": ..., "payload": {...}}``.
"""
import logging
import uuid
from datetime import datetime, UTC

from backend.services.game.websocket_channel_service import (
    WebSocketChannelService,
    get_websocket_channel_service,
)

logger = logging.getLogger(__name__)

LOBBY_TOPIC = "lobby"
GAME_TOPIC = "game"
TOPICS = (LOBBY_TOPIC, GAME_TOPIC)


class GameWebSocketManager:
    """Publishes game events to the sockets subscribed to a session's topics."""

    def __init__(self, channel_service: WebSocketChannelService | None = None) -> None:
        self._channel_service = channel_service or get_websocket_channel_service()

    @staticmethod
    def channel_key(topic: str, session_code: str) -> str:
        return f"{topic}:{session_code.upper()}"

    async def connect(
        self,
        session_code: str,
        topic: str,
        websocket: "WebSocket",
        display_name: str | None = None,
    ) -> str:
        """Subscribe a socket to one topic of a session.

        Returns:
            str: Client id to pass to :meth:`disconnect`
        """
        if topic not in TOPICS:
            raise ValueError(f"Unknown topic {topic!r}")

        client_id = f"{display_name or 'anon'}:{uuid.uuid4().hex[:8]}"
        channel = self.channel_key(topic, session_code)
        await self._channel_service.connect(channel, client_id, websocket, display_name=display_name)

        connection_count = self._channel_service.get_connection_count(channel)
        logger.info(f"WebSocket connected {client_id=} on {channel} ({connection_count=})")
        return client_id

    async def disconnect(self, session_code: str, topic: str, client_id: str) -> None:
        channel = self.channel_key(topic, session_code)
        connection = await self._channel_service.disconnect(channel, client_id)
        if connection:
            logger.info(f"WebSocket disconnected {client_id=} from {channel}")

    def get_connection_count(self, session_code: str, topic: str) -> int:
        return self._channel_service.get_connection_count(self.channel_key(topic, session_code))

    async def publish(self, session_code: str, topic: str, event_type: str, payload: dict) -> int:
        """Broadcast one event. Never raises; failures are logged.

        Returns:
            int: Number of sockets reached
        """
        message = {
            "type": event_type,
            "payload": {
                **payload,
                "session_code": session_code,
                "sent_at": datetime.now(UTC),
            },
        }
        try:
            delivered = await self._channel_service.broadcast(self.channel_key(topic, session_code), message)
        except Exception as e:
            logger.error(f"Failed to publish {event_type} for session {session_code}: {e}", exc_info=True)
            return 0

        logger.debug(f"Published {event_type} to {topic}:{session_code} ({delivered} recipients)")
        return delivered

    async def notify_player_joined(self, session_code: str, player: dict, players: list[dict]) -> None:
        await self.publish(session_code, LOBBY_TOPIC, "player_joined", {
            "player": player,
            "players": players,
        })

    async def notify_game_started(self, session_code: str, round_number: int, total_rounds: int, scenario: dict) -> None:
        await self.publish(session_code, LOBBY_TOPIC, "game_started", {
            "round": round_number,
            "total_rounds": total_rounds,
            "scenario": scenario,
        })

    async def notify_round_new(self, session_code: str, round_number: int, total_rounds: int, scenario: dict) -> None:
        await self.publish(session_code, GAME_TOPIC, "round_new", {
            "round": round_number,
            "total_rounds": total_rounds,
            "scenario": scenario,
        })

    async def notify_vote_update(self, session_code: str, round_number: int, tally: dict) -> None:
        await self.publish(session_code, GAME_TOPIC, "vote_update", {
            "round": round_number,
            "tally": tally,
        })

    async def notify_round_reveal(self, session_code: str, round_number: int, result: dict) -> None:
        await self.publish(session_code, GAME_TOPIC, "round_reveal", {
            "round": round_number,
            "result": result,
        })

    async def notify_game_complete(self, session_code: str, final: dict) -> None:
        await self.publish(session_code, GAME_TOPIC, "game_complete", {
            "final": final,
        })


_game_websocket_manager = GameWebSocketManager()


def get_game_websocket_manager() -> GameWebSocketManager:
    """Get the global game WebSocket manager instance."""
    return _game_websocket_manager
