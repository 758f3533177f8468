"""WebSocket connection registry grouped by channel.

Every topic a client can subscribe to (``lobby:<code>``, ``game:<code>``) is a
channel here. Delivery is best effort: a send that fails or stalls drops that
connection and the broadcast carries on with the rest.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Dict, Optional

from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

SEND_TIMEOUT_SECONDS = 5.0


@dataclass
class ChannelConnection:
    """Metadata about a single subscribed socket."""

    websocket: "WebSocket"
    display_name: Optional[str] = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class WebSocketChannelService:
    """Manage WebSocket connections grouped by channel key."""

    def __init__(self, send_timeout: float = SEND_TIMEOUT_SECONDS) -> None:
        # channel key -> client id -> connection
        self._channels: Dict[str, Dict[str, ChannelConnection]] = {}
        self.send_timeout = send_timeout

    async def connect(
        self,
        channel_id: str,
        client_id: str,
        websocket: "WebSocket",
        *,
        display_name: Optional[str] = None,
    ) -> None:
        """Accept the socket and register it on a channel."""

        await websocket.accept()

        self._channels.setdefault(channel_id, {})[client_id] = ChannelConnection(
            websocket=websocket, display_name=display_name
        )
        logger.debug(f"Registered websocket client {client_id} in channel {channel_id}")

    async def disconnect(self, channel_id: str, client_id: str) -> Optional[ChannelConnection]:
        """Forget a connection. Returns it if it was registered."""

        channel_connections = self._channels.get(channel_id)
        if not channel_connections:
            return None

        connection = channel_connections.pop(client_id, None)
        if connection:
            connected_for = (datetime.now(UTC) - connection.connected_at).total_seconds()
            logger.debug(
                f"Removed websocket client {client_id} ({connection.display_name or 'anonymous'}) "
                f"from channel {channel_id} after {connected_for:.0f}s"
            )

        if not channel_connections:
            self._channels.pop(channel_id, None)

        return connection

    def get_connection_count(self, channel_id: str) -> int:
        channel_connections = self._channels.get(channel_id)
        return len(channel_connections) if channel_connections else 0

    async def _deliver(self, channel_id: str, client_id: str, connection: ChannelConnection, message: dict) -> bool:
        try:
            await asyncio.wait_for(connection.websocket.send_json(message), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Timed out sending to {client_id} in channel {channel_id}")
        except Exception as exc:
            logger.warning(f"Failed to send websocket message to {client_id} in channel {channel_id}: {exc}")
        return False

    async def broadcast(self, channel_id: str, message: dict) -> int:
        """Send a message to every client on a channel.

        Returns:
            int: Number of clients the message reached
        """

        channel_connections = self._channels.get(channel_id)
        if not channel_connections:
            logger.debug(f"Channel {channel_id} has no connections, skipping broadcast")
            return 0

        payload = jsonable_encoder(message)
        targets = list(channel_connections.items())
        outcomes = await asyncio.gather(*[
            self._deliver(channel_id, client_id, connection, payload)
            for client_id, connection in targets
        ])

        delivered = 0
        for (client_id, _), ok in zip(targets, outcomes):
            if ok:
                delivered += 1
            else:
                await self.disconnect(channel_id, client_id)

        return delivered


_channel_service = WebSocketChannelService()


def get_websocket_channel_service() -> WebSocketChannelService:
    """Return the process-wide channel service."""

    return _channel_service
