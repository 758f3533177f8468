"""Python game client: state reducer, HTTP API client and realtime sync."""
from backend.client.state import ClientState, reduce
from backend.client.api_client import GameAPIClient, GameTransportError
from backend.client.sync import GameSync, websocket_subscribe

__all__ = [
    "ClientState",
    "reduce",
    "GameAPIClient",
    "GameTransportError",
    "GameSync",
    "websocket_subscribe",
]
