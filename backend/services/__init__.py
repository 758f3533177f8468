"""Service layer exports."""
from backend.services.game import (
    GameError,
    RoundController,
    GameSessionService,
    VoteService,
    ScenarioGenerator,
    get_game_websocket_manager,
)

__all__ = [
    "GameError",
    "RoundController",
    "GameSessionService",
    "VoteService",
    "ScenarioGenerator",
    "get_game_websocket_manager",
]
