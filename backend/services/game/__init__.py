"""Mom vs Dad game services."""
from backend.services.game.exceptions import (
    GameError,
    ValidationError,
    NotFoundError,
    AuthError,
    ConflictError,
    InvalidStateError,
    UpstreamError,
)
from backend.services.game.game_websocket_manager import GameWebSocketManager, get_game_websocket_manager
from backend.services.game.round_controller import RoundController
from backend.services.game.scenario_generator import ScenarioGenerator, GeneratedScenario
from backend.services.game.session_service import GameSessionService
from backend.services.game.vote_service import VoteService, Tally

__all__ = [
    "GameError",
    "ValidationError",
    "NotFoundError",
    "AuthError",
    "ConflictError",
    "InvalidStateError",
    "UpstreamError",
    "GameWebSocketManager",
    "get_game_websocket_manager",
    "RoundController",
    "ScenarioGenerator",
    "GeneratedScenario",
    "GameSessionService",
    "VoteService",
    "Tally",
]
