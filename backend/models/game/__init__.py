"""Mom vs Dad game models."""
from backend.models.game.game_session import GameSession
from backend.models.game.game_participant import GameParticipant
from backend.models.game.game_scenario import GameScenario
from backend.models.game.game_vote import GameVote
from backend.models.game.round_result import RoundResult

__all__ = [
    "GameSession",
    "GameParticipant",
    "GameScenario",
    "GameVote",
    "RoundResult",
]
