"""Database models."""
from backend.models.game import (
    GameSession,
    GameParticipant,
    GameScenario,
    GameVote,
    RoundResult,
)

__all__ = [
    "GameSession",
    "GameParticipant",
    "GameScenario",
    "GameVote",
    "RoundResult",
]
