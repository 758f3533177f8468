"""API routers."""
from backend.routers import game, health

__all__ = [
    "game",
    "health",
]
