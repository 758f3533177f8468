"""FastAPI dependencies."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.services.game.game_websocket_manager import get_game_websocket_manager
from backend.services.game.round_controller import RoundController
from backend.services.game.scenario_generator import ScenarioGenerator


def get_scenario_generator() -> ScenarioGenerator:
    return ScenarioGenerator()


async def get_round_controller(
    db: AsyncSession = Depends(get_db),
    scenario_generator: ScenarioGenerator = Depends(get_scenario_generator),
) -> RoundController:
    """Round controller bound to the request's database session."""
    return RoundController(db, ws_manager=get_game_websocket_manager(), scenario_generator=scenario_generator)
