"""Background task that soft-completes abandoned game sessions."""
import asyncio
import logging
from datetime import timedelta

from backend.config import get_settings
from backend.database import AsyncSessionLocal
from backend.services.game.session_service import GameSessionService

logger = logging.getLogger(__name__)

# Prevent overlapping runs when a pass is slower than the interval
_maintenance_task_running = False


async def run_session_maintenance(session_factory=AsyncSessionLocal) -> int:
    """Complete sessions nobody has touched for ``session_max_age_hours``.

    Rows are never deleted; they only move to ``complete``.

    Returns:
        int: Number of sessions completed (0 when skipped or on error)
    """
    global _maintenance_task_running

    if _maintenance_task_running:
        logger.debug("Session maintenance already running, skipping")
        return 0

    settings = get_settings()
    _maintenance_task_running = True
    try:
        async with session_factory() as db:
            completed = await GameSessionService(db).complete_idle_sessions(
                timedelta(hours=settings.session_max_age_hours)
            )
        logger.info(f"Session maintenance completed: {completed} idle sessions soft-completed")
        return completed
    except Exception as e:
        logger.error(f"Error during session maintenance: {e}", exc_info=True)
        return 0
    finally:
        _maintenance_task_running = False


async def schedule_periodic_maintenance(interval_minutes: int | None = None) -> None:
    """Run maintenance forever, sleeping ``interval_minutes`` between passes."""
    interval_minutes = interval_minutes or get_settings().session_maintenance_interval_minutes
    logger.info(f"Starting session maintenance scheduler (interval: {interval_minutes}m)")

    while True:
        try:
            await asyncio.sleep(interval_minutes * 60)
            await run_session_maintenance()
        except asyncio.CancelledError:
            logger.info("Session maintenance scheduler cancelled")
            break
        except Exception as e:
            logger.error(f"Unexpected error in maintenance scheduler: {e}", exc_info=True)
            await asyncio.sleep(60)
