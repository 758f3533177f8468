"""Tests for soft-completing idle sessions."""
from datetime import UTC, datetime, timedelta

from sqlalchemy import update

from backend.models.game import GameSession
from backend.tasks.session_maintenance import run_session_maintenance


async def _age(session_factory, code, hours):
    async with session_factory() as db:
        await db.execute(
            update(GameSession)
            .where(GameSession.session_code == code)
            .values(updated_at=datetime.now(UTC) - timedelta(hours=hours))
        )
        await db.commit()


async def _status(session_factory, code):
    async with session_factory() as db:
        session = (
            await db.execute(GameSession.__table__.select().where(GameSession.session_code == code))
        ).one()
        return session.status, session.completed_at


async def test_idle_sessions_are_completed(game_factory, session_factory):
    idle, _ = await game_factory(start=False)
    active, _ = await game_factory()
    await _age(session_factory, idle, hours=48)

    completed = await run_session_maintenance(session_factory=session_factory)

    assert completed >= 1
    status, completed_at = await _status(session_factory, idle)
    assert status == "complete"
    assert completed_at is not None

    status, _ = await _status(session_factory, active)
    assert status == "voting"


async def test_recent_sessions_untouched(game_factory, session_factory):
    code, _ = await game_factory(start=False)
    await _age(session_factory, code, hours=1)

    await run_session_maintenance(session_factory=session_factory)

    status, _ = await _status(session_factory, code)
    assert status == "setup"


async def test_errors_are_logged_not_raised():
    def broken_factory():
        raise RuntimeError("database unavailable")

    assert await run_session_maintenance(session_factory=broken_factory) == 0
