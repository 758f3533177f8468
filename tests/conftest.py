"""Pytest configuration and fixtures."""
import os
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config as AlembicConfig
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

# Dedicated SQLite database for tests
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
# Scenario and commentary generation use the template fallback in tests
os.environ["AI_ENABLED"] = "false"
os.environ["OPENAI_API_KEY"] = ""

from backend.config import get_settings
from backend.services.game.game_websocket_manager import GameWebSocketManager
from backend.services.game.websocket_channel_service import WebSocketChannelService


BASE_DIR = Path(__file__).resolve().parent.parent
TEST_DB_PATH = BASE_DIR / "test.db"
settings = get_settings()


def _remove_test_db():
    if TEST_DB_PATH.exists():
        try:
            TEST_DB_PATH.unlink()
        except PermissionError:
            # Still held open on Windows; cleaned up next run
            pass


@pytest.fixture(scope="session", autouse=True)
def apply_migrations():
    """Apply database migrations against the test database."""
    _remove_test_db()

    alembic_cfg = AlembicConfig(str(BASE_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(BASE_DIR / "backend" / "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
    command.upgrade(alembic_cfg, "head")

    yield

    _remove_test_db()


@pytest.fixture
async def test_engine():
    """Engine on the migrated test database, one per test event loop."""
    engine = create_async_engine(
        settings.database_url,
        echo=False,
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()
        await session.close()


class RecordingWebSocketManager(GameWebSocketManager):
    """Game WebSocket manager that remembers every event it publishes."""

    def __init__(self):
        super().__init__(WebSocketChannelService())
        self.events: list[tuple[str, str, str, dict]] = []

    async def publish(self, session_code, topic, event_type, payload):
        self.events.append((session_code, topic, event_type, payload))
        return await super().publish(session_code, topic, event_type, payload)

    def of_type(self, event_type: str) -> list[dict]:
        return [payload for _, _, kind, payload in self.events if kind == event_type]


@pytest.fixture
def ws_recorder():
    return RecordingWebSocketManager()


@pytest.fixture
async def test_app(session_factory, ws_recorder):
    """App with database and websocket manager overridden for tests."""
    from backend.main import app
    from backend.database import get_db
    from backend.dependencies import get_round_controller
    from backend.services.game.round_controller import RoundController

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            finally:
                await session.close()

    async def override_get_round_controller():
        async with session_factory() as session:
            try:
                yield RoundController(session, ws_manager=ws_recorder)
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_round_controller] = override_get_round_controller
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def controller_factory(session_factory, ws_recorder):
    """Build round controllers, each on its own database session."""
    from backend.services.game.round_controller import RoundController

    sessions = []

    def _make():
        session = session_factory()
        sessions.append(session)
        return RoundController(session, ws_manager=ws_recorder)

    yield _make

    for session in sessions:
        await session.close()


@pytest.fixture
async def controller(db_session, ws_recorder):
    from backend.services.game.round_controller import RoundController

    return RoundController(db_session, ws_manager=ws_recorder)


@pytest.fixture
def game_factory(controller):
    """Create a session, join guests and optionally start it. Returns (code, pin)."""

    async def _create(role_a="Sam", role_b="Lee", rounds=3, guests=(), start=True):
        created = await controller.create(role_a, role_b, total_rounds=rounds)
        code = created["session"]["session_code"]
        pin = created["admin_pin"]
        for guest in guests:
            await controller.join(code, guest)
        if start:
            await controller.start(code, pin)
        return code, pin

    return _create
