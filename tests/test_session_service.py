"""Tests for session creation, joining and admin checks."""
from unittest.mock import patch, AsyncMock

import pytest

from backend.models.game import GameScenario
from backend.services.game.exceptions import (
    AuthError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from backend.services.game.session_service import (
    SESSION_CODE_ALPHABET,
    GameSessionService,
    normalize_session_code,
    validate_name,
)


class TestCreateSession:
    async def test_creates_setup_session_with_admin(self, db_session):
        service = GameSessionService(db_session)

        session, admin = await service.create_session("  Sam ", "Lee", total_rounds=3)

        assert session.status == "setup"
        assert session.current_round == 0
        assert session.total_rounds == 3
        assert session.role_a_name == "Sam"
        assert admin.is_admin is True
        assert admin.display_name == "Host"

        assert len(session.session_code) == 6
        assert set(session.session_code) <= set(SESSION_CODE_ALPHABET)
        assert 1000 <= int(session.admin_pin) <= 9999

        participants = await service.get_participants(session.session_id)
        assert [p.display_name for p in participants] == ["Host"]

    async def test_custom_admin_name_theme_and_defaults(self, db_session):
        session, admin = await GameSessionService(db_session).create_session(
            "Mom", "Dad", admin_name="Grandma", theme="FARM"
        )

        assert admin.display_name == "Grandma"
        assert session.theme == "farm"
        assert session.total_rounds == 5
        assert session.intensity == 0.5
        assert session.max_players == 50

    @pytest.mark.parametrize("role_a,role_b,rounds", [
        ("", "Lee", 3),
        ("   ", "Lee", 3),
        ("Sam", "x" * 51, 3),
        ("Sam", "Lee", 0),
        ("Sam", "Lee", 11),
    ])
    async def test_rejects_invalid_input(self, db_session, role_a, role_b, rounds):
        with pytest.raises(ValidationError):
            await GameSessionService(db_session).create_session(role_a, role_b, total_rounds=rounds)

    async def test_code_collisions_exhaust_attempts(self, db_session):
        service = GameSessionService(db_session)

        with patch.object(service, "get_session_by_code", new=AsyncMock(return_value=object())):
            with pytest.raises(ConflictError):
                await service.create_session("Sam", "Lee")


class TestJoin:
    async def test_join_is_case_insensitive_unique(self, db_session):
        service = GameSessionService(db_session)
        session, _ = await service.create_session("Sam", "Lee")

        await service.add_participant(session, "Ann")
        await db_session.commit()

        with pytest.raises(ConflictError):
            await service.add_participant(session, "  aNN ")

    async def test_guest_cannot_take_admin_name(self, db_session):
        service = GameSessionService(db_session)
        session, _ = await service.create_session("Sam", "Lee")

        with pytest.raises(ConflictError):
            await service.add_participant(session, "host")

    @pytest.mark.parametrize("status", ["revealed", "complete"])
    async def test_join_rejected_after_voting(self, db_session, status):
        service = GameSessionService(db_session)
        session, _ = await service.create_session("Sam", "Lee")
        session.status = status

        with pytest.raises(InvalidStateError):
            await service.add_participant(session, "Late Larry")

    async def test_join_rejected_when_full(self, db_session):
        service = GameSessionService(db_session)
        session, _ = await service.create_session("Sam", "Lee", max_players=3)

        await service.add_participant(session, "Ann")
        await service.add_participant(session, "Ben")
        await db_session.commit()

        with pytest.raises(ConflictError):
            await service.add_participant(session, "Cat")

    @pytest.mark.parametrize("max_players", [0, 1, 101])
    async def test_rejects_invalid_capacity(self, db_session, max_players):
        with pytest.raises(ValidationError):
            await GameSessionService(db_session).create_session("Sam", "Lee", max_players=max_players)

    async def test_join_allowed_while_voting(self, db_session):
        service = GameSessionService(db_session)
        session, _ = await service.create_session("Sam", "Lee")
        session.status = "voting"

        participant = await service.add_participant(session, "Ann")
        assert participant.is_admin is False


async def test_require_session_normalizes_code(db_session):
    service = GameSessionService(db_session)
    session, _ = await service.create_session("Sam", "Lee")

    found = await service.require_session(f"  {session.session_code.lower()} ")
    assert found.session_id == session.session_id

    with pytest.raises(NotFoundError):
        await service.require_session("ZZZZZZ")


async def test_verify_admin_pin(db_session):
    session, _ = await GameSessionService(db_session).create_session("Sam", "Lee")

    GameSessionService.verify_admin_pin(session, session.admin_pin)
    for wrong in ("", None, "0000"):
        with pytest.raises(AuthError):
            GameSessionService.verify_admin_pin(session, wrong)


def test_validate_name_trims():
    assert validate_name("  Ann  ", "name") == "Ann"


def test_normalize_session_code():
    assert normalize_session_code(" abc234 ") == "ABC234"


async def test_closed_scenario_cannot_be_claimed_for_a_vote(db_session):
    service = GameSessionService(db_session)
    session, _ = await service.create_session("Sam", "Lee")
    scenario = GameScenario(
        session_id=session.session_id,
        round_number=1,
        prompt_text="Who wakes up first?",
        option_a="Sam",
        option_b="Lee",
        intensity=0.5,
        is_active=True,
        source="fallback",
    )
    db_session.add(scenario)
    await db_session.commit()

    assert await service.claim_active_scenario(scenario.scenario_id) is True
    await db_session.commit()

    await service.set_scenario_active(session.session_id, 1, False)
    await db_session.commit()

    assert await service.claim_active_scenario(scenario.scenario_id) is False
