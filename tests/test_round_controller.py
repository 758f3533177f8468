"""Tests for the round state machine."""
from unittest.mock import patch, AsyncMock

import pytest

from backend.services.game.exceptions import (
    AuthError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from backend.services.game.session_service import GameSessionService
from backend.services.game.vote_service import VoteService


async def _scenario_flags(db_session, code):
    sessions = GameSessionService(db_session)
    session = await sessions.require_session(code)
    return {s.round_number: s.is_active for s in await sessions.get_scenarios(session.session_id)}


async def _session(db_session, code):
    session = await GameSessionService(db_session).require_session(code)
    await db_session.refresh(session)
    return session


async def test_full_three_round_game(controller, db_session, ws_recorder):
    created = await controller.create("Sam", "Lee", total_rounds=3)
    code, pin = created["session"]["session_code"], created["admin_pin"]
    await controller.join(code, "Ann")
    await controller.join(code, "Ben")

    started = await controller.start(code, pin)
    assert started["round"] == 1
    assert started["session"]["status"] == "voting"
    assert await _scenario_flags(db_session, code) == {1: True, 2: False, 3: False}

    await controller.vote(code, "Ann", 1, "A")
    voted = await controller.vote(code, "Ben", 1, "B")
    assert voted["tally"]["A"] == 1 and voted["tally"]["B"] == 1

    revealed = await controller.reveal(code, pin, 1)
    result = revealed["result"]
    assert result["winner"] == "A"
    assert result["is_tie"] is True
    assert result["votes_a"] == 1 and result["votes_b"] == 1
    assert result["particle_effect"] == "hearts"
    assert result["commentary"]
    assert revealed["is_final_round"] is False

    with pytest.raises(InvalidStateError):
        await controller.vote(code, "Ann", 1, "B")

    advanced = await controller.next_round(code, pin)
    assert advanced["round"] == 2
    assert advanced["final"] is None
    assert await _scenario_flags(db_session, code) == {1: False, 2: True, 3: False}

    await controller.vote(code, "Ann", 2, "B")
    await controller.reveal(code, pin, 2)
    await controller.next_round(code, pin)

    await controller.vote(code, "Ben", 3, "B")
    final_reveal = await controller.reveal(code, pin, 3)
    assert final_reveal["is_final_round"] is True

    finished = await controller.next_round(code, pin)
    assert finished["session"]["status"] == "complete"
    assert finished["session"]["completed_at"] is not None
    final = finished["final"]
    assert [r["round_number"] for r in final["results"]] == [1, 2, 3]
    assert final["rounds_won_a"] == 1
    assert final["rounds_won_b"] == 2
    assert final["total_votes_a"] == 1
    assert final["total_votes_b"] == 3
    assert final["overall_winner"] == "B"

    session = await _session(db_session, code)
    assert session.current_round == 3 == session.total_rounds

    with pytest.raises(InvalidStateError):
        await controller.next_round(code, pin)
    with pytest.raises(InvalidStateError):
        await controller.join(code, "Too Late")


async def test_events_are_published_on_the_right_topics(controller, ws_recorder, game_factory):
    code, pin = await game_factory(guests=["Ann"])
    await controller.vote(code, "Ann", 1, "A")
    await controller.reveal(code, pin, 1)
    await controller.next_round(code, pin)

    topics = [(topic, kind) for _, topic, kind, _ in ws_recorder.events]
    assert topics == [
        ("lobby", "player_joined"),
        ("lobby", "game_started"),
        ("game", "round_new"),
        ("game", "vote_update"),
        ("game", "round_reveal"),
        ("game", "round_new"),
    ]

    joined = ws_recorder.of_type("player_joined")[0]
    assert joined["player"]["name"] == "Ann"
    assert [p["name"] for p in joined["players"]] == ["Host", "Ann"]

    assert ws_recorder.of_type("vote_update")[0]["tally"]["A"] == 1
    assert ws_recorder.of_type("round_new")[-1]["round"] == 2
    assert ws_recorder.of_type("round_new")[-1]["scenario"]["round_number"] == 2


async def test_game_complete_event_carries_final_summary(controller, ws_recorder, game_factory):
    code, pin = await game_factory(rounds=1, guests=["Ann"])
    await controller.vote(code, "Ann", 1, "B")
    await controller.reveal(code, pin, 1)
    await controller.next_round(code, pin)

    final = ws_recorder.of_type("game_complete")[0]["final"]
    assert final["rounds_played"] == 1
    assert final["overall_winner"] == "B"


async def test_admin_actions_require_pin(controller, game_factory):
    code, pin = await game_factory(start=False)
    wrong = "0000"

    with pytest.raises(AuthError):
        await controller.start(code, wrong)
    await controller.start(code, pin)

    with pytest.raises(AuthError):
        await controller.reveal(code, wrong, 1)
    await controller.reveal(code, pin, 1)

    with pytest.raises(AuthError):
        await controller.next_round(code, wrong)


async def test_unknown_session_is_not_found_before_pin_check(controller):
    with pytest.raises(NotFoundError):
        await controller.start("NOPE00", "1234")
    with pytest.raises(NotFoundError):
        await controller.get_status("NOPE00")


async def test_start_only_from_setup(controller, game_factory):
    code, pin = await game_factory()

    with pytest.raises(InvalidStateError):
        await controller.start(code, pin)


async def test_start_can_override_rounds_and_theme(controller, db_session, game_factory):
    code, pin = await game_factory(rounds=5, start=False)

    started = await controller.start(code, pin, total_rounds=2, theme="sleep", intensity=0.3)

    assert started["session"]["total_rounds"] == 2
    assert started["session"]["theme"] == "sleep"
    assert started["scenario"]["intensity"] == 0.3
    assert await _scenario_flags(db_session, code) == {1: True, 2: False}

    code2, pin2 = await game_factory(start=False)
    with pytest.raises(ValidationError):
        await controller.start(code2, pin2, total_rounds=20)


async def test_reveal_rules(controller, game_factory):
    code, pin = await game_factory(guests=["Ann"])

    with pytest.raises(InvalidStateError):
        await controller.reveal(code, pin, 2)

    await controller.reveal(code, pin, 1)

    with pytest.raises(InvalidStateError):
        await controller.reveal(code, pin, 1)


async def test_next_round_requires_reveal(controller, game_factory):
    code, pin = await game_factory()

    with pytest.raises(InvalidStateError):
        await controller.next_round(code, pin)


async def test_vote_rules(controller, game_factory):
    code, pin = await game_factory(guests=["Ann"], start=False)

    with pytest.raises(InvalidStateError):
        await controller.vote(code, "Ann", 1, "A")

    await controller.start(code, pin)

    with pytest.raises(InvalidStateError):
        await controller.vote(code, "Ann", 2, "A")
    with pytest.raises(NotFoundError):
        await controller.vote(code, "Stranger", 1, "A")
    with pytest.raises(ValidationError):
        await controller.vote(code, "Ann", 1, "C")

    response = await controller.vote(code, "ann", 1, "b")
    assert response["choice"] == "B"


async def test_guest_joining_mid_game_can_vote(controller, game_factory):
    code, _ = await game_factory()

    await controller.join(code, "Latecomer")
    response = await controller.vote(code, "Latecomer", 1, "A")

    assert response["tally"]["total"] == 1


async def test_reveal_with_actual_choice_records_perception_gap(controller, game_factory):
    code, pin = await game_factory(guests=["Ann", "Ben", "Cat", "Dan"])
    for name, choice in (("Ann", "A"), ("Ben", "A"), ("Cat", "A"), ("Dan", "B")):
        await controller.vote(code, name, 1, choice)

    result = (await controller.reveal(code, pin, 1, actual_choice="B"))["result"]

    assert result["winner"] == "A"
    assert result["is_tie"] is False
    assert result["actual_choice"] == "B"
    assert result["perception_gap"] == 75
    assert result["particle_effect"] == "confetti"


async def test_reveal_without_votes(controller, game_factory):
    code, pin = await game_factory()

    result = (await controller.reveal(code, pin, 1, actual_choice="A"))["result"]

    assert result["total_votes"] == 0
    assert result["winner"] == "A"
    assert result["is_tie"] is True
    assert result["perception_gap"] is None


async def test_reveal_uses_ai_commentary_when_available(controller, game_factory):
    code, pin = await game_factory()

    with patch(
        "backend.services.game.commentary.generate_response",
        new=AsyncMock(return_value="Nobody voted. Cowards."),
    ):
        result = (await controller.reveal(code, pin, 1))["result"]

    assert result["commentary"] == "Nobody voted. Cowards."


async def test_status_snapshot(controller, game_factory):
    code, pin = await game_factory(guests=["Ann"])
    await controller.vote(code, "Ann", 1, "A")

    status = await controller.get_status(code.lower())

    assert status["session"]["status"] == "voting"
    assert "admin_pin" not in status["session"]
    assert status["scenario"]["round_number"] == 1
    assert status["tally"]["A"] == 1
    assert status["result"] is None
    assert status["final"] is None

    await controller.reveal(code, pin, 1)
    status = await controller.get_status(code)
    assert status["result"]["round_number"] == 1
    assert len(status["results"]) == 1


async def test_admin_login(controller, game_factory):
    code, pin = await game_factory(start=False)

    response = await controller.admin_login(code, pin)
    assert response["is_admin"] is True
    assert response["session"]["session_code"] == code

    with pytest.raises(AuthError):
        await controller.admin_login(code, "0000")


async def test_broadcast_failure_does_not_fail_action(controller, ws_recorder, game_factory):
    code, _ = await game_factory(guests=["Ann"])

    with patch.object(
        ws_recorder._channel_service, "broadcast", new=AsyncMock(side_effect=RuntimeError("socket exploded"))
    ):
        response = await controller.vote(code, "Ann", 1, "A")

    assert response["tally"]["A"] == 1


async def test_start_returns_every_pregenerated_scenario(controller, game_factory):
    code, pin = await game_factory(rounds=3, start=False)

    started = await controller.start(code, pin)

    assert started["status"] == "voting"
    assert started["current_round"] == 1
    assert [s["round_number"] for s in started["scenarios"]] == [1, 2, 3]
    assert [s["is_active"] for s in started["scenarios"]] == [True, False, False]
    assert started["scenario"] == started["scenarios"][0]


async def test_join_returns_player_id(controller, game_factory):
    code, _ = await game_factory(start=False)

    joined = await controller.join(code, "Ann")

    assert joined["player_id"] == joined["player"]["player_id"]
    assert joined["player_id"] in {p["player_id"] for p in joined["players"]}


async def test_full_lobby_rejects_join(controller):
    created = await controller.create("Sam", "Lee", max_players=2)
    code = created["session"]["session_code"]
    assert created["session"]["max_players"] == 2

    await controller.join(code, "Ann")
    with pytest.raises(ConflictError):
        await controller.join(code, "Ben")

    with pytest.raises(ValidationError):
        await controller.create("Sam", "Lee", max_players=1)


async def test_vote_during_reveal_never_goes_missing(controller, controller_factory, db_session, game_factory):
    code, pin = await game_factory(guests=["Ann", "Ben"])
    await controller.vote(code, "Ann", 1, "A")
    guest_controller = controller_factory()
    late_vote = {}

    async def vote_while_revealing(*args, **kwargs):
        try:
            late_vote["response"] = await guest_controller.vote(code, "Ben", 1, "B")
        except InvalidStateError as e:
            late_vote["error"] = e
        return "Close call."

    with patch("backend.services.game.round_controller.generate_commentary", new=vote_while_revealing):
        result = (await controller.reveal(code, pin, 1))["result"]

    assert isinstance(late_vote.get("error"), InvalidStateError)
    assert "response" not in late_vote

    session = await _session(db_session, code)
    scenario = await GameSessionService(db_session).get_scenario(session.session_id, 1)
    ledger = await VoteService(db_session).get_tally(scenario.scenario_id)
    assert (result["votes_a"], result["votes_b"]) == (ledger.votes_a, ledger.votes_b) == (1, 0)
    assert result["commentary"] == "Close call."
