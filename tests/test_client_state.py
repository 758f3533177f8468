"""Tests for the client state reducer."""
from backend.client.state import ClientState, reduce


def _event(event_type, **payload):
    return {"type": event_type, "payload": payload}


def _voting(round_number=1, **overrides):
    state = ClientState(session_code="ABC234", player_name="Ann")
    state = reduce(state, _event("round_new", round=round_number, total_rounds=3,
                                 scenario={"round_number": round_number, "prompt_text": "Who?"}))
    for key, value in overrides.items():
        state = reduce(state, _event(key, **value))
    return state


def test_round_new_enters_voting():
    state = _voting()

    assert state.status == "voting"
    assert state.current_round == 1
    assert state.total_rounds == 3
    assert state.can_vote


def test_stale_round_new_is_ignored():
    state = _voting(round_number=2)
    later = reduce(state, _event("round_new", round=1, scenario={"round_number": 1}))

    assert later is state


def test_duplicate_round_new_after_reveal_is_ignored():
    state = _voting()
    state = reduce(state, _event("round_reveal", round=1, result={"round_number": 1, "winner": "A"}))

    assert reduce(state, _event("round_new", round=1)) is state
    assert state.status == "revealed"
    assert not state.can_vote


def test_vote_update_replaces_tally():
    state = _voting()
    state = reduce(state, _event("vote_update", round=1, tally={"A": 2, "B": 1, "total": 3}))
    state = reduce(state, _event("vote_update", round=1, tally={"A": 2, "B": 2, "total": 4}))

    assert state.tally == {"A": 2, "B": 2, "total": 4}


def test_vote_update_for_older_round_ignored():
    state = _voting(round_number=2)
    assert reduce(state, _event("vote_update", round=1, tally={"A": 9})) is state


def test_vote_update_for_newer_round_requests_resync():
    state = _voting()
    state = reduce(state, _event("vote_update", round=2, tally={"A": 1}))

    assert state.needs_resync
    assert state.tally is None


def test_vote_update_after_reveal_ignored():
    state = _voting()
    state = reduce(state, _event("round_reveal", round=1, result={"round_number": 1}))

    assert reduce(state, _event("vote_update", round=1, tally={"A": 5})) is state


def test_new_round_clears_previous_tally_and_result():
    state = _voting()
    state = reduce(state, _event("vote_update", round=1, tally={"A": 1, "B": 0, "total": 1}))
    state = reduce(state, _event("round_reveal", round=1, result={"round_number": 1, "winner": "A"}))
    state = reduce(state, _event("round_new", round=2, scenario={"round_number": 2}))

    assert state.current_round == 2
    assert state.tally is None
    assert state.last_result is None
    assert len(state.results) == 1


def test_vote_lifecycle():
    state = _voting()
    state = reduce(state, _event("vote_submitted", round=1, choice="A"))

    assert state.my_vote == "A"
    assert state.vote_in_flight
    assert not state.can_vote

    state = reduce(state, _event("vote_confirmed", round=1, tally={"A": 1, "B": 0, "total": 1}))
    assert not state.vote_in_flight
    assert state.tally["A"] == 1
    assert state.my_vote == "A"


def test_failed_vote_restores_previous_choice():
    state = _voting()
    state = reduce(state, _event("vote_submitted", round=1, choice="A"))
    state = reduce(state, _event("vote_confirmed", round=1, tally={"A": 1, "B": 0, "total": 1}))
    state = reduce(state, _event("vote_submitted", round=1, choice="B"))
    state = reduce(state, _event("vote_failed", round=1, previous="A", error="timeout"))

    assert state.my_vote == "A"
    assert state.error == "timeout"
    assert state.can_vote


def test_failed_first_vote_clears_choice():
    state = _voting()
    state = reduce(state, _event("vote_submitted", round=1, choice="B"))
    state = reduce(state, _event("vote_failed", round=1))

    assert state.my_vote is None


def test_snapshot_replaces_server_fields():
    state = _voting()
    state = reduce(state, _event("stale"))
    assert state.needs_resync

    state = reduce(state, _event(
        "snapshot",
        session={"session_code": "ABC234", "status": "revealed", "current_round": 2, "total_rounds": 3},
        players=[{"name": "Ann"}],
        scenario=None,
        tally={"A": 0, "B": 1, "total": 1},
        result={"round_number": 2, "winner": "B"},
        results=[{"round_number": 1}, {"round_number": 2}],
    ))

    assert state.status == "revealed"
    assert state.current_round == 2
    assert state.last_result["winner"] == "B"
    assert len(state.results) == 2
    assert state.players == ({"name": "Ann"},)
    assert not state.needs_resync


def test_game_complete():
    state = _voting()
    state = reduce(state, _event("game_complete", final={"results": [{"round_number": 1}], "overall_winner": "A"}))

    assert state.status == "complete"
    assert state.final["overall_winner"] == "A"
    assert not state.can_vote


def test_player_joined_uses_roster():
    state = reduce(ClientState(), _event("player_joined", player={"name": "Bo"},
                                         players=[{"name": "Ann"}, {"name": "Bo"}]))
    assert [p["name"] for p in state.players] == ["Ann", "Bo"]


def test_unknown_event_ignored():
    state = _voting()
    assert reduce(state, {"type": "confetti"}) is state
