"""Client-side game state and the single function that updates it.

Every change to a client's view of the game goes through :func:`reduce`:
realtime events, poll snapshots and the client's own vote lifecycle alike.
The state is immutable; ``reduce`` always returns a new instance.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Optional


@dataclass(frozen=True)
class ClientState:
    """What one guest or admin client knows about a session."""

    session_code: str = ""
    player_name: str = ""
    is_admin: bool = False

    status: str = "setup"
    current_round: int = 0
    total_rounds: int = 0
    role_a_name: str = ""
    role_b_name: str = ""

    scenario: Optional[dict] = None
    tally: Optional[dict] = None
    last_result: Optional[dict] = None
    results: tuple = ()
    final: Optional[dict] = None
    players: tuple = ()

    # round number -> "A" / "B"
    my_votes: dict = field(default_factory=dict)
    vote_in_flight: bool = False
    needs_resync: bool = False
    error: Optional[str] = None

    @property
    def my_vote(self) -> Optional[str]:
        return self.my_votes.get(self.current_round)

    @property
    def can_vote(self) -> bool:
        return self.status == "voting" and not self.vote_in_flight and self.scenario is not None


def _round_of(payload: dict) -> int:
    return int(payload.get("round") or payload.get("round_number") or 0)


def _enter_round(state: ClientState, payload: dict) -> ClientState:
    round_number = _round_of(payload)
    if round_number < state.current_round:
        return state
    if round_number == state.current_round and state.status in ("revealed", "complete"):
        # Late duplicate of a round we've already moved past
        return state

    new_round = round_number > state.current_round
    return replace(
        state,
        status="voting",
        current_round=round_number,
        total_rounds=payload.get("total_rounds") or state.total_rounds,
        scenario=payload.get("scenario") or state.scenario,
        tally=None if new_round else state.tally,
        last_result=None if new_round else state.last_result,
        vote_in_flight=False if new_round else state.vote_in_flight,
        error=None,
    )


def _vote_update(state: ClientState, payload: dict) -> ClientState:
    round_number = _round_of(payload)
    if round_number < state.current_round:
        return state
    if round_number > state.current_round:
        return replace(state, needs_resync=True)
    if state.status != "voting":
        return state
    return replace(state, tally=dict(payload.get("tally") or {}))


def _round_reveal(state: ClientState, payload: dict) -> ClientState:
    round_number = _round_of(payload)
    if round_number < state.current_round:
        return state
    if round_number > state.current_round:
        return replace(state, needs_resync=True)

    result = payload.get("result") or {}
    results = tuple(r for r in state.results if r.get("round_number") != round_number) + (result,)
    return replace(
        state,
        status="revealed",
        last_result=result,
        results=tuple(sorted(results, key=lambda r: r.get("round_number", 0))),
        vote_in_flight=False,
    )


def _game_complete(state: ClientState, payload: dict) -> ClientState:
    final = payload.get("final") or {}
    return replace(
        state,
        status="complete",
        final=final,
        results=tuple(final.get("results") or state.results),
        vote_in_flight=False,
    )


def _snapshot(state: ClientState, payload: dict) -> ClientState:
    """Replace every server-derived field with the polled snapshot."""
    session = payload.get("session") or {}
    current_round = session.get("current_round", state.current_round)
    return replace(
        state,
        session_code=session.get("session_code", state.session_code),
        status=session.get("status", state.status),
        current_round=current_round,
        total_rounds=session.get("total_rounds", state.total_rounds),
        role_a_name=session.get("role_a_name", state.role_a_name),
        role_b_name=session.get("role_b_name", state.role_b_name),
        scenario=payload.get("scenario"),
        tally=payload.get("tally"),
        last_result=payload.get("result"),
        results=tuple(payload.get("results") or ()),
        final=payload.get("final"),
        players=tuple(payload.get("players") or ()),
        vote_in_flight=state.vote_in_flight and current_round == state.current_round,
        needs_resync=False,
    )


def _vote_submitted(state: ClientState, payload: dict) -> ClientState:
    my_votes = dict(state.my_votes)
    my_votes[_round_of(payload)] = payload.get("choice")
    return replace(state, my_votes=my_votes, vote_in_flight=True, error=None)


def _vote_confirmed(state: ClientState, payload: dict) -> ClientState:
    state = replace(state, vote_in_flight=False)
    return _vote_update(state, payload)


def _vote_failed(state: ClientState, payload: dict) -> ClientState:
    my_votes = dict(state.my_votes)
    previous = payload.get("previous")
    round_number = _round_of(payload)
    if previous:
        my_votes[round_number] = previous
    else:
        my_votes.pop(round_number, None)
    return replace(state, my_votes=my_votes, vote_in_flight=False, error=payload.get("error"))


def _player_joined(state: ClientState, payload: dict) -> ClientState:
    players = payload.get("players")
    if players is None:
        player = payload.get("player")
        players = list(state.players) + ([player] if player else [])
    return replace(state, players=tuple(players))


_HANDLERS = {
    "player_joined": _player_joined,
    "game_started": _enter_round,
    "round_new": _enter_round,
    "vote_update": _vote_update,
    "round_reveal": _round_reveal,
    "game_complete": _game_complete,
    "snapshot": _snapshot,
    "vote_submitted": _vote_submitted,
    "vote_confirmed": _vote_confirmed,
    "vote_failed": _vote_failed,
    "stale": lambda state, payload: replace(state, needs_resync=True, vote_in_flight=False),
    "error": lambda state, payload: replace(state, error=payload.get("error")),
}


def reduce(state: ClientState, event: dict[str, Any]) -> ClientState:
    """Apply one ``{"type", "payload"}`` event. Unknown types are ignored."""
    handler = _HANDLERS.get(event.get("type"))
    if handler is None:
        return state
    return handler(state, event.get("payload") or {})
