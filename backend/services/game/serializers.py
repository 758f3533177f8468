"""Plain-dict views of game rows shared by HTTP responses and realtime events."""
from backend.models.game import GameSession, GameParticipant, GameScenario, RoundResult
from backend.utils.datetime_helpers import ensure_utc


def session_summary(session: GameSession, player_count: int = 0) -> dict:
    """Public view of a session. Never includes the admin PIN."""
    return {
        "session_code": session.session_code,
        "role_a_name": session.role_a_name,
        "role_b_name": session.role_b_name,
        "status": session.status,
        "current_round": session.current_round,
        "total_rounds": session.total_rounds,
        "theme": session.theme,
        "intensity": session.intensity,
        "max_players": session.max_players,
        "player_count": player_count,
        "created_at": ensure_utc(session.created_at),
        "started_at": ensure_utc(session.started_at),
        "completed_at": ensure_utc(session.completed_at),
    }


def player_dict(participant: GameParticipant) -> dict:
    return {
        "player_id": str(participant.participant_id),
        "name": participant.display_name,
        "is_admin": participant.is_admin,
        "joined_at": ensure_utc(participant.joined_at),
    }


def scenario_dict(scenario: GameScenario) -> dict:
    return {
        "scenario_id": str(scenario.scenario_id),
        "round_number": scenario.round_number,
        "prompt_text": scenario.prompt_text,
        "option_a": scenario.option_a,
        "option_b": scenario.option_b,
        "intensity": scenario.intensity,
        "is_active": scenario.is_active,
        "source": scenario.source,
    }


def result_dict(result: RoundResult) -> dict:
    total = result.votes_a + result.votes_b
    return {
        "round_number": result.round_number,
        "votes_a": result.votes_a,
        "votes_b": result.votes_b,
        "total_votes": total,
        "percentage_a": round(result.votes_a / total * 100) if total else 0,
        "percentage_b": round(result.votes_b / total * 100) if total else 0,
        "winner": result.winner,
        "is_tie": result.is_tie,
        "commentary": result.commentary,
        "particle_effect": result.particle_effect,
        "actual_choice": result.actual_choice,
        "perception_gap": result.perception_gap,
        "revealed_at": ensure_utc(result.revealed_at),
    }


def final_summary(results: list[RoundResult]) -> dict:
    """Per-round results plus totals for the completed game."""
    rounds_won_a = sum(1 for r in results if r.winner == "A")
    rounds_won_b = sum(1 for r in results if r.winner == "B")
    return {
        "results": [result_dict(r) for r in sorted(results, key=lambda r: r.round_number)],
        "rounds_played": len(results),
        "rounds_won_a": rounds_won_a,
        "rounds_won_b": rounds_won_b,
        "total_votes_a": sum(r.votes_a for r in results),
        "total_votes_b": sum(r.votes_b for r in results),
        "overall_winner": "A" if rounds_won_a >= rounds_won_b else "B",
        "is_tie": rounds_won_a == rounds_won_b,
    }
