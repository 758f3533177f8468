"""Round controller: the game state machine.

setup -> voting -> revealed -> voting (next round) -> ... -> complete

Every action is one transaction. Realtime events go out only after the commit
succeeds, and a failed broadcast never fails the action.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from datetime import datetime, UTC
from typing import Optional
import logging
import uuid

from backend.models.base import SessionStatus
from backend.models.game import GameScenario, RoundResult
from backend.services.game.commentary import default_roast, generate_commentary, particle_effect
from backend.services.game.exceptions import InvalidStateError, NotFoundError
from backend.services.game.game_websocket_manager import GameWebSocketManager, get_game_websocket_manager
from backend.services.game.scenario_generator import ScenarioGenerator, normalize_theme
from backend.services.game.serializers import (
    final_summary,
    player_dict,
    result_dict,
    scenario_dict,
    session_summary,
)
from backend.services.game.session_service import (
    GameSessionService,
    validate_intensity,
    validate_total_rounds,
)
from backend.services.game.vote_service import VoteService, normalize_choice

logger = logging.getLogger(__name__)


class RoundController:
    """Coordinates session, scenario, vote and fan-out services for each game action."""

    def __init__(
        self,
        db: AsyncSession,
        ws_manager: GameWebSocketManager | None = None,
        scenario_generator: ScenarioGenerator | None = None,
    ):
        self.db = db
        self.sessions = GameSessionService(db)
        self.votes = VoteService(db)
        self.ws_manager = ws_manager or get_game_websocket_manager()
        self.scenario_generator = scenario_generator or ScenarioGenerator()

    async def _players(self, session) -> list[dict]:
        return [player_dict(p) for p in await self.sessions.get_participants(session.session_id)]

    async def _summary(self, session) -> dict:
        return session_summary(session, await self.sessions.get_participant_count(session.session_id))

    async def create(
        self,
        role_a_name: str,
        role_b_name: str,
        total_rounds: Optional[int] = None,
        admin_name: Optional[str] = None,
        theme: Optional[str] = None,
        intensity: Optional[float] = None,
        max_players: Optional[int] = None,
    ) -> dict:
        """Create a session in setup. The creator becomes its admin.

        Returns:
            dict with ``session``, ``admin_pin`` and ``admin_name``; the PIN is
            only ever returned here
        """
        session, admin = await self.sessions.create_session(
            role_a_name,
            role_b_name,
            total_rounds=total_rounds,
            admin_name=admin_name,
            theme=theme,
            intensity=intensity,
            max_players=max_players,
        )
        return {
            "session": session_summary(session, player_count=1),
            "admin_pin": session.admin_pin,
            "admin_name": admin.display_name,
        }

    async def join(self, session_code: str, guest_name: str) -> dict:
        """Join a session in setup or voting as a guest.

        Raises:
            NotFoundError: Unknown code
            InvalidStateError: Session already revealed or complete
            ConflictError: Name taken or lobby full
        """
        session = await self.sessions.require_session(session_code)
        participant = await self.sessions.add_participant(session, guest_name)
        await self.db.commit()

        player = player_dict(participant)
        players = await self._players(session)
        logger.info(f"{participant.display_name} joined session {session.session_code}")

        await self.ws_manager.notify_player_joined(session.session_code, player, players)

        return {
            "player_id": player["player_id"],
            "player": player,
            "is_admin": False,
            "players": players,
            "session": session_summary(session, len(players)),
        }

    async def admin_login(self, session_code: str, admin_pin: str) -> dict:
        session = await self.sessions.require_session(session_code)
        self.sessions.verify_admin_pin(session, admin_pin)
        players = await self._players(session)
        return {
            "is_admin": True,
            "players": players,
            "session": session_summary(session, len(players)),
        }

    async def start(
        self,
        session_code: str,
        admin_pin: str,
        total_rounds: Optional[int] = None,
        intensity: Optional[float] = None,
        theme: Optional[str] = None,
    ) -> dict:
        """Generate every round's scenario and open voting on round 1."""
        session = await self.sessions.require_session(session_code)
        self.sessions.verify_admin_pin(session, admin_pin)

        if session.status != SessionStatus.SETUP.value:
            raise InvalidStateError(f"Game already started (status {session.status})")

        total_rounds = session.total_rounds if total_rounds is None else validate_total_rounds(total_rounds)
        intensity = session.intensity if intensity is None else validate_intensity(intensity)
        theme = session.theme if theme is None else normalize_theme(theme)
        session_id = session.session_id

        generated = await self.scenario_generator.generate_all(
            session.role_a_name,
            session.role_b_name,
            theme,
            total_rounds,
            intensity,
        )

        now = datetime.now(UTC)
        for round_number, scenario in enumerate(generated, start=1):
            self.db.add(GameScenario(
                scenario_id=uuid.uuid4(),
                session_id=session_id,
                round_number=round_number,
                prompt_text=scenario.prompt_text,
                option_a=scenario.option_a,
                option_b=scenario.option_b,
                intensity=scenario.intensity,
                is_active=round_number == 1,
                source=scenario.source,
                created_at=now,
            ))

        try:
            await self.sessions.transition(
                session,
                SessionStatus.SETUP.value,
                0,
                status=SessionStatus.VOTING.value,
                current_round=1,
                total_rounds=total_rounds,
                theme=theme,
                intensity=intensity,
                started_at=now,
            )
            await self.db.commit()
        except InvalidStateError:
            await self.db.rollback()
            raise
        except IntegrityError as e:
            await self.db.rollback()
            raise InvalidStateError("Game already started") from e

        await self.db.refresh(session)
        scenarios = [scenario_dict(s) for s in await self.sessions.get_scenarios(session_id)]
        first = scenarios[0]
        ai_rounds = sum(1 for s in generated if s.source == "ai")
        logger.info(
            f"Started session {session.session_code}: {total_rounds} rounds, "
            f"{ai_rounds} AI scenarios, theme={theme}"
        )

        await self.ws_manager.notify_game_started(session.session_code, 1, total_rounds, first)
        await self.ws_manager.notify_round_new(session.session_code, 1, total_rounds, first)

        return {
            "session": await self._summary(session),
            "status": session.status,
            "current_round": session.current_round,
            "round": 1,
            "scenario": first,
            "scenarios": scenarios,
        }

    async def vote(self, session_code: str, guest_name: str, round_number: int, choice: str) -> dict:
        """Record (or replace) a guest's vote on the current round.

        Raises:
            NotFoundError: Unknown session or the voter never joined
            InvalidStateError: Not voting, wrong round, or scenario inactive
        """
        session = await self.sessions.require_session(session_code)
        choice = normalize_choice(choice)

        if session.status != SessionStatus.VOTING.value:
            raise InvalidStateError(f"Voting is closed (status {session.status})")
        if round_number != session.current_round:
            raise InvalidStateError(
                f"Round {round_number} is not the current round ({session.current_round})"
            )

        participant = await self.sessions.get_participant(session.session_id, guest_name or "")
        if not participant:
            raise NotFoundError(f"{guest_name!r} has not joined session {session.session_code}")

        scenario = await self.sessions.get_scenario(session.session_id, round_number)
        if not scenario or not scenario.is_active:
            raise InvalidStateError(f"Round {round_number} is not accepting votes")

        if not await self.sessions.claim_active_scenario(scenario.scenario_id):
            await self.db.rollback()
            raise InvalidStateError(f"Round {round_number} was revealed before the vote landed")

        previous = await self.votes.get_voter_choice(scenario.scenario_id, participant.display_name)
        await self.votes.upsert_vote(scenario.scenario_id, participant.display_name, choice)
        await self.db.commit()
        if previous and previous != choice:
            logger.info(f"{participant.display_name} changed round {round_number} vote from {previous} to {choice}")

        tally = (await self.votes.get_tally(scenario.scenario_id)).to_dict()
        await self.ws_manager.notify_vote_update(session.session_code, round_number, tally)

        return {"round": round_number, "choice": choice, "tally": tally}

    async def reveal(
        self,
        session_code: str,
        admin_pin: str,
        round_number: int,
        actual_choice: Optional[str] = None,
    ) -> dict:
        """Freeze the round's tally into a result and close voting."""
        session = await self.sessions.require_session(session_code)
        self.sessions.verify_admin_pin(session, admin_pin)

        if session.status != SessionStatus.VOTING.value:
            raise InvalidStateError(f"Cannot reveal while {session.status}")
        if round_number != session.current_round:
            raise InvalidStateError(
                f"Round {round_number} is not the current round ({session.current_round})"
            )

        actual = normalize_choice(actual_choice) if actual_choice else None
        scenario = await self.sessions.get_scenario(session.session_id, round_number)
        if not scenario:
            raise InvalidStateError(f"Round {round_number} has no scenario")

        try:
            # Close voting before counting so every acknowledged vote is in the tally
            await self.sessions.transition(
                session,
                SessionStatus.VOTING.value,
                round_number,
                status=SessionStatus.REVEALED.value,
            )
            await self.sessions.set_scenario_active(session.session_id, round_number, False)

            tally = await self.votes.get_tally(scenario.scenario_id)
            winner = "A" if tally.votes_a >= tally.votes_b else "B"
            is_tie = tally.votes_a == tally.votes_b

            perception_gap = None
            if actual and tally.total:
                matched = tally.percentage_a if actual == "A" else tally.percentage_b
                perception_gap = 100 - matched

            result = RoundResult(
                result_id=uuid.uuid4(),
                scenario_id=scenario.scenario_id,
                session_id=session.session_id,
                round_number=round_number,
                votes_a=tally.votes_a,
                votes_b=tally.votes_b,
                winner=winner,
                is_tie=is_tie,
                commentary=default_roast(tally.percentage_a, tally.percentage_b),
                particle_effect=particle_effect(tally.percentage_a, tally.percentage_b),
                actual_choice=actual,
                perception_gap=perception_gap,
                revealed_at=datetime.now(UTC),
            )
            self.db.add(result)
            await self.db.commit()
        except InvalidStateError:
            await self.db.rollback()
            raise
        except IntegrityError as e:
            await self.db.rollback()
            raise InvalidStateError(f"Round {round_number} already revealed") from e

        # The result is frozen; only its commentary text is filled in afterwards
        result.commentary = await generate_commentary(
            scenario.prompt_text,
            session.role_a_name,
            session.role_b_name,
            tally.votes_a,
            tally.votes_b,
            winner,
            is_tie,
            actual,
        )
        try:
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to store commentary for round {round_number} of {session.session_code}: {e}", exc_info=True)

        await self.db.refresh(session)
        await self.db.refresh(result)
        revealed = result_dict(result)
        logger.info(
            f"Revealed round {round_number} of {session.session_code}: "
            f"A={tally.votes_a} B={tally.votes_b} winner={winner} tie={is_tie}"
        )

        await self.ws_manager.notify_round_reveal(session.session_code, round_number, revealed)

        return {
            "session": await self._summary(session),
            "result": revealed,
            "is_final_round": round_number >= session.total_rounds,
        }

    async def next_round(self, session_code: str, admin_pin: str) -> dict:
        """Advance to the next round, or complete the game after the last one."""
        session = await self.sessions.require_session(session_code)
        self.sessions.verify_admin_pin(session, admin_pin)

        if session.status != SessionStatus.REVEALED.value:
            raise InvalidStateError(f"Cannot advance while {session.status}")

        current = session.current_round

        if current < session.total_rounds:
            next_number = current + 1
            try:
                await self.sessions.transition(
                    session,
                    SessionStatus.REVEALED.value,
                    current,
                    status=SessionStatus.VOTING.value,
                    current_round=next_number,
                )
                await self.sessions.set_scenario_active(session.session_id, next_number, True)
                await self.db.commit()
            except InvalidStateError:
                await self.db.rollback()
                raise

            await self.db.refresh(session)
            scenario = scenario_dict(await self.sessions.get_scenario(session.session_id, next_number))
            logger.info(f"Session {session.session_code} advanced to round {next_number}/{session.total_rounds}")

            await self.ws_manager.notify_round_new(
                session.session_code, next_number, session.total_rounds, scenario
            )
            return {
                "session": await self._summary(session),
                "round": next_number,
                "scenario": scenario,
                "final": None,
            }

        try:
            await self.sessions.transition(
                session,
                SessionStatus.REVEALED.value,
                current,
                status=SessionStatus.COMPLETE.value,
                completed_at=datetime.now(UTC),
            )
            await self.db.commit()
        except InvalidStateError:
            await self.db.rollback()
            raise

        await self.db.refresh(session)
        final = final_summary(await self.sessions.get_round_results(session.session_id))
        logger.info(f"Session {session.session_code} complete after {current} rounds")

        await self.ws_manager.notify_game_complete(session.session_code, final)
        return {
            "session": await self._summary(session),
            "round": current,
            "scenario": None,
            "final": final,
        }

    async def get_status(self, session_code: str) -> dict:
        """Full snapshot used by polling clients to reconcile their state."""
        session = await self.sessions.require_session(session_code)
        players = await self._players(session)
        results = await self.sessions.get_round_results(session.session_id)

        scenario = None
        tally = None
        if session.current_round >= 1:
            current = await self.sessions.get_scenario(session.session_id, session.current_round)
            if current:
                scenario = scenario_dict(current)
                tally = (await self.votes.get_tally(current.scenario_id)).to_dict()

        current_result = next((r for r in results if r.round_number == session.current_round), None)
        is_complete = session.status == SessionStatus.COMPLETE.value

        return {
            "session": session_summary(session, len(players)),
            "players": players,
            "scenario": scenario,
            "tally": tally,
            "result": result_dict(current_result) if current_result else None,
            "results": [result_dict(r) for r in results],
            "final": final_summary(results) if is_complete else None,
        }
