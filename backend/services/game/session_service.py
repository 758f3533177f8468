"""Session store: sessions, participants, scenarios and results."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from datetime import datetime, timedelta, UTC
from typing import Optional, List
from uuid import UUID
import logging
import secrets
import uuid

from backend.config import get_settings
from backend.models.base import SessionStatus, JOINABLE_STATUSES
from backend.models.game import GameSession, GameParticipant, GameScenario, RoundResult
from backend.services.game.exceptions import (
    AuthError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from backend.services.game.scenario_generator import normalize_theme, clamp_intensity
from backend.services.game.vote_service import canonical_name

logger = logging.getLogger(__name__)

# No 0/O, 1/I/L lookalikes
SESSION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

DEFAULT_ADMIN_NAME = "Host"


def normalize_session_code(code: str) -> str:
    return (code or "").strip().upper()


def validate_name(value: str | None, field: str) -> str:
    """Trim a display name and enforce 1..name_max_length characters.

    Raises:
        ValidationError: If the trimmed name is empty or too long
    """
    max_length = get_settings().name_max_length
    name = (value or "").strip()
    if not name:
        raise ValidationError(f"{field} is required")
    if len(name) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return name


def validate_total_rounds(value: int | None) -> int:
    settings = get_settings()
    if value is None:
        return settings.default_total_rounds
    if not isinstance(value, int) or isinstance(value, bool) or not 1 <= value <= settings.max_total_rounds:
        raise ValidationError(f"total_rounds must be between 1 and {settings.max_total_rounds}")
    return value


def validate_max_players(value: int | None) -> int:
    settings = get_settings()
    if value is None:
        return settings.default_max_players
    if not isinstance(value, int) or isinstance(value, bool) or not 2 <= value <= settings.max_players_limit:
        raise ValidationError(f"max_players must be between 2 and {settings.max_players_limit}")
    return value


def validate_intensity(value: float | None) -> float:
    if value is None:
        return get_settings().default_intensity
    if not 0.1 <= value <= 1.0:
        raise ValidationError("intensity must be between 0.1 and 1.0")
    return clamp_intensity(value)


class GameSessionService:
    """Reads and guarded writes for game sessions.

    Methods flush but leave commits to the caller, except :meth:`create_session`
    which is a complete action on its own.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def create_session(
        self,
        role_a_name: str,
        role_b_name: str,
        total_rounds: Optional[int] = None,
        admin_name: Optional[str] = None,
        theme: Optional[str] = None,
        intensity: Optional[float] = None,
        max_players: Optional[int] = None,
    ) -> tuple[GameSession, GameParticipant]:
        """Create a session in ``setup`` together with its admin participant.

        Args:
            role_a_name: Name of role A (e.g. the mom)
            role_b_name: Name of role B (e.g. the dad)
            total_rounds: Number of rounds, 1-10 (default from settings)
            admin_name: Display name of the creator (default ``Host``)
            theme: Scenario theme; unknown themes become ``general``
            intensity: Comedy intensity in [0.1, 1.0]
            max_players: Lobby capacity including the admin (default from settings)

        Returns:
            Tuple of the created session and admin participant

        Raises:
            ValidationError: Invalid names, rounds, intensity or capacity
            ConflictError: No unique session code could be generated
        """
        role_a_name = validate_name(role_a_name, "role_a_name")
        role_b_name = validate_name(role_b_name, "role_b_name")
        admin_name = validate_name(admin_name or DEFAULT_ADMIN_NAME, "admin_name")
        total_rounds = validate_total_rounds(total_rounds)
        intensity = validate_intensity(intensity)
        max_players = validate_max_players(max_players)

        session_code = await self._generate_unique_session_code()
        now = datetime.now(UTC)

        session = GameSession(
            session_id=uuid.uuid4(),
            session_code=session_code,
            admin_pin=self._generate_admin_pin(),
            role_a_name=role_a_name,
            role_b_name=role_b_name,
            status=SessionStatus.SETUP.value,
            current_round=0,
            total_rounds=total_rounds,
            theme=normalize_theme(theme or self.settings.default_theme),
            intensity=intensity,
            max_players=max_players,
            created_at=now,
            updated_at=now,
        )
        self.db.add(session)

        admin = GameParticipant(
            participant_id=uuid.uuid4(),
            session_id=session.session_id,
            display_name=admin_name,
            name_canonical=canonical_name(admin_name),
            is_admin=True,
            joined_at=now,
        )
        self.db.add(admin)

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Session code collision on insert for {session_code}: {e}")
            raise ConflictError("Could not allocate a session code, try again") from e

        await self.db.refresh(session)
        logger.info(f"Created game session {session.session_id} with code {session_code}")
        return session, admin

    async def _generate_unique_session_code(self) -> str:
        """Pick an unused code from the unambiguous alphabet.

        Raises:
            ConflictError: If every attempt collided
        """
        length = self.settings.session_code_length
        for attempt in range(self.settings.session_code_max_attempts):
            session_code = "".join(secrets.choice(SESSION_CODE_ALPHABET) for _ in range(length))
            if await self.get_session_by_code(session_code) is None:
                return session_code
            logger.debug(f"Session code {session_code} taken (attempt {attempt + 1})")

        raise ConflictError("Failed to generate unique session code after maximum attempts")

    @staticmethod
    def _generate_admin_pin() -> str:
        return str(1000 + secrets.randbelow(9000))

    async def get_session_by_code(self, session_code: str) -> Optional[GameSession]:
        result = await self.db.execute(
            select(GameSession).where(GameSession.session_code == normalize_session_code(session_code))
        )
        return result.scalar_one_or_none()

    async def require_session(self, session_code: str) -> GameSession:
        """Like :meth:`get_session_by_code` but raises NotFoundError."""
        session = await self.get_session_by_code(session_code)
        if not session:
            raise NotFoundError(f"Session {normalize_session_code(session_code)} not found")
        return session

    @staticmethod
    def verify_admin_pin(session: GameSession, admin_pin: str | None) -> None:
        """Raises AuthError unless the PIN matches."""
        if not admin_pin or not secrets.compare_digest(str(admin_pin).strip(), session.admin_pin):
            raise AuthError("Invalid admin PIN")

    async def add_participant(self, session: GameSession, display_name: str) -> GameParticipant:
        """Add a guest to a joinable session.

        Raises:
            ValidationError: Invalid name
            InvalidStateError: Session is revealed or complete
            ConflictError: Name already taken (case-insensitive)
            ConflictError: Lobby is full
        """
        display_name = validate_name(display_name, "name")

        if session.status not in JOINABLE_STATUSES:
            raise InvalidStateError(f"Cannot join a session in status {session.status}")

        if session.max_players and await self.get_participant_count(session.session_id) >= session.max_players:
            raise ConflictError(f"Session {session.session_code} is full ({session.max_players} players)")

        if await self.get_participant(session.session_id, display_name):
            raise ConflictError(f"Name {display_name} is already taken in this session")

        participant = GameParticipant(
            participant_id=uuid.uuid4(),
            session_id=session.session_id,
            display_name=display_name,
            name_canonical=canonical_name(display_name),
            is_admin=False,
            joined_at=datetime.now(UTC),
        )
        self.db.add(participant)

        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(f"Name {display_name} is already taken in this session") from e

        return participant

    async def get_participant(self, session_id: UUID, display_name: str) -> Optional[GameParticipant]:
        result = await self.db.execute(
            select(GameParticipant).where(
                GameParticipant.session_id == session_id,
                GameParticipant.name_canonical == canonical_name(display_name),
            )
        )
        return result.scalar_one_or_none()

    async def get_participants(self, session_id: UUID) -> List[GameParticipant]:
        result = await self.db.execute(
            select(GameParticipant)
            .where(GameParticipant.session_id == session_id)
            .order_by(GameParticipant.joined_at, GameParticipant.display_name)
        )
        return list(result.scalars().all())

    async def get_participant_count(self, session_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(GameParticipant.participant_id)).where(GameParticipant.session_id == session_id)
        )
        return result.scalar_one()

    async def get_scenario(self, session_id: UUID, round_number: int) -> Optional[GameScenario]:
        result = await self.db.execute(
            select(GameScenario).where(
                GameScenario.session_id == session_id,
                GameScenario.round_number == round_number,
            )
        )
        return result.scalar_one_or_none()

    async def get_scenarios(self, session_id: UUID) -> List[GameScenario]:
        result = await self.db.execute(
            select(GameScenario)
            .where(GameScenario.session_id == session_id)
            .order_by(GameScenario.round_number)
        )
        return list(result.scalars().all())

    async def get_round_results(self, session_id: UUID) -> List[RoundResult]:
        result = await self.db.execute(
            select(RoundResult)
            .where(RoundResult.session_id == session_id)
            .order_by(RoundResult.round_number)
        )
        return list(result.scalars().all())

    async def set_scenario_active(self, session_id: UUID, round_number: int, is_active: bool) -> None:
        await self.db.execute(
            update(GameScenario)
            .where(
                GameScenario.session_id == session_id,
                GameScenario.round_number == round_number,
            )
            .values(is_active=is_active)
            .execution_options(synchronize_session=False)
        )

    async def claim_active_scenario(self, scenario_id: UUID) -> bool:
        """Lock the scenario row for a vote, returning False once it is closed.

        The no-op update takes the same row lock that reveal's deactivation
        needs, so a vote either commits before the reveal reads its tally or
        sees the scenario already inactive.
        """
        result = await self.db.execute(
            update(GameScenario)
            .where(
                GameScenario.scenario_id == scenario_id,
                GameScenario.is_active.is_(True),
            )
            .values(is_active=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def transition(
        self,
        session: GameSession,
        from_status: str,
        expected_round: int,
        **values,
    ) -> None:
        """Compare-and-set the session row.

        Only updates when the stored status and round still match what the
        caller read, so two admins racing on the same action cannot both win.

        Raises:
            InvalidStateError: Another request moved the session first
        """
        values.setdefault("updated_at", datetime.now(UTC))
        result = await self.db.execute(
            update(GameSession)
            .where(
                GameSession.session_id == session.session_id,
                GameSession.status == from_status,
                GameSession.current_round == expected_round,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError(
                f"Session {session.session_code} is no longer {from_status} in round {expected_round}"
            )

    async def complete_idle_sessions(self, max_age: timedelta) -> int:
        """Soft-complete unfinished sessions untouched for longer than ``max_age``.

        Returns:
            int: Number of sessions completed
        """
        now = datetime.now(UTC)
        result = await self.db.execute(
            update(GameSession)
            .where(
                GameSession.status != SessionStatus.COMPLETE.value,
                GameSession.updated_at < now - max_age,
            )
            .values(
                status=SessionStatus.COMPLETE.value,
                completed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0
