"""Vote ledger: one upserted vote per (scenario, voter) and tallies computed from it."""
from dataclasses import dataclass
from datetime import datetime, UTC
from uuid import UUID
import logging
import uuid

from sqlalchemy import select, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.base import VoteChoice
from backend.models.game.game_vote import GameVote
from backend.services.game.exceptions import ValidationError

logger = logging.getLogger(__name__)


def canonical_name(name: str) -> str:
    """Case-folded, whitespace-trimmed form used for uniqueness checks."""
    return " ".join(name.split()).casefold()


def normalize_choice(choice: str) -> str:
    """Accept ``a``/``b`` in any case and return ``A``/``B``.

    Raises:
        ValidationError: If the choice is anything else
    """
    value = (choice or "").strip().upper()
    if value not in (VoteChoice.A.value, VoteChoice.B.value):
        raise ValidationError(f"Choice must be 'A' or 'B', got {choice!r}")
    return value


@dataclass(frozen=True)
class Tally:
    """Vote counts for one scenario. Percentages are derived, never stored."""

    votes_a: int = 0
    votes_b: int = 0

    @property
    def total(self) -> int:
        return self.votes_a + self.votes_b

    @property
    def percentage_a(self) -> int:
        return round(self.votes_a / self.total * 100) if self.total else 0

    @property
    def percentage_b(self) -> int:
        return round(self.votes_b / self.total * 100) if self.total else 0

    def to_dict(self) -> dict:
        return {
            "A": self.votes_a,
            "B": self.votes_b,
            "total": self.total,
            "percentage_a": self.percentage_a,
            "percentage_b": self.percentage_b,
        }


class VoteService:
    """Service for writing votes and computing tallies."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _upsert_statement(self, values: dict):
        bind = self.db.get_bind()
        dialect_name = (bind.dialect.name if bind is not None else "").lower()

        update_data = {
            "voter_name": values["voter_name"],
            "choice": values["choice"],
            "cast_at": values["cast_at"],
        }

        if dialect_name == "postgresql":
            stmt = pg_insert(GameVote).values(**values)
        elif dialect_name == "sqlite":
            stmt = sqlite_insert(GameVote).values(**values)
        else:
            raise RuntimeError(f"Vote upsert not supported for dialect {dialect_name!r}")

        # Last write wins on cast_at: an older, delayed submission never
        # overwrites a newer one.
        return stmt.on_conflict_do_update(
            index_elements=["scenario_id", "voter_canonical"],
            set_=update_data,
            where=GameVote.__table__.c.cast_at <= stmt.excluded.cast_at,
        )

    async def upsert_vote(
        self,
        scenario_id: UUID,
        voter_name: str,
        choice: str,
        cast_at: datetime | None = None,
    ) -> None:
        """Insert or replace the voter's choice for a scenario.

        Flushes but does not commit; the caller owns the transaction.

        Args:
            scenario_id: Scenario being voted on
            voter_name: Display name of the voter
            choice: ``A`` or ``B``
            cast_at: Submission time (defaults to now)
        """
        values = {
            "vote_id": uuid.uuid4(),
            "scenario_id": scenario_id,
            "voter_name": voter_name,
            "voter_canonical": canonical_name(voter_name),
            "choice": normalize_choice(choice),
            "cast_at": cast_at or datetime.now(UTC),
        }

        await self.db.execute(self._upsert_statement(values))
        await self.db.flush()
        logger.debug(f"Upserted vote {values['choice']} by {voter_name} on scenario {scenario_id}")

    async def get_tally(self, scenario_id: UUID) -> Tally:
        """Count votes by choice straight from the ledger."""
        result = await self.db.execute(
            select(GameVote.choice, func.count(GameVote.vote_id))
            .where(GameVote.scenario_id == scenario_id)
            .group_by(GameVote.choice)
        )
        counts = {choice: count for choice, count in result.all()}
        return Tally(
            votes_a=counts.get(VoteChoice.A.value, 0),
            votes_b=counts.get(VoteChoice.B.value, 0),
        )

    async def get_voter_choice(self, scenario_id: UUID, voter_name: str) -> str | None:
        """Return the voter's current choice for a scenario, if any."""
        result = await self.db.execute(
            select(GameVote.choice).where(
                GameVote.scenario_id == scenario_id,
                GameVote.voter_canonical == canonical_name(voter_name),
            )
        )
        return result.scalar_one_or_none()
