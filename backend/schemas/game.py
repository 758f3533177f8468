"""Mom vs Dad game Pydantic schemas.

Name lengths, round limits and vote choices are checked by the game services so
that they surface as ``validation_error`` (400) rather than a generic 422.
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Literal

from backend.schemas.base import BaseSchema


Choice = Literal["A", "B"]


# Request schemas
class CreateSessionRequest(BaseModel):
    """Request to create a new game session."""
    role_a_name: str = Field(..., description="Name of role A, e.g. the mom")
    role_b_name: str = Field(..., description="Name of role B, e.g. the dad")
    total_rounds: Optional[int] = Field(default=None, description="Rounds to play (1-10)")
    admin_name: Optional[str] = Field(default=None, description="Creator display name (default Host)")
    theme: Optional[str] = Field(default=None, description="Scenario theme")
    intensity: Optional[float] = Field(default=None, description="Comedy intensity (0.1-1.0)")
    max_players: Optional[int] = Field(default=None, description="Lobby capacity including the admin (2-100)")


class JoinSessionRequest(BaseModel):
    """Request to join a session as a guest."""
    name: str = Field(..., description="Guest display name")


class AdminPinRequest(BaseModel):
    """Any admin action that only needs the PIN."""
    admin_pin: str = Field(..., description="4-digit admin PIN")


class StartGameRequest(AdminPinRequest):
    total_rounds: Optional[int] = None
    intensity: Optional[float] = None
    theme: Optional[str] = None


class VoteRequest(BaseModel):
    """Request to vote on the current round."""
    name: str = Field(..., description="Voter display name, as joined")
    round_number: int = Field(..., ge=1, description="Round being voted on")
    choice: str = Field(..., description="A or B, case-insensitive")


class RevealRequest(AdminPinRequest):
    round_number: int = Field(..., ge=1)
    actual_choice: Optional[str] = Field(default=None, description="What the parents would really do (A or B)")


# Response schemas
class SessionSummaryResponse(BaseSchema):
    session_code: str
    role_a_name: str
    role_b_name: str
    status: str
    current_round: int
    total_rounds: int
    theme: str
    intensity: float
    max_players: Optional[int] = None
    player_count: int
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class PlayerResponse(BaseSchema):
    player_id: str
    name: str
    is_admin: bool
    joined_at: Optional[datetime] = None


class ScenarioResponse(BaseSchema):
    scenario_id: str
    round_number: int
    prompt_text: str
    option_a: str
    option_b: str
    intensity: float
    is_active: bool
    source: str


class TallyResponse(BaseSchema):
    """Live vote counts; percentages are derived from the counts."""
    A: int
    B: int
    total: int
    percentage_a: int
    percentage_b: int


class RoundResultResponse(BaseSchema):
    round_number: int
    votes_a: int
    votes_b: int
    total_votes: int
    percentage_a: int
    percentage_b: int
    winner: Choice
    is_tie: bool
    commentary: str
    particle_effect: str
    actual_choice: Optional[Choice] = None
    perception_gap: Optional[int] = None
    revealed_at: Optional[datetime] = None


class FinalSummaryResponse(BaseSchema):
    results: List[RoundResultResponse]
    rounds_played: int
    rounds_won_a: int
    rounds_won_b: int
    total_votes_a: int
    total_votes_b: int
    overall_winner: Choice
    is_tie: bool


class CreateSessionResponse(BaseSchema):
    """Response after creating a session. The only place the PIN is returned."""
    session: SessionSummaryResponse
    admin_pin: str
    admin_name: str


class JoinSessionResponse(BaseSchema):
    player_id: str
    player: PlayerResponse
    is_admin: bool
    players: List[PlayerResponse]
    session: SessionSummaryResponse


class AdminLoginResponse(BaseSchema):
    is_admin: bool
    players: List[PlayerResponse]
    session: SessionSummaryResponse


class StartGameResponse(BaseSchema):
    """Round 1 is open; ``scenarios`` lists every pre-generated round for the admin."""
    session: SessionSummaryResponse
    status: str
    current_round: int
    round: int
    scenario: ScenarioResponse
    scenarios: List[ScenarioResponse]


class VoteResponse(BaseSchema):
    round: int
    choice: Choice
    tally: TallyResponse


class RevealResponse(BaseSchema):
    session: SessionSummaryResponse
    result: RoundResultResponse
    is_final_round: bool


class NextRoundResponse(BaseSchema):
    session: SessionSummaryResponse
    round: int
    scenario: Optional[ScenarioResponse] = None
    final: Optional[FinalSummaryResponse] = None


class SessionStatusResponse(BaseSchema):
    """Full snapshot for polling clients."""
    session: SessionSummaryResponse
    players: List[PlayerResponse]
    scenario: Optional[ScenarioResponse] = None
    tally: Optional[TallyResponse] = None
    result: Optional[RoundResultResponse] = None
    results: List[RoundResultResponse]
    final: Optional[FinalSummaryResponse] = None
