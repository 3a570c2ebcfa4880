from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from survivor_pool.models.enums import (
    AdvanceReason,
    Confidence,
    ContestStatus,
    GameResult,
    Outcome,
)
from survivor_pool.models.team import Team


class PeriodStats(BaseModel):
    """Survivorship figures for one period of the aggregation pipeline."""

    period: int
    period_name: str
    # Units entering the period (previous period's remaining after period 1)
    active_units: int = 0
    # Units holding a valid allocation for this period, before the carry rule
    allocated_units: int = 0
    eliminated_units: int = 0
    remaining_units: int = 0
    survived_units: int = 0
    pending_units: int = 0
    low_confidence_units: int = 0
    skipped_allocations: int = 0


class PickOutcomeDetail(BaseModel):
    pick_id: str
    user_id: Optional[str] = None
    contest_id: str
    picked_side: str
    resolved_team: str
    game: str
    winner: Optional[str] = None
    unit_count: int
    outcome: Outcome
    confidence: Confidence
    reason: str


class ContestSummary(BaseModel):
    id: str
    game: str
    score: str
    status: ContestStatus
    winner: Optional[str] = None


class BreakdownSummary(BaseModel):
    total_eliminated: int = 0
    total_survived: int = 0
    total_pending: int = 0
    eliminated_units: int = 0
    survived_units: int = 0
    pending_units: int = 0
    skipped_allocations: int = 0
    low_confidence: int = 0


class EliminationBreakdown(BaseModel):
    """Per-pick audit of one period's outcomes."""

    period: int
    period_name: str
    contests: List[ContestSummary] = []
    eliminated: List[PickOutcomeDetail] = []
    survived: List[PickOutcomeDetail] = []
    pending: List[PickOutcomeDetail] = []
    summary: BreakdownSummary = Field(default_factory=BreakdownSummary)


class TeamPickCount(BaseModel):
    team: str
    unit_count: int
    team_data: Optional[Team] = None
    game_result: GameResult = GameResult.PENDING
    confidence: Confidence = Confidence.EXACT


class AdvanceResult(BaseModel):
    advanced: bool
    reason: AdvanceReason
    message: str
    previous_period: int
    new_period: int
    games_status: Dict[str, int] = {}
    picks_reset: int = 0
    reset_failures: List[str] = []
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class StatusChange(BaseModel):
    pick_id: str
    user_id: Optional[str] = None
    previous_status: str
    new_status: str
    confidence: Confidence
    reason: str


class ReconcileResult(BaseModel):
    period: int
    picks_processed: int = 0
    picks_updated: int = 0
    changes: List[StatusChange] = []
    low_confidence: List[StatusChange] = []
    needs_review: List[StatusChange] = []
    failures: List[str] = []
