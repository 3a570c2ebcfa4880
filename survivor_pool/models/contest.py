from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, computed_field

from survivor_pool.models.enums import ContestStatus, SeasonPhase
from survivor_pool.utils.periods import parse_season_label, period_for


class Contest(BaseModel):
    """A head-to-head matchup as stored in the matchups table."""

    id: str
    away_team: str  # side A
    home_team: str  # side B
    away_score: Optional[int] = None
    home_score: Optional[int] = None
    status: ContestStatus = ContestStatus.SCHEDULED
    phase: SeasonPhase = SeasonPhase.REG
    week: Optional[int] = None
    # Playable period index; None for preseason contests
    period: Optional[int] = None
    venue: Optional[str] = None
    game_time: Optional[datetime] = None

    @computed_field  # type: ignore[misc]
    @property
    def description(self) -> str:
        return f"{self.away_team} @ {self.home_team}"

    @property
    def is_final(self) -> bool:
        return self.status == ContestStatus.FINAL

    @property
    def has_scores(self) -> bool:
        return self.away_score is not None and self.home_score is not None

    @property
    def is_decided(self) -> bool:
        """Final with both scores present; the only state an outcome comes from."""
        return self.is_final and self.has_scores

    @property
    def is_tie(self) -> bool:
        return self.is_decided and self.away_score == self.home_score

    @property
    def winning_side(self) -> Optional[str]:
        """Side name with the strictly higher score, None for ties or undecided games."""
        if not self.is_decided or self.away_score == self.home_score:
            return None
        if self.away_score > self.home_score:
            return self.away_team
        return self.home_team

    @property
    def score_line(self) -> str:
        away = "-" if self.away_score is None else self.away_score
        home = "-" if self.home_score is None else self.home_score
        return f"{away} - {home}"

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Contest":
        """Builds a Contest from a matchups row.

        The playable period comes from the season label (``REG7``, ``POST1``)
        when present; otherwise ``week`` is taken as a regular-season week.
        """
        week = row.get("week")
        phase = SeasonPhase.REG
        phase_week = week
        parsed = parse_season_label(row.get("season"))
        if parsed:
            phase, phase_week = parsed

        period = None
        if phase_week is not None:
            period = period_for(phase, int(phase_week))

        status_raw = (row.get("status") or ContestStatus.SCHEDULED.value).lower()
        try:
            status = ContestStatus(status_raw)
        except ValueError:
            # Feed-specific states (postponed, delayed...) are not final
            status = ContestStatus.SCHEDULED

        return cls(
            id=str(row["id"]),
            away_team=row.get("away_team") or "",
            home_team=row.get("home_team") or "",
            away_score=row.get("away_score"),
            home_score=row.get("home_score"),
            status=status,
            phase=phase,
            week=week,
            period=period,
            venue=row.get("venue"),
            game_time=row.get("game_time"),
        )
