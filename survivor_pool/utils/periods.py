# survivor_pool/utils/periods.py
import re
from functools import lru_cache
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from survivor_pool.config.settings import settings
from survivor_pool.models.enums import SeasonPhase

PRESEASON_WEEKS = 3
ALLOCATION_COLUMN_SUFFIX = "_team_matchup_id"

_SEASON_LABEL_RE = re.compile(r"^(PRE|REG|POST)(\d+)$", re.IGNORECASE)


class PeriodSlot(BaseModel):
    """One playable period and the pick column that holds its allocation."""

    model_config = ConfigDict(frozen=True)

    period: int
    phase: SeasonPhase
    phase_week: int
    column: str
    name: str

    @property
    def season_label(self) -> str:
        return f"{self.phase.value}{self.phase_week}"


def _column(phase: SeasonPhase, week: int) -> str:
    return f"{phase.value.lower()}{week}{ALLOCATION_COLUMN_SUFFIX}"


@lru_cache(maxsize=None)
def build_period_slots(regular_weeks: int, post_weeks: int) -> Tuple[PeriodSlot, ...]:
    slots = [
        PeriodSlot(
            period=week,
            phase=SeasonPhase.REG,
            phase_week=week,
            column=_column(SeasonPhase.REG, week),
            name=f"Regular Season Week {week}",
        )
        for week in range(1, regular_weeks + 1)
    ]
    slots.extend(
        PeriodSlot(
            period=regular_weeks + week,
            phase=SeasonPhase.POST,
            phase_week=week,
            column=_column(SeasonPhase.POST, week),
            name=f"Post Season Week {week}",
        )
        for week in range(1, post_weeks + 1)
    )
    return tuple(slots)


def period_slots() -> Tuple[PeriodSlot, ...]:
    """All playable periods in increasing order."""
    return build_period_slots(settings.regular_season_weeks, settings.postseason_weeks)


def slot_for_period(period: int) -> Optional[PeriodSlot]:
    slots = period_slots()
    if 1 <= period <= len(slots):
        return slots[period - 1]
    return None


def preseason_columns() -> List[str]:
    return [_column(SeasonPhase.PRE, week) for week in range(1, PRESEASON_WEEKS + 1)]


def allocation_columns() -> List[str]:
    """Every allocation column on a pick row, preseason included."""
    return preseason_columns() + [slot.column for slot in period_slots()]


def parse_season_label(label: Optional[str]) -> Optional[Tuple[SeasonPhase, int]]:
    """Splits labels such as ``REG7`` or ``post1`` into phase and phase week."""
    if not label:
        return None
    match = _SEASON_LABEL_RE.match(label.strip())
    if not match:
        return None
    return SeasonPhase(match.group(1).upper()), int(match.group(2))


def period_for(phase: SeasonPhase, phase_week: int) -> Optional[int]:
    """Maps a phase week to its playable period, or None for preseason."""
    if phase == SeasonPhase.PRE or phase_week < 1:
        return None
    if phase == SeasonPhase.REG:
        if phase_week > settings.regular_season_weeks:
            return None
        return phase_week
    if phase_week > settings.postseason_weeks:
        return None
    return settings.regular_season_weeks + phase_week
