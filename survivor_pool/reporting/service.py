import json
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger

from survivor_pool.calculation import aggregation, lifecycle
from survivor_pool.calculation.advancement import PeriodAdvancementController
from survivor_pool.config.settings import settings
from survivor_pool.models.pick import Pick
from survivor_pool.models.reports import (
    AdvanceResult,
    EliminationBreakdown,
    PeriodStats,
    ReconcileResult,
    TeamPickCount,
)
from survivor_pool.normalization.team_directory import TeamDirectory
from survivor_pool.storage.base import PoolStore


class PoolService:
    """Queries and actions exposed to the rest of the pool application.

    Every call reads fresh rows from the store; nothing is cached between
    invocations.
    """

    def __init__(self, store: PoolStore, team_season: Optional[int] = None):
        self.store = store
        self.team_season = team_season or settings.team_season

    async def load_directory(self) -> TeamDirectory:
        return TeamDirectory(await self.store.fetch_teams(self.team_season))

    async def _period_stats(self, current: int) -> List[PeriodStats]:
        directory = await self.load_directory()
        picks = await self.store.fetch_picks()
        contests = await self.store.fetch_contests()
        logger.info(
            f"Computing weekly stats through period {current} from "
            f"{len(picks)} picks and {len(contests)} contests."
        )
        return aggregation.compute_period_stats(picks, contests, directory, current)

    async def weekly_stats(self) -> List[PeriodStats]:
        return await self._period_stats(await self.store.get_current_period())

    async def remaining_units(self) -> int:
        """Units still alive in the current period ("picks remaining")."""
        current = await self.store.get_current_period()
        stats = await self._period_stats(current)
        return aggregation.remaining_units_for_period(stats, current)

    async def elimination_breakdown(self, period: Optional[int] = None) -> EliminationBreakdown:
        if period is None:
            period = await self.store.get_current_period()
        directory = await self.load_directory()
        picks = await self.store.fetch_picks()
        contests = await self.store.fetch_contests()
        return aggregation.elimination_breakdown(picks, contests, directory, period)

    async def team_pick_breakdown(self, period: Optional[int] = None) -> List[TeamPickCount]:
        if period is None:
            period = await self.store.get_current_period()
        directory = await self.load_directory()
        picks = await self.store.fetch_picks()
        contests = await self.store.fetch_contests(period)
        return aggregation.team_pick_breakdown(picks, contests, directory, period)

    async def advance_period(self) -> AdvanceResult:
        return await PeriodAdvancementController(self.store).advance()

    async def reconcile(self, period: Optional[int] = None) -> ReconcileResult:
        directory = await self.load_directory()
        return await lifecycle.reconcile_statuses(self.store, directory, period)

    async def allocate(self, pick_id: str, contest_id: str, side_key: str) -> Pick:
        directory = await self.load_directory()
        return await lifecycle.allocate(self.store, directory, pick_id, contest_id, side_key)

    async def export_snapshot(self, path: Union[str, Path]) -> Path:
        """Writes every pool table to a JSON file for offline audits."""
        rows = await self.store.export_rows()
        path = Path(path)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(rows, f, indent=4, ensure_ascii=False, default=str)
        logger.success(
            f"Saved snapshot to {path} ({', '.join(f'{k}: {len(v)}' for k, v in rows.items())})."
        )
        return path
