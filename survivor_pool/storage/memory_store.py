# survivor_pool/storage/memory_store.py
import asyncio
import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from survivor_pool.config.settings import settings
from survivor_pool.models.contest import Contest
from survivor_pool.models.enums import PickStatus
from survivor_pool.models.pick import Pick
from survivor_pool.models.team import Team
from survivor_pool.storage.base import PoolStore
from survivor_pool.storage.supabase_client import (
    DEFAULT_CURRENT_PERIOD,
    MATCHUPS_TABLE,
    PICKS_TABLE,
    SETTINGS_TABLE,
    TEAMS_TABLE,
)


class MemoryStore(PoolStore):
    """PoolStore over in-memory table rows, shaped like the Supabase tables.

    Used to re-run audits offline against an exported snapshot.
    """

    def __init__(
        self,
        teams: Optional[List[Dict[str, Any]]] = None,
        matchups: Optional[List[Dict[str, Any]]] = None,
        picks: Optional[List[Dict[str, Any]]] = None,
        global_settings: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__()
        self.teams = copy.deepcopy(teams or [])
        self.matchups = copy.deepcopy(matchups or [])
        self.picks: Dict[str, Dict[str, Any]] = {}
        for row in picks or []:
            if row.get("id") is None:
                self.malformed_rows[PICKS_TABLE] += 1
                logger.warning(f"Skipping {PICKS_TABLE} row without an id: {row}")
                continue
            self.picks[str(row["id"])] = copy.deepcopy(row)
        self.settings: Dict[str, str] = {
            row["key"]: str(row["value"]) for row in global_settings or []
        }
        self._lock = asyncio.Lock()

    @classmethod
    def from_rows(cls, rows: Dict[str, List[Dict[str, Any]]]) -> "MemoryStore":
        return cls(
            teams=rows.get(TEAMS_TABLE),
            matchups=rows.get(MATCHUPS_TABLE),
            picks=rows.get(PICKS_TABLE),
            global_settings=rows.get(SETTINGS_TABLE),
        )

    @classmethod
    def from_snapshot(cls, path: Union[str, Path]) -> "MemoryStore":
        with open(path, "r", encoding="utf-8") as f:
            rows = json.load(f)
        store = cls.from_rows(rows)
        logger.info(
            f"Loaded snapshot {path}: {len(store.teams)} teams, "
            f"{len(store.matchups)} matchups, {len(store.picks)} picks."
        )
        return store

    async def fetch_teams(self, season: int) -> List[Team]:
        await asyncio.sleep(0)
        rows = [row for row in self.teams if row.get("season") == season]
        return self._parse_rows(TEAMS_TABLE, rows, Team.from_row)

    async def fetch_contests(self, period: Optional[int] = None) -> List[Contest]:
        await asyncio.sleep(0)
        contests = self._parse_rows(MATCHUPS_TABLE, self.matchups, Contest.from_row)
        if period is not None:
            contests = [c for c in contests if c.period == period]
        return contests

    async def fetch_picks(self, status: Optional[PickStatus] = None) -> List[Pick]:
        await asyncio.sleep(0)
        rows = sorted(self.picks.values(), key=lambda row: str(row["id"]))
        if status is not None:
            rows = [row for row in rows if row.get("status") == status.value]
        return self._parse_rows(PICKS_TABLE, rows, Pick.from_row)

    async def get_pick(self, pick_id: str) -> Optional[Pick]:
        await asyncio.sleep(0)
        row = self.picks.get(pick_id)
        picks = self._parse_rows(PICKS_TABLE, [row] if row else [], Pick.from_row)
        return picks[0] if picks else None

    async def get_current_period(self) -> int:
        await asyncio.sleep(0)
        return int(self.settings.get(settings.current_period_key, DEFAULT_CURRENT_PERIOD))

    async def compare_and_set_current_period(self, expected: int, new: int) -> bool:
        async with self._lock:
            key = settings.current_period_key
            stored = int(self.settings.get(key, DEFAULT_CURRENT_PERIOD))
            if stored != expected:
                return False
            self.settings[key] = str(new)
            return True

    async def _update_pick(self, pick_id: str, values: Dict[str, Any]) -> bool:
        await asyncio.sleep(0)
        row = self.picks.get(pick_id)
        if row is None:
            logger.error(f"Error updating pick {pick_id}: no such pick.")
            return False
        row.update(values)
        return True

    async def set_allocation(self, pick_id: str, period: int, value: Optional[str]) -> bool:
        return await self._update_pick(pick_id, {Pick.column_for(period): value})

    async def update_pick_status(self, pick_id: str, status: PickStatus) -> bool:
        return await self._update_pick(pick_id, {"status": status.value})

    async def export_rows(self) -> dict:
        return {
            TEAMS_TABLE: copy.deepcopy(self.teams),
            MATCHUPS_TABLE: copy.deepcopy(self.matchups),
            PICKS_TABLE: [copy.deepcopy(row) for row in self.picks.values()],
            SETTINGS_TABLE: [
                {"key": key, "value": value} for key, value in self.settings.items()
            ],
        }
