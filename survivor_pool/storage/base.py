"""Storage interface for the pool tables.

``SupabaseStore`` talks to PostgREST; ``MemoryStore`` serves an exported
snapshot. Business logic only depends on ``PoolStore``.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from loguru import logger

from survivor_pool.models.contest import Contest
from survivor_pool.models.enums import PickStatus
from survivor_pool.models.pick import Pick
from survivor_pool.models.team import Team

T = TypeVar("T")


class StorageError(Exception):
    """A read or write against the data store could not be completed."""

    pass


class PoolStore(ABC):
    """Reads and writes needed by the elimination engine."""

    def __init__(self) -> None:
        # Rows dropped per table because they could not be parsed; cumulative
        self.malformed_rows: Dict[str, int] = defaultdict(int)

    def _parse_rows(
        self, table: str, rows: Iterable[Dict[str, Any]], parser: Callable[[Dict[str, Any]], T]
    ) -> List[T]:
        """Maps rows to models, skipping any row that does not fit its model."""
        models: List[T] = []
        for row in rows:
            try:
                models.append(parser(row))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                self.malformed_rows[table] += 1
                logger.warning(f"Skipping malformed {table} row {row.get('id', '?')}: {e}")
        return models

    @abstractmethod
    async def fetch_teams(self, season: int) -> List[Team]:
        """Return the team directory rows for a season year."""

    @abstractmethod
    async def fetch_contests(self, period: Optional[int] = None) -> List[Contest]:
        """Return all contests, or only those of one playable period."""

    @abstractmethod
    async def fetch_picks(self, status: Optional[PickStatus] = None) -> List[Pick]:
        """Return every pick (paginated internally), optionally filtered by status."""

    @abstractmethod
    async def get_pick(self, pick_id: str) -> Optional[Pick]:
        """Return one pick by id."""

    @abstractmethod
    async def get_current_period(self) -> int:
        """Return the stored current period pointer (1 when unset)."""

    @abstractmethod
    async def compare_and_set_current_period(self, expected: int, new: int) -> bool:
        """Write ``new`` only if the stored pointer still equals ``expected``.

        Returns False when another writer got there first.
        """

    @abstractmethod
    async def set_allocation(
        self, pick_id: str, period: int, value: Optional[str]
    ) -> bool:
        """Write one pick's allocation slot. Returns False on failure."""

    @abstractmethod
    async def update_pick_status(self, pick_id: str, status: PickStatus) -> bool:
        """Write one pick's lifecycle status. Returns False on failure."""

    @abstractmethod
    async def export_rows(self) -> dict:
        """Return raw rows of all pool tables keyed by table name."""
