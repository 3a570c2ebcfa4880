# survivor_pool/storage/supabase_client.py
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
from loguru import logger
from postgrest import APIResponse
from postgrest.exceptions import APIError
from supabase import AsyncClient, create_async_client
from tenacity import (
    AsyncRetrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from survivor_pool.config.settings import settings
from survivor_pool.models.contest import Contest
from survivor_pool.models.enums import PickStatus
from survivor_pool.models.pick import Pick
from survivor_pool.models.team import Team
from survivor_pool.storage.base import PoolStore, StorageError
from survivor_pool.utils.periods import allocation_columns

TEAMS_TABLE = "teams"
MATCHUPS_TABLE = "matchups"
PICKS_TABLE = "picks"
SETTINGS_TABLE = "global_settings"

DEFAULT_CURRENT_PERIOD = 1

# Only transport failures are retried; an APIError is a definite answer
WRITE_STOP = stop_after_attempt(settings.write_retry_attempts)
WRITE_WAIT = wait_exponential(multiplier=0.5, min=0.5, max=5)
WRITE_RETRY = retry_if_exception_type(httpx.TransportError)

MATCHUP_COLUMNS = (
    "id,week,season,status,away_team,home_team,away_score,home_score,venue,game_time"
)
TEAM_COLUMNS = "name,abbreviation,season,primary_color,secondary_color"

# Module-level storage for the async client instance
_async_supabase_client: Optional[AsyncClient] = None


async def initialize_supabase() -> Optional[AsyncClient]:
    """Initializes the global ASYNC Supabase client and returns it."""
    global _async_supabase_client
    if _async_supabase_client:
        logger.debug("Async Supabase client already initialized.")
        return _async_supabase_client

    api_key = settings.supabase_api_key
    if not settings.supabase_url or not api_key:
        logger.critical("Supabase URL or Key not configured in settings.")
        raise SystemExit("Supabase configuration missing.")

    if not settings.supabase_service_key:
        logger.warning(
            "No service key configured; row level security may hide other users' picks."
        )

    logger.debug(f"Initializing Async Supabase client with URL: {settings.supabase_url}")
    try:
        client: AsyncClient = await create_async_client(str(settings.supabase_url), api_key)
        _async_supabase_client = client
        logger.success("Async Supabase client initialized successfully.")
        return client
    except Exception as e:
        logger.exception(f"Failed to initialize Async Supabase client: {e}")
        return None


def _pick_columns() -> str:
    return ",".join(["id", "user_id", "status", "picks_count", "pick_name"] + allocation_columns())


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SupabaseStore(PoolStore):
    """PoolStore backed by the Supabase PostgREST API."""

    def __init__(self, client: AsyncClient, page_size: Optional[int] = None):
        super().__init__()
        self.client = client
        self.page_size = page_size or settings.page_size

    @classmethod
    async def connect(cls) -> "SupabaseStore":
        client = await initialize_supabase()
        if client is None:
            raise StorageError("Could not initialize the Supabase client.")
        return cls(client)

    # --- Reads ---

    async def _execute_read(self, description: str, query: Any) -> List[Dict[str, Any]]:
        try:
            response: APIResponse = await query.execute()
        except APIError as e:
            logger.error(f"Supabase API error while {description}: {e.message}")
            logger.debug(f"Full APIError details: {e}")
            raise StorageError(f"Failed while {description}: {e.message}") from e
        except httpx.HTTPError as e:
            logger.error(f"Network error while {description}: {e}")
            raise StorageError(f"Failed while {description}: {e}") from e
        return response.data or []

    async def _fetch_paginated(
        self,
        table: str,
        columns: str,
        apply_filters: Optional[Callable[[Any], Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Keyset pagination over ``id``; rows seen twice are dropped."""
        rows: List[Dict[str, Any]] = []
        seen_ids = set()
        last_id: Optional[str] = None
        fetched = 0

        while True:
            query = (
                self.client.table(table)
                .select(columns)
                .order("id")
                .limit(self.page_size)
            )
            if apply_filters:
                query = apply_filters(query)
            if last_id is not None:
                query = query.gt("id", last_id)

            page = await self._execute_read(f"fetching {table}", query)
            if not page:
                break

            fetched += len(page)
            for row in page:
                row_id = row.get("id")
                if row_id is None:
                    # Left for the model parser to count as malformed
                    rows.append(row)
                    continue
                if row_id not in seen_ids:
                    seen_ids.add(row_id)
                    rows.append(row)
                last_id = row_id

            if len(page) < self.page_size:
                break

        if fetched != len(rows):
            logger.info(
                f"Deduped {fetched - len(rows)} {table} rows during pagination ({len(rows)} unique)."
            )
        logger.debug(f"Fetched {len(rows)} rows from {table}.")
        return rows

    async def fetch_teams(self, season: int) -> List[Team]:
        query = self.client.table(TEAMS_TABLE).select(TEAM_COLUMNS).eq("season", season)
        rows = await self._execute_read("fetching teams", query)
        if not rows:
            logger.warning(f"No teams found for season {season}.")
        return self._parse_rows(TEAMS_TABLE, rows, Team.from_row)

    async def fetch_contests(self, period: Optional[int] = None) -> List[Contest]:
        rows = await self._fetch_paginated(MATCHUPS_TABLE, MATCHUP_COLUMNS)
        contests = self._parse_rows(MATCHUPS_TABLE, rows, Contest.from_row)
        if period is not None:
            contests = [c for c in contests if c.period == period]
        return contests

    async def fetch_picks(self, status: Optional[PickStatus] = None) -> List[Pick]:
        apply_filters = None
        if status is not None:
            apply_filters = lambda query: query.eq("status", status.value)  # noqa: E731
        rows = await self._fetch_paginated(PICKS_TABLE, _pick_columns(), apply_filters)
        return self._parse_rows(PICKS_TABLE, rows, Pick.from_row)

    async def get_pick(self, pick_id: str) -> Optional[Pick]:
        query = self.client.table(PICKS_TABLE).select(_pick_columns()).eq("id", pick_id).limit(1)
        rows = await self._execute_read(f"fetching pick {pick_id}", query)
        picks = self._parse_rows(PICKS_TABLE, rows, Pick.from_row)
        return picks[0] if picks else None

    async def _read_setting(self, key: str) -> Optional[str]:
        query = self.client.table(SETTINGS_TABLE).select("key,value").eq("key", key).limit(1)
        rows = await self._execute_read(f"reading setting {key}", query)
        if not rows:
            return None
        return rows[0].get("value")

    async def get_current_period(self) -> int:
        raw = await self._read_setting(settings.current_period_key)
        if raw is None:
            logger.warning(
                f"No '{settings.current_period_key}' setting stored; assuming period {DEFAULT_CURRENT_PERIOD}."
            )
            return DEFAULT_CURRENT_PERIOD
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise StorageError(
                f"Setting '{settings.current_period_key}' holds a non-integer value: {raw!r}"
            )

    # --- Writes ---

    @retry(
        stop=WRITE_STOP,
        wait=WRITE_WAIT,
        retry=WRITE_RETRY,
        reraise=True,
    )
    async def _execute_write(self, query: Any) -> APIResponse:
        return await query.execute()

    async def compare_and_set_current_period(self, expected: int, new: int) -> bool:
        key = settings.current_period_key
        query = (
            self.client.table(SETTINGS_TABLE)
            .update({"value": str(new)})
            .eq("key", key)
            .eq("value", str(expected))
        )
        # The conditional update is not idempotent: a resent attempt matches
        # nothing when the first one committed but its response was lost.
        resent = False
        try:
            async for attempt in AsyncRetrying(
                stop=WRITE_STOP, wait=WRITE_WAIT, retry=WRITE_RETRY, reraise=True
            ):
                with attempt:
                    resent = attempt.retry_state.attempt_number > 1
                    response = await query.execute()
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"Failed to update {key} from {expected} to {new}: {e}")
            raise StorageError(f"Failed to update {key}") from e

        if response.data:
            logger.success(f"{key} moved from {expected} to {new}.")
            return True

        stored = await self._read_setting(key)
        if resent and stored is not None and str(stored) == str(new):
            logger.warning(
                f"{key} already equals {new} after a resent update; earlier attempt applied."
            )
            return True

        # Nothing matched: either another writer moved it, or the row never existed
        if expected != DEFAULT_CURRENT_PERIOD or stored is not None:
            logger.warning(f"{key} no longer equals {expected}; another writer advanced it.")
            return False

        insert = self.client.table(SETTINGS_TABLE).insert({"key": key, "value": str(new)})
        resent = False
        try:
            async for attempt in AsyncRetrying(
                stop=WRITE_STOP, wait=WRITE_WAIT, retry=WRITE_RETRY, reraise=True
            ):
                with attempt:
                    resent = attempt.retry_state.attempt_number > 1
                    await insert.execute()
        except APIError as e:
            if resent and str(await self._read_setting(key)) == str(new):
                logger.warning(f"{key} created by an earlier attempt of this insert.")
                return True
            # Unique violation: a concurrent writer created the row first
            logger.warning(f"Could not create {key} setting: {e.message}")
            return False
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to create {key}") from e
        logger.success(f"{key} created with value {new}.")
        return True

    async def _update_pick(self, pick_id: str, values: Dict[str, Any]) -> bool:
        payload = {**values, "updated_at": _now_iso()}
        query = self.client.table(PICKS_TABLE).update(payload).eq("id", pick_id)
        try:
            await self._execute_write(query)
            return True
        except APIError as e:
            logger.error(f"Error updating pick {pick_id}: {e.message}")
            logger.debug(f"Full APIError details: {e}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Network error updating pick {pick_id}: {e}")
            return False

    async def set_allocation(self, pick_id: str, period: int, value: Optional[str]) -> bool:
        return await self._update_pick(pick_id, {Pick.column_for(period): value})

    async def update_pick_status(self, pick_id: str, status: PickStatus) -> bool:
        return await self._update_pick(pick_id, {"status": status.value})

    async def export_rows(self) -> dict:
        teams = await self._execute_read(
            "exporting teams", self.client.table(TEAMS_TABLE).select("*")
        )
        matchups = await self._fetch_paginated(MATCHUPS_TABLE, MATCHUP_COLUMNS)
        picks = await self._fetch_paginated(PICKS_TABLE, _pick_columns())
        global_settings = await self._execute_read(
            "exporting settings",
            self.client.table(SETTINGS_TABLE)
            .select("key,value")
            .eq("key", settings.current_period_key),
        )
        return {
            TEAMS_TABLE: teams,
            MATCHUPS_TABLE: matchups,
            PICKS_TABLE: picks,
            SETTINGS_TABLE: global_settings,
        }
