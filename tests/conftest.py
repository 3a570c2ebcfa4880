from typing import Any, Dict, List, Optional

import pytest

from survivor_pool.models.team import Team
from survivor_pool.normalization.team_directory import TeamDirectory
from survivor_pool.storage.memory_store import MemoryStore

SEASON = 2024

TEAM_ROWS = [
    {"name": "Buffalo Bills", "abbreviation": "BUF", "season": SEASON, "primary_color": "#00338D"},
    {"name": "New York Jets", "abbreviation": "NYJ", "season": SEASON, "primary_color": "#125740"},
    {"name": "Kansas City Chiefs", "abbreviation": "KC", "season": SEASON, "primary_color": "#E31837"},
    {"name": "New England Patriots", "abbreviation": "NE", "season": SEASON, "primary_color": "#002244"},
    {"name": "New Orleans Saints", "abbreviation": "NO", "season": SEASON, "primary_color": "#D3BC8D"},
    # Previous season rows must not leak into the directory
    {"name": "Oakland Raiders", "abbreviation": "OAK", "season": 2019},
]


@pytest.fixture
def team_rows() -> List[Dict[str, Any]]:
    return [dict(row) for row in TEAM_ROWS]


@pytest.fixture
def teams(team_rows) -> List[Team]:
    return [Team.from_row(row) for row in team_rows if row["season"] == SEASON]


@pytest.fixture
def directory(teams) -> TeamDirectory:
    return TeamDirectory(teams)


@pytest.fixture
def make_matchup():
    """Builds a matchups row; ``season`` defaults to the REG label of ``week``."""

    def _make(
        id: str,
        week: int,
        away: str,
        home: str,
        away_score: Optional[int] = None,
        home_score: Optional[int] = None,
        status: str = "final",
        season: Optional[str] = None,
    ) -> Dict[str, Any]:
        return {
            "id": id,
            "week": week,
            "season": season or f"REG{week}",
            "status": status,
            "away_team": away,
            "home_team": home,
            "away_score": away_score,
            "home_score": home_score,
            "venue": None,
            "game_time": None,
        }

    return _make


@pytest.fixture
def make_pick():
    """Builds a picks row; ``allocations`` maps column names to stored refs."""

    def _make(
        id: str,
        units: int = 1,
        status: str = "active",
        user_id: Optional[str] = None,
        **allocations: Optional[str],
    ) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "id": id,
            "user_id": user_id or f"user-{id}",
            "status": status,
            "picks_count": units,
            "pick_name": f"Entry {id}",
        }
        row.update(allocations)
        return row

    return _make


@pytest.fixture
def make_store(team_rows):
    def _make(
        matchups: List[Dict[str, Any]],
        picks: List[Dict[str, Any]],
        current_period: Optional[int] = 1,
    ) -> MemoryStore:
        global_settings = []
        if current_period is not None:
            global_settings.append({"key": "current_week", "value": str(current_period)})
        return MemoryStore(
            teams=team_rows,
            matchups=matchups,
            picks=picks,
            global_settings=global_settings,
        )

    return _make
