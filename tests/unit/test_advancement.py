import asyncio

import pytest

from survivor_pool.calculation.advancement import PeriodAdvancementController, games_status
from survivor_pool.models.contest import Contest
from survivor_pool.models.enums import AdvanceReason
from survivor_pool.storage.memory_store import MemoryStore


@pytest.fixture
def week_three_final(make_matchup):
    return [
        make_matchup("C5", 3, "Buffalo Bills", "New York Jets", 13, 27),
        make_matchup("C6", 3, "Kansas City Chiefs", "New Orleans Saints", 30, 12),
    ]


@pytest.fixture
def week_four(make_matchup):
    return [make_matchup("C7", 4, "New England Patriots", "Buffalo Bills", status="scheduled")]


@pytest.fixture
def survivors(make_pick):
    return [
        make_pick(
            "S1",
            3,
            status="safe",
            reg3_team_matchup_id="C5_BUF",
            reg4_team_matchup_id="C7_NE",
        ),
        make_pick("S2", 2, status="safe", reg4_team_matchup_id="C7_BUF"),
        make_pick("E1", 4, status="eliminated", reg4_team_matchup_id="C7_NE"),
        make_pick("A1", 1, status="active"),
    ]


class FlakyStore(MemoryStore):
    """MemoryStore whose allocation writes fail for chosen picks."""

    def __init__(self, *args, failing=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.failing = set(failing)

    async def set_allocation(self, pick_id, period, value):
        if pick_id in self.failing:
            return False
        return await super().set_allocation(pick_id, period, value)


class TestGates:
    async def test_live_game_blocks_advancement(self, make_store, make_matchup, week_four):
        matchups = [
            make_matchup("C5", 3, "Buffalo Bills", "New York Jets", 13, 27),
            make_matchup("C6", 3, "Kansas City Chiefs", "New Orleans Saints", 14, 3, status="live"),
        ] + week_four
        store = make_store(matchups, [], current_period=3)

        result = await PeriodAdvancementController(store).advance()

        assert not result.advanced
        assert result.reason == AdvanceReason.GAMES_NOT_FINAL
        assert result.games_status == {"scheduled": 0, "live": 1, "final": 1, "total": 2}
        assert result.new_period == 3
        assert await store.get_current_period() == 3

    async def test_no_contests_in_current_period(self, make_store, week_four):
        store = make_store(week_four, [], current_period=3)
        result = await PeriodAdvancementController(store).advance()
        assert result.reason == AdvanceReason.NO_CONTESTS
        assert await store.get_current_period() == 3

    async def test_next_period_must_be_loaded(self, make_store, week_three_final):
        store = make_store(week_three_final, [], current_period=3)
        result = await PeriodAdvancementController(store).advance()
        assert result.reason == AdvanceReason.NEXT_PERIOD_NOT_LOADED
        assert await store.get_current_period() == 3

    async def test_last_period_never_advances(self, make_store, make_matchup):
        final_game = make_matchup("C9", 4, "Buffalo Bills", "Kansas City Chiefs", 20, 23, season="POST4")
        store = make_store([final_game], [], current_period=22)
        result = await PeriodAdvancementController(store).advance()
        assert result.reason == AdvanceReason.LAST_PERIOD
        assert await store.get_current_period() == 22

    def test_games_status_counts(self, week_three_final, week_four):
        contests = [Contest.from_row(row) for row in week_three_final + week_four]
        assert games_status(contests) == {"scheduled": 1, "live": 0, "final": 2, "total": 3}


class TestAdvance:
    async def test_advances_and_resets_survivors(
        self, make_store, week_three_final, week_four, survivors
    ):
        store = make_store(week_three_final + week_four, survivors, current_period=3)

        result = await PeriodAdvancementController(store).advance()

        assert result.advanced
        assert result.reason == AdvanceReason.ADVANCED
        assert (result.previous_period, result.new_period) == (3, 4)
        assert result.picks_reset == 2
        assert result.reset_failures == []
        assert await store.get_current_period() == 4

        s1 = await store.get_pick("S1")
        assert s1.allocations[4] is None
        assert s1.allocation_for(3).contest_id == "C5"
        assert s1.unit_count == 3
        # Only surviving picks are touched
        assert store.picks["E1"]["reg4_team_matchup_id"] == "C7_NE"

    async def test_concurrent_calls_advance_once(
        self, make_store, week_three_final, week_four, survivors
    ):
        store = make_store(week_three_final + week_four, survivors, current_period=3)
        controller = PeriodAdvancementController(store)

        results = await asyncio.gather(controller.advance(), controller.advance())

        assert sum(r.advanced for r in results) == 1
        assert await store.get_current_period() == 4

    async def test_reset_failures_are_collected(
        self, team_rows, week_three_final, week_four, survivors
    ):
        store = FlakyStore(
            teams=team_rows,
            matchups=week_three_final + week_four,
            picks=survivors,
            global_settings=[{"key": "current_week", "value": "3"}],
            failing={"S2"},
        )

        result = await PeriodAdvancementController(store).advance()

        assert result.advanced
        assert result.picks_reset == 1
        assert result.reset_failures == ["S2"]
        assert store.picks["S1"]["reg4_team_matchup_id"] is None
        assert store.picks["S2"]["reg4_team_matchup_id"] == "C7_BUF"

    async def test_carry_forward_reset_is_idempotent(self, make_store, week_four, survivors):
        store = make_store(week_four, survivors, current_period=4)
        controller = PeriodAdvancementController(store)

        await controller.reset_carry_forward(4)
        after_first = await store.export_rows()
        await controller.reset_carry_forward(4)

        assert await store.export_rows() == after_first

    async def test_missing_pointer_defaults_to_first_period(self, make_store, make_matchup):
        matchups = [
            make_matchup("C1", 1, "Buffalo Bills", "New York Jets", 24, 20),
            make_matchup("C3", 2, "New Orleans Saints", "New York Jets", status="scheduled"),
        ]
        store = make_store(matchups, [], current_period=None)

        result = await PeriodAdvancementController(store).advance()

        assert result.advanced
        assert await store.get_current_period() == 2
