import json

import pytest

from survivor_pool.models.enums import AdvanceReason
from survivor_pool.reporting import render
from survivor_pool.reporting.service import PoolService
from survivor_pool.storage.memory_store import MemoryStore


@pytest.fixture
def store(make_store, make_matchup, make_pick):
    matchups = [
        make_matchup("C1", 1, "Buffalo Bills", "New York Jets", 24, 20),
        make_matchup("C2", 1, "Kansas City Chiefs", "New England Patriots", 17, 17),
        make_matchup("C3", 2, "New Orleans Saints", "New York Jets", status="scheduled"),
    ]
    picks = [
        make_pick("P1", 3, reg1_team_matchup_id="C1_Jets"),
        make_pick("P2", 2, reg1_team_matchup_id="C1_Bills"),
        make_pick("P3", 1, reg1_team_matchup_id="C2_Kansas_City_Chiefs"),
    ]
    return make_store(matchups, picks)


class TestPoolService:
    async def test_remaining_units(self, store):
        assert await PoolService(store).remaining_units() == 3

    async def test_weekly_stats_render(self, store):
        stats = await PoolService(store).weekly_stats()
        assert stats[0].low_confidence_units == 5
        assert render.weekly_stats_table(stats).row_count == 1

    async def test_breakdowns_default_to_current_period(self, store):
        service = PoolService(store)
        breakdown = await service.elimination_breakdown()
        teams = await service.team_pick_breakdown()
        assert breakdown.period == 1
        assert breakdown.summary.eliminated_units == 3
        assert [row.team for row in teams] == ["New York Jets", "Buffalo Bills", "Kansas City Chiefs"]

    async def test_reconcile_then_advance(self, store):
        service = PoolService(store)

        reconciled = await service.reconcile()
        advanced = await service.advance_period()

        assert reconciled.picks_updated == 3
        assert advanced.reason == AdvanceReason.ADVANCED
        assert advanced.picks_reset == 1
        assert await store.get_current_period() == 2

    async def test_allocate_after_advance(self, store):
        service = PoolService(store)
        await service.reconcile()
        await service.advance_period()

        pick = await service.allocate("P1", "C3", "NO")

        assert store.picks["P1"]["reg2_team_matchup_id"] == "C3_New Orleans Saints"
        assert pick.allocation_for(2).contest_id == "C3"

    async def test_snapshot_round_trip(self, store, tmp_path):
        path = await PoolService(store).export_snapshot(tmp_path / "snapshot.json")

        with open(path, encoding="utf-8") as f:
            assert set(json.load(f)) == {"teams", "matchups", "picks", "global_settings"}

        restored = MemoryStore.from_snapshot(path)
        assert await PoolService(restored).remaining_units() == 3

    async def test_remaining_units_reads_the_pointer_once(self, store):
        reads = []
        original = store.get_current_period

        async def counting_get_current_period():
            reads.append(1)
            return await original()

        store.get_current_period = counting_get_current_period

        assert await PoolService(store).remaining_units() == 3
        assert len(reads) == 1


class TestMalformedRows:
    @pytest.fixture
    def store(self, make_store, make_matchup, make_pick):
        bad_score = make_matchup("C2", 1, "Kansas City Chiefs", "New England Patriots", 17)
        bad_score["away_score"] = "abc"
        matchups = [make_matchup("C1", 1, "Buffalo Bills", "New York Jets", 24, 20), bad_score]
        picks = [
            make_pick("P1", 3, reg1_team_matchup_id="C1_Jets"),
            make_pick("P2", -1, reg1_team_matchup_id="C1_Bills"),
            make_pick("P3", "many", reg1_team_matchup_id="C1_Bills"),
            make_pick("P4", 1, reg1_team_matchup_id="C2_Kansas_City_Chiefs"),
        ]
        del picks[3]["id"]
        return make_store(matchups, picks)

    async def test_bad_rows_are_skipped_and_counted(self, store):
        picks = await store.fetch_picks()
        contests = await store.fetch_contests()

        assert [p.id for p in picks] == ["P1"]
        assert [c.id for c in contests] == ["C1"]
        # One pick without an id at load time, two rejected by the model
        assert store.malformed_rows["picks"] == 3
        assert store.malformed_rows["matchups"] == 1

    async def test_service_runs_around_bad_rows(self, store):
        service = PoolService(store)

        assert await service.remaining_units() == 3
        reconciled = await service.reconcile()
        assert reconciled.picks_updated == 1
