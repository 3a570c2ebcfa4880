import pytest

from survivor_pool.calculation.lifecycle import AllocationError, allocate, reconcile_statuses
from survivor_pool.models.enums import Confidence, PickStatus


@pytest.fixture
def matchups(make_matchup):
    return [
        make_matchup("C1", 1, "Buffalo Bills", "New York Jets", 24, 20),
        make_matchup("C2", 1, "Kansas City Chiefs", "New England Patriots", 17, 17),
        make_matchup("C8", 1, "New Orleans Saints", "Buffalo Bills", status="scheduled"),
        make_matchup("C3", 2, "New Orleans Saints", "New York Jets", status="scheduled"),
    ]


class TestAllocate:
    async def test_stores_canonical_name_and_activates(
        self, make_store, make_pick, matchups, directory
    ):
        store = make_store(matchups, [make_pick("P1", 3, status="pending")])

        pick = await allocate(store, directory, "P1", "C8", "no")

        assert pick.status == PickStatus.ACTIVE
        assert store.picks["P1"]["reg1_team_matchup_id"] == "C8_New Orleans Saints"
        assert store.picks["P1"]["status"] == "active"

    async def test_uses_current_period_column(self, make_store, make_pick, matchups, directory):
        store = make_store(matchups, [make_pick("P1", 3, status="safe")], current_period=2)

        pick = await allocate(store, directory, "P1", "C3", "New_York_Jets")

        assert pick.allocation_for(2).side_key == "New York Jets"
        assert store.picks["P1"]["reg2_team_matchup_id"] == "C3_New York Jets"
        assert store.picks["P1"]["status"] == "safe"

    @pytest.mark.parametrize(
        "pick_id, contest_id, side, message",
        [
            ("missing", "C8", "NO", "does not exist"),
            ("E1", "C8", "NO", "is eliminated"),
            ("P1", "C3", "NO", "not scheduled in period 1"),
            ("P1", "C1", "NYJ", "already final"),
            ("P1", "C8", "Saints", "does not name a known team"),
            ("P1", "C8", "KC", "is not playing in"),
        ],
    )
    async def test_rejections(
        self, make_store, make_pick, matchups, directory, pick_id, contest_id, side, message
    ):
        store = make_store(
            matchups, [make_pick("P1", 3, status="pending"), make_pick("E1", 1, status="eliminated")]
        )

        with pytest.raises(AllocationError, match=message):
            await allocate(store, directory, pick_id, contest_id, side)

        assert store.picks["P1"].get("reg1_team_matchup_id") is None


class TestReconcileStatuses:
    async def test_writes_final_outcomes(self, make_store, make_pick, matchups, directory):
        picks = [
            make_pick("P1", 3, reg1_team_matchup_id="C1_New York Jets"),
            make_pick("P2", 2, reg1_team_matchup_id="C1_BUF"),
            make_pick("P3", 4, reg1_team_matchup_id="C2_KC"),
            make_pick("P4", 1, reg1_team_matchup_id="C8_NO"),
        ]
        store = make_store(matchups, picks)

        result = await reconcile_statuses(store, directory)

        assert result.period == 1
        assert result.picks_processed == 3
        assert result.picks_updated == 3
        assert store.picks["P1"]["status"] == "safe"
        assert store.picks["P2"]["status"] == "eliminated"
        assert store.picks["P3"]["status"] == "eliminated"
        # Still scheduled
        assert store.picks["P4"]["status"] == "active"

    async def test_eliminated_picks_stay_eliminated(
        self, make_store, make_pick, matchups, directory
    ):
        picks = [make_pick("E1", 2, status="eliminated", reg1_team_matchup_id="C1_NYJ")]
        store = make_store(matchups, picks)

        result = await reconcile_statuses(store, directory, period=1)

        assert result.picks_processed == 0
        assert store.picks["E1"]["status"] == "eliminated"

    async def test_unresolved_sides_need_review(self, make_store, make_pick, matchups, directory):
        picks = [
            make_pick("P1", 3, reg1_team_matchup_id="C1_Raiders"),
            make_pick("P2", 2, reg1_team_matchup_id="C1_Jets"),
        ]
        store = make_store(matchups, picks)

        result = await reconcile_statuses(store, directory)

        assert [c.pick_id for c in result.needs_review] == ["P1"]
        assert store.picks["P1"]["status"] == "active"
        assert [c.pick_id for c in result.low_confidence] == ["P2"]
        assert result.low_confidence[0].confidence == Confidence.FUZZY
        assert store.picks["P2"]["status"] == "safe"

    async def test_unchanged_status_is_not_rewritten(
        self, make_store, make_pick, matchups, directory
    ):
        picks = [make_pick("P1", 3, status="safe", reg1_team_matchup_id="C1_NYJ")]
        store = make_store(matchups, picks)

        result = await reconcile_statuses(store, directory)

        assert result.picks_processed == 1
        assert result.picks_updated == 0
        assert result.changes == []
