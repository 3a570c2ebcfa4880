"""Pick lifecycle writes: recording allocations and settling statuses."""

from typing import Optional

from loguru import logger

from survivor_pool.calculation.aggregation import collect_period_allocations, index_contests
from survivor_pool.calculation.outcome_resolver import resolve_outcome
from survivor_pool.models.allocation import encode
from survivor_pool.models.enums import Confidence, Outcome, PickStatus
from survivor_pool.models.pick import Pick
from survivor_pool.models.reports import ReconcileResult, StatusChange
from survivor_pool.normalization.team_directory import TeamDirectory
from survivor_pool.storage.base import PoolStore


class AllocationError(Exception):
    """An allocation request cannot be recorded."""

    pass


async def allocate(
    store: PoolStore,
    directory: TeamDirectory,
    pick_id: str,
    contest_id: str,
    side_key: str,
) -> Pick:
    """Allocates a pick to one side of a contest in the current period.

    The side is resolved to its canonical team here, and the canonical name
    is what gets stored, so later outcome checks match exactly.
    """
    period = await store.get_current_period()
    pick = await store.get_pick(pick_id)
    if pick is None:
        raise AllocationError(f"Pick {pick_id} does not exist")
    if pick.is_eliminated:
        raise AllocationError(f"Pick {pick_id} is eliminated")

    contests = index_contests(await store.fetch_contests(period))
    contest = contests.get(contest_id)
    if contest is None:
        raise AllocationError(f"Contest {contest_id} is not scheduled in period {period}")
    if contest.is_final:
        raise AllocationError(f"Contest {contest_id} is already final")

    resolution = directory.resolve(side_key)
    if resolution.team is None or resolution.confidence != Confidence.EXACT:
        raise AllocationError(f"'{side_key}' does not name a known team")

    sides = [directory.resolve(contest.away_team), directory.resolve(contest.home_team)]
    if not any(side.team == resolution.team for side in sides):
        raise AllocationError(
            f"{resolution.team.name} is not playing in {contest.description}"
        )

    value = encode(contest.id, resolution.team.name)
    if not await store.set_allocation(pick.id, period, value):
        raise AllocationError(f"Could not save allocation for pick {pick_id}")

    pick.allocations[period] = value
    if pick.status == PickStatus.PENDING:
        if await store.update_pick_status(pick.id, PickStatus.ACTIVE):
            pick.status = PickStatus.ACTIVE
        else:
            logger.error(f"Allocation saved but pick {pick.id} is still pending.")

    logger.success(f"Pick {pick.id} allocated to {resolution.team.name} for period {period}.")
    return pick


async def reconcile_statuses(
    store: PoolStore, directory: TeamDirectory, period: Optional[int] = None
) -> ReconcileResult:
    """Settles pick statuses from the final contests of one period.

    Eliminated picks are left alone. Answers built on an unresolved team are
    not written and come back under ``needs_review``.
    """
    if period is None:
        period = await store.get_current_period()

    picks = [p for p in await store.fetch_picks() if not p.is_eliminated]
    contests = index_contests(await store.fetch_contests(period))
    allocations, skipped = collect_period_allocations(picks, contests, period)
    if skipped:
        logger.warning(f"Skipped {skipped} period {period} allocations with stale contests.")

    result = ReconcileResult(period=period)
    for pick, ref, contest in allocations:
        resolution = resolve_outcome(contest, ref.side_key, directory)
        if resolution.outcome == Outcome.PENDING:
            continue

        result.picks_processed += 1
        new_status = (
            PickStatus.ELIMINATED
            if resolution.outcome == Outcome.ELIMINATED
            else PickStatus.SAFE
        )
        change = StatusChange(
            pick_id=pick.id,
            user_id=pick.user_id,
            previous_status=pick.status.value,
            new_status=new_status.value,
            confidence=resolution.confidence,
            reason=resolution.reason,
        )

        if resolution.confidence == Confidence.UNRESOLVED:
            logger.warning(
                f"Pick {pick.id}: '{ref.side_key}' could not be resolved; left for review."
            )
            result.needs_review.append(change)
            continue
        if new_status == pick.status:
            continue

        if await store.update_pick_status(pick.id, new_status):
            result.picks_updated += 1
            result.changes.append(change)
            if resolution.is_low_confidence:
                result.low_confidence.append(change)
        else:
            result.failures.append(pick.id)

    logger.info(
        f"Reconciled period {period}: {result.picks_processed} processed, "
        f"{result.picks_updated} updated, {len(result.needs_review)} need review, "
        f"{len(result.failures)} failed."
    )
    return result
