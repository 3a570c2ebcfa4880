"""Per-period survivorship aggregation.

Every call recomputes from period 1 using only the rows it is given, so the
figures can be reproduced independently from a snapshot of the tables.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Tuple

from loguru import logger

from survivor_pool.calculation.outcome_resolver import OutcomeResolution, resolve_outcome
from survivor_pool.models.allocation import AllocationRef
from survivor_pool.models.contest import Contest
from survivor_pool.models.enums import GameResult, Outcome
from survivor_pool.models.pick import Pick
from survivor_pool.models.reports import (
    BreakdownSummary,
    ContestSummary,
    EliminationBreakdown,
    PeriodStats,
    PickOutcomeDetail,
    TeamPickCount,
)
from survivor_pool.normalization.team_directory import TeamDirectory
from survivor_pool.utils.periods import period_slots, slot_for_period

# (pick, decoded ref, contest) for one period
PeriodAllocation = Tuple[Pick, AllocationRef, Contest]


def index_contests(contests: Iterable[Contest]) -> Dict[str, Contest]:
    return {contest.id: contest for contest in contests}


def _period_name(period: int) -> str:
    slot = slot_for_period(period)
    return slot.name if slot else f"Period {period}"


def collect_period_allocations(
    picks: Iterable[Pick], contests_by_id: Mapping[str, Contest], period: int
) -> Tuple[List[PeriodAllocation], int]:
    """Picks whose slot for ``period`` points at a contest scheduled in that period.

    Returns the valid allocations and the number of allocations discarded
    because their contest is unknown or belongs to another period.
    """
    valid: List[PeriodAllocation] = []
    skipped = 0
    for pick in picks:
        ref = pick.allocation_for(period)
        if ref is None:
            continue
        contest = contests_by_id.get(ref.contest_id)
        if contest is None:
            logger.debug(
                f"Pick {pick.id}: period {period} allocation references unknown contest {ref.contest_id}."
            )
            skipped += 1
            continue
        if contest.period != period:
            logger.debug(
                f"Pick {pick.id}: contest {contest.id} belongs to period {contest.period}, not {period}."
            )
            skipped += 1
            continue
        valid.append((pick, ref, contest))
    return valid, skipped


def compute_period_stats(
    picks: Iterable[Pick],
    contests: Iterable[Contest],
    directory: TeamDirectory,
    current_period: int,
) -> List[PeriodStats]:
    """Active/eliminated/remaining units for periods 1..current_period.

    From period 2 on, the units entering a period are the units that
    survived the previous one, whatever the allocation columns say.
    """
    picks = list(picks)
    contests_by_id = index_contests(contests)
    stats: List[PeriodStats] = []
    low_confidence_total = 0

    for slot in period_slots():
        period = slot.period
        if period > current_period:
            break

        allocations, skipped = collect_period_allocations(picks, contests_by_id, period)

        allocated = eliminated = survived = pending = low_confidence = 0
        for pick, ref, contest in allocations:
            units = pick.unit_count
            allocated += units
            resolution = resolve_outcome(contest, ref.side_key, directory)
            if resolution.is_low_confidence:
                low_confidence += units
            if resolution.outcome == Outcome.ELIMINATED:
                eliminated += units
            elif resolution.outcome == Outcome.SURVIVED:
                survived += units
            else:
                pending += units

        active = allocated
        if stats:
            active = stats[-1].remaining_units

        stats.append(
            PeriodStats(
                period=period,
                period_name=slot.name,
                active_units=active,
                allocated_units=allocated,
                eliminated_units=eliminated,
                remaining_units=max(0, active - eliminated),
                survived_units=survived,
                pending_units=pending,
                low_confidence_units=low_confidence,
                skipped_allocations=skipped,
            )
        )
        low_confidence_total += low_confidence

    if low_confidence_total:
        logger.warning(
            f"{low_confidence_total} units were scored from fuzzy or unresolved team matches."
        )
    logger.debug(f"Computed stats for {len(stats)} periods (current period {current_period}).")
    return stats


def remaining_units_for_period(stats: Iterable[PeriodStats], period: int) -> int:
    for period_stats in stats:
        if period_stats.period == period:
            return period_stats.remaining_units
    return 0


def _detail(
    pick: Pick, ref: AllocationRef, contest: Contest, resolution: OutcomeResolution
) -> PickOutcomeDetail:
    return PickOutcomeDetail(
        pick_id=pick.id,
        user_id=pick.user_id,
        contest_id=contest.id,
        picked_side=ref.side_key,
        resolved_team=resolution.picked.display_name,
        game=contest.description,
        winner=contest.winning_side,
        unit_count=pick.unit_count,
        outcome=resolution.outcome,
        confidence=resolution.confidence,
        reason=resolution.reason,
    )


def elimination_breakdown(
    picks: Iterable[Pick],
    contests: Iterable[Contest],
    directory: TeamDirectory,
    period: int,
) -> EliminationBreakdown:
    """Per-pick outcome detail for one period, for operator audits."""
    contests = list(contests)
    contests_by_id = index_contests(contests)
    allocations, skipped = collect_period_allocations(picks, contests_by_id, period)

    breakdown = EliminationBreakdown(
        period=period,
        period_name=_period_name(period),
        contests=[
            ContestSummary(
                id=contest.id,
                game=contest.description,
                score=contest.score_line,
                status=contest.status,
                winner=contest.winning_side,
            )
            for contest in contests
            if contest.period == period
        ],
    )
    summary: BreakdownSummary = breakdown.summary
    summary.skipped_allocations = skipped

    for pick, ref, contest in allocations:
        resolution = resolve_outcome(contest, ref.side_key, directory)
        detail = _detail(pick, ref, contest, resolution)
        if resolution.is_low_confidence:
            summary.low_confidence += 1

        if resolution.outcome == Outcome.ELIMINATED:
            breakdown.eliminated.append(detail)
            summary.total_eliminated += 1
            summary.eliminated_units += pick.unit_count
        elif resolution.outcome == Outcome.SURVIVED:
            breakdown.survived.append(detail)
            summary.total_survived += 1
            summary.survived_units += pick.unit_count
        else:
            breakdown.pending.append(detail)
            summary.total_pending += 1
            summary.pending_units += pick.unit_count

    logger.info(
        f"Period {period} breakdown: {summary.total_eliminated} eliminated "
        f"({summary.eliminated_units} units), {summary.total_survived} survived "
        f"({summary.survived_units} units), {summary.total_pending} pending."
    )
    return breakdown


def _game_result(resolution: OutcomeResolution) -> GameResult:
    if resolution.outcome == Outcome.PENDING:
        return GameResult.PENDING
    if resolution.winner is None:
        return GameResult.TIE
    if resolution.outcome == Outcome.ELIMINATED:
        return GameResult.WON
    return GameResult.LOST


def team_pick_breakdown(
    picks: Iterable[Pick],
    contests: Iterable[Contest],
    directory: TeamDirectory,
    period: int,
) -> List[TeamPickCount]:
    """Allocated units per team for one period, most-picked first."""
    contests_by_id = index_contests(contests)
    allocations, _ = collect_period_allocations(picks, contests_by_id, period)

    counts: Dict[Tuple[str, str], int] = defaultdict(int)
    resolutions: Dict[Tuple[str, str], OutcomeResolution] = {}
    for pick, ref, contest in allocations:
        resolution = resolve_outcome(contest, ref.side_key, directory)
        key = (contest.id, resolution.picked.display_name)
        counts[key] += pick.unit_count
        resolutions.setdefault(key, resolution)

    rows: List[TeamPickCount] = []
    for key, units in counts.items():
        resolution = resolutions[key]
        rows.append(
            TeamPickCount(
                team=resolution.picked.display_name,
                unit_count=units,
                team_data=resolution.picked.team,
                game_result=_game_result(resolution),
                confidence=resolution.picked.confidence,
            )
        )
    rows.sort(key=lambda row: (-row.unit_count, row.team))
    return rows
