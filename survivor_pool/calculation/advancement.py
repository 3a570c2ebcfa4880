from typing import Dict, List, Tuple

from loguru import logger

from survivor_pool.config.settings import settings
from survivor_pool.models.contest import Contest
from survivor_pool.models.enums import AdvanceReason, ContestStatus, PickStatus
from survivor_pool.models.reports import AdvanceResult
from survivor_pool.storage.base import PoolStore
from survivor_pool.utils.periods import slot_for_period


def games_status(contests: List[Contest]) -> Dict[str, int]:
    counts = {status.value: 0 for status in ContestStatus}
    for contest in contests:
        counts[contest.status.value] += 1
    counts["total"] = len(contests)
    return counts


class PeriodAdvancementController:
    """Moves the current period pointer forward once a period is complete.

    The pointer is only ever written through a compare-and-set on the value
    read at the start of the call, so concurrent invocations advance it at
    most once. Clearing the next slot of surviving picks is idempotent.
    """

    def __init__(self, store: PoolStore):
        self.store = store

    def _not_advanced(
        self, current: int, reason: AdvanceReason, message: str, **extra
    ) -> AdvanceResult:
        logger.info(f"Period not advanced ({reason.value}): {message}")
        return AdvanceResult(
            advanced=False,
            reason=reason,
            message=message,
            previous_period=current,
            new_period=current,
            **extra,
        )

    async def advance(self) -> AdvanceResult:
        current = await self.store.get_current_period()
        next_period = current + 1
        logger.info(f"Checking whether period {current} can advance to {next_period}...")

        contests = await self.store.fetch_contests()
        current_contests = [c for c in contests if c.period == current]
        status_counts = games_status(current_contests)

        if not current_contests:
            return self._not_advanced(
                current,
                AdvanceReason.NO_CONTESTS,
                f"No games found for period {current}",
                games_status=status_counts,
            )

        logger.info(
            f"Game status breakdown: {status_counts['scheduled']} scheduled, "
            f"{status_counts['live']} live, {status_counts['final']} final"
        )
        if not all(c.is_final for c in current_contests):
            return self._not_advanced(
                current,
                AdvanceReason.GAMES_NOT_FINAL,
                "Not all games are final yet",
                games_status=status_counts,
            )

        if slot_for_period(next_period) is None:
            return self._not_advanced(
                current,
                AdvanceReason.LAST_PERIOD,
                f"Period {current} is the last period of the season",
                games_status=status_counts,
            )

        if not any(c.period == next_period for c in contests):
            return self._not_advanced(
                current,
                AdvanceReason.NEXT_PERIOD_NOT_LOADED,
                f"No games loaded for period {next_period}",
                games_status=status_counts,
            )

        if not await self.store.compare_and_set_current_period(current, next_period):
            return self._not_advanced(
                current,
                AdvanceReason.CONCURRENT_UPDATE,
                f"{settings.current_period_key} was changed by another invocation",
                games_status=status_counts,
            )

        picks_reset, failures = await self.reset_carry_forward(next_period)

        logger.success(f"Period advanced from {current} to {next_period}.")
        return AdvanceResult(
            advanced=True,
            reason=AdvanceReason.ADVANCED,
            message=f"Period advanced successfully from {current} to {next_period}",
            previous_period=current,
            new_period=next_period,
            games_status=status_counts,
            picks_reset=picks_reset,
            reset_failures=failures,
        )

    async def reset_carry_forward(self, period: int) -> Tuple[int, List[str]]:
        """Clears ``period``'s allocation slot on every safe pick.

        Failures are collected per pick and never stop the batch. Running it
        twice leaves the same state.
        """
        survivors = await self.store.fetch_picks(status=PickStatus.SAFE)
        if not survivors:
            logger.info("No surviving picks to carry forward.")
            return 0, []

        logger.info(f"Resetting period {period} slot for {len(survivors)} surviving picks...")
        reset = 0
        failures: List[str] = []
        for pick in survivors:
            if await self.store.set_allocation(pick.id, period, None):
                reset += 1
            else:
                failures.append(pick.id)

        if failures:
            logger.error(
                f"Failed to reset period {period} slot for {len(failures)} picks: {failures}"
            )
        else:
            logger.success(f"Reset period {period} slot for {reset} surviving picks.")
        return reset, failures
