from typing import Optional

from pydantic import BaseModel, ConfigDict

from survivor_pool.models.contest import Contest
from survivor_pool.models.enums import Confidence, Outcome
from survivor_pool.normalization.team_directory import TeamDirectory, TeamResolution


class OutcomeResolution(BaseModel):
    """Outcome of one allocation plus the evidence it was derived from."""

    model_config = ConfigDict(frozen=True)

    outcome: Outcome
    picked: TeamResolution
    winner: Optional[TeamResolution] = None
    confidence: Confidence = Confidence.EXACT
    reason: str

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence != Confidence.EXACT


def _weakest(*resolutions: TeamResolution) -> Confidence:
    return max((r.confidence for r in resolutions), key=lambda c: c.rank)


def _contains_either_way(a: str, b: str) -> bool:
    a, b = a.lower(), b.lower()
    if not a or not b:
        return False
    return a in b or b in a


def same_team(picked: TeamResolution, winner: TeamResolution) -> bool:
    """Whether two resolutions name the same team.

    Substring containment is only consulted when at least one side could not
    be resolved, so two distinct canonical teams never collide.
    """
    if picked.team is not None and winner.team is not None:
        if picked.team == winner.team:
            return True
        return bool(
            picked.team.abbreviation
            and picked.team.abbreviation == winner.team.abbreviation
        )

    if picked.team is not None and picked.team.abbreviation == winner.raw.strip():
        return True
    if winner.team is not None and winner.team.abbreviation == picked.raw.strip():
        return True
    return _contains_either_way(picked.display_name, winner.display_name)


def resolve_outcome(
    contest: Contest, side_key: str, directory: TeamDirectory
) -> OutcomeResolution:
    """Decides whether an allocation on ``contest`` backing ``side_key`` survives.

    Losers pool rules: the allocation survives only when the backed side
    lost. A tie eliminates every allocation on the contest.
    """
    picked = directory.resolve(side_key)

    if not contest.is_final:
        return OutcomeResolution(
            outcome=Outcome.PENDING, picked=picked, reason="Game not final"
        )
    if not contest.has_scores:
        return OutcomeResolution(
            outcome=Outcome.PENDING, picked=picked, reason="Final without scores"
        )
    if contest.is_tie:
        return OutcomeResolution(
            outcome=Outcome.ELIMINATED,
            picked=picked,
            reason="Tie game - all picks eliminated",
        )

    winner = directory.resolve(contest.winning_side)
    confidence = _weakest(picked, winner)
    picked_name = picked.display_name

    if same_team(picked, winner):
        return OutcomeResolution(
            outcome=Outcome.ELIMINATED,
            picked=picked,
            winner=winner,
            confidence=confidence,
            reason=f"{picked_name} won (incorrect pick in loser pool)",
        )
    return OutcomeResolution(
        outcome=Outcome.SURVIVED,
        picked=picked,
        winner=winner,
        confidence=confidence,
        reason=f"{picked_name} lost (correct pick in loser pool)",
    )
