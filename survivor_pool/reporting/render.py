from typing import List

from rich.console import Group
from rich.panel import Panel
from rich.table import Table

from survivor_pool.models.enums import Confidence, GameResult, Outcome
from survivor_pool.models.reports import (
    AdvanceResult,
    EliminationBreakdown,
    PeriodStats,
    PickOutcomeDetail,
    ReconcileResult,
    TeamPickCount,
)

OUTCOME_STYLES = {
    Outcome.ELIMINATED: "red",
    Outcome.SURVIVED: "green",
    Outcome.PENDING: "yellow",
}
RESULT_STYLES = {
    GameResult.WON: "red",
    GameResult.LOST: "green",
    GameResult.TIE: "red",
    GameResult.PENDING: "yellow",
}


def _confidence_cell(confidence: Confidence) -> str:
    if confidence == Confidence.EXACT:
        return confidence.value
    return f"[bold magenta]{confidence.value}[/bold magenta]"


def weekly_stats_table(stats: List[PeriodStats]) -> Table:
    table = Table(title="Weekly Stats")
    table.add_column("Week", justify="right")
    table.add_column("Name")
    table.add_column("Active", justify="right")
    table.add_column("Eliminated", justify="right", style="red")
    table.add_column("Remaining", justify="right", style="green")
    table.add_column("Pending", justify="right", style="yellow")
    table.add_column("Low confidence", justify="right")
    table.add_column("Skipped", justify="right")
    for row in stats:
        table.add_row(
            str(row.period),
            row.period_name,
            str(row.active_units),
            str(row.eliminated_units),
            str(row.remaining_units),
            str(row.pending_units),
            str(row.low_confidence_units),
            str(row.skipped_allocations),
        )
    return table


def _details_table(title: str, details: List[PickOutcomeDetail]) -> Table:
    table = Table(title=title)
    for column in ("Pick", "User", "Game", "Picked", "Resolved", "Units", "Outcome", "Confidence", "Reason"):
        table.add_column(column)
    for d in details:
        style = OUTCOME_STYLES[d.outcome]
        table.add_row(
            d.pick_id,
            d.user_id or "-",
            d.game,
            d.picked_side,
            d.resolved_team,
            str(d.unit_count),
            f"[{style}]{d.outcome.value}[/{style}]",
            _confidence_cell(d.confidence),
            d.reason,
        )
    return table


def breakdown_panel(breakdown: EliminationBreakdown) -> Panel:
    games = Table(title="Games")
    for column in ("Id", "Game", "Score", "Status", "Winner"):
        games.add_column(column)
    for contest in breakdown.contests:
        games.add_row(
            contest.id, contest.game, contest.score, contest.status.value, contest.winner or "TBD"
        )

    s = breakdown.summary
    summary = (
        f"Eliminated: {s.total_eliminated} picks ({s.eliminated_units} units) | "
        f"Survived: {s.total_survived} picks ({s.survived_units} units) | "
        f"Pending: {s.total_pending} picks ({s.pending_units} units) | "
        f"Skipped: {s.skipped_allocations} | Low confidence: {s.low_confidence}"
    )
    parts = [games]
    for title, details in (
        ("Eliminated", breakdown.eliminated),
        ("Survived", breakdown.survived),
        ("Pending", breakdown.pending),
    ):
        if details:
            parts.append(_details_table(title, details))
    parts.append(summary)
    return Panel(Group(*parts), title=f"{breakdown.period_name} eliminations")


def team_breakdown_table(rows: List[TeamPickCount]) -> Table:
    table = Table(title="Team Pick Breakdown")
    table.add_column("Team")
    table.add_column("Units", justify="right")
    table.add_column("Result")
    table.add_column("Confidence")
    for row in rows:
        style = RESULT_STYLES[row.game_result]
        table.add_row(
            row.team,
            str(row.unit_count),
            f"[{style}]{row.game_result.value}[/{style}]",
            _confidence_cell(row.confidence),
        )
    return table


def advance_panel(result: AdvanceResult) -> Panel:
    lines = [result.message]
    if result.games_status:
        lines.append(
            ", ".join(f"{status}: {count}" for status, count in result.games_status.items())
        )
    if result.advanced:
        lines.append(f"Surviving picks reset: {result.picks_reset}")
    if result.reset_failures:
        lines.append(f"[red]Reset failures: {', '.join(result.reset_failures)}[/red]")
    style = "green" if result.advanced else "yellow"
    return Panel("\n".join(lines), title=f"Advance: {result.reason.value}", border_style=style)


def reconcile_panel(result: ReconcileResult) -> Panel:
    lines = [
        f"Processed: {result.picks_processed}",
        f"Updated: {result.picks_updated}",
        f"Low confidence updates: {len(result.low_confidence)}",
        f"Needs review: {len(result.needs_review)}",
    ]
    for change in result.needs_review:
        lines.append(f"  [magenta]{change.pick_id}[/magenta]: {change.reason}")
    if result.failures:
        lines.append(f"[red]Failed: {', '.join(result.failures)}[/red]")
    return Panel("\n".join(lines), title=f"Reconcile period {result.period}")
