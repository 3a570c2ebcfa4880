import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

# --- Settings/Logging ---
from survivor_pool.logging.setup import setup_logging
from survivor_pool.config.settings import settings

setup_logging()

from loguru import logger

# --- End Settings/Logging ---

import typer
from rich.console import Console
from rich.panel import Panel

from survivor_pool.calculation.lifecycle import AllocationError
from survivor_pool.storage.base import PoolStore, StorageError
from survivor_pool.storage.memory_store import MemoryStore
from survivor_pool.storage.supabase_client import SupabaseStore
from survivor_pool.reporting.service import PoolService
from survivor_pool.reporting import render

app = typer.Typer(help="Losers pool elimination engine: stats, audits and period advancement.")
console = Console()


@app.callback()
def _callback(
    ctx: typer.Context,
    snapshot: Optional[Path] = typer.Option(
        None, "--snapshot", help="Run against an exported JSON snapshot instead of Supabase."
    ),
) -> None:
    """Survivor pool engine CLI."""
    ctx.obj = snapshot


async def open_store(snapshot: Optional[Path]) -> PoolStore:
    if snapshot is not None:
        logger.info(f"Using snapshot {snapshot} instead of Supabase.")
        return MemoryStore.from_snapshot(snapshot)
    return await SupabaseStore.connect()


def _run(ctx: typer.Context, action: Callable[[PoolService], Awaitable[Any]]) -> Any:
    """Opens the store, runs one service call and maps engine errors to exit codes."""

    async def runner() -> Any:
        store = await open_store(ctx.obj)
        return await action(PoolService(store))

    logger.info(
        f"Running '{ctx.command.name}' (team season {settings.team_season})"
    )
    try:
        return asyncio.run(runner())
    except AllocationError as e:
        logger.error(f"Allocation rejected: {e}")
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=2)
    except StorageError as e:
        logger.critical(f"Storage error, no results computed: {e}")
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


@app.command()
def stats(ctx: typer.Context) -> None:
    """Active, eliminated and remaining units per period."""
    console.print(render.weekly_stats_table(_run(ctx, lambda s: s.weekly_stats())))


@app.command()
def remaining(ctx: typer.Context) -> None:
    """Units still alive in the current period."""
    units = _run(ctx, lambda s: s.remaining_units())
    console.print(Panel(f"[bold green]{units}[/bold green] units remaining", title="Picks Remaining"))


@app.command()
def breakdown(
    ctx: typer.Context,
    period: Optional[int] = typer.Option(None, "--period", help="Defaults to the current period"),
) -> None:
    """Per-pick elimination audit for a period."""
    console.print(render.breakdown_panel(_run(ctx, lambda s: s.elimination_breakdown(period))))


@app.command()
def teams(
    ctx: typer.Context,
    period: Optional[int] = typer.Option(None, "--period", help="Defaults to the current period"),
) -> None:
    """Allocated units per team for a period."""
    console.print(render.team_breakdown_table(_run(ctx, lambda s: s.team_pick_breakdown(period))))


@app.command()
def advance(ctx: typer.Context) -> None:
    """Advance the current period if every game in it is final."""
    result = _run(ctx, lambda s: s.advance_period())
    console.print(render.advance_panel(result))
    if result.reset_failures:
        raise typer.Exit(code=1)


@app.command()
def reconcile(
    ctx: typer.Context,
    period: Optional[int] = typer.Option(None, "--period", help="Defaults to the current period"),
) -> None:
    """Write pick statuses from final games."""
    result = _run(ctx, lambda s: s.reconcile(period))
    console.print(render.reconcile_panel(result))
    if result.failures:
        raise typer.Exit(code=1)


@app.command()
def allocate(
    ctx: typer.Context,
    pick_id: str = typer.Argument(..., help="Pick to allocate"),
    contest_id: str = typer.Argument(..., help="Matchup id in the current period"),
    side: str = typer.Argument(..., help="Team name, abbreviation or underscore form"),
) -> None:
    """Allocate a pick to one side of a contest."""
    pick = _run(ctx, lambda s: s.allocate(pick_id, contest_id, side))
    console.print(Panel(f"Pick {pick.id} is now {pick.status.value}.", title="Allocation saved"))


@app.command()
def export(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Where to write the JSON snapshot"),
) -> None:
    """Write every pool table to a JSON snapshot."""
    written = _run(ctx, lambda s: s.export_snapshot(path))
    console.print(f"Snapshot written to [bold]{written}[/bold]")


if __name__ == "__main__":
    app()
