"""Developer CLI for StrideSync.

Runs the API server and drives the same sync, merge review and plan
operation code paths as the HTTP routes against the configured database.
"""

import json
from datetime import date, timedelta
from pathlib import Path

import typer
import uvicorn
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table
from sqlalchemy.orm import Session

from stridesync.activities.merge_review import list_merge_candidates
from stridesync.config.settings import settings
from stridesync.core.logger import setup_logger
from stridesync.db.session import get_session, init_db
from stridesync.ingestion.bridge import BridgeClient, BridgeError
from stridesync.ingestion.sync import sync_activities
from stridesync.plans.context import load_plan_context
from stridesync.plans.errors import PlanNotFoundError
from stridesync.plans.operations import (
    FallbackRequest,
    apply_operations,
    parse_operations,
    preview_operations,
    validate_operations,
)
from stridesync.plans.operations.types import find_fallback

console = Console()

app = typer.Typer(
    name="stridesync",
    help="StrideSync CLI - activity sync and plan operations",
    add_completion=False,
)

DEFAULT_HOST = "127.0.0.1"


def _fail(message: str, code: int = 1) -> None:
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(code)


@app.callback()
def main(debug: bool = typer.Option(False, "--debug", help="Enable debug logging")) -> None:
    setup_logger(level="DEBUG" if debug else None)


@app.command()
def server(
    host: str = typer.Option(DEFAULT_HOST, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
) -> None:
    """Run the FastAPI server."""
    logger.info(f"Starting FastAPI server on {host}:{port} (reload={reload})")
    uvicorn.run("stridesync.main:app", host=host, port=port, reload=reload)


@app.command("init-db")
def init_db_command() -> None:
    """Create missing database tables."""
    init_db()
    console.print("[green]Database tables verified[/green]")


@app.command()
def sync(
    athlete_id: str = typer.Option(..., "--athlete-id", "-a", help="Athlete to sync"),
    source: str = typer.Option("garmin", "--source", "-s", help="garmin or strava"),
    days: int = typer.Option(settings.sync_default_lookback_days, "--days", "-d", help="Days to look back"),
    limit: int | None = typer.Option(None, "--limit", help="Process at most this many activities"),
) -> None:
    """Pull activities from one bridge and reconcile them with stored ones."""
    if source not in ("garmin", "strava"):
        _fail(f"Unknown source {source!r} (expected garmin or strava)")

    end_date = date.today()
    start_date = end_date - timedelta(days=days)
    console.print(f"[bold cyan]Syncing {source} activities for {athlete_id} ({start_date} to {end_date})...[/bold cyan]")

    try:
        with get_session() as session:
            result = sync_activities(session, athlete_id, source, start_date, end_date, BridgeClient(), limit=limit)
    except BridgeError as e:
        _fail(str(e), code=2)

    if not result.lock_acquired:
        _fail(f"A sync is already running for athlete {athlete_id}", code=3)

    table = Table(title=f"{source.capitalize()} sync")
    for column in ("synced", "merged", "pending_review", "updated"):
        table.add_column(column, justify="right")
    table.add_row(str(result.synced), str(result.merged), str(result.pending_review), str(result.updated))
    console.print(table)


@app.command("merge-candidates")
def merge_candidates(
    athlete_id: str = typer.Option(..., "--athlete-id", "-a", help="Athlete whose candidates to list"),
) -> None:
    """List activity pairs waiting for a merge decision."""
    with get_session() as session:
        pending = list_merge_candidates(session, athlete_id)
        if not pending:
            console.print("[yellow]No merge candidates[/yellow]")
            return

        table = Table(title="Merge candidates")
        table.add_column("activity")
        table.add_column("possible duplicate of")
        table.add_column("confidence")
        table.add_column("score", justify="right")
        for item in pending:
            table.add_row(
                f"{item.activity.id} ({item.activity.source}, {item.activity.start_time:%Y-%m-%d %H:%M})",
                f"{item.potential_match.id} ({item.potential_match.source})",
                item.confidence or "-",
                f"{item.confidence_score:.1f}" if item.confidence_score is not None else "-",
            )
        console.print(table)


def _run_plan_ops(session: Session, plan_id: int, athlete_id: str, operations: list, apply: bool) -> int:
    """Print validation and previews, apply when asked. Returns the exit code."""
    try:
        context = load_plan_context(session, plan_id, athlete_id)
    except PlanNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    validation = validate_operations(operations, context)
    for warning in validation.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    if not validation.valid:
        for error in validation.errors:
            console.print(f"[red]Invalid:[/red] {error}")
        return 1

    for preview in preview_operations(operations, context):
        console.print(f"[bold]{preview.description}[/bold]")
        for affected in preview.affected_workouts:
            before, after = affected.before, affected.after
            console.print(
                f"  W{affected.week_number}:D{affected.day} "
                f"{before.workout_type} {before.distance_km or 0:.1f}km → "
                f"{after.workout_type} {after.distance_km or 0:.1f}km"
            )

    if not apply:
        console.print("[dim]Preview only, pass --apply to write[/dim]")
        return 0

    result = apply_operations(session, plan_id, operations, context)
    if not result.success:
        session.rollback()
        for error in result.errors:
            console.print(f"[red]Apply failed:[/red] {error}")
        return 1

    console.print(
        f"[green]Applied {result.operations_applied} operations, {result.workouts_modified} workouts modified[/green]"
    )
    return 0


@app.command("plan-ops")
def plan_ops(
    plan_id: int = typer.Argument(..., help="Plan to edit"),
    operations_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with operations"),
    athlete_id: str = typer.Option(..., "--athlete-id", "-a", help="Plan owner"),
    apply: bool = typer.Option(False, "--apply", help="Write the operations (default: preview only)"),
) -> None:
    """Validate and preview a batch of plan operations, optionally applying it."""
    try:
        parsed = parse_operations(json.loads(operations_file.read_text(encoding="utf-8")))
    except (ValueError, ValidationError) as e:
        _fail(f"Could not read operations: {e}")

    fallback = parsed if isinstance(parsed, FallbackRequest) else find_fallback(parsed)
    if fallback is not None:
        _fail(f"Fallback requested: {fallback.reason}", code=4)

    with get_session() as session:
        exit_code = _run_plan_ops(session, plan_id, athlete_id, parsed, apply)
    if exit_code:
        raise typer.Exit(exit_code)


if __name__ == "__main__":
    app()
