"""
Memora CLI - operator commands for the review core.

Usage:
    memora serve                         # Run the HTTP API
    memora init-db                       # Create tables
    memora import-items content.json     # Register knowledge units and items
    memora start-session alice           # Open a study session
    memora review SESSION ITEM -g 3      # Grade one item
    memora end-session SESSION           # Close a session
    memora due alice                     # Show due flashcards
    memora stats alice --days 30         # Review statistics
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from memora import __version__
from memora.config import configure_logging, get_settings
from memora.core.errors import MemoraError
from memora.core.mastery import MasteryColor
from memora.db.database import get_database
from memora.services import ReviewRequest, Services, TimeWindow, build_services

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="memora",
    help="Memora - spaced-repetition review core",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

_COLOR_STYLES = {
    MasteryColor.RED: "red",
    MasteryColor.ORANGE: "dark_orange",
    MasteryColor.YELLOW: "yellow",
    MasteryColor.GREEN: "green",
}


def get_services() -> Services:
    return build_services(get_database(), get_settings())


def _fail(error: MemoraError) -> NoReturn:
    console.print(f"[red]{error.code}: {error.message}[/]")
    raise typer.Exit(1)


def _now() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Server & Database Commands
# =============================================================================


@app.command()
def serve(
    host: Annotated[str | None, typer.Option("--host", help="Bind address")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Port")] = None,
    reload: Annotated[bool, typer.Option("--reload", help="Auto-reload on code changes")] = False,
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "memora.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command("init-db")
def init_db() -> None:
    """Create all tables on the configured database."""
    get_database().init_db()
    console.print("[green]✓ Database initialized[/]")


@app.command("import-items")
def import_items(
    file: Annotated[Path, typer.Argument(help="JSON file with knowledge_units and items")],
) -> None:
    """
    Register knowledge units and items from a JSON file.

    Existing entries with the same id are replaced.
    """
    services = get_services()
    services.db.init_db()
    try:
        result = services.content.import_file(file)
    except MemoraError as e:
        _fail(e)

    table = Table(title="Import Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Knowledge Units", str(result.knowledge_units))
    table.add_row("Items", str(result.items))
    console.print(table)


# =============================================================================
# Study Commands
# =============================================================================


@app.command("start-session")
def start_session(
    student: Annotated[str, typer.Argument(help="Student id")],
    kind: Annotated[str, typer.Option("--kind", "-k", help="flashcard or quiz")] = "flashcard",
) -> None:
    """Open a study session and print its id."""
    try:
        summary = get_services().sessions.start(student, kind, _now())
    except MemoraError as e:
        _fail(e)
    console.print(f"[green]Session started:[/] {summary.session_id}")


@app.command("end-session")
def end_session(session: Annotated[str, typer.Argument(help="Session id")]) -> None:
    """Close a study session and show its summary."""
    try:
        summary = get_services().sessions.end(session, _now())
    except MemoraError as e:
        _fail(e)

    avg = f"{summary.avg_grade:.2f}" if summary.avg_grade is not None else "-"
    console.print(
        Panel(
            f"Items reviewed: {summary.items_reviewed}\n"
            f"Average grade: {avg}\n"
            f"Duration: {(summary.total_time_ms or 0) / 1000:.0f}s",
            title=f"Session {summary.session_id}",
            border_style="cyan",
        )
    )


@app.command()
def review(
    session: Annotated[str, typer.Argument(help="Session id")],
    item: Annotated[str, typer.Argument(help="Item id")],
    grade: Annotated[int, typer.Option("--grade", "-g", help="1=Again 2=Hard 3=Good 4=Easy")],
    kind: Annotated[str, typer.Option("--kind", "-k", help="flashcard or quiz")] = "flashcard",
    time_ms: Annotated[
        int | None, typer.Option("--time-ms", help="Response time in milliseconds")
    ] = None,
) -> None:
    """Grade one item and show the resulting memory and mastery state."""
    try:
        result = get_services().pipeline.handle_review(
            ReviewRequest(
                session_id=session,
                item_id=item,
                item_kind=kind,
                grade=grade,
                response_time_ms=time_ms,
            ),
            now=_now(),
        )
    except MemoraError as e:
        _fail(e)

    memory = result.memory_update
    table = Table(title=f"Review {result.review_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("State", memory.lifecycle_state.label)
    table.add_row("Interval", f"{memory.scheduled_days}d")
    table.add_row("Due", memory.due_at.strftime("%Y-%m-%d %H:%M"))
    table.add_row("Stability", f"{memory.stability:.2f}")
    table.add_row("Difficulty", f"{memory.difficulty:.2f}")
    if result.mastery_update:
        mastery = result.mastery_update
        style = _COLOR_STYLES[mastery.color]
        table.add_row("Unit", mastery.unit_id)
        table.add_row("pKnow", f"{mastery.p_know:.3f} ({mastery.delta:+.3f})")
        before = result.color_before.value if result.color_before else "-"
        table.add_row("Color", f"{before} → [{style}]{mastery.color.value}[/]")
    console.print(table)


@app.command()
def due(
    student: Annotated[str, typer.Argument(help="Student id")],
    limit: Annotated[int | None, typer.Option("--limit", "-n", help="Maximum cards")] = None,
) -> None:
    """Show flashcards due now, most overdue first."""
    services = get_services()
    try:
        items = list(
            services.due_queue.list_due(student, _now(), limit or get_settings().due_default_limit)
        )
    except MemoraError as e:
        _fail(e)

    if not items:
        console.print("[yellow]No cards due for review.[/]")
        return

    table = Table(title=f"Due cards for {student}")
    table.add_column("Card", style="cyan")
    table.add_column("Front")
    table.add_column("State")
    table.add_column("Overdue", justify="right")
    table.add_column("Stability", justify="right")
    for item in items:
        table.add_row(
            item.card_id,
            item.front[:60],
            item.lifecycle_state.label,
            f"{item.overdue_days:.1f}d",
            f"{item.stability:.2f}",
        )
    console.print(table)


@app.command()
def stats(
    student: Annotated[str, typer.Argument(help="Student id")],
    days: Annotated[int, typer.Option("--days", "-d", help="Look-back window in days")] = 7,
) -> None:
    """Review statistics over the last N days."""
    try:
        summary = get_services().aggregator.summarize(student, TimeWindow.last_days(days, _now()))
    except MemoraError as e:
        _fail(e)

    accuracy = f"{summary.accuracy:.0%}" if summary.accuracy is not None else "-"
    table = Table(title=f"Stats for {student} (last {days} days)")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Reviews", str(summary.total_reviews))
    table.add_row("Correct", str(summary.correct))
    table.add_row("Incorrect", str(summary.incorrect))
    table.add_row("Accuracy", accuracy)
    table.add_row("Time on task", f"{summary.time_on_task_ms / 60000:.1f} min")
    table.add_row("Current streak", f"{summary.current_streak}d")
    table.add_row("Longest streak", f"{summary.longest_streak}d")
    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Verbose output")] = False,
) -> None:
    """
    Memora - spaced-repetition review core.

    \b
    Quick Start:
      memora init-db
      memora import-items content.json
      memora start-session alice
      memora review SESSION fc-1 --grade 3
    """
    settings = get_settings()
    if verbose:
        settings = settings.model_copy(update={"log_level": "DEBUG"})
    configure_logging(settings)
    logger.debug(f"memora {__version__} using {settings.database_url}")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
