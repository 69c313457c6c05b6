# classtrack/__main__.py
# ================================================================================================
# Entry point for the classtrack CLI:
#   python -m classtrack <command>
#
# Commands run the same services as the HTTP API against DATABASE_URL. The civil "today"
# comes from --today when given, otherwise from --tz (default: settings.DEFAULT_TIMEZONE).
# ================================================================================================
from __future__ import annotations

import asyncio
import uuid
from datetime import date
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from classtrack.core.config import settings
from classtrack.db.session import get_engine, init_models, session_scope
from classtrack.exceptions import ClasstrackError
from classtrack.services.calendar_utils import to_storage_date, today_in_zone
from classtrack.services.schedule import ScheduleService

app = typer.Typer(help="classtrack CLI")
console = Console()


def _today(today: Optional[str], tz: Optional[str]) -> date:
    try:
        if today:
            return to_storage_date(today)
        return today_in_zone(tz or settings.DEFAULT_TIMEZONE)
    except ClasstrackError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=2)


def _run(coro):
    async def _main():
        try:
            return await coro
        finally:
            await get_engine().dispose()

    try:
        return asyncio.run(_main())
    except ClasstrackError as e:
        console.print(f"[red]{e.message}[/red] ({e.error_code})")
        raise typer.Exit(code=1)


@app.command("init-db")
def init_db():
    """Create the tables directly from the models (dev only; use alembic elsewhere)."""
    _run(init_models())
    console.print("[green]Tables created.[/green]")


@app.command("ensure-upcoming")
def ensure_upcoming(
    user_id: uuid.UUID = typer.Argument(..., help="Owning user id"),
    days: Optional[int] = typer.Option(None, "--days", min=0, help="Days ahead (default: UPCOMING_DAYS)"),
    today: Optional[str] = typer.Option(None, "--today", help="Reference date, YYYY-MM-DD"),
    tz: Optional[str] = typer.Option(None, "--tz", help="IANA zone used to pick today"),
):
    """Materialize every rule of a user over the next few days."""
    ref = _today(today, tz)

    async def _go():
        async with session_scope() as session:
            return await ScheduleService(session).ensure_upcoming(user_id, ref, days)

    result = _run(_go())
    console.print(f"planned={result.planned} created={result.created} (from {ref.isoformat()})")


@app.command("summary")
def summary(
    user_id: uuid.UUID = typer.Argument(..., help="Owning user id"),
    include_future: bool = typer.Option(False, "--include-future", help="Count occurrences after today"),
    today: Optional[str] = typer.Option(None, "--today", help="Reference date, YYYY-MM-DD"),
    tz: Optional[str] = typer.Option(None, "--tz", help="IANA zone used to pick today"),
):
    """Print per-subject attendance."""
    ref = _today(today, tz)

    async def _go():
        async with session_scope() as session:
            return await ScheduleService(session).get_summary(user_id, ref, include_future=include_future)

    items = _run(_go())
    table = Table(title=f"Attendance as of {ref.isoformat()}")
    for col in ("Subject", "Total", "Attended", "Missed", "Cancelled", "Pending", "%", "Standing"):
        table.add_column(col, justify="left" if col == "Subject" else "right")
    for item in items:
        s = item.summary
        table.add_row(
            item.subject.name,
            str(s.total), str(s.attended), str(s.missed), str(s.cancelled), str(s.pending),
            f"{s.percentage}%",
            f"[{s.standing}]{s.standing}[/{s.standing}]",
        )
    console.print(table)


if __name__ == "__main__":
    app()
