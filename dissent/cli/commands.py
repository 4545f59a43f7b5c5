"""Scan and ledger commands for the Dissent CLI.

Commands:
    dissent scan      — run a full scan and store new conflicts
    dissent check     — check one existing record against the corpus
    dissent list      — list open (or all) conflicts
    dissent stats     — counts by status and severity
    dissent resolve   — resolve a conflict
    dissent dismiss   — dismiss a conflict as spurious

Each command runs one coroutine with asyncio.run(); the engine is built from
the DISSENT_* environment settings.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dissent.cli import context
from dissent.exceptions import LedgerError
from dissent.models import Conflict, KnowledgeRecord, Resolution, Severity

console = Console()

_SEVERITY_STYLE = {
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "dim",
}


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def _truncate(text: str, width: int = 60) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


def conflicts_table(conflicts: list[Conflict], title: str = "Conflicts") -> Table:
    """Rich table with one row per conflict."""
    table = Table(title=title, show_lines=False)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Severity")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Older")
    table.add_column("Newer")
    for conflict in conflicts:
        style = _SEVERITY_STYLE.get(conflict.severity, "")
        table.add_row(
            conflict.id,
            f"[{style}]{conflict.severity.value}[/{style}]" if style else conflict.severity.value,
            conflict.type.value,
            conflict.status.value,
            _truncate(conflict.older_content),
            _truncate(conflict.newer_content),
        )
    return table


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def scan(
    max_candidates: Optional[int] = typer.Option(
        None,
        "--max-candidates",
        min=1,
        help="Candidates sent to the judge (default: DISSENT_SCAN_MAX_CANDIDATES).",
    ),
    threshold: Optional[float] = typer.Option(
        None,
        "--threshold",
        min=0.0,
        max=1.0,
        help="Minimum heuristic score (default: DISSENT_HEURISTIC_SCORE_THRESHOLD).",
    ),
) -> None:
    """Scan the whole knowledge base for contradictions."""
    engine = context.get_engine()
    result = asyncio.run(engine.run_full_scan(max_candidates=max_candidates, heuristic_threshold=threshold))

    console.print(Panel(
        f"Candidates found: {result.found}\n"
        f"New conflicts stored: {result.verified}",
        title="Scan complete",
        border_style="green" if result.verified == 0 else "yellow",
    ))
    if result.conflicts:
        console.print(conflicts_table(result.conflicts, title="New conflicts"))


def check(
    record_id: str = typer.Argument(..., help="ID of the knowledge record to check."),
    no_ai: bool = typer.Option(False, "--no-ai", help="Skip the judge; heuristic-only acceptance."),
) -> None:
    """Check one record against the existing knowledge base."""
    engine = context.get_engine()

    async def _run() -> list[Conflict] | None:
        rows = await engine.records.get_all("records")
        row = next((r for r in rows if r.get("id") == record_id), None)
        if row is None:
            return None
        return await engine.check_new_record(KnowledgeRecord.model_validate(row), use_ai=not no_ai)

    try:
        conflicts = asyncio.run(_run())
    except ValidationError as exc:
        console.print(f"[red]Record '{record_id}' is malformed: {exc.error_count()} validation error(s).[/red]")
        raise typer.Exit(code=1)
    except Exception as exc:
        console.print(f"[red]Could not read the record store: {exc}[/red]")
        raise typer.Exit(code=1)
    if conflicts is None:
        console.print(f"[red]Record '{record_id}' not found.[/red]")
        raise typer.Exit(code=1)
    if not conflicts:
        console.print("[green]No new conflicts for this record.[/green]")
        return
    console.print(conflicts_table(conflicts, title=f"New conflicts for {record_id}"))


def list_conflicts(
    show_all: bool = typer.Option(False, "--all", help="Include resolved and dismissed conflicts."),
) -> None:
    """List open conflicts (or every conflict with --all)."""
    engine = context.get_engine()
    if show_all:
        conflicts = asyncio.run(engine.ledger.list_all())
    else:
        conflicts = asyncio.run(engine.ledger.list_open())

    if not conflicts:
        console.print("[green]No conflicts.[/green]")
        return
    console.print(conflicts_table(conflicts, title="All conflicts" if show_all else "Open conflicts"))


def stats() -> None:
    """Show conflict counts by status and severity."""
    engine = context.get_engine()
    counts = asyncio.run(engine.ledger.stats())
    console.print(Panel(
        f"Total:     {counts.total}\n"
        f"Open:      {counts.open}\n"
        f"Resolved:  {counts.resolved}\n"
        f"Dismissed: {counts.dismissed}\n\n"
        f"[red]High:[/red]      {counts.high_severity}\n"
        f"[yellow]Medium:[/yellow]    {counts.medium_severity}\n"
        f"Low:       {counts.low_severity}",
        title="Conflict stats",
        border_style="blue",
    ))


def resolve(
    conflict_id: str = typer.Argument(..., help="Conflict ID."),
    resolution: str = typer.Argument(..., help="keep_newer, keep_older, keep_both or custom."),
    note: str = typer.Option("", "--note", help="Optional resolution note."),
) -> None:
    """Resolve a conflict."""
    valid = [r.value for r in Resolution]
    if resolution not in valid:
        console.print(f"[red]Invalid resolution '{resolution}'. Expected one of: {', '.join(valid)}[/red]")
        raise typer.Exit(code=2)

    engine = context.get_engine()
    try:
        conflict = asyncio.run(engine.ledger.resolve(conflict_id, resolution, note))
    except LedgerError as exc:
        console.print(f"[red]Could not update the conflict store: {exc}[/red]")
        raise typer.Exit(code=1)
    if conflict is None:
        console.print(f"[red]Conflict '{conflict_id}' not found.[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Resolved {conflict.id} ({resolution}).[/green]")


def dismiss(conflict_id: str = typer.Argument(..., help="Conflict ID.")) -> None:
    """Dismiss a conflict as not a real contradiction."""
    engine = context.get_engine()
    try:
        conflict = asyncio.run(engine.ledger.dismiss(conflict_id))
    except LedgerError as exc:
        console.print(f"[red]Could not update the conflict store: {exc}[/red]")
        raise typer.Exit(code=1)
    if conflict is None:
        console.print(f"[red]Conflict '{conflict_id}' not found.[/red]")
        raise typer.Exit(code=1)
    console.print(f"[yellow]Dismissed {conflict.id}.[/yellow]")
