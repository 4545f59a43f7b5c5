"""CLI review command: walk open conflicts and resolve them one by one.

Provides the `dissent review` command. For each open conflict (high severity
first) the older and newer fragments are shown side by side with the judge's
analysis, and you choose what reflects your current thinking.

The whole session runs inside one event loop, so prompts use questionary's
``ask_async``.

Usage:
    dissent review [--limit <n>]
"""

from __future__ import annotations

import asyncio

import questionary
import typer
from rich.console import Console
from rich.panel import Panel

from dissent.cli import context
from dissent.exceptions import LedgerError
from dissent.ledger.ledger import ConflictLedger
from dissent.models import Conflict, Resolution

# Module-level console used by the review command
console = Console()

KEEP_NEWER = "Keep newer"
KEEP_OLDER = "Keep older"
KEEP_BOTH = "Keep both (context-dependent)"
CUSTOM = "Custom resolution (add a note)"
DISMISS = "Dismiss (not a real conflict)"
SKIP = "Skip (review later)"

_CHOICES = [KEEP_NEWER, KEEP_OLDER, KEEP_BOTH, CUSTOM, DISMISS, SKIP]

_RESOLUTIONS = {
    KEEP_NEWER: Resolution.KEEP_NEWER,
    KEEP_OLDER: Resolution.KEEP_OLDER,
    KEEP_BOTH: Resolution.KEEP_BOTH,
    CUSTOM: Resolution.CUSTOM,
}

_BORDER = {"high": "red", "medium": "yellow", "low": "blue"}


def _conflict_panel(conflict: Conflict, index: int, total: int) -> Panel:
    meta = conflict.metadata
    source = meta.model_used or "heuristics"
    body = (
        f"[bold]{conflict.type.value}[/bold] · severity: {conflict.severity.value} · "
        f"confidence: {meta.confidence_score:.0%} · via {source}\n\n"
        f"[dim]OLDER[/dim]  {conflict.older_content}\n"
        f"[bold]NEWER[/bold]  {conflict.newer_content}\n"
    )
    if conflict.analysis:
        body += f"\n[bold]Analysis:[/bold] {conflict.analysis}"
    if conflict.recommendation:
        body += f"\n[bold]Recommendation:[/bold] {conflict.recommendation}"
    body += f"\n\n[dim]{conflict.id} · detected {conflict.detected_at.strftime('%Y-%m-%d %H:%M')}[/dim]"
    return Panel(
        body,
        title=f"Conflict {index + 1}/{total}",
        border_style=_BORDER.get(conflict.severity.value, "blue"),
    )


async def review_conflicts(ledger: ConflictLedger, limit: int) -> dict[str, int]:
    """Interactive loop over open conflicts.

    Returns:
        Counters for the session summary: resolved, dismissed, skipped.
    """
    counts = {"resolved": 0, "dismissed": 0, "skipped": 0}
    pending = (await ledger.list_open())[:limit]

    if not pending:
        console.print(Panel(
            "[green]All caught up! No open conflicts.[/green]",
            title="Dissent",
            border_style="green",
        ))
        return counts

    console.print(f"\n[bold]You have {len(pending)} conflict(s) to review[/bold]\n")

    for idx, conflict in enumerate(pending):
        console.print(_conflict_panel(conflict, idx, len(pending)))

        action = await questionary.select(
            "Which reflects your current thinking?",
            choices=_CHOICES,
        ).ask_async()

        # Handle None (Ctrl+C or EOF)
        if action is None:
            console.print("\n[yellow]Review interrupted.[/yellow]")
            break

        if action == SKIP:
            counts["skipped"] += 1
            continue

        try:
            if action == DISMISS:
                await ledger.dismiss(conflict.id)
                counts["dismissed"] += 1
                console.print("[yellow]Dismissed.[/yellow]\n")
                continue

            note = ""
            if action == CUSTOM:
                note = await questionary.text("Resolution note:").ask_async()
                if note is None:
                    console.print("[yellow]Note cancelled — skipping.[/yellow]")
                    counts["skipped"] += 1
                    continue

            await ledger.resolve(conflict.id, _RESOLUTIONS[action], note)
            counts["resolved"] += 1
            console.print(f"[green]Resolved: {_RESOLUTIONS[action].value}.[/green]\n")
        except LedgerError as exc:
            console.print(f"[red]Could not update the conflict store: {exc}[/red]")
            break

    return counts


def review(
    limit: int = typer.Option(
        20,
        "--limit",
        min=1,
        help="Maximum number of conflicts to review in this session.",
    ),
) -> None:
    """Review open conflicts and resolve or dismiss them.

    \b
    - Keep newer  — the newer item reflects your current thinking
    - Keep older  — the newer item was a detour
    - Keep both   — both hold, in different contexts
    - Custom      — record your own resolution note
    - Dismiss     — not a real conflict
    - Skip        — leave it open for later
    """
    engine = context.get_engine()
    counts = asyncio.run(review_conflicts(engine.ledger, limit))

    # -----------------------------------------------------------------------
    # Session summary
    # -----------------------------------------------------------------------
    if sum(counts.values()) == 0:
        return
    console.print(Panel(
        f"[bold green]Review session complete![/bold green]\n\n"
        f"Resolved:  {counts['resolved']}\n"
        f"Dismissed: {counts['dismissed']}\n"
        f"Skipped:   {counts['skipped']}",
        title="Session Summary",
        border_style="green",
    ))
