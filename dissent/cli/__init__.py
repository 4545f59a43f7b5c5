"""Dissent CLI: scan for contradictions and review them.

Entry point registered in pyproject.toml:
    dissent = "dissent.cli:app"

Commands:
    dissent scan      — full scan, stores new conflicts
    dissent check     — check one record against the corpus
    dissent list      — list open conflicts (--all for every conflict)
    dissent stats     — counts by status and severity
    dissent resolve   — resolve a conflict by id
    dissent dismiss   — dismiss a conflict by id
    dissent review    — walk open conflicts interactively

Configuration comes from DISSENT_* environment variables (see dissent.config).
"""

import typer

from dissent.cli.commands import check, dismiss, list_conflicts, resolve, scan, stats
from dissent.cli.context import configure_logging
from dissent.cli.review import review

app = typer.Typer(
    name="dissent",
    help="Dissent — find contradictions in your knowledge base",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    configure_logging(verbose)


app.command()(scan)
app.command()(check)
app.command(name="list")(list_conflicts)
app.command()(stats)
app.command()(resolve)
app.command()(dismiss)
app.command()(review)
