"""CLI entrypoints for SortGuard."""

from __future__ import annotations

import importlib
import logging
import sys
from collections.abc import Sequence
from typing import TYPE_CHECKING, Annotated, Any

import structlog

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
    from typer import Typer as TyperType
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")
    TyperType = Any

from sortguard.cli import files, organize

app: TyperType = typer.Typer(help="Organize files safely, with undo.")

VerboseFlag = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Log every operation to stderr."),
]


def configure_logging(verbose: bool = False) -> None:
    """Send structured logs to stderr so stdout stays machine-readable."""

    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


@app.callback()
def main(verbose: VerboseFlag = False) -> None:
    """Organize files safely, with undo."""
    configure_logging(verbose)


app.command("plan")(organize.plan_directory)
app.command("organize")(organize.organize_directory)
app.command("rollback")(organize.rollback_manifest)
app.command("history")(organize.show_history)
app.command("read")(files.read_file)
app.command("duplicates")(files.find_duplicates)


def run_cli(args: Sequence[str] | None = None) -> None:
    app(args=args)


__all__ = ["app", "configure_logging", "run_cli"]
