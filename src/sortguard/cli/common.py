"""Shared helpers for SortGuard CLI commands."""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, NoReturn

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")

from sortguard.core.errors import SortGuardError
from sortguard.core.services import Services, build_services


def load_services() -> Services:
    """Build services from the environment, exiting on bad configuration."""

    try:
        return build_services()
    except ValueError as exc:  # Malformed SORTGUARD_* variables
        typer.secho(f"Invalid configuration: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc


def fail(exc: SortGuardError) -> NoReturn:
    """Print a SortGuard error (and its hint) and exit with status 1."""

    typer.secho(
        f"Error [{exc.kind.value}]: {exc.message}", err=True, fg=typer.colors.RED
    )
    if exc.hint:
        typer.secho(exc.hint, err=True, fg=typer.colors.YELLOW)
    raise typer.Exit(code=1) from exc
