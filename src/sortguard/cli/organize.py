"""CLI commands for organizing directories and undoing runs."""

from __future__ import annotations

import asyncio
import importlib
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")

from rich.console import Console

from sortguard.chains.organize_chain import OrganizeChain, OrganizeOptions
from sortguard.cli.common import fail, load_services
from sortguard.core.errors import SortGuardError
from sortguard.core.schemas import ConflictStrategy

DirOption = Annotated[
    Path,
    typer.Option("--dir", help="Directory to organize."),
]
StrategyOption = Annotated[
    ConflictStrategy,
    typer.Option("--strategy", help="Conflict strategy for taken destinations."),
]
SubdirsFlag = Annotated[
    bool,
    typer.Option("--subdirs", help="Include files in subdirectories."),
]
DryRunFlag = Annotated[
    bool,
    typer.Option("--dry-run", help="Show what would move without moving anything."),
]
JsonFlag = Annotated[
    bool,
    typer.Option("--json", help="Emit JSON instead of a human-readable summary."),
]
ManifestArgument = Annotated[
    str,
    typer.Argument(help="Manifest id printed by organize or listed by history."),
]


def _chain(*, quiet: bool = False) -> OrganizeChain:
    services = load_services()
    # stdout carries only the JSON payload
    ui = Console(quiet=True) if quiet else None
    return OrganizeChain(
        services.validator, services.mover, services.rollback, ui=ui
    )


def plan_directory(
    directory: DirOption,
    strategy: StrategyOption = ConflictStrategy.RENAME,
    subdirs: SubdirsFlag = False,
    json_output: JsonFlag = False,
) -> None:
    """Show the organization plan for a directory."""

    chain = _chain()
    opts = OrganizeOptions(
        directory=str(directory), strategy=strategy, include_subdirs=subdirs
    )
    try:
        plan = asyncio.run(chain.plan(opts))
    except SortGuardError as exc:
        fail(exc)

    if json_output:
        typer.echo(plan.model_dump_json(indent=2))
        return

    for move in plan.moves:
        note = "" if move.conflict_state == "none" else f" ({move.conflict_state})"
        typer.echo(f"{move.source} -> {move.destination}{note}")
    for skipped in plan.skipped:
        typer.secho(f"skip {skipped.path}: {skipped.reason}", fg=typer.colors.YELLOW)
    typer.secho(
        f"{len(plan.moves)} planned, {len(plan.skipped)} skipped",
        fg=typer.colors.GREEN,
    )


def organize_directory(
    directory: DirOption,
    strategy: StrategyOption = ConflictStrategy.RENAME,
    subdirs: SubdirsFlag = False,
    dry_run: DryRunFlag = False,
    json_output: JsonFlag = False,
) -> None:
    """Move files into category folders and record a rollback manifest."""

    chain = _chain(quiet=json_output)
    opts = OrganizeOptions(
        directory=str(directory),
        strategy=strategy,
        dry_run=dry_run,
        include_subdirs=subdirs,
    )
    try:
        report = asyncio.run(chain.organize(opts))
    except SortGuardError as exc:
        fail(exc)

    if json_output:
        typer.echo(report.model_dump_json(indent=2))
    elif report.manifest_id:
        typer.secho(f"manifest: {report.manifest_id}", fg=typer.colors.GREEN)
    if report.error_count:
        raise typer.Exit(code=1)


def rollback_manifest(manifest_id: ManifestArgument) -> None:
    """Undo a previous organize or delete run."""

    chain = _chain()
    try:
        report = asyncio.run(chain.rollback(manifest_id))
    except SortGuardError as exc:
        fail(exc)
    if report.failed:
        raise typer.Exit(code=1)


def show_history(json_output: JsonFlag = False) -> None:
    """List rollback manifests, newest first."""

    services = load_services()
    manifests = services.rollback.list_manifests()

    if json_output:
        payload = [m.model_dump(by_alias=True, exclude_none=True) for m in manifests]
        typer.echo(json.dumps(payload, indent=2))
        return

    if not manifests:
        typer.echo("No rollback manifests found.")
        return
    for manifest in manifests:
        created = datetime.fromtimestamp(manifest.timestamp / 1000, tz=UTC)
        typer.echo(
            f"{manifest.id}  {created:%Y-%m-%d %H:%M:%S}  "
            f"{len(manifest.actions)} actions  {manifest.description}"
        )

