"""CLI commands for reading files and cleaning up duplicates."""

from __future__ import annotations

import asyncio
import importlib
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")

from sortguard.cli.common import fail, load_services
from sortguard.core.errors import SortGuardError
from sortguard.core.scanner import scan_directory
from sortguard.core.schemas import DuplicateStrategy, ReadOptions

PathArgument = Annotated[
    Path,
    typer.Argument(help="File to read."),
]
MaxBytesOption = Annotated[
    int | None,
    typer.Option("--max-bytes", min=1, help="Read at most this many bytes."),
]
OffsetOption = Annotated[
    int,
    typer.Option("--offset", min=0, help="Byte offset to start reading from."),
]
MetadataFlag = Annotated[
    bool,
    typer.Option("--metadata", help="Print metadata JSON instead of the content."),
]
DirOption = Annotated[
    Path,
    typer.Option("--dir", help="Directory to search for duplicates."),
]
DuplicateStrategyOption = Annotated[
    DuplicateStrategy,
    typer.Option("--strategy", help="Scoring used to pick the copy to keep."),
]
SubdirsFlag = Annotated[
    bool,
    typer.Option("--subdirs", help="Include files in subdirectories."),
]
DeleteFlag = Annotated[
    bool,
    typer.Option("--delete", help="Move recommended copies to the backup area."),
]


def read_file(
    path: PathArgument,
    max_bytes: MaxBytesOption = None,
    offset: OffsetOption = 0,
    metadata: MetadataFlag = False,
) -> None:
    """Read a text file inside the allowed directories."""

    services = load_services()
    try:
        result = asyncio.run(
            services.reader.read(path, ReadOptions(max_bytes=max_bytes, offset=offset))
        )
    except SortGuardError as exc:
        fail(exc)

    if metadata:
        typer.echo(
            json.dumps(
                {
                    "bytes_read": result.bytes_read,
                    "metadata": result.metadata.model_dump(mode="json"),
                },
                indent=2,
            )
        )
        return
    typer.echo(result.data, nl=False)


def find_duplicates(
    directory: DirOption,
    strategy: DuplicateStrategyOption = DuplicateStrategy.BEST_LOCATION,
    subdirs: SubdirsFlag = False,
    delete: DeleteFlag = False,
) -> None:
    """List duplicate files and optionally delete the extra copies."""

    services = load_services()
    try:
        root = services.validator.validate(directory, require_exists=True).path
        files = scan_directory(root, include_subdirs=subdirs)
    except SortGuardError as exc:
        fail(exc)

    groups = services.duplicates.find_duplicates(files, strategy)
    if not groups:
        typer.echo("No duplicates found.")
        return

    for group in groups:
        typer.secho(
            f"{group.hash[:12]}  {group.size_bytes} bytes x {len(group.files)}",
            fg=typer.colors.CYAN,
        )
        typer.echo(f"  keep   {group.recommended_keep}")
        for path in group.recommended_delete:
            typer.echo(f"  delete {path}")

    if not delete:
        return

    # One manifest per run
    doomed = [path for group in groups for path in group.recommended_delete]
    keep = [group.recommended_keep for group in groups]
    try:
        report = asyncio.run(services.duplicates.delete_files(doomed, keep=keep))
    except SortGuardError as exc:
        fail(exc)

    for error in report.failed:
        typer.secho(f"  failed {error.path}: {error.message}", fg=typer.colors.RED)
    if report.manifest_id:
        typer.secho(f"manifest: {report.manifest_id}", fg=typer.colors.GREEN)
    if report.failed:
        raise typer.Exit(code=1)
