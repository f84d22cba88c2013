"""
CLI: ``export-userdata`` and ``delete-userdata``.
"""

from __future__ import annotations

from pathlib import Path

import typer

from atmosfeed.cli.utils import connect, console, fail_if_error, run, settings_from
from atmosfeed.core.models import Artifact
from atmosfeed.ops.result import OperationResult
from atmosfeed.ops.userdata import delete_userdata, export_userdata, write_artifacts


def export_userdata_command(
    ctx: typer.Context,
    out: Path = typer.Option(
        Path("atmosfeed-userdata"), "--out", "-o", file_okay=False, help="Directory to export userdata to"
    ),
) -> None:
    """Export the structured userdata and every classifier."""
    settings = settings_from(ctx)

    async def _export() -> OperationResult[list[Artifact]]:
        async with connect(settings) as (session, registry):
            return await export_userdata(registry, session, concurrency=settings.export_concurrency)

    result = run(_export())
    fail_if_error(result)

    for path in write_artifacts(result.data or [], out):
        console.print(f"[dim]wrote[/dim] {path}")
    console.print(f"[green]✓[/green] Exported userdata to {out}")


def delete_userdata_command(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
) -> None:
    """Delete all userdata held by the registry; published feed records stay."""
    settings = settings_from(ctx)

    if not force:
        typer.confirm("Delete all of your userdata from the Atmosfeed server?", abort=True)

    async def _delete() -> OperationResult[None]:
        async with connect(settings) as (session, registry):
            return await delete_userdata(registry, session)

    fail_if_error(run(_delete()))
    console.print("[green]✓[/green] Deleted userdata")
