"""
CLI: ``atmosfeed-client resolve`` — handle resolution.
"""

from __future__ import annotations

import typer

from atmosfeed.cli.utils import console, err_console, run, settings_from
from atmosfeed.clients.network import NetworkClient
from atmosfeed.core.errors import AtmosfeedError
from atmosfeed.core.references import resolve_handle


def resolve(
    ctx: typer.Context,
    handle: str = typer.Option(..., "--handle", help="Handle/username/domain to resolve (a DID is echoed unchanged)"),
) -> None:
    """Resolve a handle to its DID."""
    settings = settings_from(ctx)

    async def _resolve() -> str:
        async with NetworkClient(settings.service, timeout=settings.timeout) as network:
            return await resolve_handle(network, handle)

    try:
        did = run(_resolve())
    except AtmosfeedError as exc:
        err_console.print(f"[bold red]Could not resolve {handle}:[/bold red] {exc.message}")
        raise typer.Exit(code=1)

    console.print(did)
