"""
CLI utility helpers — settings resolution, session management and output.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, TypeVar

import httpx
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from atmosfeed.clients.registry import RegistryClient
from atmosfeed.core.errors import ConfigError
from atmosfeed.core.models import Feed, FeedPartition, Session
from atmosfeed.core.reader import by_title
from atmosfeed.core.settings import AtmosfeedSettings, get_settings
from atmosfeed.ops.feeds import FeedController
from atmosfeed.ops.result import OperationResult
from atmosfeed.ops.session import derive_registry_client, login, logout

T = TypeVar("T")

console = Console()
err_console = Console(stderr=True)


# ── Settings / session helpers ───────────────────────────────────────────


def settings_from(ctx: typer.Context | None) -> AtmosfeedSettings:
    """Settings with the root command's global options applied."""
    if ctx is not None and isinstance(ctx.obj, AtmosfeedSettings):
        return ctx.obj
    return get_settings()


def run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


@asynccontextmanager
async def connect(
    settings: AtmosfeedSettings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[tuple[Session, RegistryClient]]:
    """Log in and yield the session plus a registry client; always log out."""
    result = await login(
        settings.username,
        settings.password,
        settings.service,
        timeout=settings.timeout,
        transport=transport,
    )
    fail_if_error(result)
    session = result.data

    try:
        registry = derive_registry_client(
            session,
            settings.registry_url,
            timeout=settings.timeout,
            transport=transport,
        )
    except ConfigError as exc:
        await logout(session)
        err_console.print(f"[bold red]Error[/bold red] (CONFIG_INVALID): {escape(exc.message)}")
        raise typer.Exit(code=1)

    try:
        yield session, registry
    finally:
        await registry.aclose()
        await logout(session)


def make_controller(
    settings: AtmosfeedSettings,
    session: Session,
    registry: RegistryClient,
) -> FeedController:
    return FeedController(
        session,
        registry,
        feed_generator_did=settings.feed_generator_did,
        post_url_base=settings.post_url_base,
        sort_key=by_title if settings.feed_order == "title" else None,
    )


# ── Output helpers ───────────────────────────────────────────────────────


def fail_if_error(result: OperationResult) -> None:
    """Print the error of a failed result and exit with status 1."""
    if result.success:
        return

    err = result.error
    msg = err.message if err else "Unknown error"
    code = err.code if err else "ERROR"
    err_console.print(f"[bold red]Error[/bold red] ({code}): {escape(msg)}")
    if err is not None and err.logged_out:
        err_console.print("[dim]Logged out. Check the username and app password.[/dim]")
    raise typer.Exit(code=1)


def output_feeds(result: OperationResult[FeedPartition], *, as_json: bool = False) -> None:
    """Render the reconciled feed lists."""
    fail_if_error(result)
    partition = result.data or FeedPartition()

    if as_json:
        payload = {
            "published": [asdict(f) for f in partition.published],
            "unpublished": [asdict(f) for f in partition.unpublished],
        }
        console.print_json(json.dumps(payload))
        return

    if not partition.all:
        console.print("[dim]No feeds.[/dim]")
        return

    table = Table(title="Feeds", show_lines=False, pad_edge=False)
    for col in ("rkey", "state", "title", "description", "pinned post"):
        table.add_column(col, overflow="fold")
    for feed in partition.all:
        table.add_row(*_feed_row(feed))
    console.print(table)


def _feed_row(feed: Feed) -> list[str]:
    return [
        feed.rkey,
        "[green]published[/green]" if feed.published else "[yellow]unpublished[/yellow]",
        feed.title or "",
        feed.description or "",
        feed.pinned_post_url or "",
    ]
