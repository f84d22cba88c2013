"""
CLI: feed commands — classifier upload and feed publishing.

Every command logs in with the configured credentials, reconciles the feed
lists and runs one controller operation. A failed operation prints the
error and exits with status 1.
"""

from __future__ import annotations

from pathlib import Path

import typer

from atmosfeed.cli.utils import (
    connect,
    console,
    err_console,
    fail_if_error,
    make_controller,
    output_feeds,
    run,
    settings_from,
)
from atmosfeed.clients.registry import FEEDS_PATH
from atmosfeed.core.models import FeedPartition, FeedState
from atmosfeed.ops.result import OperationResult


def list_feeds(
    ctx: typer.Context,
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List published and unpublished feeds."""
    settings = settings_from(ctx)

    async def _list() -> OperationResult[FeedPartition]:
        async with connect(settings) as (session, registry):
            return await make_controller(settings, session, registry).refresh()

    output_feeds(run(_list()), as_json=json_out)


def apply(
    ctx: typer.Context,
    feed_rkey: str = typer.Option(..., "--feed-rkey", "-r", help="Machine-readable key of the feed"),
    feed_classifier: Path = typer.Option(
        ...,
        "--feed-classifier",
        "-c",
        exists=True,
        dir_okay=False,
        readable=True,
        help="Path to the feed classifier to upload",
    ),
    pinned_post_url: str | None = typer.Option(
        None,
        "--pinned-post-url",
        help="Post URL to pin at the top of the feed (empty clears it, omitted keeps it)",
    ),
) -> None:
    """Upload a classifier, creating the feed if it does not exist yet."""
    settings = settings_from(ctx)
    classifier = feed_classifier.read_bytes()

    async def _apply() -> OperationResult[FeedPartition]:
        async with connect(settings) as (session, registry):
            controller = make_controller(settings, session, registry)
            result = await controller.refresh()
            if not result.success:
                return result
            if controller.partition.find(feed_rkey) is None:
                return await controller.create(feed_rkey, classifier, pinned_post_url or "")
            return await controller.replace_classifier(feed_rkey, classifier, pinned_post_url)

    fail_if_error(run(_apply()))
    console.print(f"[green]✓[/green] Applied classifier for feed {feed_rkey}")


def pin(
    ctx: typer.Context,
    feed_rkey: str = typer.Option(..., "--feed-rkey", "-r", help="Machine-readable key of the feed"),
    pinned_post_url: str = typer.Option("", "--pinned-post-url", help="Post URL to pin (empty clears it)"),
) -> None:
    """Change or clear the pinned post of a feed."""
    settings = settings_from(ctx)

    async def _pin() -> OperationResult[FeedPartition]:
        async with connect(settings) as (session, registry):
            controller = make_controller(settings, session, registry)
            result = await controller.refresh()
            if not result.success:
                return result
            return await controller.patch_pin(feed_rkey, pinned_post_url)

    fail_if_error(run(_pin()))
    if pinned_post_url:
        console.print(f"[green]✓[/green] Pinned {pinned_post_url} to feed {feed_rkey}")
    else:
        console.print(f"[green]✓[/green] Cleared pinned post of feed {feed_rkey}")


def publish(
    ctx: typer.Context,
    feed_rkey: str = typer.Option(..., "--feed-rkey", "-r", help="Machine-readable key of the feed"),
    feed_name: str = typer.Option(..., "--feed-name", "-n", help="Human-readable name of the feed"),
    feed_description: str = typer.Option("", "--feed-description", help="Description of the feed"),
    feed_generator_did: str | None = typer.Option(
        None,
        "--feed-generator-did",
        help="DID of the feed generator (defaults to ATMOSFEED_FEED_GENERATOR_DID)",
    ),
) -> None:
    """Publish a feed, or update the name and description of a published one."""
    settings = settings_from(ctx)

    async def _publish() -> OperationResult[FeedPartition]:
        async with connect(settings) as (session, registry):
            controller = make_controller(settings, session, registry)
            result = await controller.refresh()
            if not result.success:
                return result
            if controller.partition.state_of(feed_rkey) == FeedState.PUBLISHED:
                return await controller.republish(feed_rkey, feed_name, feed_description, feed_generator_did)
            return await controller.finalize(feed_rkey, feed_name, feed_description, feed_generator_did)

    fail_if_error(run(_publish()))
    console.print(f"[green]✓[/green] Published feed {feed_rkey} as {feed_name!r}")


def unpublish(
    ctx: typer.Context,
    feed_rkey: str = typer.Option(..., "--feed-rkey", "-r", help="Machine-readable key of the feed"),
) -> None:
    """Remove a feed's record from the network, keeping its classifier."""
    settings = settings_from(ctx)

    async def _unpublish() -> OperationResult[FeedPartition]:
        async with connect(settings) as (session, registry):
            controller = make_controller(settings, session, registry)
            result = await controller.refresh()
            if not result.success:
                return result
            return await controller.unpublish(feed_rkey)

    fail_if_error(run(_unpublish()))
    console.print(f"[green]✓[/green] Unpublished feed {feed_rkey}")


def delete(
    ctx: typer.Context,
    feed_rkey: str = typer.Option(..., "--feed-rkey", "-r", help="Machine-readable key of the feed"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
) -> None:
    """Unpublish a feed if needed and delete its classifier."""
    settings = settings_from(ctx)

    if not force:
        typer.confirm(f"Delete feed {feed_rkey} and its classifier?", abort=True)

    async def _delete() -> OperationResult[FeedPartition]:
        async with connect(settings) as (session, registry):
            controller = make_controller(settings, session, registry)
            result = await controller.refresh()
            if not result.success:
                return result
            return await controller.delete_feed(feed_rkey)

    result = run(_delete())
    if _registry_delete_failed(result):
        err_console.print("[yellow]The feed may have been unpublished already; retry to finish deleting it.[/yellow]")
    fail_if_error(result)
    console.print(f"[green]✓[/green] Deleted feed {feed_rkey}")


def _registry_delete_failed(result: OperationResult) -> bool:
    # Only a failed registry write leaves the feed unpublished but not yet deleted
    err = result.error
    if err is None or err.code != "REMOTE_WRITE_FAILED":
        return False
    return str(err.details.get("url", "")).endswith(FEEDS_PATH)
