"""
Root Typer application for the atmosfeed-client CLI.

Global options override the matching ``ATMOSFEED_*`` settings and are
handed to the commands through ``ctx.obj``.
"""

from __future__ import annotations

import typer
from typer import Typer

from atmosfeed.core.logging import bind_context, clear_context, configure_logging
from atmosfeed.core.settings import get_settings

app = Typer(
    name="atmosfeed-client",
    help="atmosfeed-client — manage Atmosfeed classifiers, feeds and userdata.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("atmosfeed-client")
        except PackageNotFoundError:
            from atmosfeed import __version__ as v
        typer.echo(f"atmosfeed-client {v}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    atmosfeed_url: str | None = typer.Option(None, "--atmosfeed-url", help="Atmosfeed server URL"),
    pds_url: str | None = typer.Option(None, "--pds-url", help="PDS URL"),
    username: str | None = typer.Option(None, "--username", "-u", help="Bluesky username"),
    password: str | None = typer.Option(
        None, "--password", "-p", help="Bluesky password, preferably an app password"
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)"),
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """atmosfeed-client — classifiers, feed publishing and userdata."""
    overrides = {
        "registry_url": atmosfeed_url,
        "service": pds_url,
        "username": username,
        "password": password,
        "log_level": log_level,
    }
    settings = get_settings().model_copy(update={k: v for k, v in overrides.items() if v is not None})
    configure_logging(level=settings.log_level, json_format=settings.json_logs)
    clear_context()
    bind_context(command=ctx.invoked_subcommand)
    ctx.obj = settings


# ── Command registration ─────────────────────────────────────────────────

from atmosfeed.cli import feeds, identity, userdata  # noqa: E402

app.command("list")(feeds.list_feeds)
app.command("apply")(feeds.apply)
app.command("pin")(feeds.pin)
app.command("publish")(feeds.publish)
app.command("unpublish")(feeds.unpublish)
app.command("delete")(feeds.delete)
app.command("resolve")(identity.resolve)
app.command("export-userdata")(userdata.export_userdata_command)
app.command("delete-userdata")(userdata.delete_userdata_command)
