"""Centralized settings for the Atmosfeed client.

All fields can be set via ``ATMOSFEED_*`` environment variables (e.g.
``ATMOSFEED_REGISTRY_URL=https://manager.atmosfeed.p8.lu``) or a ``.env``
file in the working directory.

Fields
──────
registry_url        : Atmosfeed registry (manager) base URL
service             : Network PDS endpoint the session is created against
username / password : Handle and app password used by the CLI
feed_generator_did  : DID of the feed generator service published records point at
post_url_base       : Base URL used to render pinned-post links
timeout             : Per-request HTTP timeout in seconds
export_concurrency  : Parallel classifier downloads during an export
feed_order          : ``registry`` (default) or ``title`` ordering of published feeds
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AtmosfeedSettings(BaseSettings):
    """Atmosfeed client configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ATMOSFEED_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Endpoints ────────────────────────────────────────────────
    registry_url: str = Field(default="http://localhost:1337", description="Atmosfeed server URL")
    service: str = Field(default="https://bsky.social", description="PDS URL")

    # ── Credentials ──────────────────────────────────────────────
    username: str = Field(default="", description="Bluesky handle")
    password: str = Field(default="", description="Bluesky password, preferably an app password")

    # ── Publishing ───────────────────────────────────────────────
    feed_generator_did: str = Field(
        default="did:web:atmosfeed-feeds.serveo.net",
        description="DID of the feed generator (typically the hostname of the publicly reachable URL)",
    )
    post_url_base: str = Field(default="https://bsky.app")
    feed_order: Literal["registry", "title"] = "registry"

    # ── Transport ────────────────────────────────────────────────
    timeout: float = Field(default=30.0, gt=0)
    export_concurrency: int = Field(default=4, ge=1)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "WARNING"
    json_logs: bool | None = None


_settings_cache: AtmosfeedSettings | None = None


def get_settings(*, _force_reload: bool = False) -> AtmosfeedSettings:
    """Load, validate, and cache an :class:`AtmosfeedSettings` instance."""
    global _settings_cache

    if _settings_cache is None or _force_reload:
        _settings_cache = AtmosfeedSettings()
    return _settings_cache
