"""
Data model for the registry/network reconciliation.

Wire types (what the registry and the network return) are pydantic models so
that alias handling and validation happen at the boundary. Derived, in-memory
types (:class:`Feed`, :class:`FeedPartition`, :class:`PinnedPostReference`)
are plain frozen dataclasses: they are replaced wholesale, never patched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, get_origin

from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from atmosfeed.clients.network import NetworkClient


# ------------------------------------------------------------------ #
# Session
# ------------------------------------------------------------------ #


@dataclass
class Session:
    """A network session and the credential the registry accepts.

    ``did`` and ``access_jwt`` are only ever set or cleared together, through
    :meth:`authenticate` and :meth:`clear`.

    Attributes:
        handle: Handle (or email) the user logged in with.
        password: App password used for the login.
        service: Network PDS endpoint the session was created against.
        did: Stable account identifier returned by the network.
        access_jwt: Bearer credential for both the network and the registry.
        refresh_jwt: Refresh credential (kept, not used for refresh).
        avatar: Avatar URL fetched after login (empty if none).
        network: Authenticated network client for this session.
    """

    handle: str = ""
    password: str = ""
    service: str = ""
    did: str = ""
    access_jwt: str = ""
    refresh_jwt: str = ""
    avatar: str = ""
    network: NetworkClient | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.did and self.access_jwt)

    def authenticate(self, did: str, access_jwt: str, refresh_jwt: str = "") -> None:
        self.did = did
        self.access_jwt = access_jwt
        self.refresh_jwt = refresh_jwt

    def clear(self) -> None:
        """Tear the session down; every field is emptied."""
        self.handle = ""
        self.password = ""
        self.service = ""
        self.did = ""
        self.access_jwt = ""
        self.refresh_jwt = ""
        self.avatar = ""
        self.network = None

    def __repr__(self) -> str:
        return f"Session(handle={self.handle!r}, did={self.did!r}, authenticated={self.is_authenticated})"


# ------------------------------------------------------------------ #
# Wire types
# ------------------------------------------------------------------ #


class RegistryFeedMetadata(BaseModel):
    """One entry of ``GET /admin/feeds``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    rkey: str
    pinned_did: str = Field(default="", alias="pinnedDID")
    pinned_rkey: str = Field(default="", alias="pinnedRkey")

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_rkey(cls, data: Any) -> Any:
        # Older registries return a plain list of rkeys
        if isinstance(data, str):
            return {"rkey": data}
        return data


class NetworkFeedRecord(BaseModel):
    """A feed generator view as returned by ``app.bsky.feed.getActorFeeds``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    uri: str
    cid: str = ""
    did: str = ""
    display_name: str | None = Field(default=None, alias="displayName")
    description: str | None = None

    @property
    def rkey(self) -> str:
        from atmosfeed.core.references import rkey_from_uri

        return rkey_from_uri(self.uri)


class _GoStruct(BaseModel):
    """Base for registry userdata rows, which are Go structs serialised as JSON."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _null_lists(cls, data: Any) -> Any:
        # Go encodes nil slices (and NULL array columns) as null
        if not isinstance(data, dict):
            return data
        list_keys = set()
        for name, info in cls.model_fields.items():
            if get_origin(info.annotation) is list:
                list_keys.update(key for key in (name, info.alias) if key)
        return {k: ([] if v is None and k in list_keys else v) for k, v in data.items()}


class UserdataFeed(_GoStruct):
    did: str = Field(alias="Did")
    rkey: str = Field(alias="Rkey")
    pinned_did: str = Field(default="", alias="PinnedDid")
    pinned_rkey: str = Field(default="", alias="PinnedRkey")


class UserdataPost(_GoStruct):
    did: str = Field(alias="Did")
    rkey: str = Field(alias="Rkey")
    created_at: datetime | None = Field(default=None, alias="CreatedAt")
    text: str = Field(default="", alias="Text")
    reply: bool = Field(default=False, alias="Reply")
    langs: list[str] = Field(default_factory=list, alias="Langs")
    likes: int = Field(default=0, alias="Likes")


class UserdataFeedPost(_GoStruct):
    feed_did: str = Field(alias="FeedDid")
    feed_rkey: str = Field(alias="FeedRkey")
    post_did: str = Field(alias="PostDid")
    post_rkey: str = Field(alias="PostRkey")
    weight: int = Field(default=0, alias="Weight")


class StructuredUserdata(_GoStruct):
    """Export-only snapshot of ``GET /userdata/structured``."""

    feeds: list[UserdataFeed] = Field(default_factory=list)
    posts: list[UserdataPost] = Field(default_factory=list)
    feed_posts: list[UserdataFeedPost] = Field(default_factory=list, alias="feedPosts")


# ------------------------------------------------------------------ #
# Derived types
# ------------------------------------------------------------------ #


class FeedState(str, Enum):
    UNPUBLISHED = "unpublished"
    PUBLISHED = "published"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class PinnedPostReference:
    """Address of the post pinned to the top of a feed.

    Both fields are set or both are empty; empty means "no pin".
    """

    did: str = ""
    rkey: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.did and not self.rkey


NO_PIN = PinnedPostReference()


@dataclass(frozen=True, slots=True)
class Feed:
    """A feed as the user sees it: registry metadata joined with its record.

    ``title`` is only ever set for published feeds.
    """

    rkey: str
    title: str | None = None
    description: str | None = None
    pinned_post_url: str | None = None
    published: bool = False


@dataclass(frozen=True, slots=True)
class FeedPartition:
    """The reconciled feed lists, in registry order unless re-sorted."""

    published: tuple[Feed, ...] = ()
    unpublished: tuple[Feed, ...] = ()

    @property
    def all(self) -> tuple[Feed, ...]:
        return self.published + self.unpublished

    def find(self, rkey: str) -> Feed | None:
        for feed in self.all:
            if feed.rkey == rkey:
                return feed
        return None

    def state_of(self, rkey: str) -> FeedState:
        feed = self.find(rkey)
        if feed is None:
            return FeedState.DELETED
        return FeedState.PUBLISHED if feed.published else FeedState.UNPUBLISHED


@dataclass
class FeedEdit:
    """Requested changes to an existing feed; ``None`` means unchanged."""

    classifier: bytes | None = None
    pinned_post_url: str | None = None
    title: str | None = None
    description: str | None = None


@dataclass(frozen=True, slots=True)
class Artifact:
    """A named, downloadable piece of exported userdata."""

    name: str
    content: bytes = field(repr=False)
    media_type: str = "application/octet-stream"


__all__ = [
    "Session",
    "RegistryFeedMetadata",
    "NetworkFeedRecord",
    "UserdataFeed",
    "UserdataPost",
    "UserdataFeedPost",
    "StructuredUserdata",
    "FeedState",
    "PinnedPostReference",
    "NO_PIN",
    "Feed",
    "FeedPartition",
    "FeedEdit",
    "Artifact",
]
