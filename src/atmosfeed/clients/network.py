"""
XRPC client for the network (an AT Protocol PDS such as ``bsky.social``).

Only the handful of procedures the feed lifecycle needs are wrapped. The
client is unauthenticated until :meth:`NetworkClient.create_session`
succeeds; from then on every call carries the session's access JWT.

Example::

    network = NetworkClient("https://bsky.social")
    auth = await network.create_session("alice.bsky.social", "app-password")
    records = await network.list_feed_records(auth["did"])
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import httpx

from atmosfeed.clients._http import decode, json_list, json_object, send
from atmosfeed.core.errors import (
    AtmosfeedError,
    AuthenticationError,
    RecordConflictError,
    ResolutionError,
)
from atmosfeed.core.logging import get_logger
from atmosfeed.core.models import NetworkFeedRecord

logger = get_logger(__name__)

FEED_GENERATOR_COLLECTION = "app.bsky.feed.generator"

LIST_PAGE_LIMIT = 100


def feed_generator_record(
    generator_did: str,
    display_name: str,
    description: str,
    created_at: datetime | None = None,
) -> dict[str, Any]:
    """Build an ``app.bsky.feed.generator`` record value."""
    return {
        "$type": FEED_GENERATOR_COLLECTION,
        "did": generator_did,
        "displayName": display_name,
        "description": description,
        "createdAt": (created_at or datetime.now(UTC)).isoformat().replace("+00:00", "Z"),
    }


class NetworkClient:
    """Async XRPC client bound to one PDS endpoint."""

    def __init__(
        self,
        service: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.service = service.rstrip("/")
        self._access_jwt = ""
        self._http = httpx.AsyncClient(
            base_url=f"{self.service}/xrpc/",
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> NetworkClient:
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def authenticated(self) -> bool:
        return bool(self._access_jwt)

    def _headers(self) -> dict[str, str]:
        if not self._access_jwt:
            return {}
        return {"Authorization": f"Bearer {self._access_jwt}"}

    async def _query(self, nsid: str, params: dict[str, Any], message: str) -> dict[str, Any]:
        response = await send(
            lambda: self._http.get(nsid, params=params, headers=self._headers()),
            message,
            write=False,
        )
        return decode(response, message, json_object)

    async def _procedure(self, nsid: str, body: dict[str, Any], message: str) -> dict[str, Any]:
        response = await send(
            lambda: self._http.post(nsid, json=body, headers=self._headers()),
            message,
            write=True,
        )
        if not response.content:
            return {}
        return decode(response, message, json_object)

    # ── Identity ─────────────────────────────────────────────────────

    async def create_session(self, identifier: str, password: str) -> dict[str, Any]:
        """Log in and keep the returned access JWT for subsequent calls.

        Returns the raw session (``did``, ``handle``, ``accessJwt``,
        ``refreshJwt``). Any failure is an :class:`AuthenticationError`.
        """
        try:
            session = await self._procedure(
                "com.atproto.server.createSession",
                {"identifier": identifier, "password": password},
                "Could not create session",
            )
        except AuthenticationError:
            raise
        except AtmosfeedError as exc:
            raise AuthenticationError(exc.message, context=exc.context, cause=exc) from exc

        self._access_jwt = session.get("accessJwt", "")
        if not self._access_jwt or not session.get("did"):
            self._access_jwt = ""
            raise AuthenticationError("Session response did not contain a DID and access token")

        logger.debug("network.session_created", did=session["did"])
        return session

    def forget_session(self) -> None:
        self._access_jwt = ""

    async def get_profile(self, actor: str) -> dict[str, Any]:
        """Fetch ``app.bsky.actor.getProfile``; failures are authentication errors."""
        try:
            return await self._query("app.bsky.actor.getProfile", {"actor": actor}, "Could not fetch profile")
        except AuthenticationError:
            raise
        except AtmosfeedError as exc:
            raise AuthenticationError(exc.message, context=exc.context, cause=exc) from exc

    async def resolve_handle(self, handle: str) -> str:
        body = await self._query(
            "com.atproto.identity.resolveHandle",
            {"handle": handle},
            f"Could not resolve handle {handle!r}",
        )
        return body.get("did", "")

    # ── Feed generator records ───────────────────────────────────────

    async def list_feed_records(self, actor: str) -> list[NetworkFeedRecord]:
        """Return every feed generator owned by *actor*, following cursors."""
        records: list[NetworkFeedRecord] = []
        cursor: str | None = None

        while True:
            params: dict[str, Any] = {"actor": actor, "limit": LIST_PAGE_LIMIT}
            if cursor:
                params["cursor"] = cursor

            body = await self._query("app.bsky.feed.getActorFeeds", params, "Could not fetch feeds from the network")
            try:
                page = [NetworkFeedRecord.model_validate(feed) for feed in json_list(body.get("feeds"))]
            except ValueError as exc:
                raise ResolutionError("Could not read feeds from the network: malformed response", cause=exc) from exc
            records.extend(page)

            cursor = body.get("cursor")
            if not cursor or not page:
                break

        return records

    async def get_record(self, repo: str, collection: str, rkey: str) -> dict[str, Any]:
        """Fetch one record; the result carries ``uri``, ``cid`` and ``value``."""
        return await self._query(
            "com.atproto.repo.getRecord",
            {"repo": repo, "collection": collection, "rkey": rkey},
            f"Could not read record {collection}/{rkey}",
        )

    async def create_record(
        self,
        repo: str,
        collection: str,
        rkey: str,
        record: dict[str, Any],
    ) -> dict[str, Any]:
        return await self._procedure(
            "com.atproto.repo.createRecord",
            {"repo": repo, "collection": collection, "rkey": rkey, "record": record},
            f"Could not create record {collection}/{rkey}",
        )

    async def put_record(
        self,
        repo: str,
        collection: str,
        rkey: str,
        record: dict[str, Any],
        *,
        swap_record: str | None,
    ) -> dict[str, Any]:
        """Replace a record.

        *swap_record* is the CID the caller last read. The PDS rejects the
        write with ``InvalidSwap`` if the record changed since, which is
        raised as :class:`RecordConflictError`.
        """
        body: dict[str, Any] = {
            "repo": repo,
            "collection": collection,
            "rkey": rkey,
            "record": record,
        }
        if swap_record is not None:
            body["swapRecord"] = swap_record

        try:
            return await self._procedure(
                "com.atproto.repo.putRecord", body, f"Could not replace record {collection}/{rkey}"
            )
        except AtmosfeedError as exc:
            if exc.context.xrpc_error == "InvalidSwap":
                raise RecordConflictError(
                    f"Record {collection}/{rkey} changed since it was read",
                    context=exc.context,
                    cause=exc,
                ) from exc
            raise

    async def delete_record(self, repo: str, collection: str, rkey: str) -> None:
        await self._procedure(
            "com.atproto.repo.deleteRecord",
            {"repo": repo, "collection": collection, "rkey": rkey},
            f"Could not delete record {collection}/{rkey}",
        )
