"""
REST client for the Atmosfeed registry (the manager API).

The registry validates the bearer token itself against the network named in
the ``service`` query parameter, so every request carries both. Construct it
through :func:`atmosfeed.ops.session.derive_registry_client` rather than
directly.
"""

from __future__ import annotations

import httpx

from atmosfeed.clients._http import decode, json_list, send
from atmosfeed.core.logging import get_logger
from atmosfeed.core.models import (
    NO_PIN,
    PinnedPostReference,
    RegistryFeedMetadata,
    StructuredUserdata,
)

logger = get_logger(__name__)

CLASSIFIER_RESOURCE = "classifier"
FEEDS_PATH = "/admin/feeds"


class RegistryClient:
    """Async client for the registry's ``/admin`` and ``/userdata`` endpoints."""

    def __init__(
        self,
        base_url: str,
        service: str,
        access_jwt: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.service = service
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {access_jwt}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> RegistryClient:
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _params(self, **extra: str) -> dict[str, str]:
        return {"service": self.service, **extra}

    @staticmethod
    def _pin_params(pin: PinnedPostReference) -> dict[str, str]:
        return {"pinnedDID": pin.did, "pinnedRkey": pin.rkey}

    # ── Feeds ────────────────────────────────────────────────────────

    async def list_feeds(self) -> list[RegistryFeedMetadata]:
        response = await send(
            lambda: self._http.get(FEEDS_PATH, params=self._params()),
            "Could not fetch feeds from the registry",
            write=False,
        )
        return decode(
            response,
            "Could not read feeds from the registry",
            lambda body: [RegistryFeedMetadata.model_validate(entry) for entry in json_list(body)],
        )

    async def put_feed(self, rkey: str, classifier: bytes, pin: PinnedPostReference = NO_PIN) -> None:
        """Create a feed or overwrite its classifier (and pin)."""
        await send(
            lambda: self._http.put(
                FEEDS_PATH,
                params=self._params(rkey=rkey, **self._pin_params(pin)),
                content=classifier,
                headers={"Content-Type": "application/octet-stream"},
            ),
            f"Could not upload classifier for {rkey!r}",
            write=True,
        )
        logger.debug("registry.feed_uploaded", rkey=rkey, size=len(classifier))

    async def patch_feed(self, rkey: str, pin: PinnedPostReference = NO_PIN) -> None:
        """Update a feed's metadata without touching its classifier."""
        await send(
            lambda: self._http.patch(FEEDS_PATH, params=self._params(rkey=rkey, **self._pin_params(pin))),
            f"Could not update feed {rkey!r}",
            write=True,
        )

    async def delete_feed(self, rkey: str) -> None:
        await send(
            lambda: self._http.delete(FEEDS_PATH, params=self._params(rkey=rkey)),
            f"Could not delete feed {rkey!r}",
            write=True,
        )

    # ── Userdata ─────────────────────────────────────────────────────

    async def get_structured_userdata(self) -> StructuredUserdata:
        response = await send(
            lambda: self._http.get("/userdata/structured", params=self._params()),
            "Could not fetch structured userdata",
            write=False,
        )
        return decode(
            response,
            "Could not read structured userdata",
            lambda body: StructuredUserdata.model_validate(body or {}),
        )

    async def get_classifier_blob(self, rkey: str) -> bytes:
        response = await send(
            lambda: self._http.get(
                "/userdata/blob",
                params=self._params(resource=CLASSIFIER_RESOURCE, rkey=rkey),
            ),
            f"Could not fetch classifier for {rkey!r}",
            write=False,
        )
        return response.content

    async def delete_userdata(self) -> None:
        await send(
            lambda: self._http.delete("/userdata", params=self._params()),
            "Could not delete userdata",
            write=True,
        )

    def __repr__(self) -> str:
        return f"RegistryClient(base_url={self.base_url!r}, service={self.service!r})"
