"""
Feed Lifecycle Controller.

Drives each feed through its states::

    create ──► UNPUBLISHED ──finalize──► PUBLISHED ──republish──┐
                   ▲  │                     │  ▲                │
                   │  └──────deleteFeed─┐   │  └────────────────┘
                   └────unpublish───────┼───┘
                                        ▼
                                     DELETED

Every public operation follows the same shape: set ``busy``, check the
precondition against the last reconciled :class:`FeedPartition`, perform
the remote write(s), re-read both sources, replace the partition wholesale,
clear ``busy``. There are no retries. On failure the partition keeps its
last reconciled value and the error goes to the error channel; an
authentication failure also tears down the session.

``busy`` is a caller contract: the controller does not queue or reject a
second call, it only logs the overlap.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from atmosfeed.clients.network import FEED_GENERATOR_COLLECTION, NetworkClient, feed_generator_record
from atmosfeed.clients.registry import RegistryClient
from atmosfeed.core.errors import AuthenticationError, InvalidStateError, ResolutionError
from atmosfeed.core.logging import LogContext, get_logger
from atmosfeed.core.models import Feed, FeedEdit, FeedPartition, FeedState, Session
from atmosfeed.core.reader import SortKey, list_feeds
from atmosfeed.core.references import DEFAULT_POST_URL_BASE, normalize_pin, validate_rkey
from atmosfeed.ops.result import ErrorChannel, OperationResult, start_timer
from atmosfeed.ops.session import report_failure

logger = get_logger(__name__)

Step = Callable[[], Awaitable[Any]]

EXISTING = (FeedState.UNPUBLISHED, FeedState.PUBLISHED)


class FeedController:
    """Owns the reconciled feed lists for one session."""

    def __init__(
        self,
        session: Session,
        registry: RegistryClient,
        *,
        feed_generator_did: str,
        post_url_base: str = DEFAULT_POST_URL_BASE,
        sort_key: SortKey | None = None,
        on_error: ErrorChannel | None = None,
    ) -> None:
        self.session = session
        self.registry = registry
        self.feed_generator_did = feed_generator_did
        self.post_url_base = post_url_base
        self.sort_key = sort_key
        self.on_error = on_error

        self._partition = FeedPartition()
        self._busy = False

    @property
    def partition(self) -> FeedPartition:
        return self._partition

    @property
    def published(self) -> tuple[Feed, ...]:
        return self._partition.published

    @property
    def unpublished(self) -> tuple[Feed, ...]:
        return self._partition.unpublished

    @property
    def busy(self) -> bool:
        return self._busy

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    async def refresh(self) -> OperationResult[FeedPartition]:
        """Re-read both sources without writing anything."""
        return await self._run("refresh", None, [])

    async def create(
        self,
        rkey: str,
        classifier: bytes,
        pinned_post_url: str = "",
    ) -> OperationResult[FeedPartition]:
        """Upload a classifier as a new, unpublished feed."""

        async def step() -> None:
            validate_rkey(rkey)
            pin = await normalize_pin(self._network(), pinned_post_url)
            await self.registry.put_feed(rkey, classifier, pin)

        return await self._run("create", rkey, [step])

    async def patch_pin(self, rkey: str, pinned_post_url: str) -> OperationResult[FeedPartition]:
        """Change (or clear, with ``""``) the pinned post of a feed."""
        return await self._run("patch_pin", rkey, [self._patch_pin_step(rkey, pinned_post_url)])

    async def replace_classifier(
        self,
        rkey: str,
        classifier: bytes,
        pinned_post_url: str | None = None,
    ) -> OperationResult[FeedPartition]:
        """Overwrite a feed's classifier; ``None`` keeps the current pin."""
        return await self._run(
            "replace_classifier", rkey, [self._replace_step(rkey, classifier, pinned_post_url)]
        )

    async def finalize(
        self,
        rkey: str,
        name: str,
        description: str,
        generator_did: str | None = None,
    ) -> OperationResult[FeedPartition]:
        """Publish an unpublished feed by creating its record on the network."""

        async def step() -> None:
            self._require(rkey, FeedState.UNPUBLISHED)
            record = feed_generator_record(generator_did or self.feed_generator_did, name, description)
            await self._network().create_record(self.session.did, FEED_GENERATOR_COLLECTION, rkey, record)

        return await self._run("finalize", rkey, [step])

    async def republish(
        self,
        rkey: str,
        name: str,
        description: str,
        generator_did: str | None = None,
    ) -> OperationResult[FeedPartition]:
        """Replace a published feed's record, guarded by the CID just read."""
        return await self._run(
            "republish", rkey, [self._republish_step(rkey, name, description, generator_did)]
        )

    async def unpublish(self, rkey: str) -> OperationResult[FeedPartition]:
        """Delete a feed's network record; the registry draft stays."""

        async def step() -> None:
            self._require(rkey, FeedState.PUBLISHED)
            await self._delete_record(rkey)

        return await self._run("unpublish", rkey, [step])

    async def delete_feed(self, rkey: str) -> OperationResult[FeedPartition]:
        """Unpublish if needed, then delete the registry draft and blob.

        The two writes are not atomic. If the registry delete fails after the
        record was removed, the feed is left unpublished and the delete can
        simply be retried.
        """

        async def step() -> None:
            state = self._require(rkey, *EXISTING)
            if state == FeedState.PUBLISHED:
                await self._delete_record(rkey)
                logger.info("feeds.unpublished_before_delete", rkey=rkey)
            await self.registry.delete_feed(rkey)

        return await self._run("delete_feed", rkey, [step])

    async def edit(self, rkey: str, changes: FeedEdit) -> OperationResult[FeedPartition]:
        """Apply only the fields of *changes* that differ from the current feed.

        A new classifier is uploaded together with the (new or current) pin;
        otherwise a changed pin is patched on its own. Name and description
        are only re-sent for published feeds, through :meth:`republish`.
        """
        current = self._partition.find(rkey)
        if current is None:
            return await self._run("edit", rkey, [self._require_step(rkey, *EXISTING)])

        steps: list[Step] = []

        current_pin = current.pinned_post_url or ""
        pin_changed = changes.pinned_post_url is not None and changes.pinned_post_url != current_pin

        if changes.classifier is not None:
            pin_url = changes.pinned_post_url if pin_changed else None
            steps.append(self._replace_step(rkey, changes.classifier, pin_url))
        elif pin_changed:
            steps.append(self._patch_pin_step(rkey, changes.pinned_post_url or ""))

        if current.published:
            name = changes.title if changes.title is not None else current.title or ""
            description = changes.description if changes.description is not None else current.description or ""
            if name != (current.title or "") or description != (current.description or ""):
                steps.append(self._republish_step(rkey, name, description, None))

        return await self._run("edit", rkey, steps)

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #

    def _require_step(self, rkey: str, *states: FeedState) -> Step:
        async def step() -> None:
            self._require(rkey, *states)

        return step

    def _patch_pin_step(self, rkey: str, pinned_post_url: str) -> Step:
        async def step() -> None:
            self._require(rkey, *EXISTING)
            pin = await normalize_pin(self._network(), pinned_post_url)
            await self.registry.patch_feed(rkey, pin)

        return step

    def _replace_step(self, rkey: str, classifier: bytes, pinned_post_url: str | None) -> Step:
        async def step() -> None:
            self._require(rkey, *EXISTING)
            if pinned_post_url is None:
                feed = self._partition.find(rkey)
                url = (feed.pinned_post_url or "") if feed else ""
            else:
                url = pinned_post_url
            pin = await normalize_pin(self._network(), url)
            await self.registry.put_feed(rkey, classifier, pin)

        return step

    def _republish_step(self, rkey: str, name: str, description: str, generator_did: str | None) -> Step:
        async def step() -> None:
            self._require(rkey, FeedState.PUBLISHED)
            network = self._network()

            existing = await network.get_record(self.session.did, FEED_GENERATOR_COLLECTION, rkey)
            swap_record = existing.get("cid")
            if not swap_record:
                raise ResolutionError("Existing record has no CID to guard the replacement").with_context(rkey=rkey)

            record = feed_generator_record(generator_did or self.feed_generator_did, name, description)
            created_at = (existing.get("value") or {}).get("createdAt")
            if created_at:
                record["createdAt"] = created_at

            await network.put_record(
                self.session.did,
                FEED_GENERATOR_COLLECTION,
                rkey,
                record,
                swap_record=swap_record,
            )

        return step

    async def _delete_record(self, rkey: str) -> None:
        await self._network().delete_record(self.session.did, FEED_GENERATOR_COLLECTION, rkey)

    # ------------------------------------------------------------------ #
    # Plumbing
    # ------------------------------------------------------------------ #

    def _network(self) -> NetworkClient:
        if not self.session.is_authenticated or self.session.network is None:
            raise AuthenticationError("Not logged in")
        return self.session.network

    def _require(self, rkey: str, *states: FeedState) -> FeedState:
        state = self._partition.state_of(rkey)
        if state not in states:
            allowed = " or ".join(s.value for s in states)
            raise InvalidStateError(
                f"Feed {rkey!r} is {state.value}, expected {allowed}",
                field="rkey",
                value=rkey,
            )
        return state

    async def _read(self) -> FeedPartition:
        return await list_feeds(
            self.registry,
            self._network(),
            self.session.did,
            post_url_base=self.post_url_base,
            sort_key=self.sort_key,
        )

    async def _run(self, operation: str, rkey: str | None, steps: list[Step]) -> OperationResult[FeedPartition]:
        if self._busy:
            logger.warning("feeds.busy_overlap", operation=operation, rkey=rkey)

        self._busy = True
        timer = start_timer()
        try:
            async with LogContext(operation=operation, rkey=rkey):
                for step in steps:
                    await step()
                partition = await self._read()
        except Exception as exc:
            return await report_failure(
                self.session, exc, self.on_error, operation=operation, elapsed_ms=timer.elapsed_ms
            )
        finally:
            self._busy = False

        self._partition = partition
        logger.info(
            "feeds.refreshed",
            operation=operation,
            rkey=rkey,
            published=len(partition.published),
            unpublished=len(partition.unpublished),
        )
        return OperationResult.ok(partition, elapsed_ms=timer.elapsed_ms)


__all__ = ["FeedController"]
