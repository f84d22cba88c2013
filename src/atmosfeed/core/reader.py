"""
Feed Registry Reader: reconcile registry drafts with network records.

The registry is authoritative for whether a feed exists; the network decides
whether it is published. :func:`partition_feeds` is a pure function of two
freshly fetched lists: build an rkey→record map, then walk the registry
entries in order and split them into published and unpublished feeds. A
network record without a registry entry is dropped.

Ordering:
    Registry order is kept by default. Pass ``sort_key=by_title`` to sort the
    published list alphabetically by title instead.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from atmosfeed.core.errors import AtmosfeedError, ResolutionError
from atmosfeed.core.logging import get_logger
from atmosfeed.core.models import Feed, FeedPartition, NetworkFeedRecord, RegistryFeedMetadata
from atmosfeed.core.references import DEFAULT_POST_URL_BASE, encode_pin

if TYPE_CHECKING:
    from atmosfeed.clients.network import NetworkClient
    from atmosfeed.clients.registry import RegistryClient

logger = get_logger(__name__)

SortKey = Callable[[Feed], object]


def by_title(feed: Feed) -> str:
    """Sort key reproducing the alphabetical-by-title ordering."""
    return (feed.title or "").casefold()


def partition_feeds(
    metadata: Iterable[RegistryFeedMetadata],
    records: Iterable[NetworkFeedRecord],
    *,
    post_url_base: str = DEFAULT_POST_URL_BASE,
    sort_key: SortKey | None = None,
) -> FeedPartition:
    """Join registry metadata with network records on rkey."""
    by_rkey: dict[str, NetworkFeedRecord] = {}
    for record in records:
        try:
            by_rkey[record.rkey] = record
        except AtmosfeedError:
            logger.warning("reader.record_uri_invalid", uri=record.uri)

    published: list[Feed] = []
    unpublished: list[Feed] = []

    for entry in metadata:
        pinned_post_url = encode_pin(entry.pinned_did, entry.pinned_rkey, base=post_url_base)
        record = by_rkey.get(entry.rkey)

        if record is None:
            unpublished.append(Feed(rkey=entry.rkey, pinned_post_url=pinned_post_url))
            continue

        published.append(
            Feed(
                rkey=entry.rkey,
                # A published feed always has a title
                title=record.display_name or entry.rkey,
                description=record.description,
                pinned_post_url=pinned_post_url,
                published=True,
            )
        )

    if sort_key is not None:
        published.sort(key=sort_key)

    return FeedPartition(published=tuple(published), unpublished=tuple(unpublished))


async def list_feeds(
    registry: RegistryClient,
    network: NetworkClient,
    did: str,
    *,
    post_url_base: str = DEFAULT_POST_URL_BASE,
    sort_key: SortKey | None = None,
) -> FeedPartition:
    """Fetch both sources and reconcile them.

    Raises:
        ResolutionError: Either fetch failed.
        AuthenticationError: Either service rejected the credential.
    """
    metadata = await registry.list_feeds()

    try:
        records = await network.list_feed_records(did)
    except ResolutionError as exc:
        raise exc.with_context(operation="list_feeds", did=did)

    partition = partition_feeds(metadata, records, post_url_base=post_url_base, sort_key=sort_key)

    logger.debug(
        "reader.feeds_reconciled",
        registry_entries=len(metadata),
        network_records=len(records),
        published=len(partition.published),
        unpublished=len(partition.unpublished),
    )
    return partition


__all__ = ["SortKey", "by_title", "partition_feeds", "list_feeds"]
