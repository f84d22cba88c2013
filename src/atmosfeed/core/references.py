"""
Reference resolution: handles, pinned-post URLs, AT URIs and rkeys.

Human-readable references are turned into stable identifiers here before
anything is persisted. Only :func:`resolve_handle` (and
:func:`normalize_pin`, which uses it) touch the network; the rest are pure.

Pinned-post URLs have the shape ``<base>/profile/<did-or-handle>/post/<rkey>``.
Splitting the URL path on ``/`` gives ``["", "profile", <id>, "post", <rkey>]``,
so the identifier and rkey live at indices 2 and 4.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from atmosfeed.core.errors import ResolutionError, ValidationError
from atmosfeed.core.logging import get_logger
from atmosfeed.core.models import NO_PIN, PinnedPostReference

if TYPE_CHECKING:
    from atmosfeed.clients.network import NetworkClient

logger = get_logger(__name__)

DID_PREFIX = "did:"
DEFAULT_POST_URL_BASE = "https://bsky.app"

RKEY_PATTERN = re.compile(r"^[A-Za-z0-9-]{1,15}$")


def validate_rkey(rkey: str) -> str:
    """Return *rkey* unchanged or raise :class:`ValidationError`."""
    if not RKEY_PATTERN.match(rkey or ""):
        raise ValidationError(
            "Resource key must be 1-15 characters of letters, digits and dashes",
            field="rkey",
            value=rkey,
        )
    return rkey


def rkey_from_uri(uri: str) -> str:
    """Extract the record key from ``at://<did>/<collection>/<rkey>``."""
    if not uri.startswith("at://"):
        raise ValidationError("Not an AT URI", field="uri", value=uri)

    parts = uri[len("at://"):].split("/")
    if len(parts) != 3 or not all(parts):
        raise ValidationError("AT URI must address a single record", field="uri", value=uri)
    return parts[2]


async def resolve_handle(network: NetworkClient, ref: str) -> str:
    """Turn a handle into a DID.

    Empty references and references that already are DIDs are returned
    unchanged without a network call.
    """
    if not ref or ref.startswith(DID_PREFIX):
        return ref

    did = await network.resolve_handle(ref)
    if not did:
        raise ResolutionError(f"Could not resolve handle {ref!r}").with_context(operation="resolve_handle")

    logger.debug("references.handle_resolved", handle=ref, did=did)
    return did


def encode_pin(did: str, rkey: str, *, base: str = DEFAULT_POST_URL_BASE) -> str | None:
    """Build the canonical post URL, or ``None`` when there is no pin."""
    if not did or not rkey:
        return None
    return f"{base.rstrip('/')}/profile/{did}/post/{rkey}"


def decode_pin(url: str) -> PinnedPostReference:
    """Parse a pinned-post URL.

    An empty URL means "no pin" and decodes to an empty reference.
    """
    if not url:
        return NO_PIN

    segments = urlsplit(url.strip()).path.split("/")
    if len(segments) < 5 or not segments[2] or not segments[4]:
        raise ValidationError(
            "Pinned post must be a URL of the form .../profile/<identifier>/post/<rkey>",
            field="pinned_post_url",
            value=url,
        )

    return PinnedPostReference(did=segments[2], rkey=segments[4])


async def normalize_pin(network: NetworkClient, url: str) -> PinnedPostReference:
    """Decode a pinned-post URL and resolve its identifier to a DID."""
    pin = decode_pin(url)
    if pin.is_empty:
        return pin
    return PinnedPostReference(did=await resolve_handle(network, pin.did), rkey=pin.rkey)


__all__ = [
    "DID_PREFIX",
    "DEFAULT_POST_URL_BASE",
    "RKEY_PATTERN",
    "validate_rkey",
    "rkey_from_uri",
    "resolve_handle",
    "encode_pin",
    "decode_pin",
    "normalize_pin",
]
