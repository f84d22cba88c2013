"""Tests for ``atmosfeed.core.references`` — handles, pin URLs, AT URIs."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from atmosfeed.core.errors import ResolutionError, ValidationError
from atmosfeed.core.models import NO_PIN, PinnedPostReference
from atmosfeed.core.references import (
    decode_pin,
    encode_pin,
    normalize_pin,
    resolve_handle,
    rkey_from_uri,
    validate_rkey,
)


def _network(did: str = "did:plc:bob") -> MagicMock:
    network = MagicMock()
    network.resolve_handle = AsyncMock(return_value=did)
    return network


class TestResolveHandle:
    @pytest.mark.asyncio
    async def test_did_returned_without_network_call(self):
        network = _network()
        assert await resolve_handle(network, "did:plc:xyz") == "did:plc:xyz"
        network.resolve_handle.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_returned_unchanged(self):
        network = _network()
        assert await resolve_handle(network, "") == ""
        network.resolve_handle.assert_not_called()

    @pytest.mark.asyncio
    async def test_handle_resolved(self):
        network = _network("did:plc:bob")
        assert await resolve_handle(network, "bob.test") == "did:plc:bob"
        network.resolve_handle.assert_awaited_once_with("bob.test")

    @pytest.mark.asyncio
    async def test_empty_answer_is_resolution_error(self):
        with pytest.raises(ResolutionError):
            await resolve_handle(_network(""), "ghost.test")

    @pytest.mark.asyncio
    async def test_network_error_propagates(self):
        network = MagicMock()
        network.resolve_handle = AsyncMock(side_effect=ResolutionError("boom"))
        with pytest.raises(ResolutionError, match="boom"):
            await resolve_handle(network, "bob.test")


class TestEncodePin:
    def test_builds_canonical_url(self):
        assert encode_pin("did:plc:x", "abc") == "https://bsky.app/profile/did:plc:x/post/abc"

    def test_custom_base(self):
        assert encode_pin("did:plc:x", "abc", base="https://example.com/") == (
            "https://example.com/profile/did:plc:x/post/abc"
        )

    @pytest.mark.parametrize("did,rkey", [("", ""), ("did:plc:x", ""), ("", "abc")])
    def test_no_pin_is_none(self, did, rkey):
        assert encode_pin(did, rkey) is None


class TestDecodePin:
    def test_empty_is_no_pin(self):
        assert decode_pin("") == NO_PIN
        assert decode_pin("").is_empty

    def test_handle_url(self):
        pin = decode_pin("https://bsky.app/profile/bob.test/post/3k2a")
        assert pin == PinnedPostReference(did="bob.test", rkey="3k2a")

    def test_trailing_segments_ignored(self):
        pin = decode_pin("https://bsky.app/profile/did:plc:x/post/abc/liked-by")
        assert pin == PinnedPostReference(did="did:plc:x", rkey="abc")

    @pytest.mark.parametrize(
        "url",
        [
            "https://x/profile/did:plc:abc",
            "https://bsky.app/profile/bob.test",
            "https://bsky.app/profile//post/abc",
            "https://bsky.app/profile/bob.test/post/",
            "not a url",
        ],
    )
    def test_malformed_raises(self, url):
        with pytest.raises(ValidationError) as exc_info:
            decode_pin(url)
        assert exc_info.value.field == "pinned_post_url"

    def test_decode_inverts_encode(self):
        url = encode_pin("did:plc:x", "abc")
        assert decode_pin(url) == PinnedPostReference("did:plc:x", "abc")


class TestNormalizePin:
    @pytest.mark.asyncio
    async def test_handle_replaced_with_did(self):
        network = _network("did:plc:bob")
        pin = await normalize_pin(network, "https://bsky.app/profile/bob.test/post/abc")
        assert pin == PinnedPostReference("did:plc:bob", "abc")

    @pytest.mark.asyncio
    async def test_empty_url_skips_network(self):
        network = _network()
        assert (await normalize_pin(network, "")).is_empty
        network.resolve_handle.assert_not_called()


class TestRkeys:
    def test_rkey_from_uri(self):
        assert rkey_from_uri("at://did:plc:x/app.bsky.feed.generator/trend-1") == "trend-1"

    @pytest.mark.parametrize(
        "uri",
        ["https://x/y/z", "at://did:plc:x/app.bsky.feed.generator", "at://did:plc:x//trend-1"],
    )
    def test_rkey_from_bad_uri(self, uri):
        with pytest.raises(ValidationError):
            rkey_from_uri(uri)

    @pytest.mark.parametrize("rkey", ["trend-1", "a", "ABCdef012345678"])
    def test_valid_rkeys(self, rkey):
        assert validate_rkey(rkey) == rkey

    @pytest.mark.parametrize("rkey", ["", "has space", "a" * 16, "under_score"])
    def test_invalid_rkeys(self, rkey):
        with pytest.raises(ValidationError):
            validate_rkey(rkey)
