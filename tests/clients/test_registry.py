"""Tests for ``atmosfeed.clients.registry`` — the registry REST client."""

from __future__ import annotations

import httpx
import pytest

from atmosfeed.clients.registry import RegistryClient
from atmosfeed.core.errors import AuthenticationError, RemoteWriteError, ResolutionError
from atmosfeed.core.models import PinnedPostReference
from tests._support.fake_backend import ACCESS_JWT, PDS_URL, REGISTRY_URL


def _registry(backend, token: str = ACCESS_JWT) -> RegistryClient:
    return RegistryClient(REGISTRY_URL, PDS_URL, token, transport=backend.transport)


class TestFeeds:
    @pytest.mark.asyncio
    async def test_list_feeds(self, backend):
        backend.add_draft("a", pinned_did="did:plc:x", pinned_rkey="p")
        backend.add_draft("b")

        async with _registry(backend) as registry:
            feeds = await registry.list_feeds()

        assert [f.rkey for f in feeds] == ["a", "b"]
        assert feeds[0].pinned_did == "did:plc:x"
        assert feeds[0].pinned_rkey == "p"

    @pytest.mark.asyncio
    async def test_null_list_is_empty(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"null"))
        async with RegistryClient(REGISTRY_URL, PDS_URL, ACCESS_JWT, transport=transport) as registry:
            assert await registry.list_feeds() == []

    @pytest.mark.asyncio
    async def test_empty_body_is_resolution_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200))
        async with RegistryClient(REGISTRY_URL, PDS_URL, ACCESS_JWT, transport=transport) as registry:
            with pytest.raises(ResolutionError) as exc_info:
                await registry.list_feeds()
        assert exc_info.value.context.http_status == 200
        assert exc_info.value.context.url == f"{REGISTRY_URL}/admin/feeds"

    @pytest.mark.asyncio
    async def test_entry_without_rkey_is_resolution_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[{"pinnedDID": "did:plc:x"}]))
        async with RegistryClient(REGISTRY_URL, PDS_URL, ACCESS_JWT, transport=transport) as registry:
            with pytest.raises(ResolutionError):
                await registry.list_feeds()

    @pytest.mark.asyncio
    async def test_put_feed_sends_blob_and_pin(self, backend):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return backend.handle(request)

        async with RegistryClient(REGISTRY_URL, PDS_URL, ACCESS_JWT, transport=httpx.MockTransport(handler)) as registry:
            await registry.put_feed("trend-1", b"\x00scale", PinnedPostReference("did:plc:x", "p"))

        request = seen[0]
        assert request.method == "PUT"
        assert request.headers["Content-Type"] == "application/octet-stream"
        assert request.headers["Authorization"] == f"Bearer {ACCESS_JWT}"
        assert request.url.params["service"] == PDS_URL
        assert request.url.params["pinnedDID"] == "did:plc:x"
        assert backend.drafts["trend-1"].classifier == b"\x00scale"

    @pytest.mark.asyncio
    async def test_put_without_pin_sends_empty_pin(self, backend):
        async with _registry(backend) as registry:
            await registry.put_feed("trend-1", b"scale")
        assert backend.drafts["trend-1"].pinned_did == ""
        assert backend.drafts["trend-1"].pinned_rkey == ""

    @pytest.mark.asyncio
    async def test_patch_feed_keeps_classifier(self, backend):
        backend.add_draft("trend-1", classifier=b"original")
        async with _registry(backend) as registry:
            await registry.patch_feed("trend-1", PinnedPostReference("did:plc:x", "p"))

        draft = backend.drafts["trend-1"]
        assert draft.classifier == b"original"
        assert (draft.pinned_did, draft.pinned_rkey) == ("did:plc:x", "p")

    @pytest.mark.asyncio
    async def test_delete_missing_feed_is_write_error(self, backend):
        async with _registry(backend) as registry:
            with pytest.raises(RemoteWriteError) as exc_info:
                await registry.delete_feed("ghost")
        assert exc_info.value.context.http_status == 404

    @pytest.mark.asyncio
    async def test_rejected_token_is_auth_error(self, backend):
        async with _registry(backend, token="stale") as registry:
            with pytest.raises(AuthenticationError):
                await registry.list_feeds()

    @pytest.mark.asyncio
    async def test_read_failure_is_resolution_error(self, backend):
        backend.install_fault("GET", "/admin/feeds", status=503)
        async with _registry(backend) as registry:
            with pytest.raises(ResolutionError):
                await registry.list_feeds()


class TestUserdata:
    @pytest.mark.asyncio
    async def test_structured_userdata(self, backend):
        backend.add_draft("a")
        async with _registry(backend) as registry:
            data = await registry.get_structured_userdata()
        assert [f.rkey for f in data.feeds] == ["a"]
        assert data.posts == []

    @pytest.mark.asyncio
    async def test_malformed_structured_userdata_is_resolution_error(self):
        payload = {"feeds": [{"Did": "did:plc:x"}], "posts": None, "feedPosts": None}
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=payload))
        async with RegistryClient(REGISTRY_URL, PDS_URL, ACCESS_JWT, transport=transport) as registry:
            with pytest.raises(ResolutionError) as exc_info:
                await registry.get_structured_userdata()
        assert exc_info.value.cause is not None

    @pytest.mark.asyncio
    async def test_classifier_blob(self, backend):
        backend.add_draft("a", classifier=b"\x01\x02")
        async with _registry(backend) as registry:
            assert await registry.get_classifier_blob("a") == b"\x01\x02"

    @pytest.mark.asyncio
    async def test_delete_userdata(self, backend):
        backend.add_draft("a")
        async with _registry(backend) as registry:
            await registry.delete_userdata()
        assert backend.drafts == {}

    def test_repr_hides_token(self):
        registry = RegistryClient(REGISTRY_URL, PDS_URL, ACCESS_JWT)
        assert ACCESS_JWT not in repr(registry)
