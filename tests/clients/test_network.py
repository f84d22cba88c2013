"""Tests for ``atmosfeed.clients.network`` — XRPC over httpx."""

from __future__ import annotations

import httpx
import pytest

from atmosfeed.clients.network import FEED_GENERATOR_COLLECTION, NetworkClient, feed_generator_record
from atmosfeed.core.errors import AuthenticationError, RecordConflictError, RemoteWriteError, ResolutionError
from tests._support.fake_backend import ACCESS_JWT, DID, HANDLE, PASSWORD, PDS_URL


async def _client(backend) -> NetworkClient:
    client = NetworkClient(PDS_URL, transport=backend.transport)
    await client.create_session(HANDLE, PASSWORD)
    return client


class TestSession:
    @pytest.mark.asyncio
    async def test_create_session_keeps_token(self, backend):
        async with NetworkClient(PDS_URL, transport=backend.transport) as client:
            session = await client.create_session(HANDLE, PASSWORD)
            assert session["did"] == DID
            assert session["accessJwt"] == ACCESS_JWT
            assert client.authenticated

    @pytest.mark.asyncio
    async def test_wrong_password(self, backend):
        async with NetworkClient(PDS_URL, transport=backend.transport) as client:
            with pytest.raises(AuthenticationError) as exc_info:
                await client.create_session(HANDLE, "wrong")
            assert exc_info.value.context.http_status == 401
            assert exc_info.value.context.xrpc_error == "AuthenticationRequired"
            assert not client.authenticated

    @pytest.mark.asyncio
    async def test_server_error_on_login_is_auth_error(self, backend):
        backend.install_fault("POST", "com.atproto.server.createSession", status=502)
        async with NetworkClient(PDS_URL, transport=backend.transport) as client:
            with pytest.raises(AuthenticationError):
                await client.create_session(HANDLE, PASSWORD)

    @pytest.mark.asyncio
    async def test_profile_failure_is_auth_error(self, backend):
        backend.install_fault("GET", "app.bsky.actor.getProfile", status=500)
        client = await _client(backend)
        with pytest.raises(AuthenticationError):
            await client.get_profile(HANDLE)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_forget_session_drops_bearer(self, backend):
        client = await _client(backend)
        client.forget_session()
        with pytest.raises(AuthenticationError):
            await client.list_feed_records(DID)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_transport_error_on_read_is_resolution_error(self):
        def boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with NetworkClient(PDS_URL, transport=httpx.MockTransport(boom)) as client:
            with pytest.raises(ResolutionError):
                await client.resolve_handle("bob.test")


class TestIdentity:
    @pytest.mark.asyncio
    async def test_resolve_handle(self, backend):
        async with NetworkClient(PDS_URL, transport=backend.transport) as client:
            assert await client.resolve_handle("bob.test") == "did:plc:bob"

    @pytest.mark.asyncio
    async def test_unknown_handle(self, backend):
        async with NetworkClient(PDS_URL, transport=backend.transport) as client:
            with pytest.raises(ResolutionError) as exc_info:
                await client.resolve_handle("ghost.test")
            assert exc_info.value.context.url == f"{PDS_URL}/xrpc/com.atproto.identity.resolveHandle"


class TestFeedRecords:
    @pytest.mark.asyncio
    async def test_list_follows_cursor(self, backend):
        backend.page_size = 2
        for i in range(5):
            backend.add_record(f"feed-{i}", f"Feed {i}")

        client = await _client(backend)
        records = await client.list_feed_records(DID)
        await client.aclose()

        assert [r.rkey for r in records] == [f"feed-{i}" for i in range(5)]
        assert backend.called("GET", "app.bsky.feed.getActorFeeds") == 3

    @pytest.mark.asyncio
    async def test_malformed_feed_view_is_resolution_error(self):
        body = {"feeds": [{"displayName": "No URI"}]}
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
        async with NetworkClient(PDS_URL, transport=transport) as client:
            with pytest.raises(ResolutionError):
                await client.list_feed_records(DID)

    @pytest.mark.asyncio
    async def test_non_json_body_is_resolution_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        async with NetworkClient(PDS_URL, transport=transport) as client:
            with pytest.raises(ResolutionError):
                await client.resolve_handle("bob.test")

    @pytest.mark.asyncio
    async def test_create_get_delete(self, backend):
        client = await _client(backend)
        record = feed_generator_record("did:web:feeds.test", "Trending", "Hot")

        await client.create_record(DID, FEED_GENERATOR_COLLECTION, "trend-1", record)
        fetched = await client.get_record(DID, FEED_GENERATOR_COLLECTION, "trend-1")
        assert fetched["value"]["displayName"] == "Trending"
        assert fetched["cid"]

        await client.delete_record(DID, FEED_GENERATOR_COLLECTION, "trend-1")
        assert "trend-1" not in backend.records
        await client.aclose()

    @pytest.mark.asyncio
    async def test_put_with_matching_swap(self, backend):
        cid = backend.add_record("trend-1", "Old")
        client = await _client(backend)

        record = feed_generator_record("did:web:feeds.test", "New", "")
        await client.put_record(DID, FEED_GENERATOR_COLLECTION, "trend-1", record, swap_record=cid)
        await client.aclose()

        assert backend.records["trend-1"]["value"]["displayName"] == "New"

    @pytest.mark.asyncio
    async def test_put_with_stale_swap_is_conflict(self, backend):
        backend.add_record("trend-1", "Old")
        client = await _client(backend)

        record = feed_generator_record("did:web:feeds.test", "New", "")
        with pytest.raises(RecordConflictError):
            await client.put_record(DID, FEED_GENERATOR_COLLECTION, "trend-1", record, swap_record="bafy-stale")
        await client.aclose()

        assert backend.records["trend-1"]["value"]["displayName"] == "Old"

    @pytest.mark.asyncio
    async def test_write_failure_is_remote_write_error(self, backend):
        backend.install_fault("POST", "com.atproto.repo.deleteRecord", status=500)
        client = await _client(backend)
        with pytest.raises(RemoteWriteError) as exc_info:
            await client.delete_record(DID, FEED_GENERATOR_COLLECTION, "trend-1")
        await client.aclose()
        assert not isinstance(exc_info.value, RecordConflictError)


class TestFeedGeneratorRecord:
    def test_shape(self):
        record = feed_generator_record("did:web:feeds.test", "Trending", "Hot posts")
        assert record["$type"] == FEED_GENERATOR_COLLECTION
        assert record["did"] == "did:web:feeds.test"
        assert record["displayName"] == "Trending"
        assert record["description"] == "Hot posts"
        assert record["createdAt"].endswith("Z")
