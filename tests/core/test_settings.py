"""Tests for ``atmosfeed.core.settings``."""

from __future__ import annotations

import pydantic
import pytest

from atmosfeed.core.settings import AtmosfeedSettings, get_settings


class TestAtmosfeedSettings:
    def test_defaults(self):
        s = AtmosfeedSettings()
        assert s.registry_url == "http://localhost:1337"
        assert s.service == "https://bsky.social"
        assert s.feed_generator_did == "did:web:atmosfeed-feeds.serveo.net"
        assert s.feed_order == "registry"
        assert s.username == "" and s.password == ""

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("ATMOSFEED_REGISTRY_URL", "https://manager.example.com")
        monkeypatch.setenv("ATMOSFEED_FEED_ORDER", "title")
        monkeypatch.setenv("ATMOSFEED_EXPORT_CONCURRENCY", "8")

        s = AtmosfeedSettings()
        assert s.registry_url == "https://manager.example.com"
        assert s.feed_order == "title"
        assert s.export_concurrency == 8

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("ATMOSFEED_USERNAME=alice.test\n")
        assert AtmosfeedSettings().username == "alice.test"

    def test_rejects_unknown_feed_order(self, monkeypatch):
        monkeypatch.setenv("ATMOSFEED_FEED_ORDER", "random")
        with pytest.raises(pydantic.ValidationError):
            AtmosfeedSettings()

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(pydantic.ValidationError):
            AtmosfeedSettings(timeout=0)


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_force_reload(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("ATMOSFEED_SERVICE", "https://pds.example.com")
        reloaded = get_settings(_force_reload=True)
        assert reloaded is not first
        assert reloaded.service == "https://pds.example.com"
