"""
Shared pytest fixtures for atmosfeed tests.

This module provides:
- An in-memory registry + PDS backend (see ``tests/_support/fake_backend.py``)
- Quiet structured logging
- Settings isolation from the developer's ``ATMOSFEED_*`` environment
"""

from __future__ import annotations

import os

import pytest

from atmosfeed.core import settings as settings_module
from atmosfeed.core.logging import clear_context, configure_logging
from tests._support.fake_backend import FakeBackend


@pytest.fixture(scope="session", autouse=True)
def quiet_logging():
    """Keep log lines out of captured CLI output."""
    configure_logging(level="CRITICAL", json_format=True)


@pytest.fixture(autouse=True)
def clean_log_context():
    """Drop context bound by a previous test (the CLI binds ``command``)."""
    clear_context()
    yield
    clear_context()


@pytest.fixture
def backend() -> FakeBackend:
    """Fresh fake backend with alice registered and no feeds."""
    return FakeBackend()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Drop cached settings and any ATMOSFEED_* variables for each test."""
    for key in list(os.environ):
        if key.startswith("ATMOSFEED_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(settings_module, "_settings_cache", None)
    yield
