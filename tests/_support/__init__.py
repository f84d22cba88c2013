"""
Test support utilities for atmosfeed tests.

Helpers that don't fit as pytest fixtures but are shared across test files.
"""

from __future__ import annotations

from atmosfeed.clients.registry import RegistryClient
from atmosfeed.core.models import Session
from atmosfeed.ops.session import derive_registry_client, login
from tests._support.fake_backend import HANDLE, PASSWORD, PDS_URL, REGISTRY_URL, FakeBackend


async def sign_in(backend: FakeBackend) -> tuple[Session, RegistryClient]:
    """Log alice in against *backend* and derive her registry client."""
    result = await login(HANDLE, PASSWORD, PDS_URL, transport=backend.transport)
    assert result.success, result.error
    session = result.data
    return session, derive_registry_client(session, REGISTRY_URL, transport=backend.transport)
