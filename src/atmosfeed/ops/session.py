"""
Credential Bridge: network login and the registry credential derived from it.

The bridge alone creates and tears down :class:`Session` values. A session
is created by :func:`login`, destroyed by :func:`logout`, and also destroyed
by :func:`report_failure` whenever any operation hits an authentication
error.

Note:
    A failed avatar fetch right after login is handled exactly like a failed
    login and logs the session out, even though a transient profile error
    says nothing about the credential. This is kept on purpose pending
    product review.
"""

from __future__ import annotations

from typing import TypeVar

import httpx

from atmosfeed.clients.network import NetworkClient
from atmosfeed.clients.registry import RegistryClient
from atmosfeed.core.errors import AtmosfeedError, ConfigError, ValidationError
from atmosfeed.core.logging import get_logger
from atmosfeed.core.models import Session
from atmosfeed.ops.result import ErrorChannel, OperationResult, start_timer

logger = get_logger(__name__)

T = TypeVar("T")


async def login(
    handle: str,
    password: str,
    service: str,
    *,
    on_error: ErrorChannel | None = None,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> OperationResult[Session]:
    """Create a network session for *handle* against *service*."""
    timer = start_timer()

    missing = [name for name, value in (("handle", handle), ("password", password), ("service", service)) if not value]
    if missing:
        exc = ValidationError(f"Missing login fields: {', '.join(missing)}", field=missing[0])
        if on_error is not None:
            on_error(exc, False)
        return OperationResult.from_exception(exc, elapsed_ms=timer.elapsed_ms)

    network = NetworkClient(service, timeout=timeout, transport=transport)
    session = Session(handle=handle, password=password, service=service)

    try:
        auth = await network.create_session(handle, password)
        session.authenticate(auth["did"], auth["accessJwt"], auth.get("refreshJwt", ""))
        session.network = network

        profile = await network.get_profile(handle)
        session.avatar = profile.get("avatar") or ""
    except Exception as exc:
        await network.aclose()
        session.clear()
        logger.warning("session.login_failed", handle=handle, service=service, error=str(exc))
        if on_error is not None:
            on_error(exc, True)
        return OperationResult.from_exception(exc, logged_out=True, elapsed_ms=timer.elapsed_ms)

    logger.info("session.logged_in", handle=handle, did=session.did, service=service)
    return OperationResult.ok(session, elapsed_ms=timer.elapsed_ms)


async def logout(session: Session) -> None:
    """Close the session's network client and clear every session field."""
    network = session.network
    session.clear()
    if network is not None:
        network.forget_session()
        await network.aclose()
    logger.info("session.logged_out")


def derive_registry_client(
    session: Session,
    registry_url: str,
    *,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RegistryClient:
    """Build a registry client that reuses the session's access credential.

    Raises:
        ConfigError: The registry URL or any session field is missing.
    """
    required = {
        "registry_url": registry_url,
        "handle": session.handle,
        "password": session.password,
        "service": session.service,
        "access_jwt": session.access_jwt,
        "did": session.did,
    }
    missing = [name for name, value in required.items() if not value]
    if missing:
        raise ConfigError(f"Cannot reach the registry without: {', '.join(missing)}")

    return RegistryClient(
        registry_url,
        session.service,
        session.access_jwt,
        timeout=timeout,
        transport=transport,
    )


async def report_failure(
    session: Session,
    exc: Exception,
    on_error: ErrorChannel | None,
    *,
    operation: str,
    elapsed_ms: float = 0.0,
) -> OperationResult[T]:
    """Turn a failed operation into a result, logging out on auth errors."""
    logged_out = isinstance(exc, AtmosfeedError) and exc.forces_logout

    if isinstance(exc, AtmosfeedError):
        logger.warning(
            "session.operation_failed",
            operation=operation,
            logged_out=logged_out,
            **exc.to_dict(),
        )
    else:
        logger.exception("session.operation_crashed", operation=operation, error=str(exc))

    if logged_out:
        await logout(session)

    if on_error is not None:
        on_error(exc, logged_out)
    return OperationResult.from_exception(exc, logged_out=logged_out, elapsed_ms=elapsed_ms)


__all__ = ["login", "logout", "derive_registry_client", "report_failure"]
