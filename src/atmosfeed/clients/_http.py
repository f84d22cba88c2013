"""
Shared HTTP plumbing for the registry and network clients.

Both clients map failures the same way: a rejected credential is an
:class:`AuthenticationError`, a failed read is a :class:`ResolutionError`,
a failed write is a :class:`RemoteWriteError`. Transport failures
(``httpx.HTTPError``) follow the read/write split of the request that failed.
A body that cannot be decoded into the expected shape is a failed read.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx

from atmosfeed.core.errors import (
    AtmosfeedError,
    AuthenticationError,
    RemoteWriteError,
    ResolutionError,
)

AUTH_STATUSES = frozenset({401, 403})


def xrpc_error_name(response: httpx.Response) -> str | None:
    """Return the XRPC ``error`` field of a failed response, if any."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("error")
    return None


def error_for_response(
    response: httpx.Response,
    message: str,
    *,
    write: bool,
    auth_error_type: type[AtmosfeedError] = AuthenticationError,
) -> AtmosfeedError:
    """Build the typed error for a non-2xx *response*."""
    if response.status_code in AUTH_STATUSES:
        error_type: type[AtmosfeedError] = auth_error_type
    elif write:
        error_type = RemoteWriteError
    else:
        error_type = ResolutionError

    detail = response.reason_phrase or str(response.status_code)
    return error_type(f"{message}: {response.status_code} {detail}").with_context(
        url=str(response.request.url).split("?", 1)[0],
        http_status=response.status_code,
        xrpc_error=xrpc_error_name(response),
    )


async def send(
    request: Callable[[], Awaitable[httpx.Response]],
    message: str,
    *,
    write: bool,
    auth_error_type: type[AtmosfeedError] = AuthenticationError,
) -> httpx.Response:
    """Issue *request* and raise the matching typed error on failure."""
    try:
        response = await request()
    except httpx.HTTPError as exc:
        error_type = RemoteWriteError if write else ResolutionError
        raise error_type(f"{message}: {exc}", cause=exc) from exc

    if response.is_error:
        raise error_for_response(response, message, write=write, auth_error_type=auth_error_type)
    return response


def json_object(body: Any) -> dict[str, Any]:
    if not isinstance(body, dict):
        raise ValueError(f"expected a JSON object, got {type(body).__name__}")
    return body


def json_list(body: Any) -> list[Any]:
    """Accept a JSON array; ``null`` (a Go nil slice) reads as empty."""
    if body is None:
        return []
    if not isinstance(body, list):
        raise ValueError(f"expected a JSON array, got {type(body).__name__}")
    return body


T = TypeVar("T")


def decode(response: httpx.Response, message: str, build: Callable[[Any], T]) -> T:
    """Decode a successful *response* body with *build*.

    ``build`` signals a body of the wrong shape by raising ``ValueError``,
    which also covers ``json.JSONDecodeError`` and pydantic's
    ``ValidationError``. Either way the read is reported as a
    :class:`ResolutionError`.
    """
    try:
        return build(response.json())
    except ValueError as exc:
        raise ResolutionError(f"{message}: malformed response", cause=exc).with_context(
            url=str(response.request.url).split("?", 1)[0],
            http_status=response.status_code,
            reason=str(exc).splitlines()[0] if str(exc) else type(exc).__name__,
        ) from exc
