"""
Structured error types for the Atmosfeed client.

Every failure that crosses a component boundary is one of a small set of
typed errors. Each carries a category, an explicit retry flag, a structured
context (rkey, DID, URL, HTTP status, XRPC error name) and the chained
underlying exception.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                       AtmosfeedError                          │
        │  (category, retryable, context, cause)                        │
        ├──────────────────────────────────────────────────────────────┤
        │  AuthenticationError   ResolutionError   ValidationError      │
        │  (AUTH, forces logout) (SOURCE)          (VALIDATION)         │
        │                                               │               │
        │                                          InvalidStateError    │
        │                                                               │
        │  RemoteWriteError      ConfigError                            │
        │  (REMOTE_WRITE)        (CONFIG)                               │
        │       │                                                       │
        │  RecordConflictError                                          │
        └──────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Raise bare Exception from a client or the reader
    ✅ DO: Raise the matching AtmosfeedError subclass and pass cause=

    ❌ DON'T: Put access tokens or passwords into the error context
    ✅ DO: Attach rkey, did, url and http_status only

    ❌ DON'T: Set retryable=True; nothing in the client retries
    ✅ DO: Leave the retry decision to the caller

Usage:
    from atmosfeed.core.errors import ResolutionError

    try:
        resp = await client.get(url)
    except httpx.HTTPError as e:
        raise ResolutionError("could not list feeds", cause=e).with_context(url=url)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    # Credential / session problems (always force a logout)
    AUTH = "AUTH"

    # Remote reads and writes
    SOURCE = "SOURCE"                # Query against registry or network failed
    REMOTE_WRITE = "REMOTE_WRITE"    # Write against registry or network failed

    # Local input problems
    VALIDATION = "VALIDATION"        # Malformed rkey, pin URL, AT URI
    CONFIG = "CONFIG"                # Missing endpoints or credentials

    # Transport
    NETWORK = "NETWORK"              # Connection, timeout, DNS

    # Internal errors
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only fields that are set are serialised by :meth:`to_dict`, so a
    validation error for a pin URL does not carry empty HTTP fields.

    Attributes:
        operation: Operation that failed (``finalize``, ``list_feeds``, ...)
        rkey: Feed resource key involved
        did: Account or record DID involved
        url: Request URL that failed
        http_status: HTTP status returned by the remote
        xrpc_error: XRPC error name (``InvalidSwap``, ``AuthRequired``, ...)
        metadata: Additional key-value pairs
    """

    operation: str | None = None
    rkey: str | None = None
    did: str | None = None
    url: str | None = None
    http_status: int | None = None
    xrpc_error: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["operation", "rkey", "did", "url", "http_status", "xrpc_error"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class AtmosfeedError(Exception):
    """
    Base exception for all Atmosfeed client errors.

    Subclasses set ``default_category``; ``retryable`` defaults to ``False``
    everywhere because the client never retries on its own.

    Examples:
        >>> error = ResolutionError("could not resolve handle")
        >>> error.category
        <ErrorCategory.SOURCE: 'SOURCE'>
        >>> error.with_context(rkey="trend-1").context.rkey
        'trend-1'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    @property
    def forces_logout(self) -> bool:
        """Whether handling this error must tear down the session."""
        return self.category == ErrorCategory.AUTH

    def with_context(self, **kwargs: Any) -> AtmosfeedError:
        """
        Add context to this error (fluent API).

        Usage:
            raise RemoteWriteError("put failed").with_context(
                rkey="trend-1",
                url="https://bsky.social/xrpc/com.atproto.repo.putRecord",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# AUTHENTICATION
# =============================================================================


class AuthenticationError(AtmosfeedError):
    """
    Login, profile fetch or credential check failed.

    Always handled by clearing the session and reporting ``logged_out=True``.
    """

    default_category = ErrorCategory.AUTH


# =============================================================================
# REMOTE READS / WRITES
# =============================================================================


class ResolutionError(AtmosfeedError):
    """A query against the registry or the network failed."""

    default_category = ErrorCategory.SOURCE


class RemoteWriteError(AtmosfeedError):
    """A write against the registry or the network failed."""

    default_category = ErrorCategory.REMOTE_WRITE


class RecordConflictError(RemoteWriteError):
    """The network rejected a compare-and-swap write (``InvalidSwap``)."""

    pass


# =============================================================================
# LOCAL INPUT
# =============================================================================


class ValidationError(AtmosfeedError):
    """
    Malformed local input (rkey, pinned-post URL, AT URI, login fields).

    Never retryable: the input must be fixed.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class InvalidStateError(ValidationError):
    """A lifecycle transition was requested from the wrong feed state."""

    pass


class ConfigError(AtmosfeedError):
    """Required configuration (endpoint, credential) is missing."""

    default_category = ErrorCategory.CONFIG


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, AtmosfeedError):
        return error.category
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.NETWORK
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "AtmosfeedError",
    "AuthenticationError",
    "ResolutionError",
    "RemoteWriteError",
    "RecordConflictError",
    "ValidationError",
    "InvalidStateError",
    "ConfigError",
    "categorize_error",
]
