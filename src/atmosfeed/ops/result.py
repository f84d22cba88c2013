"""
Operation result envelope and error channel.

Every operation function returns an :class:`OperationResult` instead of
raising. Callers that prefer push-style notification may also pass an
:data:`ErrorChannel`; it receives the typed error plus a ``logged_out`` flag
that is ``True`` only when the session was torn down.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from atmosfeed.core.errors import (
    AtmosfeedError,
    ErrorCategory,
    InvalidStateError,
    RecordConflictError,
    categorize_error,
)

ErrorChannel = Callable[[Exception, bool], None]


@dataclass(frozen=True, slots=True)
class OperationError:
    """Structured error detail for failed operations.

    Attributes:
        code: Machine-readable code (``AUTHENTICATION_FAILED``, ``INVALID_STATE``, …).
        message: Human-readable description of the error.
        category: Optional :class:`ErrorCategory` for routing.
        details: Extra key/value context (rkey, url, http_status, …).
        logged_out: Whether the session was cleared because of this error.
    """

    code: str
    message: str
    category: ErrorCategory | None = None
    details: dict[str, Any] = field(default_factory=dict)
    logged_out: bool = False


_CODES: dict[ErrorCategory, str] = {
    ErrorCategory.AUTH: "AUTHENTICATION_FAILED",
    ErrorCategory.SOURCE: "RESOLUTION_FAILED",
    ErrorCategory.REMOTE_WRITE: "REMOTE_WRITE_FAILED",
    ErrorCategory.VALIDATION: "VALIDATION_FAILED",
    ErrorCategory.CONFIG: "CONFIG_INVALID",
    ErrorCategory.NETWORK: "NETWORK_ERROR",
}


def error_code(exc: Exception) -> str:
    """Map an exception to a machine-readable code."""
    if isinstance(exc, InvalidStateError):
        return "INVALID_STATE"
    if isinstance(exc, RecordConflictError):
        return "CONFLICT"
    return _CODES.get(categorize_error(exc), "INTERNAL")


T = TypeVar("T")


@dataclass
class OperationResult(Generic[T]):
    """Envelope returned by every operation function.

    Factory methods :meth:`ok`, :meth:`fail` and :meth:`from_exception`
    should be used instead of the constructor directly.
    """

    success: bool
    data: T | None = None
    error: OperationError | None = None
    warnings: list[str] = field(default_factory=list)
    elapsed_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def logged_out(self) -> bool:
        return self.error is not None and self.error.logged_out

    # ------------------------------------------------------------------ #
    # Factory helpers
    # ------------------------------------------------------------------ #

    @classmethod
    def ok(
        cls,
        data: T,
        *,
        warnings: list[str] | None = None,
        elapsed_ms: float = 0.0,
        metadata: dict[str, Any] | None = None,
    ) -> OperationResult[T]:
        """Create a successful result."""
        return cls(
            success=True,
            data=data,
            warnings=warnings or [],
            elapsed_ms=elapsed_ms,
            metadata=metadata or {},
        )

    @classmethod
    def fail(
        cls,
        code: str,
        message: str,
        *,
        category: ErrorCategory | None = None,
        details: dict[str, Any] | None = None,
        logged_out: bool = False,
        elapsed_ms: float = 0.0,
        metadata: dict[str, Any] | None = None,
    ) -> OperationResult[T]:
        """Create a failed result."""
        return cls(
            success=False,
            error=OperationError(
                code=code,
                message=message,
                category=category,
                details=details or {},
                logged_out=logged_out,
            ),
            elapsed_ms=elapsed_ms,
            metadata=metadata or {},
        )

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        *,
        logged_out: bool = False,
        elapsed_ms: float = 0.0,
    ) -> OperationResult[T]:
        """Create a failed result from a raised error."""
        details = exc.context.to_dict() if isinstance(exc, AtmosfeedError) else {}
        return cls.fail(
            error_code(exc),
            str(exc),
            category=categorize_error(exc),
            details=details,
            logged_out=logged_out,
            elapsed_ms=elapsed_ms,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a plain dict (for JSON output)."""
        d: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            d["data"] = self.data
        if self.error is not None:
            d["error"] = {
                "code": self.error.code,
                "message": self.error.message,
                "logged_out": self.error.logged_out,
            }
            if self.error.details:
                d["error"]["details"] = self.error.details
        if self.warnings:
            d["warnings"] = self.warnings
        if self.elapsed_ms:
            d["elapsed_ms"] = round(self.elapsed_ms, 2)
        if self.metadata:
            d["metadata"] = self.metadata
        return d


# ------------------------------------------------------------------ #
# Timing helper
# ------------------------------------------------------------------ #


class _Timer:
    """Minimal stopwatch for timing operations."""

    __slots__ = ("_start",)

    def __init__(self) -> None:
        self._start = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000


def start_timer() -> _Timer:
    """Return a lightweight timer.  Use ``timer.elapsed_ms`` when done."""
    return _Timer()
