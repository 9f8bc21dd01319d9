"""Error types raised by the registration core.

Every failure surfaces as a subclass of :class:`RDNSError` carrying a short
machine-readable ``code``, a human message and optional details. Store
failures are never swallowed; they propagate to the caller unchanged.
"""

from __future__ import annotations

from typing import Any


class RDNSError(Exception):
    """Base exception for all registration errors."""

    code = "error"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(RDNSError):
    """Raised when a domain, registration or token does not exist."""

    code = "not_found"


class SlugExhaustedError(RDNSError):
    """Raised when create could not find a free slug within the attempt bound."""

    code = "slug_exhausted"


class ConflictError(RDNSError):
    """Raised when a write collides with the shape of an existing node."""

    code = "conflict"


class PreconditionFailedError(ConflictError):
    """Raised when an existence precondition on a write was not met."""

    code = "precondition_failed"


class StoreUnavailableError(RDNSError):
    """Raised when the key-value store cannot be reached."""

    code = "store_unavailable"


class DataIntegrityError(RDNSError):
    """Raised when a stored value does not parse into its record type."""

    code = "data_integrity"


class ReconcileError(RDNSError):
    """Raised when a host reconciliation stops part way through."""

    code = "reconcile_failed"
