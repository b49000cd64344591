"""
Exceptions raised by the indexer core.

Out-of-order delivery (stale events, illegal status transitions) is an
expected outcome of synchronization and is reported through
``SyncOutcome``, not through these exceptions.
"""

from typing import Any, Dict, Optional


class EquiClearError(Exception):
    """Base exception for the indexer"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization"""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class InvalidEventError(EquiClearError, ValueError):
    """A feed record could not be decoded into a chain event."""


class UnknownStatusError(EquiClearError, ValueError):
    """A status code or name outside the closed enumeration."""

    def __init__(self, enum_name: str, value: Any):
        super().__init__(
            f"Unknown {enum_name} value: {value!r}",
            details={"enum": enum_name, "value": value},
        )
        self.value = value


class StoreUnavailableError(EquiClearError):
    """
    The backing store could not be reached.

    Retryable: the event that triggered it was not applied.
    """

    def __init__(self, operation: str, original_exception: Optional[Exception] = None):
        super().__init__(
            f"Backing store unavailable during {operation}: {original_exception}",
            details={"operation": operation},
        )
        self.operation = operation
        self.original_exception = original_exception


class ClaimConflictError(EquiClearError):
    """A claim event disagrees with the claim already stored for its key."""

    def __init__(self, auction_id: str, user_address: str, stored: Any, incoming: Any):
        super().__init__(
            f"Conflicting claim for auction {auction_id} by {user_address}",
            details={
                "auction_id": auction_id,
                "user_address": user_address,
                "stored": stored,
                "incoming": incoming,
            },
        )
        self.auction_id = auction_id
        self.user_address = user_address
