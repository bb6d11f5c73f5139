from __future__ import annotations


class IdentityError(Exception):
    """Base class for identity resolution failures."""

    error_code = "identity_error"
    retryable = False


class ValidationError(IdentityError, ValueError):
    """The request carried no usable identifier."""

    error_code = "invalid_request"


class InconsistentState(IdentityError):
    """Matched rows cannot be traced to a live primary contact."""

    error_code = "inconsistent_state"


class TransactionFailure(IdentityError):
    """A resolution transaction could not commit and was rolled back."""

    error_code = "transaction_failed"
    retryable = True


class TransactionConflict(TransactionFailure):
    """Serialization failure or deadlock; safe to retry the whole resolution."""

    error_code = "transaction_conflict"


class StoreUnavailable(IdentityError):
    """The contact store cannot be reached."""

    error_code = "store_unavailable"
    retryable = True


__all__ = [
    "IdentityError",
    "ValidationError",
    "InconsistentState",
    "TransactionFailure",
    "TransactionConflict",
    "StoreUnavailable",
]
