"""Identity resolution across fragmented contact records."""

from .errors import (  # noqa: F401
    IdentityError,
    InconsistentState,
    StoreUnavailable,
    TransactionConflict,
    TransactionFailure,
    ValidationError,
)
from .pipeline.types import ConsolidatedContact, Contact, IdentifyQuery, LinkPrecedence  # noqa: F401
from .services.engine import IdentityResolutionEngine, ResolutionResult  # noqa: F401
