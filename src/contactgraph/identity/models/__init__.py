from .contracts import (
    ContactSummary,
    ErrorEnvelope,
    HealthStatus,
    IdentifyRequest,
    IdentifyResponse,
)

__all__ = [
    "ContactSummary",
    "ErrorEnvelope",
    "HealthStatus",
    "IdentifyRequest",
    "IdentifyResponse",
]
