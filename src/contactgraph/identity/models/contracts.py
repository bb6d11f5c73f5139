from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from ..pipeline.types import ConsolidatedContact


class IdentifyRequest(BaseModel):
    """Public contract accepted by POST /identify."""

    email: str | None = None
    phoneNumber: str | None = None


class ContactSummary(BaseModel):
    """Consolidated identity view.

    ``primaryContatctId`` keeps the misspelling existing clients depend on.
    """

    model_config = ConfigDict(populate_by_name=True)

    primary_contact_id: int = Field(alias="primaryContatctId")
    emails: List[str] = Field(default_factory=list)
    phone_numbers: List[str] = Field(default_factory=list, alias="phoneNumbers")
    secondary_contact_ids: List[int] = Field(default_factory=list, alias="secondaryContactIds")

    @classmethod
    def from_consolidated(cls, contact: ConsolidatedContact) -> "ContactSummary":
        return cls(
            primary_contact_id=contact.primary_contact_id,
            emails=contact.emails,
            phone_numbers=contact.phone_numbers,
            secondary_contact_ids=contact.secondary_contact_ids,
        )


class IdentifyResponse(BaseModel):
    contact: ContactSummary


class HealthStatus(BaseModel):
    status: str
    service: str
    store: str


class ErrorEnvelope(BaseModel):
    error_code: str
    message: str
    retryable: bool
    correlation_id: str
    details: Dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "IdentifyRequest",
    "ContactSummary",
    "IdentifyResponse",
    "HealthStatus",
    "ErrorEnvelope",
]
