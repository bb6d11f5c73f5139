from __future__ import annotations

from typing import Any

from ..errors import ValidationError
from .types import IdentifyQuery


def normalize_email(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned.lower() if cleaned else None


def normalize_phone(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def normalize_request(email: Any = None, phone_number: Any = None) -> IdentifyQuery:
    """Trim both identifiers, lower-case the email, and require at least one."""

    if email is None and phone_number is None:
        raise ValidationError("Either email or phoneNumber (or both) must be present in the request body.")
    query = IdentifyQuery(email=normalize_email(email), phone_number=normalize_phone(phone_number))
    if query.email is None and query.phone_number is None:
        raise ValidationError("At least one of email or phoneNumber must have a non-empty value.")
    return query


__all__ = ["normalize_email", "normalize_phone", "normalize_request"]
