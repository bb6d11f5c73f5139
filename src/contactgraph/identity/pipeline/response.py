from __future__ import annotations

from typing import Iterable, List, Sequence

from .types import ConsolidatedContact, Contact


def _primary_first(first: str | None, values: Iterable[str | None]) -> List[str]:
    ordered: List[str] = [first] if first else []
    for value in values:
        if value and value not in ordered:
            ordered.append(value)
    return ordered


def build_consolidated(primary: Contact, cluster: Sequence[Contact]) -> ConsolidatedContact:
    """Primary's identifiers first, then the rest in cluster order; ids ascending."""
    return ConsolidatedContact(
        primary_contact_id=primary.id,
        emails=_primary_first(primary.email, (row.email for row in cluster)),
        phone_numbers=_primary_first(primary.phone_number, (row.phone_number for row in cluster)),
        secondary_contact_ids=sorted({row.id for row in cluster if row.id != primary.id}),
    )


__all__ = ["build_consolidated"]
