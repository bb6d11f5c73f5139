from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional


class LinkPrecedence(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass(slots=True)
class Contact:
    id: int
    email: str | None
    phone_number: str | None
    link_precedence: LinkPrecedence
    linked_id: int | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    @property
    def is_primary(self) -> bool:
        return self.link_precedence == LinkPrecedence.PRIMARY

    @property
    def is_live(self) -> bool:
        return self.deleted_at is None

    @property
    def sort_key(self) -> tuple[datetime, int]:
        """Oldest-wins ordering: creation time, then id."""
        return (self.created_at, self.id)

    def pair(self) -> tuple[str | None, str | None]:
        return (self.email, self.phone_number)


@dataclass(slots=True, frozen=True)
class IdentifyQuery:
    """Normalized request identifiers; at least one is set."""

    email: str | None = None
    phone_number: str | None = None

    def pair(self) -> tuple[str | None, str | None]:
        return (self.email, self.phone_number)

    def identifiers(self) -> List[str]:
        values: List[str] = []
        if self.email is not None:
            values.append(f"email:{self.email}")
        if self.phone_number is not None:
            values.append(f"phone:{self.phone_number}")
        return values


@dataclass(slots=True)
class ConsolidatedContact:
    primary_contact_id: int
    emails: List[str] = field(default_factory=list)
    phone_numbers: List[str] = field(default_factory=list)
    secondary_contact_ids: List[int] = field(default_factory=list)

    def as_dict(self) -> dict[str, object]:
        return {
            "primaryContatctId": self.primary_contact_id,
            "emails": list(self.emails),
            "phoneNumbers": list(self.phone_numbers),
            "secondaryContactIds": list(self.secondary_contact_ids),
        }


class ClusterIndex:
    """Adjacency index of primary id -> direct secondary ids, rebuilt from rows."""

    def __init__(self) -> None:
        self._primaries: Dict[int, Contact] = {}
        self._members: Dict[int, List[int]] = {}
        self._orphans: List[Contact] = []

    @classmethod
    def from_rows(cls, rows: Iterable[Contact]) -> "ClusterIndex":
        index = cls()
        live = sorted((row for row in rows if row.is_live), key=lambda row: row.sort_key)
        for row in live:
            if row.is_primary:
                index._primaries[row.id] = row
                index._members.setdefault(row.id, [])
        for row in live:
            if row.is_primary:
                continue
            if row.linked_id in index._primaries:
                index._members[row.linked_id].append(row.id)
            else:
                index._orphans.append(row)
        return index

    def primary_ids(self) -> List[int]:
        return list(self._primaries)

    def primary(self, primary_id: int) -> Optional[Contact]:
        return self._primaries.get(primary_id)

    def secondary_ids(self, primary_id: int) -> List[int]:
        return sorted(set(self._members.get(primary_id, [])))

    def orphans(self) -> List[Contact]:
        """Live secondaries whose linked id is not a live primary."""
        return list(self._orphans)

    def __len__(self) -> int:
        return len(self._primaries)


__all__ = [
    "LinkPrecedence",
    "Contact",
    "IdentifyQuery",
    "ConsolidatedContact",
    "ClusterIndex",
]
