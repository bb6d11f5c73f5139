from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ContextManager, List, Sequence

from ..pipeline.types import Contact, IdentifyQuery, LinkPrecedence


class ContactRepository(ABC):
    """Transaction-scoped access to the contact table.

    Every read excludes soft-deleted rows, and every ordered read sorts by
    ``created_at`` then ``id`` so "oldest wins" is reproducible.
    """

    @abstractmethod
    def lock_identifiers(self, query: IdentifyQuery) -> None:
        """Serialize concurrent resolutions that share an identifier."""

    @abstractmethod
    def find_matches(self, query: IdentifyQuery) -> List[Contact]:
        """Live rows whose email or phone equals a supplied identifier."""

    @abstractmethod
    def get_live(self, contact_id: int) -> Contact | None:
        """Return the live row with this id, if any."""

    @abstractmethod
    def get_live_many(self, contact_ids: Sequence[int], *, for_update: bool = False) -> List[Contact]:
        """Live rows with the given ids, oldest first, optionally row-locked."""

    @abstractmethod
    def get_cluster(self, primary_id: int) -> List[Contact]:
        """The primary row followed by its direct live secondaries."""

    @abstractmethod
    def insert_contact(
        self,
        *,
        email: str | None,
        phone_number: str | None,
        link_precedence: LinkPrecedence,
        linked_id: int | None = None,
    ) -> Contact:
        """Insert a new row and return it as stored."""

    @abstractmethod
    def promote(self, contact_id: int) -> None:
        """Force a row to primary with no link."""

    @abstractmethod
    def demote(self, contact_id: int, primary_id: int) -> None:
        """Turn a row into a secondary of ``primary_id``."""

    @abstractmethod
    def repoint_secondaries(self, from_id: int, to_id: int) -> int:
        """Move every live row linked to ``from_id`` onto ``to_id``; return count."""

    @abstractmethod
    def list_live(self) -> List[Contact]:
        """Every live row, oldest first."""


class ContactStore(ABC):
    """Durable contact storage handing out one repository per transaction."""

    @abstractmethod
    def session(self) -> ContextManager[ContactRepository]:
        """Open a transaction: commit on clean exit, roll back on any error."""

    @abstractmethod
    def ping(self) -> bool:
        """Return True when the store answers a trivial query."""


__all__ = ["ContactRepository", "ContactStore"]
