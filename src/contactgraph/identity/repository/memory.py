"""In-memory implementation of ContactStore (no database).

Sessions are serialized by a single lock and roll back to a snapshot when the
block raises, which gives the same all-or-nothing behaviour as a Postgres
transaction. Used by the test-suite and by ``IDENTITY_STORE=memory``.
"""

from __future__ import annotations

import contextlib
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Sequence

from ..pipeline.types import Contact, IdentifyQuery, LinkPrecedence
from .contacts import ContactRepository, ContactStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryContactRepository(ContactRepository):
    def __init__(self, store: "InMemoryContactStore") -> None:
        self._store = store

    def _live(self) -> List[Contact]:
        rows = [row for row in self._store._rows.values() if row.is_live]
        return sorted(rows, key=lambda row: row.sort_key)

    def lock_identifiers(self, query: IdentifyQuery) -> None:
        # The session lock already serializes every transaction.
        return None

    def find_matches(self, query: IdentifyQuery) -> List[Contact]:
        matches: List[Contact] = []
        for row in self._live():
            if query.email is not None and row.email == query.email:
                matches.append(replace(row))
            elif query.phone_number is not None and row.phone_number == query.phone_number:
                matches.append(replace(row))
        return matches

    def get_live(self, contact_id: int) -> Contact | None:
        row = self._store._rows.get(contact_id)
        if row is None or not row.is_live:
            return None
        return replace(row)

    def get_live_many(self, contact_ids: Sequence[int], *, for_update: bool = False) -> List[Contact]:
        wanted = set(contact_ids)
        return [replace(row) for row in self._live() if row.id in wanted]

    def get_cluster(self, primary_id: int) -> List[Contact]:
        members = [
            row for row in self._live() if row.id == primary_id or row.linked_id == primary_id
        ]
        members.sort(key=lambda row: (row.link_precedence.value, row.created_at, row.id))
        return [replace(row) for row in members]

    def insert_contact(
        self,
        *,
        email: str | None,
        phone_number: str | None,
        link_precedence: LinkPrecedence,
        linked_id: int | None = None,
    ) -> Contact:
        return replace(
            self._store._insert(
                email=email,
                phone_number=phone_number,
                link_precedence=link_precedence,
                linked_id=linked_id,
            )
        )

    def promote(self, contact_id: int) -> None:
        row = self._store._rows[contact_id]
        row.link_precedence = LinkPrecedence.PRIMARY
        row.linked_id = None
        row.updated_at = self._store._clock()

    def demote(self, contact_id: int, primary_id: int) -> None:
        row = self._store._rows[contact_id]
        row.link_precedence = LinkPrecedence.SECONDARY
        row.linked_id = primary_id
        row.updated_at = self._store._clock()

    def repoint_secondaries(self, from_id: int, to_id: int) -> int:
        moved = 0
        now = self._store._clock()
        for row in self._store._rows.values():
            if row.is_live and row.linked_id == from_id and row.id != to_id:
                row.linked_id = to_id
                row.updated_at = now
                moved += 1
        return moved

    def list_live(self) -> List[Contact]:
        return [replace(row) for row in self._live()]


class InMemoryContactStore(ContactStore):
    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._rows: Dict[int, Contact] = {}
        self._next_id = 1
        self._lock = threading.RLock()
        self._clock = clock or _utcnow

    def _insert(
        self,
        *,
        email: str | None,
        phone_number: str | None,
        link_precedence: LinkPrecedence,
        linked_id: int | None = None,
        created_at: datetime | None = None,
        deleted_at: datetime | None = None,
    ) -> Contact:
        now = self._clock()
        row = Contact(
            id=self._next_id,
            email=email,
            phone_number=phone_number,
            link_precedence=link_precedence,
            linked_id=linked_id,
            created_at=created_at or now,
            updated_at=now,
            deleted_at=deleted_at,
        )
        self._rows[row.id] = row
        self._next_id += 1
        return row

    def add(
        self,
        *,
        email: str | None = None,
        phone_number: str | None = None,
        link_precedence: LinkPrecedence = LinkPrecedence.PRIMARY,
        linked_id: int | None = None,
        created_at: datetime | None = None,
        deleted_at: datetime | None = None,
    ) -> Contact:
        """Seed a row directly, bypassing resolution (fixtures, imports)."""
        with self._lock:
            return replace(
                self._insert(
                    email=email,
                    phone_number=phone_number,
                    link_precedence=link_precedence,
                    linked_id=linked_id,
                    created_at=created_at,
                    deleted_at=deleted_at,
                )
            )

    def rows(self) -> List[Contact]:
        """Copy of every stored row (live or not), ordered by id."""
        with self._lock:
            return [replace(self._rows[key]) for key in sorted(self._rows)]

    @contextlib.contextmanager
    def session(self) -> Iterator[InMemoryContactRepository]:
        with self._lock:
            snapshot = {key: replace(row) for key, row in self._rows.items()}
            next_id = self._next_id
            try:
                yield InMemoryContactRepository(self)
            except BaseException:
                self._rows = snapshot
                self._next_id = next_id
                raise

    def ping(self) -> bool:
        return True


__all__ = ["InMemoryContactStore", "InMemoryContactRepository"]
