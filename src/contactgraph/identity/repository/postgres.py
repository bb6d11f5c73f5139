from __future__ import annotations

import contextlib
from typing import Any, Callable, ContextManager, Dict, Iterator, List, Sequence

import psycopg
from psycopg import errors as pg_errors

from shared.db import get_connection
from shared.logging import get_logger

from ..errors import StoreUnavailable, TransactionConflict, TransactionFailure
from ..pipeline.types import Contact, IdentifyQuery, LinkPrecedence
from .contacts import ContactRepository, ContactStore

logger = get_logger("identity.repository.postgres")

CONTACT_COLUMNS = (
    "id, email, phone_number, linked_id, link_precedence, created_at, updated_at, deleted_at"
)

ConnectionFactory = Callable[..., ContextManager[Any]]


def _contact_from_row(row: Dict[str, Any]) -> Contact:
    return Contact(
        id=row["id"],
        email=row["email"],
        phone_number=row["phone_number"],
        link_precedence=LinkPrecedence(row["link_precedence"]),
        linked_id=row["linked_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        deleted_at=row.get("deleted_at"),
    )


class PostgresContactRepository(ContactRepository):
    def __init__(self, cur) -> None:
        self.cur = cur

    def lock_identifiers(self, query: IdentifyQuery) -> None:
        # Sorted so two requests sharing identifiers always lock in the same order.
        for key in sorted(query.identifiers()):
            self.cur.execute(
                "SELECT pg_advisory_xact_lock(hashtextextended(%s, 0))",
                (f"contact:{key}",),
            )

    def find_matches(self, query: IdentifyQuery) -> List[Contact]:
        clauses: List[str] = []
        params: List[Any] = []
        if query.email is not None:
            clauses.append("email = %s")
            params.append(query.email)
        if query.phone_number is not None:
            clauses.append("phone_number = %s")
            params.append(query.phone_number)
        if not clauses:
            return []
        self.cur.execute(
            f"""
            SELECT {CONTACT_COLUMNS}
            FROM contact
            WHERE deleted_at IS NULL
              AND ({" OR ".join(clauses)})
            ORDER BY created_at ASC, id ASC
            """,
            params,
        )
        return [_contact_from_row(row) for row in self.cur.fetchall()]

    def get_live(self, contact_id: int) -> Contact | None:
        self.cur.execute(
            f"SELECT {CONTACT_COLUMNS} FROM contact WHERE id = %s AND deleted_at IS NULL",
            (contact_id,),
        )
        row = self.cur.fetchone()
        return _contact_from_row(row) if row else None

    def get_live_many(self, contact_ids: Sequence[int], *, for_update: bool = False) -> List[Contact]:
        ids = sorted(set(contact_ids))
        if not ids:
            return []
        query = f"""
            SELECT {CONTACT_COLUMNS}
            FROM contact
            WHERE id = ANY(%s) AND deleted_at IS NULL
            ORDER BY created_at ASC, id ASC
        """
        if for_update:
            query += " FOR UPDATE"
        self.cur.execute(query, (ids,))
        return [_contact_from_row(row) for row in self.cur.fetchall()]

    def get_cluster(self, primary_id: int) -> List[Contact]:
        self.cur.execute(
            f"""
            SELECT {CONTACT_COLUMNS}
            FROM contact
            WHERE deleted_at IS NULL AND (id = %s OR linked_id = %s)
            ORDER BY link_precedence ASC, created_at ASC, id ASC
            """,
            (primary_id, primary_id),
        )
        return [_contact_from_row(row) for row in self.cur.fetchall()]

    def insert_contact(
        self,
        *,
        email: str | None,
        phone_number: str | None,
        link_precedence: LinkPrecedence,
        linked_id: int | None = None,
    ) -> Contact:
        self.cur.execute(
            f"""
            INSERT INTO contact (email, phone_number, link_precedence, linked_id)
            VALUES (%s, %s, %s, %s)
            RETURNING {CONTACT_COLUMNS}
            """,
            (email, phone_number, link_precedence.value, linked_id),
        )
        row = self.cur.fetchone()
        if row is None:
            raise TransactionFailure("Insert into contact returned no row")
        return _contact_from_row(row)

    def promote(self, contact_id: int) -> None:
        self.cur.execute(
            """
            UPDATE contact
            SET link_precedence = 'primary', linked_id = NULL, updated_at = NOW()
            WHERE id = %s
            """,
            (contact_id,),
        )

    def demote(self, contact_id: int, primary_id: int) -> None:
        self.cur.execute(
            """
            UPDATE contact
            SET link_precedence = 'secondary', linked_id = %s, updated_at = NOW()
            WHERE id = %s
            """,
            (primary_id, contact_id),
        )

    def repoint_secondaries(self, from_id: int, to_id: int) -> int:
        self.cur.execute(
            """
            UPDATE contact
            SET linked_id = %s, updated_at = NOW()
            WHERE linked_id = %s AND id <> %s AND deleted_at IS NULL
            """,
            (to_id, from_id, to_id),
        )
        return self.cur.rowcount or 0

    def list_live(self) -> List[Contact]:
        self.cur.execute(
            f"""
            SELECT {CONTACT_COLUMNS}
            FROM contact
            WHERE deleted_at IS NULL
            ORDER BY created_at ASC, id ASC
            """
        )
        return [_contact_from_row(row) for row in self.cur.fetchall()]


class PostgresContactStore(ContactStore):
    """psycopg-backed store; one connection and one transaction per session."""

    def __init__(
        self,
        conn_str: str | None = None,
        *,
        connect_timeout: int | None = None,
        statement_timeout_ms: int | None = None,
        connection_factory: ConnectionFactory = get_connection,
    ) -> None:
        self._conn_str = conn_str
        self._connect_timeout = connect_timeout
        self._statement_timeout_ms = statement_timeout_ms
        self._connection_factory = connection_factory

    def _connect(self) -> ContextManager[Any]:
        return self._connection_factory(
            self._conn_str,
            autocommit=True,
            connect_timeout=self._connect_timeout,
            statement_timeout_ms=self._statement_timeout_ms,
        )

    @contextlib.contextmanager
    def session(self) -> Iterator[PostgresContactRepository]:
        with contextlib.ExitStack() as stack:
            try:
                conn = stack.enter_context(self._connect())
            except psycopg.OperationalError as exc:
                logger.error("contact_store_unreachable", error=str(exc))
                raise StoreUnavailable(f"Contact store unavailable: {exc}") from exc

            try:
                with conn.transaction():
                    with conn.cursor() as cur:
                        yield PostgresContactRepository(cur)
            except (pg_errors.SerializationFailure, pg_errors.DeadlockDetected) as exc:
                raise TransactionConflict(f"Contact transaction conflicted: {exc}") from exc
            except psycopg.Error as exc:
                logger.exception("contact_transaction_failed", error=str(exc))
                raise TransactionFailure(f"Contact transaction rolled back: {exc}") from exc

    def ping(self) -> bool:
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT NOW()")
                    return cur.fetchone() is not None
        except psycopg.Error as exc:
            logger.warning("contact_store_ping_failed", error=str(exc))
            return False


__all__ = ["PostgresContactStore", "PostgresContactRepository", "CONTACT_COLUMNS"]
