from __future__ import annotations

from typing import Any

CONTACT_SCHEMA = """
CREATE TABLE IF NOT EXISTS contact (
    id SERIAL PRIMARY KEY,
    phone_number TEXT,
    email TEXT,
    linked_id INTEGER REFERENCES contact(id),
    link_precedence TEXT NOT NULL CHECK (link_precedence IN ('primary', 'secondary')),
    created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp(),
    deleted_at TIMESTAMPTZ,
    CONSTRAINT contact_has_identifier CHECK (email IS NOT NULL OR phone_number IS NOT NULL),
    CONSTRAINT contact_link_matches_precedence CHECK (
        (link_precedence = 'primary' AND linked_id IS NULL)
        OR (link_precedence = 'secondary' AND linked_id IS NOT NULL)
    )
);

CREATE INDEX IF NOT EXISTS contact_email_live_idx
    ON contact (email) WHERE deleted_at IS NULL;
CREATE INDEX IF NOT EXISTS contact_phone_live_idx
    ON contact (phone_number) WHERE deleted_at IS NULL;
CREATE INDEX IF NOT EXISTS contact_linked_live_idx
    ON contact (linked_id) WHERE deleted_at IS NULL;
CREATE INDEX IF NOT EXISTS contact_created_idx
    ON contact (created_at, id);
"""


def apply_schema(conn: Any) -> None:
    """Create the contact table and its indexes if they are missing."""
    with conn.transaction():
        with conn.cursor() as cur:
            cur.execute(CONTACT_SCHEMA)


__all__ = ["CONTACT_SCHEMA", "apply_schema"]
