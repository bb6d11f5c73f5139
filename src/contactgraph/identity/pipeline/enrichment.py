from __future__ import annotations

from typing import List, Sequence

from shared.logging import get_logger

from ..repository.contacts import ContactRepository
from .types import Contact, IdentifyQuery, LinkPrecedence

logger = get_logger("identity.enrichment")


def has_exact_pair(cluster: Sequence[Contact], query: IdentifyQuery) -> bool:
    return any(row.pair() == query.pair() for row in cluster)


def shares_identifier(matches: Sequence[Contact], query: IdentifyQuery) -> bool:
    for row in matches:
        if query.email is not None and row.email == query.email:
            return True
        if query.phone_number is not None and row.phone_number == query.phone_number:
            return True
    return False


def enrich_cluster(
    repo: ContactRepository,
    primary: Contact,
    cluster: List[Contact],
    query: IdentifyQuery,
    matches: Sequence[Contact],
) -> Contact | None:
    """Append a secondary for an unseen (email, phone) pair; mutates ``cluster``."""

    if has_exact_pair(cluster, query):
        return None
    if not shares_identifier(matches, query):
        return None

    created = repo.insert_contact(
        email=query.email,
        phone_number=query.phone_number,
        link_precedence=LinkPrecedence.SECONDARY,
        linked_id=primary.id,
    )
    cluster.append(created)
    logger.info("secondary_created", contact_id=created.id, primary_id=primary.id)
    return created


__all__ = ["enrich_cluster", "has_exact_pair", "shares_identifier"]
