from __future__ import annotations

from typing import List

from shared.logging import get_logger

from ..repository.contacts import ContactRepository
from .types import Contact, IdentifyQuery

logger = get_logger("identity.matcher")


def find_matches(repo: ContactRepository, query: IdentifyQuery) -> List[Contact]:
    """Live contacts sharing the request's email or phone, oldest first."""
    matches = repo.find_matches(query)
    logger.debug(
        "contacts_matched",
        match_count=len(matches),
        matches=[
            {
                "id": row.id,
                "precedence": row.link_precedence.value,
                "linked_id": row.linked_id,
            }
            for row in matches
        ],
    )
    return matches


__all__ = ["find_matches"]
