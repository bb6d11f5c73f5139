from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Sequence

from shared.logging import get_logger

from ..errors import InconsistentState
from ..repository.contacts import ContactRepository
from .types import Contact, LinkPrecedence

logger = get_logger("identity.merge")


@dataclass(slots=True)
class MergeOutcome:
    survivor: Contact
    demoted_ids: List[int] = field(default_factory=list)
    repointed: int = 0
    degenerate: bool = False


def elect_survivor(candidates: Sequence[Contact]) -> Contact:
    """Oldest by ``created_at``; equal timestamps fall back to the smaller id."""
    if not candidates:
        raise InconsistentState("Could not find any primary candidates for merging.")
    return min(candidates, key=lambda row: row.sort_key)


def merge_clusters(repo: ContactRepository, implicated_ids: Sequence[int]) -> MergeOutcome:
    """Collapse every implicated cluster into the oldest primary.

    Must run inside the repository's transaction: a failure at any step is
    rolled back by the session, so a half-demoted cluster is never visible.
    Former secondaries of each demoted row are re-pointed straight at the
    survivor, keeping every cluster one hop deep.
    """

    candidates = repo.get_live_many(implicated_ids, for_update=True)
    if not candidates:
        raise InconsistentState("Could not find any primary candidates for merging.")

    current_primaries = [row for row in candidates if row.is_primary]
    degenerate = not current_primaries
    if degenerate:
        survivor = elect_survivor(candidates)
        logger.warning(
            "merge_fallback_inconsistent_graph",
            implicated_ids=sorted(set(implicated_ids)),
            survivor_id=survivor.id,
        )
        if not survivor.is_primary or survivor.linked_id is not None:
            repo.promote(survivor.id)
            survivor = replace(survivor, link_precedence=LinkPrecedence.PRIMARY, linked_id=None)
        losers = [row for row in candidates if row.id != survivor.id]
    else:
        survivor = elect_survivor(current_primaries)
        losers = [row for row in current_primaries if row.id != survivor.id]

    outcome = MergeOutcome(survivor=survivor, degenerate=degenerate)
    for loser in losers:
        repo.demote(loser.id, survivor.id)
        outcome.repointed += repo.repoint_secondaries(loser.id, survivor.id)
        outcome.demoted_ids.append(loser.id)

    logger.info(
        "clusters_merged",
        survivor_id=survivor.id,
        demoted_ids=outcome.demoted_ids,
        repointed=outcome.repointed,
        degenerate=degenerate,
    )
    return outcome


__all__ = ["MergeOutcome", "elect_survivor", "merge_clusters"]
