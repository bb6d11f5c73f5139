from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from ..errors import InconsistentState, TransactionConflict
from ..repository.contacts import ContactRepository
from .merge import MergeOutcome, merge_clusters
from .types import Contact, LinkPrecedence


@dataclass(slots=True)
class ClusterResolution:
    primary: Contact
    merge: MergeOutcome | None = None


def implicated_primary_ids(matches: Sequence[Contact]) -> List[int]:
    """Distinct primary ids reachable from the matches, in first-seen order."""
    seen: List[int] = []
    for row in matches:
        if row.is_primary:
            candidate = row.id
        elif row.linked_id is not None:
            candidate = row.linked_id
        else:
            continue
        if candidate not in seen:
            seen.append(candidate)
    if matches and not seen:
        raise InconsistentState("Data inconsistency: Could not trace matches to a primary contact.")
    return seen


def _link_state(rows: Sequence[Contact]) -> Dict[int, Tuple[LinkPrecedence, int | None]]:
    return {row.id: (row.link_precedence, row.linked_id) for row in rows}


def confirm_matches(repo: ContactRepository, matches: Sequence[Contact]) -> None:
    """Raise TransactionConflict if a matched row was relinked since it was read.

    Call only while the implicated primaries are row-locked: a merge has to
    lock a primary before demoting it, so once the locks are held the links
    read here cannot move again inside this transaction.
    """
    current = repo.get_live_many([row.id for row in matches])
    if _link_state(current) != _link_state(matches):
        raise TransactionConflict("Matched contacts were relinked by a concurrent merge")


def resolve_primary(repo: ContactRepository, matches: Sequence[Contact]) -> ClusterResolution:
    implicated = implicated_primary_ids(matches)
    locked = {row.id: row for row in repo.get_live_many(implicated, for_update=True)}
    confirm_matches(repo, matches)

    if len(implicated) > 1:
        outcome = merge_clusters(repo, implicated)
        return ClusterResolution(primary=outcome.survivor, merge=outcome)

    primary_id = implicated[0]
    primary = locked.get(primary_id)
    if primary is None:
        raise InconsistentState(
            f"Data inconsistency: Primary contact for ID {primary_id} not found or deleted."
        )
    if not primary.is_primary:
        raise InconsistentState(
            f"Data inconsistency: Contact {primary_id} is linked to as a primary but is a secondary."
        )
    return ClusterResolution(primary=primary)


__all__ = ["ClusterResolution", "confirm_matches", "implicated_primary_ids", "resolve_primary"]
