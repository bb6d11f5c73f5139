from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Sequence, Set

from ..pipeline.types import ClusterIndex, Contact


@dataclass(slots=True, frozen=True)
class Violation:
    kind: str
    contact_id: int
    detail: str

    def as_dict(self) -> dict[str, object]:
        return {"kind": self.kind, "contact_id": self.contact_id, "detail": self.detail}


def find_violations(rows: Sequence[Contact]) -> List[Violation]:
    """
    Check live rows against the contact graph invariants.

    Reported kinds:
    - ``missing_identifier``: neither email nor phone is set
    - ``primary_with_link``: a primary carries a linked id
    - ``secondary_without_link``: a secondary has no linked id
    - ``dangling_link``: a secondary points at a missing or deleted row
    - ``multi_hop_link``: a secondary points at another secondary
    - ``split_identifier``: one email or phone value appears in two clusters
    """
    live = sorted((row for row in rows if row.is_live), key=lambda row: row.sort_key)
    by_id: Dict[int, Contact] = {row.id: row for row in live}
    index = ClusterIndex.from_rows(live)
    violations: List[Violation] = []

    for row in live:
        if row.email is None and row.phone_number is None:
            violations.append(Violation("missing_identifier", row.id, "no email or phone number"))
        if row.is_primary:
            if row.linked_id is not None:
                violations.append(
                    Violation("primary_with_link", row.id, f"primary linked to {row.linked_id}")
                )
            continue
        if row.linked_id is None:
            violations.append(Violation("secondary_without_link", row.id, "secondary has no linked id"))
            continue
        target = by_id.get(row.linked_id)
        if target is None:
            violations.append(
                Violation("dangling_link", row.id, f"linked id {row.linked_id} is not a live contact")
            )
        elif not target.is_primary:
            violations.append(
                Violation("multi_hop_link", row.id, f"linked id {row.linked_id} is a secondary")
            )

    owners: Dict[str, Set[int]] = defaultdict(set)
    first_seen: Dict[str, int] = {}
    for primary_id in index.primary_ids():
        for member_id in [primary_id, *index.secondary_ids(primary_id)]:
            member = by_id[member_id]
            for key in (
                f"email:{member.email}" if member.email else None,
                f"phone:{member.phone_number}" if member.phone_number else None,
            ):
                if key is None:
                    continue
                owners[key].add(primary_id)
                first_seen.setdefault(key, member_id)

    for key in sorted(owners):
        clusters = owners[key]
        if len(clusters) > 1:
            violations.append(
                Violation(
                    "split_identifier",
                    first_seen[key],
                    f"{key} spans primaries {sorted(clusters)}",
                )
            )

    return violations


__all__ = ["Violation", "find_violations"]
