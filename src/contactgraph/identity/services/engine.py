from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from shared.logging import get_logger

from ..errors import InconsistentState, TransactionConflict, TransactionFailure
from ..pipeline.clusters import resolve_primary
from ..pipeline.enrichment import enrich_cluster
from ..pipeline.matcher import find_matches
from ..pipeline.normalizer import normalize_request
from ..pipeline.response import build_consolidated
from ..pipeline.types import ClusterIndex, ConsolidatedContact, Contact, IdentifyQuery, LinkPrecedence
from ..repository.contacts import ContactRepository, ContactStore
from .audit import Violation, find_violations

logger = get_logger("identity.engine")


def _consolidate(primary_id: int, rows: List[Contact]) -> Optional[ConsolidatedContact]:
    """Consolidated view of one cluster, read through the adjacency index."""
    index = ClusterIndex.from_rows(rows)
    primary = index.primary(primary_id)
    if primary is None:
        return None
    members = {primary_id, *index.secondary_ids(primary_id)}
    return build_consolidated(primary, [row for row in rows if row.id in members])


@dataclass(slots=True)
class ResolutionResult:
    contact: ConsolidatedContact
    outcome: str
    """One of ``created``, ``linked``, ``merged`` or ``matched``."""
    created_id: int | None = None
    merged_ids: List[int] = field(default_factory=list)
    attempts: int = 1


class IdentityResolutionEngine:
    """Runs the resolution pipeline against an injected contact store.

    Each call is one store transaction. Serialization failures and deadlocks
    restart the whole pipeline up to ``max_retries`` more times; everything
    else propagates untouched after the store has rolled back.
    """

    def __init__(
        self,
        store: ContactStore,
        *,
        max_retries: int = 3,
        retry_backoff: float = 0.05,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        self.store = store
        self.max_retries = max(0, max_retries)
        self.retry_backoff = retry_backoff
        self._sleep = sleep

    def identify(self, email: Any = None, phone_number: Any = None) -> ResolutionResult:
        return self.resolve(normalize_request(email, phone_number))

    def resolve(self, query: IdentifyQuery) -> ResolutionResult:
        attempt = 0
        while True:
            attempt += 1
            try:
                with self.store.session() as repo:
                    result = self._resolve_once(repo, query)
            except TransactionConflict as exc:
                if attempt > self.max_retries:
                    logger.error("resolution_conflict_exhausted", attempts=attempt, error=str(exc))
                    raise TransactionFailure(
                        f"Identity resolution could not commit after {attempt} attempts"
                    ) from exc
                logger.warning("resolution_conflict_retry", attempt=attempt, error=str(exc))
                self._sleep(self.retry_backoff * attempt)
                continue
            result.attempts = attempt
            return result

    def _resolve_once(self, repo: ContactRepository, query: IdentifyQuery) -> ResolutionResult:
        repo.lock_identifiers(query)
        matches = find_matches(repo, query)

        if not matches:
            contact = repo.insert_contact(
                email=query.email,
                phone_number=query.phone_number,
                link_precedence=LinkPrecedence.PRIMARY,
            )
            logger.info("identity_created", contact_id=contact.id)
            return ResolutionResult(
                contact=build_consolidated(contact, [contact]),
                outcome="created",
                created_id=contact.id,
            )

        resolution = resolve_primary(repo, matches)
        cluster = repo.get_cluster(resolution.primary.id)
        created = enrich_cluster(repo, resolution.primary, cluster, query, matches)

        if resolution.merge is not None:
            outcome = "merged"
        elif created is not None:
            outcome = "linked"
        else:
            outcome = "matched"

        contact = _consolidate(resolution.primary.id, cluster)
        if contact is None:
            raise InconsistentState(
                f"Data inconsistency: Contact {resolution.primary.id} lost its primary status mid-resolution."
            )
        return ResolutionResult(
            contact=contact,
            outcome=outcome,
            created_id=created.id if created else None,
            merged_ids=list(resolution.merge.demoted_ids) if resolution.merge else [],
        )

    def lookup(self, primary_id: int) -> Optional[ConsolidatedContact]:
        """Read-only consolidated view of an existing cluster."""
        with self.store.session() as repo:
            cluster = repo.get_cluster(primary_id)
        return _consolidate(primary_id, cluster)

    def audit(self) -> List[Violation]:
        with self.store.session() as repo:
            rows = repo.list_live()
        return find_violations(rows)

    def ping(self) -> bool:
        return self.store.ping()


__all__ = ["IdentityResolutionEngine", "ResolutionResult"]
