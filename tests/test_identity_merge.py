"""
Tests for the merge executor and transactional behaviour.

Tests cover:
- Survivor election (oldest created_at, id as tie-break)
- Re-pointing of former secondaries
- Degenerate fallback when no implicated row is still primary
- Rollback when a merge fails part-way
- Bounded retries on transaction conflicts
- Links read before a concurrent merge committed are detected and retried
"""

import contextlib
from dataclasses import replace

import pytest

from contactgraph.identity.errors import InconsistentState, TransactionConflict, TransactionFailure
from contactgraph.identity.pipeline.clusters import implicated_primary_ids, resolve_primary
from contactgraph.identity.pipeline.matcher import find_matches
from contactgraph.identity.pipeline.merge import elect_survivor, merge_clusters
from contactgraph.identity.pipeline.types import IdentifyQuery, LinkPrecedence
from contactgraph.identity.repository.contacts import ContactStore
from contactgraph.identity.repository.memory import InMemoryContactRepository
from contactgraph.identity.services.audit import find_violations
from contactgraph.identity.services.engine import IdentityResolutionEngine

from conftest import at

SECONDARY = LinkPrecedence.SECONDARY


@pytest.fixture
def two_clusters(store):
    p1 = store.add(email="a@x.com", created_at=at(1))
    p2 = store.add(phone_number="222", created_at=at(2))
    s2 = store.add(
        email="c@x.com", phone_number="222", link_precedence=SECONDARY, linked_id=p2.id, created_at=at(3)
    )
    p3 = store.add(email="d@x.com", created_at=at(4))
    return {"store": store, "p1": p1, "p2": p2, "s2": s2, "p3": p3}


class TestElectSurvivor:
    def test_oldest_wins(self, store):
        newer = store.add(email="a@x.com", created_at=at(9))
        older = store.add(email="b@x.com", created_at=at(3))
        assert elect_survivor([newer, older]).id == older.id

    def test_equal_timestamps_prefer_smaller_id(self, store):
        first = store.add(email="a@x.com", created_at=at(5))
        second = store.add(email="b@x.com", created_at=at(5))
        assert elect_survivor([second, first]).id == first.id

    def test_empty_candidates_are_inconsistent(self):
        with pytest.raises(InconsistentState):
            elect_survivor([])


class TestMergeClusters:
    def test_demotes_and_repoints(self, two_clusters):
        store = two_clusters["store"]
        p1, p2, s2, p3 = (two_clusters[key] for key in ("p1", "p2", "s2", "p3"))

        with store.session() as repo:
            outcome = merge_clusters(repo, [p3.id, p2.id, p1.id])

        assert outcome.survivor.id == p1.id
        assert sorted(outcome.demoted_ids) == sorted([p2.id, p3.id])
        assert outcome.repointed == 1
        assert outcome.degenerate is False

        rows = {row.id: row for row in store.rows()}
        assert rows[p1.id].link_precedence == LinkPrecedence.PRIMARY
        for contact_id in (p2.id, s2.id, p3.id):
            assert rows[contact_id].linked_id == p1.id
        assert rows[p2.id].updated_at > rows[p2.id].created_at

    def test_rows_that_became_secondary_are_not_survivors(self, store):
        p1 = store.add(email="a@x.com", created_at=at(2))
        old = store.add(email="z@x.com", link_precedence=SECONDARY, linked_id=p1.id, created_at=at(1))
        p2 = store.add(email="b@x.com", created_at=at(3))

        with store.session() as repo:
            outcome = merge_clusters(repo, [old.id, p1.id, p2.id])

        assert outcome.survivor.id == p1.id
        assert outcome.demoted_ids == [p2.id]

    def test_degenerate_fallback_promotes_oldest_row(self, store):
        root = store.add(email="root@x.com", created_at=at(1))
        a = store.add(email="a@x.com", link_precedence=SECONDARY, linked_id=root.id, created_at=at(2))
        b = store.add(email="b@x.com", link_precedence=SECONDARY, linked_id=root.id, created_at=at(3))
        child = store.add(email="c@x.com", link_precedence=SECONDARY, linked_id=b.id, created_at=at(4))

        with store.session() as repo:
            outcome = merge_clusters(repo, [b.id, a.id])

        assert outcome.degenerate is True
        assert outcome.survivor.id == a.id
        assert outcome.survivor.is_primary
        rows = {row.id: row for row in store.rows()}
        assert rows[a.id].link_precedence == LinkPrecedence.PRIMARY
        assert rows[a.id].linked_id is None
        assert rows[b.id].linked_id == a.id
        assert rows[child.id].linked_id == a.id

    def test_missing_candidates_are_inconsistent(self, store):
        gone = store.add(email="a@x.com", created_at=at(1), deleted_at=at(2))

        with pytest.raises(InconsistentState):
            with store.session() as repo:
                merge_clusters(repo, [gone.id, 4242])


class TestMergeAtomicity:
    def test_failure_after_first_demotion_rolls_back(self, two_clusters, monkeypatch):
        store = two_clusters["store"]
        before = store.rows()
        calls = {"demote": 0}
        original_demote = InMemoryContactRepository.demote

        def failing_demote(self, contact_id, primary_id):
            calls["demote"] += 1
            if calls["demote"] == 2:
                raise RuntimeError("connection dropped mid-merge")
            return original_demote(self, contact_id, primary_id)

        monkeypatch.setattr(InMemoryContactRepository, "demote", failing_demote)

        with pytest.raises(RuntimeError, match="mid-merge"):
            with store.session() as repo:
                merge_clusters(
                    repo, [two_clusters["p1"].id, two_clusters["p2"].id, two_clusters["p3"].id]
                )

        assert calls["demote"] == 2
        assert store.rows() == before

    def test_engine_failure_leaves_store_untouched(self, two_clusters, engine, monkeypatch):
        store = two_clusters["store"]
        before = store.rows()

        def failing_repoint(self, from_id, to_id):
            raise TransactionFailure("commit refused")

        monkeypatch.setattr(InMemoryContactRepository, "repoint_secondaries", failing_repoint)

        with pytest.raises(TransactionFailure):
            engine.identify(email="a@x.com", phone_number="222")

        assert store.rows() == before


class ConflictingStore(ContactStore):
    """Wraps a store and raises TransactionConflict for the first N sessions."""

    def __init__(self, inner, conflicts):
        self.inner = inner
        self.remaining = conflicts
        self.sessions = 0

    @contextlib.contextmanager
    def session(self):
        self.sessions += 1
        with self.inner.session() as repo:
            yield repo
            if self.remaining > 0:
                self.remaining -= 1
                raise TransactionConflict("could not serialize access")

    def ping(self):
        return True


class TestConflictRetries:
    def test_retries_until_commit(self, store):
        flaky = ConflictingStore(store, conflicts=2)
        delays = []
        engine = IdentityResolutionEngine(flaky, max_retries=3, retry_backoff=0.5, sleep=delays.append)

        result = engine.identify(email="a@x.com")

        assert result.attempts == 3
        assert flaky.sessions == 3
        assert delays == [0.5, 1.0]
        assert len(store.rows()) == 1

    def test_gives_up_after_bounded_retries(self, store):
        flaky = ConflictingStore(store, conflicts=10)
        engine = IdentityResolutionEngine(flaky, max_retries=2, retry_backoff=0.0, sleep=lambda _: None)

        with pytest.raises(TransactionFailure, match="after 3 attempts") as excinfo:
            engine.identify(email="a@x.com")

        assert not isinstance(excinfo.value, TransactionConflict)
        assert flaky.sessions == 3
        assert store.rows() == []

    def test_inconsistent_state_is_not_retried(self, store):
        flaky = ConflictingStore(store, conflicts=0)
        engine = IdentityResolutionEngine(flaky, max_retries=5, retry_backoff=0.0, sleep=lambda _: None)
        store.add(email="a@x.com", link_precedence=SECONDARY, linked_id=None, created_at=at(1))

        with pytest.raises(InconsistentState):
            engine.identify(email="a@x.com")

        assert flaky.sessions == 1


class TestConcurrentRelink:
    def test_merge_committed_after_match_read_conflicts(self, store, engine):
        p1 = store.add(email="a@x.com", created_at=at(1))
        p2 = store.add(phone_number="222", created_at=at(2))
        s2 = store.add(
            email="c@x.com",
            phone_number="222",
            link_precedence=SECONDARY,
            linked_id=p2.id,
            created_at=at(3),
        )
        query = IdentifyQuery(email="c@x.com", phone_number="333")

        with store.session() as repo:
            matches = find_matches(repo, query)
        assert implicated_primary_ids(matches) == [p2.id]

        engine.identify(email="a@x.com", phone_number="222")

        with pytest.raises(TransactionConflict):
            with store.session() as repo:
                resolve_primary(repo, matches)

        rows = {row.id: row for row in store.rows()}
        assert rows[s2.id].linked_id == p1.id
        assert all(row.linked_id != p2.id for row in rows.values())

    def test_engine_retries_with_fresh_links(self, store, engine, monkeypatch):
        p1 = store.add(email="a@x.com", created_at=at(1))
        p2 = store.add(
            phone_number="222", link_precedence=SECONDARY, linked_id=p1.id, created_at=at(2)
        )
        s2 = store.add(
            email="c@x.com",
            phone_number="222",
            link_precedence=SECONDARY,
            linked_id=p1.id,
            created_at=at(3),
        )
        real_find = InMemoryContactRepository.find_matches
        calls = []

        def find_with_stale_first_read(self, query):
            calls.append(query)
            rows = real_find(self, query)
            if len(calls) == 1:
                return [replace(row, linked_id=p2.id) if row.id == s2.id else row for row in rows]
            return rows

        monkeypatch.setattr(InMemoryContactRepository, "find_matches", find_with_stale_first_read)

        result = engine.identify(email="c@x.com", phone_number="333")

        assert result.attempts == 2
        assert result.contact.primary_contact_id == p1.id
        created = next(row for row in store.rows() if row.id == result.created_id)
        assert created.linked_id == p1.id
        assert find_violations(store.rows()) == []
        assert engine.identify(phone_number="333").contact.primary_contact_id == p1.id

    def test_unchanged_link_to_secondary_is_still_inconsistent(self, store, engine):
        p1 = store.add(email="a@x.com", created_at=at(1))
        s1 = store.add(email="b@x.com", link_precedence=SECONDARY, linked_id=p1.id, created_at=at(2))
        store.add(email="c@x.com", link_precedence=SECONDARY, linked_id=s1.id, created_at=at(3))

        with pytest.raises(InconsistentState, match="is a secondary"):
            engine.identify(email="c@x.com")
