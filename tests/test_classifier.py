"""
tests/test_classifier.py — Event classification state machine
===============================================================
Drives the classifier with parsed events against a real SQLite-backed
ranking store, plus a few fault-injecting stores for the failure paths.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from unittest.mock import patch

import pytest
from conftest import encode, make_payload, run_async
from sqlalchemy.exc import OperationalError

from hackfest.engine.classifier import EventClassifier, Outcome, ScoringRules
from hackfest.engine.events import parse_event
from hackfest.services import entry_service, label_service
from hackfest.services.errors import NotFoundError, StoreError
from hackfest.services.leaderboard_service import get_or_create_leaderboard
from hackfest.services.store import RankingStore, StoreResult

RULES = ScoringRules(qualifying_label="Hackfest", exempt_usernames=frozenset({"core-dev"}))


def labeled(pr_id, author="alice", label="Hackfest"):
    return parse_event(encode(make_payload("labeled", pr_id, author, label=label)))


def unlabeled(pr_id, author="alice", label="Hackfest"):
    return parse_event(encode(make_payload("unlabeled", pr_id, author, label=label)))


def merged(pr_id, author="alice"):
    return parse_event(encode(make_payload("closed", pr_id, author, merged=True)))


def closed_unmerged(pr_id, author="alice"):
    return parse_event(encode(make_payload("closed", pr_id, author, merged=False)))


@pytest.fixture
def engine(file_engine):
    return file_engine


@pytest.fixture
def leaderboard_id(engine):
    return get_or_create_leaderboard(engine, "Test Leaderboard").id


def _classifier(store, leaderboard_id, **kwargs):
    kwargs.setdefault("cleanup_backoff", 0)
    return EventClassifier(store, leaderboard_id, RULES, **kwargs)


def deliver(engine, leaderboard_id, *events, store=None, **kwargs) -> list[Outcome]:
    """Feed *events* in order through one classifier, then drain cleanups."""
    classifier = _classifier(store or RankingStore(engine), leaderboard_id, **kwargs)

    async def scenario():
        outcomes = []
        for event in events:
            outcomes.append(await classifier.handle(event))
            await classifier.drain()
        return outcomes

    return run_async(scenario())


def _has_label(engine, pr_id) -> bool:
    try:
        label_service.get_label(engine, pr_id)
    except NotFoundError:
        return False
    return True


def _points(engine, username) -> int | None:
    try:
        return entry_service.get_entry(engine, username).points
    except NotFoundError:
        return None


# ===========================================================================
# Transitions
# ===========================================================================
class TestLabelTransitions:
    def test_qualifying_label_creates_row(self, engine, leaderboard_id):
        assert deliver(engine, leaderboard_id, labeled(42)) == [Outcome.LABEL_SAVED]
        assert _has_label(engine, 42)

    def test_other_label_ignored(self, engine, leaderboard_id):
        assert deliver(engine, leaderboard_id, labeled(42, label="bug")) == [Outcome.IGNORED]
        assert not _has_label(engine, 42)

    def test_label_match_is_exact(self, engine, leaderboard_id):
        assert deliver(engine, leaderboard_id, labeled(42, label="hackfest")) == [Outcome.IGNORED]

    def test_duplicate_labeled_leaves_one_row(self, engine, leaderboard_id):
        outcomes = deliver(engine, leaderboard_id, labeled(42), labeled(42))
        assert outcomes == [Outcome.LABEL_SAVED, Outcome.LABEL_SAVED]
        assert _has_label(engine, 42)

    def test_unlabeled_removes_row(self, engine, leaderboard_id):
        outcomes = deliver(engine, leaderboard_id, labeled(42), unlabeled(42))
        assert outcomes == [Outcome.LABEL_SAVED, Outcome.LABEL_REMOVED]
        assert not _has_label(engine, 42)

    def test_unlabeled_without_row_is_noop(self, engine, leaderboard_id):
        assert deliver(engine, leaderboard_id, unlabeled(42)) == [Outcome.IGNORED]

    def test_unlabeled_other_label_keeps_row(self, engine, leaderboard_id):
        deliver(engine, leaderboard_id, labeled(42), unlabeled(42, label="bug"))
        assert _has_label(engine, 42)


class TestMergeTransitions:
    def test_label_then_merge_awards_and_clears(self, engine, leaderboard_id):
        outcomes = deliver(engine, leaderboard_id, labeled(7), merged(7))
        assert outcomes == [Outcome.LABEL_SAVED, Outcome.AWARDED]
        assert _points(engine, "alice") == 1
        assert not _has_label(engine, 7)

    def test_merge_without_label_is_noop(self, engine, leaderboard_id):
        assert deliver(engine, leaderboard_id, merged(7)) == [Outcome.IGNORED]
        assert _points(engine, "alice") is None

    def test_closed_unmerged_keeps_label(self, engine, leaderboard_id):
        outcomes = deliver(engine, leaderboard_id, labeled(7), closed_unmerged(7))
        assert outcomes == [Outcome.LABEL_SAVED, Outcome.IGNORED]
        assert _has_label(engine, 7)
        assert _points(engine, "alice") is None

    def test_duplicate_merge_awards_once(self, engine, leaderboard_id):
        outcomes = deliver(engine, leaderboard_id, labeled(7), merged(7), merged(7))
        assert outcomes == [Outcome.LABEL_SAVED, Outcome.AWARDED, Outcome.IGNORED]
        assert _points(engine, "alice") == 1

    def test_label_unlabel_merge_never_awards(self, engine, leaderboard_id):
        outcomes = deliver(engine, leaderboard_id, labeled(42), unlabeled(42), merged(42))
        assert outcomes == [Outcome.LABEL_SAVED, Outcome.LABEL_REMOVED, Outcome.IGNORED]
        assert _points(engine, "alice") is None

    def test_points_accumulate_across_prs(self, engine, leaderboard_id):
        deliver(
            engine, leaderboard_id,
            labeled(1), merged(1),
            labeled(2), merged(2),
            labeled(3, author="bob"), merged(3, author="bob"),
        )
        assert _points(engine, "alice") == 2
        assert _points(engine, "bob") == 1

    def test_relabel_after_award_counts_again_only_on_new_merge(self, engine, leaderboard_id):
        deliver(engine, leaderboard_id, labeled(7), merged(7), labeled(7))
        assert _points(engine, "alice") == 1
        assert _has_label(engine, 7)

    def test_other_actions_ignored(self, engine, leaderboard_id):
        event = parse_event(encode(make_payload("reopened", 7, label="Hackfest")))
        assert deliver(engine, leaderboard_id, labeled(7), event)[1] == Outcome.IGNORED
        assert _has_label(engine, 7)


class TestExemptAuthors:
    def test_exempt_label_not_recorded(self, engine, leaderboard_id):
        assert deliver(engine, leaderboard_id, labeled(9, "core-dev")) == [Outcome.EXEMPT]
        assert not _has_label(engine, 9)

    def test_exempt_never_accumulates_points(self, engine, leaderboard_id):
        # Label written before the author became exempt.
        label_service.save_label(engine, 9, "Hackfest")
        outcomes = deliver(engine, leaderboard_id, labeled(9, "core-dev"), merged(9, "core-dev"))
        assert outcomes == [Outcome.EXEMPT, Outcome.EXEMPT]
        assert _points(engine, "core-dev") is None

    def test_exempt_short_circuits_without_store(self, leaderboard_id):
        classifier = EventClassifier(None, leaderboard_id, RULES)
        assert run_async(classifier.handle(merged(9, "core-dev"))) == Outcome.EXEMPT


# ===========================================================================
# Failure paths
# ===========================================================================
REAL = object()


async def _resolved(result: StoreResult) -> StoreResult:
    return result


class _ScriptedStore(RankingStore):
    """RankingStore whose operations can be scripted to return canned results.

    Each script is consumed front to back; its last item repeats.  ``REAL``
    hands the call through to the database.
    """

    def __init__(self, engine, **scripts):
        super().__init__(engine)
        self.scripts = {name: list(results) for name, results in scripts.items()}
        self.calls: Counter[str] = Counter()

    def _next(self, name, real, *args):
        self.calls[name] += 1
        script = self.scripts.get(name)
        if script:
            result = script.pop(0) if len(script) > 1 else script[0]
            if result is not REAL:
                return _resolved(result)
        return real(*args)

    def save_label(self, pr_id, name):
        return self._next("save_label", super().save_label, pr_id, name)

    def delete_label(self, pr_id):
        return self._next("delete_label", super().delete_label, pr_id)

    def award_for_label(self, leaderboard_id, username, pr_id):
        return self._next(
            "award_for_label", super().award_for_label, leaderboard_id, username, pr_id,
        )


class TestFailurePaths:
    def test_award_store_failure_raises(self, engine, leaderboard_id):
        store = _ScriptedStore(engine, award_for_label=[StoreResult(err=StoreError("db down"))])
        with pytest.raises(StoreError, match="db down"):
            deliver(engine, leaderboard_id, merged(7), store=store)

    def test_award_failure_raises_and_keeps_label(self, engine, leaderboard_id):
        label_service.save_label(engine, 7, "Hackfest")
        store = _ScriptedStore(engine, award_for_label=[StoreResult(err=StoreError("boom"))])
        with pytest.raises(StoreError):
            deliver(engine, leaderboard_id, merged(7), store=store)
        # Nothing was awarded, so the label stays for the redelivery.
        assert _has_label(engine, 7)
        assert store.calls.get("delete_label") is None

    def test_label_save_failure_raises(self, engine, leaderboard_id):
        store = _ScriptedStore(engine, save_label=[StoreResult(err=StoreError("nope"))])
        with pytest.raises(StoreError):
            deliver(engine, leaderboard_id, labeled(7), store=store)

    def test_cleanup_retries_then_succeeds(self, engine, leaderboard_id, caplog):
        label_service.save_label(engine, 7, "Hackfest")
        failure = StoreResult(err=StoreError("transient"))
        store = _ScriptedStore(engine, delete_label=[failure, failure, REAL])

        with caplog.at_level(logging.WARNING, logger="hackfest.engine.classifier"):
            outcomes = deliver(engine, leaderboard_id, merged(7), store=store)

        assert outcomes == [Outcome.AWARDED]
        assert store.calls["delete_label"] == 3
        assert not _has_label(engine, 7)
        assert caplog.text.count("Failed to remove label for PR 7") == 2

    def test_cleanup_failure_does_not_roll_back_award(self, engine, leaderboard_id, caplog):
        label_service.save_label(engine, 7, "Hackfest")
        store = _ScriptedStore(engine, delete_label=[StoreResult(err=StoreError("down"))])

        with caplog.at_level(logging.WARNING, logger="hackfest.engine.classifier"):
            outcomes = deliver(engine, leaderboard_id, merged(7), store=store, cleanup_attempts=2)

        assert outcomes == [Outcome.AWARDED]
        assert _points(engine, "alice") == 1
        assert store.calls["delete_label"] == 2
        assert "Giving up removing label for PR 7" in caplog.text

    def test_failed_award_releases_claim(self, engine, leaderboard_id):
        label_service.save_label(engine, 7, "Hackfest")
        boom = OperationalError("UPDATE", {}, Exception("disk I/O error"))
        with patch("hackfest.services.entry_service._increment", side_effect=boom):
            with pytest.raises(StoreError):
                deliver(engine, leaderboard_id, merged(7))

        assert label_service.get_label(engine, 7).name == "Hackfest"
        assert _points(engine, "alice") is None
        # The redelivery finds the label unclaimed and counts it.
        assert deliver(engine, leaderboard_id, merged(7)) == [Outcome.AWARDED]
        assert _points(engine, "alice") == 1


class TestCleanupIsDetached:
    def test_response_does_not_wait_for_cleanup(self, engine, leaderboard_id):
        label_service.save_label(engine, 7, "Hackfest")
        classifier = _classifier(RankingStore(engine), leaderboard_id)

        async def scenario():
            outcome = await classifier.handle(merged(7))
            pending = classifier.pending_cleanups
            await classifier.drain()
            return outcome, pending, classifier.pending_cleanups

        outcome, pending_before, pending_after = run_async(scenario())
        assert outcome == Outcome.AWARDED
        assert pending_before == 1
        assert pending_after == 0
        assert not _has_label(engine, 7)


class TestConcurrentMerges:
    """The same merge delivered twice with both requests in flight."""

    def test_overlapping_duplicate_merges_award_once(self, engine, leaderboard_id):
        label_service.save_label(engine, 7, "Hackfest")
        classifier = _classifier(RankingStore(engine), leaderboard_id)

        async def scenario():
            outcomes = await asyncio.gather(
                classifier.handle(merged(7)),
                classifier.handle(merged(7)),
            )
            await classifier.drain()
            return outcomes

        outcomes = run_async(scenario())
        assert sorted(outcomes) == sorted([Outcome.AWARDED, Outcome.IGNORED])
        assert _points(engine, "alice") == 1
        assert not _has_label(engine, 7)

    def test_many_overlapping_merges_across_prs(self, engine, leaderboard_id):
        for pr_id in (1, 2, 3):
            label_service.save_label(engine, pr_id, "Hackfest")
        classifier = _classifier(RankingStore(engine), leaderboard_id)

        async def scenario():
            deliveries = [classifier.handle(merged(pr_id)) for pr_id in (1, 2, 3) for _ in range(3)]
            outcomes = await asyncio.gather(*deliveries)
            await classifier.drain()
            return outcomes

        outcomes = run_async(scenario())
        assert outcomes.count(Outcome.AWARDED) == 3
        assert _points(engine, "alice") == 3
