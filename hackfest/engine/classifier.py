"""
hackfest.engine.classifier — Event Classification State Machine
=================================================================

Decides which pull-request notifications count toward the leaderboard.

Per pull request there are two implicit states, held in the label ledger:
``Unlabeled`` (no Label row) and ``Labeled`` (Label row present).

    labeled   + qualifying name + author not exempt  → save Label     → Labeled
    unlabeled + qualifying name                      → delete Label   → Unlabeled
    closed    + merged + Labeled + author not exempt → award point,
                                                       delete Label   → Unlabeled
    closed    + merged + Unlabeled                   → no-op
    anything else                                    → no-op

Redeliveries are harmless: a second ``labeled`` lands on the same row, and a
second merged ``closed`` finds no unclaimed Label and degrades to the no-op
path.  The award claims the Label row in the same transaction, so this holds
even when both deliveries are in flight at once.

The Label delete that follows an award is fire-and-forget.  It runs as a
detached task, retried with backoff and logged on failure; the award it
follows is never rolled back.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from hackfest.constants import DEFAULT_QUALIFYING_LABEL
from hackfest.engine.events import (
    ACTION_CLOSED,
    ACTION_LABELED,
    ACTION_UNLABELED,
    PullRequestEvent,
)
from hackfest.services.errors import NotFoundError

if TYPE_CHECKING:
    from hackfest.services.store import RankingStore

logger = logging.getLogger(__name__)

__all__ = ["EventClassifier", "Outcome", "ScoringRules"]

CLEANUP_ATTEMPTS = 3
CLEANUP_BACKOFF_SECONDS = 0.5


class Outcome(enum.StrEnum):
    """What the classifier did with one notification."""
    LABEL_SAVED = "label_saved"
    LABEL_REMOVED = "label_removed"
    AWARDED = "awarded"
    IGNORED = "ignored"
    EXEMPT = "exempt"


@dataclass(frozen=True, slots=True)
class ScoringRules:
    """Immutable scoring configuration, safe to share across requests."""

    qualifying_label: str = DEFAULT_QUALIFYING_LABEL
    exempt_usernames: frozenset[str] = field(default_factory=frozenset)

    def is_exempt(self, username: str) -> bool:
        return username in self.exempt_usernames


class EventClassifier:
    """Turns parsed notifications into ranking store calls.

    Critical-path failures (label save/delete on label events, the claim and
    award on merge) propagate as :class:`~hackfest.services.errors.StoreError`.
    """

    def __init__(
        self,
        store: RankingStore,
        leaderboard_id: str,
        rules: ScoringRules,
        *,
        cleanup_attempts: int = CLEANUP_ATTEMPTS,
        cleanup_backoff: float = CLEANUP_BACKOFF_SECONDS,
    ) -> None:
        self.store = store
        self.leaderboard_id = leaderboard_id
        self.rules = rules
        self.cleanup_attempts = max(1, cleanup_attempts)
        self.cleanup_backoff = cleanup_backoff
        # Strong refs so detached cleanups aren't garbage-collected mid-flight.
        self._pending: set[asyncio.Task] = set()

    async def handle(self, event: PullRequestEvent) -> Outcome:
        if self.rules.is_exempt(event.author):
            logger.debug("Ignoring %s on PR %s by exempt author %s",
                         event.action, event.pr_id, event.author)
            return Outcome.EXEMPT

        if event.action == ACTION_LABELED:
            return await self._on_labeled(event)
        if event.action == ACTION_UNLABELED:
            return await self._on_unlabeled(event)
        if event.action == ACTION_CLOSED:
            return await self._on_closed(event)
        return Outcome.IGNORED

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def _qualifies(self, event: PullRequestEvent) -> bool:
        return event.label_name == self.rules.qualifying_label

    async def _on_labeled(self, event: PullRequestEvent) -> Outcome:
        if not self._qualifies(event):
            return Outcome.IGNORED

        (await self.store.save_label(event.pr_id, event.label_name)).unwrap()
        logger.info("PR %s by %s labeled %r", event.pr_id, event.author, event.label_name)
        return Outcome.LABEL_SAVED

    async def _on_unlabeled(self, event: PullRequestEvent) -> Outcome:
        if not self._qualifies(event):
            return Outcome.IGNORED

        removed = (await self.store.delete_label(event.pr_id)).unwrap()
        if not removed:
            return Outcome.IGNORED
        logger.info("PR %s unlabeled %r", event.pr_id, event.label_name)
        return Outcome.LABEL_REMOVED

    async def _on_closed(self, event: PullRequestEvent) -> Outcome:
        if not event.is_merged:
            return Outcome.IGNORED

        result = await self.store.award_for_label(self.leaderboard_id, event.author, event.pr_id)
        if isinstance(result.err, NotFoundError):
            # Never carried the qualifying label, or already counted.
            logger.debug("Merged PR %s has no unclaimed label", event.pr_id)
            return Outcome.IGNORED
        entry = result.unwrap()

        logger.info("Merged PR %s → %s now has %d point(s)",
                    event.pr_id, entry.username, entry.points)

        self._schedule_cleanup(event.pr_id)
        return Outcome.AWARDED

    # ------------------------------------------------------------------
    # Best-effort label cleanup
    # ------------------------------------------------------------------
    def _schedule_cleanup(self, pr_id: int) -> None:
        task = asyncio.create_task(self._cleanup_label(pr_id), name=f"cleanup.label.{pr_id}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _cleanup_label(self, pr_id: int) -> bool:
        delay = self.cleanup_backoff
        for attempt in range(1, self.cleanup_attempts + 1):
            result = await self.store.delete_label(pr_id)
            if result.ok:
                return True
            logger.warning(
                "Failed to remove label for PR %s (attempt %d/%d): %s",
                pr_id, attempt, self.cleanup_attempts, result.err,
            )
            if attempt < self.cleanup_attempts:
                await asyncio.sleep(delay)
                delay *= 2

        logger.error(
            "Giving up removing label for PR %s; its row stays claimed",
            pr_id,
        )
        return False

    @property
    def pending_cleanups(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every outstanding label cleanup to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
