"""
hackfest.services.store — Ranking Store (async façade)
========================================================

Every ledger call is issued as its own unit of concurrent work: the sync
function is shipped to a worker thread through :func:`run_db` and wrapped in
an :class:`asyncio.Task`.  The caller gets that task back immediately — a
one-shot future that resolves to exactly one :class:`StoreResult` and is
then done.

Ledger exceptions never escape the task; they are captured in
``StoreResult.err`` so a caller can branch on the error type (e.g. a
missing label on merge) without ``try`` blocks around every await::

    result = await store.get_label(pr_id)
    if isinstance(result.err, NotFoundError):
        ...
    label = result.unwrap()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy import Engine

from hackfest.database.engine import run_db
from hackfest.services import entry_service, label_service, leaderboard_service
from hackfest.services.errors import StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class StoreResult(Generic[T]):
    """Tagged result of one store call: either ``data`` or ``err``."""

    data: T | None = None
    err: StoreError | None = None

    @property
    def ok(self) -> bool:
        return self.err is None

    def unwrap(self) -> T:
        """Return ``data`` or raise the captured error."""
        if self.err is not None:
            raise self.err
        return self.data


StoreFuture = asyncio.Task  # resolves to a single StoreResult


class RankingStore:
    """Async façade over the label, entry and leaderboard ledgers.

    Methods must be called from inside a running event loop.  No locking
    happens here; see :mod:`hackfest.services.entry_service` for how
    concurrent awards stay correct.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    async def _execute(self, func: Callable[..., Any], *args: Any) -> StoreResult:
        try:
            data = await run_db(func, self.engine, *args)
        except StoreError as exc:
            return StoreResult(err=exc)
        except Exception as exc:
            logger.exception("Unexpected error in %s", func.__name__)
            return StoreResult(err=StoreError(f"{func.__name__} failed: {exc}"))
        return StoreResult(data=data)

    def _submit(self, func: Callable[..., Any], *args: Any) -> StoreFuture:
        return asyncio.create_task(self._execute(func, *args), name=f"store.{func.__name__}")

    # -- Label ledger -------------------------------------------------------
    def save_label(self, pr_id: int, name: str) -> StoreFuture:
        return self._submit(label_service.save_label, pr_id, name)

    def get_label(self, pr_id: int) -> StoreFuture:
        return self._submit(label_service.get_label, pr_id)

    def delete_label(self, pr_id: int) -> StoreFuture:
        return self._submit(label_service.delete_label, pr_id)

    # -- Entry ledger -------------------------------------------------------
    def upsert_and_award(self, leaderboard_id: str, username: str) -> StoreFuture:
        return self._submit(entry_service.upsert_and_award, leaderboard_id, username)

    def award_for_label(self, leaderboard_id: str, username: str, pr_id: int) -> StoreFuture:
        return self._submit(entry_service.award_for_label, leaderboard_id, username, pr_id)

    def increment_points(self, username: str, leaderboard_id: str) -> StoreFuture:
        return self._submit(entry_service.increment_points, username, leaderboard_id)

    def get_rankings(self, leaderboard_id: str) -> StoreFuture:
        return self._submit(entry_service.get_rankings, leaderboard_id)

    # -- Leaderboard --------------------------------------------------------
    def get_or_create_leaderboard(self, name: str) -> StoreFuture:
        return self._submit(leaderboard_service.get_or_create_leaderboard, name)

    def get_leaderboard(self, leaderboard_id: str) -> StoreFuture:
        return self._submit(leaderboard_service.get_leaderboard, leaderboard_id)


__all__ = [
    "RankingStore",
    "StoreFuture",
    "StoreResult",
]
