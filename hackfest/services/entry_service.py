"""
hackfest.services.entry_service — Entry Ledger
================================================

One scoring row per contributor username, with a point count that only
ever goes up.

Concurrency notes
-----------------
There is no locking here.  Correctness under concurrent deliveries rests on
guarantees the database already gives:

* ``username`` is the primary key, so two first-time awards racing to
  create the same entry cannot both succeed.  The loser sees an
  :class:`~sqlalchemy.exc.IntegrityError` inside a SAVEPOINT, which is
  surfaced as :class:`UniquenessConflict` and retried as a plain increment.
* The increment is a single ``UPDATE … SET points = points + 1``, never a
  read-modify-write from Python.
* A merge award first claims its Label row with a conditional ``UPDATE``
  in the same transaction, so duplicate merge deliveries cannot both score.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from hackfest.database.models import ID_LENGTH, LeaderboardEntry
from hackfest.services import label_service
from hackfest.services.errors import NotFoundError, StoreError, UniquenessConflict

logger = logging.getLogger(__name__)


def _check_leaderboard_id(leaderboard_id: str) -> None:
    if len(leaderboard_id or "") != ID_LENGTH:
        raise StoreError(f"Bad leaderboard_id, leaderboard_id={leaderboard_id}")


def _insert_entry(session: Session, leaderboard_id: str, username: str) -> None:
    """Insert a zero-point entry inside a SAVEPOINT.

    Raises :class:`UniquenessConflict` if *username* already has a row; the
    outer transaction stays usable.
    """
    try:
        with session.begin_nested():
            session.add(LeaderboardEntry(
                leaderboard_id=leaderboard_id,
                username=username,
                points=0,
            ))
            session.flush()
    except IntegrityError as exc:
        raise UniquenessConflict(
            f"Leaderboard entry already exists, username={username}"
        ) from exc


def _increment(session: Session, username: str, leaderboard_id: str) -> int:
    result = session.execute(
        update(LeaderboardEntry)
        .where(
            LeaderboardEntry.username == username,
            LeaderboardEntry.leaderboard_id == leaderboard_id,
        )
        .values(points=LeaderboardEntry.points + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError(
            f"No entry to increment, username={username}, leaderboard_id={leaderboard_id}"
        )
    return session.scalar(
        select(LeaderboardEntry.points).where(LeaderboardEntry.username == username)
    )


def _award(session: Session, leaderboard_id: str, username: str) -> int:
    try:
        _insert_entry(session, leaderboard_id, username)
        logger.info("Created leaderboard entry for %s", username)
    except UniquenessConflict:
        logger.debug("Entry for %s already exists, incrementing", username)
    return _increment(session, username, leaderboard_id)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def save_entry(engine: Engine, leaderboard_id: str, username: str) -> LeaderboardEntry:
    """Create a zero-point entry for *username*.

    Raises :class:`UniquenessConflict` if the username already has one.
    """
    _check_leaderboard_id(leaderboard_id)
    try:
        with Session(engine, expire_on_commit=False) as session:
            _insert_entry(session, leaderboard_id, username)
            session.commit()
            return session.get(LeaderboardEntry, username)
    except StoreError:
        raise
    except SQLAlchemyError as exc:
        raise StoreError(
            f"Error saving leaderboard entry, username={username}, {exc}"
        ) from exc


def increment_points(engine: Engine, username: str, leaderboard_id: str) -> int:
    """Atomically add one point to *username* and return the new total."""
    _check_leaderboard_id(leaderboard_id)
    try:
        with Session(engine) as session:
            points = _increment(session, username, leaderboard_id)
            session.commit()
            return points
    except StoreError:
        raise
    except SQLAlchemyError as exc:
        raise StoreError(
            f"Error incrementing points, leaderboard_id={leaderboard_id}, {exc}"
        ) from exc


def upsert_and_award(engine: Engine, leaderboard_id: str, username: str) -> LeaderboardEntry:
    """Make sure *username* has an entry, then award it exactly one point.

    Creation is attempted first; a :class:`UniquenessConflict` means the
    entry already exists (possibly created a moment ago by a concurrent
    delivery) and we fall straight through to the increment.  Both steps
    share one transaction, so a failed increment leaves no empty entry
    behind.
    """
    _check_leaderboard_id(leaderboard_id)
    try:
        with Session(engine, expire_on_commit=False) as session:
            points = _award(session, leaderboard_id, username)
            session.commit()
            entry = session.get(LeaderboardEntry, username, populate_existing=True)
    except StoreError:
        raise
    except SQLAlchemyError as exc:
        raise StoreError(
            f"Error awarding point, username={username}, leaderboard_id={leaderboard_id}, {exc}"
        ) from exc

    logger.info("Awarded point to %s (now %d)", username, points)
    return entry


def award_for_label(
    engine: Engine, leaderboard_id: str, username: str, pr_id: int,
) -> LeaderboardEntry:
    """Award *username* one point for the merge of labeled PR *pr_id*.

    The Label row is claimed and the point awarded in one transaction.
    Raises :class:`NotFoundError` when the PR has no unclaimed label, which
    is how a duplicate merge delivery (concurrent or late) is turned away.
    If the award fails the claim rolls back with it.
    """
    _check_leaderboard_id(leaderboard_id)
    try:
        with Session(engine, expire_on_commit=False) as session:
            if not label_service.claim_label(session, pr_id):
                raise NotFoundError(f"No unclaimed label, id={pr_id}")
            points = _award(session, leaderboard_id, username)
            session.commit()
            entry = session.get(LeaderboardEntry, username, populate_existing=True)
    except StoreError:
        raise
    except SQLAlchemyError as exc:
        raise StoreError(
            f"Error awarding point for PR {pr_id}, username={username}, {exc}"
        ) from exc

    logger.info("Awarded point to %s for PR %s (now %d)", username, pr_id, points)
    return entry


def get_entry(engine: Engine, username: str) -> LeaderboardEntry:
    """Return the entry for *username* or raise :class:`NotFoundError`."""
    try:
        with Session(engine, expire_on_commit=False) as session:
            entry = session.get(LeaderboardEntry, username)
    except SQLAlchemyError as exc:
        raise StoreError(f"Error getting entry, username={username}, {exc}") from exc

    if entry is None:
        raise NotFoundError(f"Missing leaderboard entry, username={username}")
    return entry


def get_rankings(engine: Engine, leaderboard_id: str) -> list[LeaderboardEntry]:
    """All entries for *leaderboard_id*, highest points first.

    Ties are broken by ascending username so repeated reads are stable.
    """
    try:
        with Session(engine, expire_on_commit=False) as session:
            return list(session.scalars(
                select(LeaderboardEntry)
                .where(LeaderboardEntry.leaderboard_id == leaderboard_id)
                .order_by(LeaderboardEntry.points.desc(), LeaderboardEntry.username.asc())
            ).all())
    except SQLAlchemyError as exc:
        raise StoreError(
            f"Error loading rankings, leaderboard_id={leaderboard_id}, {exc}"
        ) from exc
