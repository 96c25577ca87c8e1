"""
hackfest.services.leaderboard_service — The single Leaderboard row
====================================================================

Startup calls :func:`get_or_create_leaderboard` once with the configured
display name; every entry written afterwards references that row's id.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from hackfest.database.engine import get_session
from hackfest.database.models import Leaderboard
from hackfest.services.errors import NotFoundError, StoreError

logger = logging.getLogger(__name__)


def get_or_create_leaderboard(engine: Engine, name: str) -> Leaderboard:
    """Return the leaderboard called *name*, inserting it if absent.

    Idempotent — restarting the service reuses the existing row and id.
    """
    if not name:
        raise StoreError("Leaderboard name must not be empty")

    try:
        with get_session(engine) as session:
            existing = session.scalar(select(Leaderboard).where(Leaderboard.name == name))
            if existing is not None:
                return existing
            leaderboard = Leaderboard(name=name)
            session.add(leaderboard)
            session.flush()
        logger.info("Created leaderboard %r (%s)", leaderboard.name, leaderboard.id)
        return leaderboard
    except IntegrityError:
        # Another process created it between our SELECT and INSERT.
        return get_leaderboard_by_name(engine, name)
    except SQLAlchemyError as exc:
        raise StoreError(f"Error saving leaderboard, name={name}, {exc}") from exc


def get_leaderboard(engine: Engine, leaderboard_id: str) -> Leaderboard:
    try:
        with get_session(engine) as session:
            leaderboard = session.get(Leaderboard, leaderboard_id)
    except SQLAlchemyError as exc:
        raise StoreError(
            f"Error getting leaderboard, leaderboard_id={leaderboard_id}, {exc}"
        ) from exc

    if leaderboard is None:
        raise NotFoundError(f"Missing leaderboard, leaderboard_id={leaderboard_id}")
    return leaderboard


def get_leaderboard_by_name(engine: Engine, name: str) -> Leaderboard:
    try:
        with get_session(engine) as session:
            leaderboard = session.scalar(select(Leaderboard).where(Leaderboard.name == name))
    except SQLAlchemyError as exc:
        raise StoreError(f"Error getting leaderboard by name, name={name}, {exc}") from exc

    if leaderboard is None:
        raise NotFoundError(f"Missing leaderboard, name={name}")
    return leaderboard
