"""
hackfest.services.label_service — Label Ledger
================================================

Tracks pull requests that currently carry the qualifying label and have not
been counted yet.  Rows are keyed by the code host's pull-request id, so a
redelivered ``labeled`` notification lands on the same row.

A merge is counted only after :func:`claim_label` consumes the row in the
same transaction as the award.

All functions are synchronous; the async façade in
:mod:`hackfest.services.store` runs them on worker threads.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from hackfest.database.models import LABEL_CONSUMED, Label
from hackfest.services.errors import NotFoundError, StoreError

logger = logging.getLogger(__name__)


def save_label(engine: Engine, pr_id: int, name: str) -> Label:
    """Record that *pr_id* carries the label *name*.

    A row that already exists for *pr_id* is overwritten with *name*;
    duplicates are never an error.
    """
    if not pr_id:
        raise StoreError(f"Bad id, id={pr_id}")

    try:
        with Session(engine, expire_on_commit=False) as session:
            label = session.get(Label, pr_id)
            if label is None:
                label = Label(id=pr_id, name=name)
                try:
                    with session.begin_nested():   # SAVEPOINT
                        session.add(label)
                        session.flush()
                except IntegrityError:
                    # A concurrent delivery inserted it first.
                    label = session.get(Label, pr_id, populate_existing=True)
                    if label is None:
                        raise StoreError(f"Error saving label, id={pr_id}, conflict vanished")
                    label.name = name
            else:
                label.name = name
            session.commit()
            return label
    except SQLAlchemyError as exc:
        raise StoreError(f"Error saving label, id={pr_id}, err={exc}") from exc


def get_label(engine: Engine, pr_id: int) -> Label:
    """Return the Label row for *pr_id* or raise :class:`NotFoundError`."""
    try:
        with Session(engine, expire_on_commit=False) as session:
            label = session.get(Label, pr_id)
    except SQLAlchemyError as exc:
        raise StoreError(f"Error getting label, id={pr_id}, err={exc}") from exc

    if label is None:
        raise NotFoundError(f"Missing label, id={pr_id}")
    return label


def delete_label(engine: Engine, pr_id: int) -> bool:
    """Remove the Label row for *pr_id*.

    Returns whether a row was removed.  Deleting an absent row is fine.
    """
    try:
        with Session(engine) as session:
            result = session.execute(delete(Label).where(Label.id == pr_id))
            session.commit()
    except SQLAlchemyError as exc:
        raise StoreError(f"Error deleting label, id={pr_id}, err={exc}") from exc

    removed = result.rowcount > 0
    if removed:
        logger.debug("Removed label for PR %s", pr_id)
    return removed


def claim_label(session: Session, pr_id: int) -> bool:
    """Mark the Label row for *pr_id* as consumed inside *session*'s transaction.

    A single conditional ``UPDATE``, so of several concurrent callers exactly
    one sees ``True``; the others block on the row lock and then match
    nothing.  Rolling back the transaction releases the claim.
    """
    result = session.execute(
        update(Label)
        .where(Label.id == pr_id, Label.name != LABEL_CONSUMED)
        .values(name=LABEL_CONSUMED)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
