"""
hackfest.services.errors — Storage error taxonomy
===================================================

Every ledger function raises one of these instead of leaking driver
exceptions, so the classifier can tell a legitimate "not there" from a
real persistence failure.
"""

from __future__ import annotations


class StoreError(Exception):
    """A database round-trip failed."""


class NotFoundError(StoreError):
    """The requested row does not exist."""


class UniquenessConflict(StoreError):
    """An insert hit a unique constraint; the row already exists."""
