"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
import json

import pytest
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.pool import StaticPool

from hackfest.config import HackfestConfig
from hackfest.database.models import Base
from hackfest.engine.signature import compute_signature
from hackfest.services.leaderboard_service import get_or_create_leaderboard

TEST_SECRET = "test-webhook-secret"


def _enable_sqlite_savepoints(engine: Engine, begin: str = "BEGIN") -> None:
    """Let SQLAlchemy own SQLite transactions so SAVEPOINT works.

    pysqlite's implicit BEGIN handling otherwise breaks ``begin_nested()``,
    which both ledgers rely on for unique-constraint recovery.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql(begin)


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all Hackfest tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in the ranking store).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """File-backed SQLite engine with a real pool, one connection per thread.

    Used wherever store calls may overlap.  ``BEGIN IMMEDIATE`` makes
    writers queue on the busy timeout instead of failing on lock upgrade.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'leaderboard.db'}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    _enable_sqlite_savepoints(engine, begin="BEGIN IMMEDIATE")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def leaderboard_id(db_engine) -> str:
    return get_or_create_leaderboard(db_engine, "Test Leaderboard").id


@pytest.fixture
def config() -> HackfestConfig:
    return HackfestConfig(
        leaderboard_name="Test Leaderboard",
        database_url="sqlite://",
        webhook_secret=TEST_SECRET,
        qualifying_label="Hackfest",
        exempt_usernames=frozenset({"core-dev"}),
    )


def run_async(coro):
    """Run an async coroutine in a fresh event loop."""
    return asyncio.run(coro)


def make_payload(
    action: str,
    pr_id: int,
    author: str = "alice",
    *,
    merged: bool = False,
    label: str | None = None,
) -> dict:
    """Build a trimmed GitHub ``pull_request`` webhook payload."""
    payload = {
        "action": action,
        "number": 1,
        "pull_request": {
            "id": pr_id,
            "merged": merged,
            "user": {"id": 1001, "login": author},
        },
    }
    if label is not None:
        payload["label"] = {"name": label, "color": "ededed"}
    return payload


def sign(body: bytes, secret: str = TEST_SECRET) -> dict:
    """Headers for a correctly signed delivery of *body*."""
    return {
        "X-Hub-Signature": compute_signature(body, secret),
        "Content-Type": "application/json",
        "X-GitHub-Event": "pull_request",
    }


def encode(payload: dict) -> bytes:
    return json.dumps(payload).encode("utf-8")
