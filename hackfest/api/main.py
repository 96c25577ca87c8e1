"""
hackfest.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn hackfest.api.main:app --port 8075

or ``python -m hackfest``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from sqlalchemy import Engine

load_dotenv()

from hackfest import __version__  # noqa: E402
from hackfest.api.deps import get_config, get_engine  # noqa: E402
from hackfest.api.routes.public import router as public_router  # noqa: E402
from hackfest.api.routes.webhook import router as webhook_router  # noqa: E402
from hackfest.config import HackfestConfig  # noqa: E402
from hackfest.database.engine import init_db, run_db  # noqa: E402
from hackfest.engine.classifier import EventClassifier  # noqa: E402
from hackfest.services.store import RankingStore  # noqa: E402

logger = logging.getLogger(__name__)


def create_app(
    config: HackfestConfig | None = None,
    engine: Engine | None = None,
) -> FastAPI:
    """Build the app.  *config* and *engine* default to the cached singletons."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup/shutdown lifecycle — schema, leaderboard row, classifier."""
        cfg = config or get_config()
        db = engine or get_engine()
        await run_db(init_db, db)

        store = RankingStore(db)
        leaderboard = (await store.get_or_create_leaderboard(cfg.leaderboard_name)).unwrap()
        classifier = EventClassifier(store, leaderboard.id, cfg.rules)

        app.state.config = cfg
        app.state.store = store
        app.state.leaderboard = leaderboard
        app.state.classifier = classifier
        logger.info(
            "Hackfest leaderboard %r ready (%s), label %r, %d exempt user(s)",
            leaderboard.name, leaderboard.id, cfg.qualifying_label, len(cfg.exempt_usernames),
        )
        yield
        if classifier.pending_cleanups:
            logger.info("Waiting for %d label cleanup(s)…", classifier.pending_cleanups)
        await classifier.drain()
        logger.info("Hackfest API shutting down")

    app = FastAPI(
        title="Hackfest Leaderboard API",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(webhook_router)
    app.include_router(public_router, prefix="/api")

    @app.get("/api/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
