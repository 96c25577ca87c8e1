"""
hackfest.api.deps — FastAPI dependency injection
==================================================

Process-wide singletons (config, engine) are cached; per-app objects built
during startup (store, classifier, leaderboard) are read from ``app.state``.
"""

from __future__ import annotations

import os
from functools import lru_cache

from fastapi import Request
from sqlalchemy import Engine

from hackfest.config import HackfestConfig, load_config
from hackfest.database.engine import create_db_engine
from hackfest.database.models import Leaderboard
from hackfest.engine.classifier import EventClassifier
from hackfest.services.store import RankingStore


@lru_cache(maxsize=1)
def get_config() -> HackfestConfig:
    return load_config(os.getenv("HACKFEST_CONFIG", "config.yaml"))


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine(get_config().database_url)


def get_app_config(request: Request) -> HackfestConfig:
    return request.app.state.config


def get_store(request: Request) -> RankingStore:
    return request.app.state.store


def get_classifier(request: Request) -> EventClassifier:
    return request.app.state.classifier


def get_leaderboard(request: Request) -> Leaderboard:
    return request.app.state.leaderboard
