"""
hackfest.config — YAML + Environment Configuration Loader
===========================================================

**Why this file exists:**
Soft settings (leaderboard name, qualifying label, exempt usernames, port)
live in ``config.yaml``.  Secrets (``DATABASE_URL``, ``WEBHOOK_TOKEN``) only
ever come from the environment / ``.env``.

Usage::

    from hackfest.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.leaderboard_name)      # "Holiday Hackfest Leaderboard"
    print(cfg.rules.qualifying_label)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from hackfest.constants import (
    DEFAULT_LEADERBOARD_NAME,
    DEFAULT_PORT,
    DEFAULT_QUALIFYING_LABEL,
)
from hackfest.engine.classifier import ScoringRules


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class HackfestConfig:
    """Immutable configuration assembled from ``config.yaml`` and the env."""

    leaderboard_name: str
    database_url: str
    webhook_secret: str = field(repr=False)

    qualifying_label: str = DEFAULT_QUALIFYING_LABEL
    exempt_usernames: frozenset[str] = frozenset()
    port: int = DEFAULT_PORT

    @property
    def rules(self) -> ScoringRules:
        return ScoringRules(
            qualifying_label=self.qualifying_label,
            exempt_usernames=self.exempt_usernames,
        )


def _require_env(name: str, hint: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise RuntimeError(f"{name} is not set.  {hint}")
    return value


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> HackfestConfig:
    """Read *path* plus the environment and return a :class:`HackfestConfig`.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    RuntimeError
        If ``DATABASE_URL`` or ``WEBHOOK_TOKEN`` is missing.  An empty webhook
        secret would make every signature check meaningless.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    database_url = _require_env(
        "DATABASE_URL", "Copy .env.example → .env and set a valid PostgreSQL URL."
    )
    webhook_secret = _require_env(
        "WEBHOOK_TOKEN", "Set it to the secret configured on the GitHub webhook."
    )

    return HackfestConfig(
        leaderboard_name=str(raw.get("leaderboard_name") or DEFAULT_LEADERBOARD_NAME),
        database_url=database_url,
        webhook_secret=webhook_secret,
        qualifying_label=str(raw.get("qualifying_label") or DEFAULT_QUALIFYING_LABEL),
        exempt_usernames=frozenset(str(u) for u in raw.get("exempt_usernames") or ()),
        port=int(raw.get("port", DEFAULT_PORT)),
    )
