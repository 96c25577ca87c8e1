"""
hackfest.__main__ — Entry point for ``python -m hackfest``
============================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings) — fail fast if anything is missing.
3. Hand the app to uvicorn; the FastAPI lifespan creates tables, the
   leaderboard row and the event classifier.
"""

from __future__ import annotations

import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("hackfest")


def main() -> None:
    """Bootstrap and run the leaderboard server."""
    load_dotenv()

    from hackfest.api.deps import get_config

    try:
        cfg = get_config()
    except (FileNotFoundError, RuntimeError) as exc:
        logger.critical("%s", exc)
        sys.exit(1)

    logger.info("Starting up leaderboard server — %s on :%d", cfg.leaderboard_name, cfg.port)
    uvicorn.run(
        "hackfest.api.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=cfg.port,
        log_config=None,
    )
    logger.info("Stopping leaderboard server")


if __name__ == "__main__":
    main()
