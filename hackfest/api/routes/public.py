"""
hackfest.api.routes.public — Read-only public endpoints
=========================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from hackfest.api.deps import get_leaderboard, get_store
from hackfest.database.models import Leaderboard
from hackfest.services.store import RankingStore

router = APIRouter(tags=["public"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# GET /rankings
# ---------------------------------------------------------------------------
@router.get("/rankings")
async def get_rankings(
    store: RankingStore = Depends(get_store),
    leaderboard: Leaderboard = Depends(get_leaderboard),
):
    """Current standings, highest points first, ties by username."""
    result = await store.get_rankings(leaderboard.id)
    if not result.ok:
        logger.error("Failed to load rankings, err=%s", result.err)
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Rankings unavailable")

    return {
        "leaderboard": leaderboard.to_dict(),
        "rankings": [
            {"rank": position, "username": entry.username, "points": entry.points}
            for position, entry in enumerate(result.data, start=1)
        ],
    }
