"""
hackfest.constants — Shared Constants
=======================================

Single source of truth for defaults shared by the config loader, the
classifier and the HTTP layer.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Scoring defaults
# ---------------------------------------------------------------------------
DEFAULT_QUALIFYING_LABEL = "Hackfest"
DEFAULT_LEADERBOARD_NAME = "Holiday Hackfest Leaderboard"

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
DEFAULT_PORT = 8075

# Webhook acknowledgements (text/plain).  GitHub redelivers on non-2xx, so
# the verdict travels in the body and the status is always 200.
RESPONSE_OK = "ok"
RESPONSE_FAIL = "fail"
