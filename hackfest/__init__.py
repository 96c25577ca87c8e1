"""
Hackfest — Contributor Leaderboard driven by GitHub Webhooks
==============================================================
Awards a point to the author of every merged pull request that carried the
qualifying label (``Hackfest`` by default), and serves the current rankings.

Package layout::

    hackfest/
    ├── config.py          # config.yaml + env → typed config
    ├── constants.py       # Shared defaults
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # Leaderboard, LeaderboardEntry, Label
    ├── engine/
    │   ├── signature.py   # X-Hub-Signature HMAC check
    │   ├── events.py      # Pull-request event model (pydantic)
    │   └── classifier.py  # Label/merge state machine
    ├── services/
    │   ├── errors.py              # StoreError taxonomy
    │   ├── label_service.py       # Label ledger
    │   ├── entry_service.py       # Entry ledger (atomic awards, rankings)
    │   ├── leaderboard_service.py # The single leaderboard row
    │   └── store.py               # Async façade, one-shot results
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Dependency injection
        └── routes/        # Webhook + public rankings
"""

__version__ = "0.1.0"
