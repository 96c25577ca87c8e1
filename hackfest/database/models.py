"""
hackfest.database.models — SQLAlchemy 2.0 Data Models
=======================================================

Tables:
- leaderboards         — The single running leaderboard (generated 26-char id)
- leaderboard_entries  — One scoring row per contributor username
- labels               — Pull requests currently carrying the qualifying label
"""

from __future__ import annotations

import base64
import uuid

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

ID_LENGTH = 26

# z-base-32: human-friendly base32 alphabet, same shape as the ids
# already stored by earlier deployments.
_STD_ALPHABET = b"ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_ZBASE32_ALPHABET = b"ybndrfg8ejkmcpqxot1uwisza345h769"
_ZBASE32 = bytes.maketrans(_STD_ALPHABET, _ZBASE32_ALPHABET)

# Label.name once its merge has been counted; real label names are never empty.
LABEL_CONSUMED = ""


def new_id() -> str:
    """Return a globally unique 26-character identifier.

    A random UUID4 encoded with the z-base-32 alphabet, padding stripped.
    """
    encoded = base64.b32encode(uuid.uuid4().bytes).translate(_ZBASE32)
    return encoded[:ID_LENGTH].decode("ascii")


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Hackfest ORM models."""


# ---------------------------------------------------------------------------
# Leaderboard — exactly one row per running instance
# ---------------------------------------------------------------------------
class Leaderboard(Base):
    __tablename__ = "leaderboards"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}

    def __repr__(self) -> str:
        return f"<Leaderboard id={self.id} name={self.name!r}>"


# ---------------------------------------------------------------------------
# LeaderboardEntry — per-contributor point totals
# ---------------------------------------------------------------------------
class LeaderboardEntry(Base):
    __tablename__ = "leaderboard_entries"

    username: Mapped[str] = mapped_column(String(128), primary_key=True)
    leaderboard_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("leaderboards.id"), nullable=False
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    __table_args__ = (
        Index("ix_leaderboard_entries_ranking", "leaderboard_id", "points"),
    )

    def to_dict(self) -> dict:
        return {
            "leaderboard_id": self.leaderboard_id,
            "username": self.username,
            "points": self.points,
        }

    def __repr__(self) -> str:
        return f"<LeaderboardEntry username={self.username!r} points={self.points}>"


# ---------------------------------------------------------------------------
# Label — a PR that carries the qualifying label and hasn't been counted yet
# ---------------------------------------------------------------------------
class Label(Base):
    """A PR that carries the qualifying label.

    Between a counted merge and the cleanup delete, ``name`` holds
    :data:`LABEL_CONSUMED` so the same merge can never be counted twice.
    """

    __tablename__ = "labels"

    # External pull-request id assigned by the code host, not autoincremented.
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(256), nullable=False)

    def __repr__(self) -> str:
        return f"<Label pr={self.id} name={self.name!r}>"
