"""
hackfest.engine.events — Pull-request webhook event model
===========================================================

Every delivery body is parsed into a :class:`PullRequestEvent` before the
classifier looks at it.  Only the fields the scoring rules need are modelled;
everything else GitHub sends is ignored.

A body that can't be parsed raises :class:`EventParseError` — we never fall
back to a zero-valued event, since that would credit the wrong pull request.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, ValidationError

__all__ = [
    "ACTION_CLOSED",
    "ACTION_LABELED",
    "ACTION_UNLABELED",
    "EventParseError",
    "PullRequestEvent",
    "parse_event",
]

ACTION_CLOSED = "closed"
ACTION_LABELED = "labeled"
ACTION_UNLABELED = "unlabeled"


class EventParseError(ValueError):
    """The webhook body isn't a usable pull-request event."""


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class EventUser(_Lenient):
    login: str


class EventPullRequest(_Lenient):
    id: int
    merged: bool | None = False
    user: EventUser


class EventLabel(_Lenient):
    name: str = ""


class PullRequestEvent(_Lenient):
    """A ``pull_request`` webhook delivery, trimmed to what scoring needs."""

    action: str
    pull_request: EventPullRequest
    label: EventLabel | None = None

    @property
    def pr_id(self) -> int:
        return self.pull_request.id

    @property
    def author(self) -> str:
        return self.pull_request.user.login

    @property
    def is_merged(self) -> bool:
        return bool(self.pull_request.merged)

    @property
    def label_name(self) -> str:
        return self.label.name if self.label is not None else ""


def parse_event(body: bytes | str) -> PullRequestEvent:
    """Parse a raw webhook body into a :class:`PullRequestEvent`.

    Raises
    ------
    EventParseError
        If the body is not JSON, or lacks the action / pull-request identity.
    """
    try:
        event = PullRequestEvent.model_validate_json(body)
    except ValidationError as exc:
        raise EventParseError(f"Malformed pull request event: {exc.error_count()} error(s)") from exc

    if not event.pr_id:
        raise EventParseError("Pull request event has no pull_request.id")
    return event
