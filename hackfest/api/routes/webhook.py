"""
hackfest.api.routes.webhook — GitHub pull-request webhook
===========================================================

``POST /event`` answers in ``text/plain`` with ``ok`` or ``fail`` and always
a 200 status: GitHub treats non-2xx as a failed delivery and redelivers,
which would only repeat a failure we already logged.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import PlainTextResponse

from hackfest.api.deps import get_app_config, get_classifier
from hackfest.config import HackfestConfig
from hackfest.constants import RESPONSE_FAIL, RESPONSE_OK
from hackfest.engine.classifier import EventClassifier
from hackfest.engine.events import EventParseError, parse_event
from hackfest.engine.signature import verify_signature
from hackfest.services.errors import StoreError

router = APIRouter(tags=["webhook"])
logger = logging.getLogger(__name__)


def _reply(text: str) -> PlainTextResponse:
    return PlainTextResponse(text)


@router.post("/event", response_class=PlainTextResponse)
async def handle_event(
    request: Request,
    x_hub_signature: Annotated[str | None, Header()] = None,
    config: HackfestConfig = Depends(get_app_config),
    classifier: EventClassifier = Depends(get_classifier),
):
    body = await request.body()

    if not verify_signature(body, x_hub_signature, config.webhook_secret):
        logger.warning("Invalid HMAC signature on webhook delivery")
        return _reply(RESPONSE_FAIL)

    try:
        event = parse_event(body)
    except EventParseError as exc:
        logger.warning("Unable to parse webhook delivery: %s", exc)
        return _reply(RESPONSE_FAIL)

    try:
        outcome = await classifier.handle(event)
    except StoreError as exc:
        logger.error("Failed to process %s on PR %s: %s", event.action, event.pr_id, exc)
        return _reply(RESPONSE_FAIL)

    logger.debug("PR %s %s → %s", event.pr_id, event.action, outcome)
    return _reply(RESPONSE_OK)
