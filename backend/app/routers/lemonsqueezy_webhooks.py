"""LemonSqueezy webhook receiver.

WHAT:
    Verifies the signature of incoming LemonSqueezy webhooks and mirrors
    subscription events into the local `subscriptions` table.

WHY:
    Webhooks keep subscription state current between sync runs. Every
    subscription event carries the full subscription object, so each one is a
    plain keyed upsert.

WEBHOOK EVENTS HANDLED:
    - subscription_created, subscription_updated
    - subscription_cancelled, subscription_resumed, subscription_expired
    - subscription_paused, subscription_unpaused
    Any other event is acknowledged and ignored.

REFERENCES:
    - https://docs.lemonsqueezy.com/help/webhooks
    - app/security.py::verify_webhook_signature
    - app/services/lemonsqueezy_sync_service.py::upsert_subscription
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from .. import schemas
from ..config import get_settings
from ..database import get_db
from ..security import verify_webhook_signature
from ..services.lemonsqueezy_sync_service import upsert_subscription
from ..telemetry import capture_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["LemonSqueezy Webhooks"])

SUBSCRIPTION_EVENTS = frozenset({
    "subscription_created",
    "subscription_updated",
    "subscription_cancelled",
    "subscription_resumed",
    "subscription_expired",
    "subscription_paused",
    "subscription_unpaused",
})


@router.post(
    "/lemonsqueezy",
    response_model=schemas.MessageResponse,
    summary="LemonSqueezy webhook handler",
    description="""
    Receives LemonSqueezy webhook deliveries.

    Security:
        - Signature is hex(HMAC-SHA256(secret, raw body)) in `X-Signature`
        - Mismatch answers 400 before the body is parsed

    Testing:
        - Use "Send test webhook" in the LemonSqueezy dashboard
        - Duplicate deliveries are safe: the upsert is keyed by subscription id
    """,
)
async def handle_lemonsqueezy_webhook(
    request: Request,
    db: Session = Depends(get_db),
):
    """Verify and process one LemonSqueezy webhook delivery."""
    # Raw body is needed byte-for-byte for the HMAC
    body = await request.body()
    signature = request.headers.get("x-signature") or request.headers.get("x_signature")

    if not verify_webhook_signature(body, signature, get_settings().LEMONSQUEEZY_WEBHOOK_SECRET):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook signature.",
        )

    try:
        payload = json.loads(body)
    except ValueError:
        logger.warning("[LEMONSQUEEZY_WEBHOOK] Body is not valid JSON")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook payload",
        )
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook payload",
        )

    meta = payload.get("meta") or {}
    if not isinstance(meta, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook payload",
        )

    event_name = meta.get("event_name")
    logger.info(f"[LEMONSQUEEZY_WEBHOOK] Received event: {event_name}")

    if event_name in SUBSCRIPTION_EVENTS:
        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid webhook payload",
            )

        subscription_id = data.get("id")
        try:
            created = upsert_subscription(db, data)
        except Exception as e:
            db.rollback()
            logger.error(f"[LEMONSQUEEZY_WEBHOOK] Failed to process subscription {subscription_id}: {e}")
            capture_exception(e, extra={"event_name": event_name, "subscription_id": subscription_id})
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Failed to process subscription: {e}",
            )
        logger.info(
            "[LEMONSQUEEZY_WEBHOOK] %s subscription %s",
            "Created" if created else "Updated", subscription_id,
        )
    else:
        logger.debug(f"[LEMONSQUEEZY_WEBHOOK] Ignoring event: {event_name}")

    return schemas.MessageResponse(message="Data received successfully")
