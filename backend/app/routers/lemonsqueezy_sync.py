"""LemonSqueezy synchronization endpoint.

WHAT:
    Thin HTTP wrapper that runs the full LemonSqueezy sync on demand.

WHY:
    - Lets operators backfill after a webhook outage without shell access
    - Same service function as the scheduled worker (app/workers/sync_worker.py)

REFERENCES:
    - backend/app/services/lemonsqueezy_sync_service.py
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app import schemas
from app.config import get_settings
from app.database import get_db
from app.deps import get_lemonsqueezy_client
from app.services.lemonsqueezy_client import LemonSqueezyClient
from app.services.lemonsqueezy_sync_service import sync_lemonsqueezy_all
from app.telemetry import capture_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["LemonSqueezy Sync"])


@router.get(
    "/manual-lemonsqueezy-synchronization",
    response_model=schemas.MessageResponse,
    summary="Run LemonSqueezy sync now",
    description="""
    Pull subscriptions, variants and products from LemonSqueezy and upsert
    them locally.

    The first failing item aborts the run; the error message is returned
    with status 400. Items synced before the failure stay committed.
    """,
)
async def manual_lemonsqueezy_synchronization(
    db: Session = Depends(get_db),
    client: LemonSqueezyClient = Depends(get_lemonsqueezy_client),
):
    """Trigger a full LemonSqueezy sync."""
    try:
        result = await sync_lemonsqueezy_all(db, client, currency=get_settings().LEMONSQUEEZY_CURRENCY)
    except Exception as e:
        logger.error(f"[LEMONSQUEEZY_SYNC] Manual sync failed: {e}")
        capture_exception(e, extra={"operation": "lemonsqueezy_sync", "trigger": "manual"})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(f"[LEMONSQUEEZY_SYNC] Ran sync: {result.message}")
    return schemas.MessageResponse(message="success")
