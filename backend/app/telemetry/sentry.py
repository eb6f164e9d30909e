"""
Sentry Error Tracking
=====================

Centralized error tracking for the billing bridge.

Related files:
- app/main.py: Initializes Sentry in create_app()
- app/deps.py: Sets user context after authentication
- app/routers/lemonsqueezy_webhooks.py: Reports failed subscription upserts
- app/routers/lemonsqueezy_sync.py, app/workers/sync_worker.py: Report sync aborts

Environment Variables:
- SENTRY_DSN: Sentry project DSN (Sentry stays disabled when unset)
- ENVIRONMENT: Environment name (production, staging, development)
"""

from __future__ import annotations

import logging
import os
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from app.config import get_settings

logger = logging.getLogger(__name__)

_initialized = False


def init_sentry() -> bool:
    """
    Initialize Sentry SDK for FastAPI.

    Should be called once during application startup.

    Returns:
        True if Sentry was initialized, False when no DSN is configured
        or initialization failed.
    """
    global _initialized

    settings = get_settings()
    if not settings.SENTRY_DSN:
        return False

    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
                LoggingIntegration(
                    level=logging.INFO,         # Capture INFO+ as breadcrumbs
                    event_level=logging.ERROR,  # Send ERROR+ as events
                ),
            ],
            traces_sample_rate=0.1,
            # Webhook payloads contain buyer emails
            send_default_pii=False,
            release=os.environ.get("RELEASE_VERSION"),
        )
        _initialized = True
        logger.debug(f"[SENTRY] Initialized for {settings.ENVIRONMENT} environment")
        return True

    except Exception as e:
        logger.error(f"[SENTRY] Failed to initialize: {e}")
        return False


def set_user_context(user_id: str, email: Optional[str] = None) -> None:
    """
    Attach the authenticated caller to subsequent Sentry events.

    Called from app.deps.get_current_user once the token is verified.
    """
    if not _initialized:
        return

    sentry_sdk.set_user({"id": user_id, "email": email})


def capture_exception(exception: Exception, extra: Optional[dict] = None) -> None:
    """
    Manually capture an exception to Sentry.

    Use this for exceptions that are caught and turned into an HTTP response
    but should still be tracked.

    Args:
        exception: The exception to capture
        extra: Additional context to attach to the event

    Example:
        try:
            await sync_lemonsqueezy_all(db, client)
        except LemonSqueezySyncError as e:
            capture_exception(e, extra={"operation": "lemonsqueezy_sync"})
            return JSONResponse(status_code=400, content={"message": str(e)})
    """
    if not _initialized:
        logger.error(f"Exception (Sentry disabled): {exception}")
        return

    with sentry_sdk.new_scope() as scope:
        if extra:
            for key, value in extra.items():
                scope.set_extra(key, value)
        sentry_sdk.capture_exception(exception)


def capture_message(message: str, level: str = "info", extra: Optional[dict] = None) -> None:
    """
    Capture a message to Sentry.

    Use this for important events that aren't exceptions, such as a sync run
    that completed without fetching anything.
    """
    if not _initialized:
        logger.log(
            logging.getLevelName(level.upper()),
            f"Message (Sentry disabled): {message}"
        )
        return

    with sentry_sdk.new_scope() as scope:
        if extra:
            for key, value in extra.items():
                scope.set_extra(key, value)
        sentry_sdk.capture_message(message, level=level)
