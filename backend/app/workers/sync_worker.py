#!/usr/bin/env python3
"""One-shot LemonSqueezy sync worker.

WHAT:
    Runs the full LemonSqueezy sync (subscriptions -> variants -> products)
    once and exits.

WHY:
    - Periodic sync is scheduled outside the API process (system cron,
      Kubernetes CronJob, ...), so API replicas never race on the same run
    - Reuses the service-layer sync used by the manual HTTP trigger

USAGE:
    # From backend directory:
    python -m app.workers.sync_worker

PRODUCTION:
    # Example crontab entry (daily at 03:00):
    #
    # 0 3 * * * cd /app/backend && python -m app.workers.sync_worker >> /var/log/lemonsqueezy-sync.log 2>&1

REFERENCES:
    - backend/app/services/lemonsqueezy_sync_service.py
    - backend/app/routers/lemonsqueezy_sync.py (manual trigger)
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import Optional

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from app.config import get_settings  # noqa: E402
from app.database import get_sync_session  # noqa: E402
from app.services.lemonsqueezy_client import LemonSqueezyClient  # noqa: E402
from app.services.lemonsqueezy_sync_service import (  # noqa: E402
    LemonSqueezySyncResponse,
    sync_lemonsqueezy_all,
)
from app.telemetry import capture_exception, capture_message, init_sentry  # noqa: E402

logger = logging.getLogger(__name__)


def run_sync(client: Optional[LemonSqueezyClient] = None) -> LemonSqueezySyncResponse:
    """Run one full sync in a fresh database session.

    Raises:
        LemonSqueezySyncError: If any stage fails
    """
    settings = get_settings()
    client = client or LemonSqueezyClient.from_settings(settings)
    with get_sync_session() as db:
        return asyncio.run(
            sync_lemonsqueezy_all(db, client, currency=settings.LEMONSQUEEZY_CURRENCY)
        )


def main() -> int:
    """Entry point. Returns the process exit code."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    init_sentry()

    logger.info("[SYNC_WORKER] Starting LemonSqueezy sync")
    try:
        result = run_sync()
    except KeyboardInterrupt:
        logger.info("[SYNC_WORKER] Stopped by user")
        return 1
    except Exception as e:
        logger.exception("[SYNC_WORKER] Sync failed: %s", e)
        capture_exception(e, extra={"operation": "lemonsqueezy_sync", "trigger": "worker"})
        return 1

    logger.info("[SYNC_WORKER] Ran sync: %s (%.2fs)", result.message, result.stats.duration_seconds)

    stats = result.stats
    total = (
        stats.subscriptions_created + stats.subscriptions_updated
        + stats.variants_created + stats.variants_updated
        + stats.products_created + stats.products_updated
    )
    if total == 0:
        # Usually a wrong API key or store
        capture_message("LemonSqueezy sync fetched no records", level="warning")
    return 0


if __name__ == "__main__":
    sys.exit(main())
