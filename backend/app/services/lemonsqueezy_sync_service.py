"""LemonSqueezy sync service functions.

WHAT:
    Provides reusable functions for mirroring LemonSqueezy data locally:
    - Subscriptions (webhook events and full sync)
    - Variants (prices, intervals, trials)
    - Products (catalog)

WHY:
    - Lets the webhook router, the manual sync endpoint and the sync worker
      share the same mapping and upsert logic.
    - Keeps routers thin (auth, request parsing) while services handle persistence.

REFERENCES:
    - https://docs.lemonsqueezy.com/api/subscriptions/the-subscription-object
    - https://docs.lemonsqueezy.com/api/variants/the-variant-object
    - https://docs.lemonsqueezy.com/api/products/the-product-object
    - backend/app/services/lemonsqueezy_client.py (API client)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple, Type

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Base, Product, Subscription, Variant
from app.services.lemonsqueezy_client import LemonSqueezyAPIError, LemonSqueezyClient

logger = logging.getLogger(__name__)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================
# WHAT: Dataclasses for sync response formatting
# WHY: Same shape for the HTTP endpoint and the worker log line

@dataclass
class LemonSqueezySyncStats:
    """Statistics from a LemonSqueezy sync operation."""
    subscriptions_created: int = 0
    subscriptions_updated: int = 0
    variants_created: int = 0
    variants_updated: int = 0
    products_created: int = 0
    products_updated: int = 0
    duration_seconds: float = 0.0


@dataclass
class LemonSqueezySyncResponse:
    """Response from a completed LemonSqueezy sync operation."""
    stats: LemonSqueezySyncStats
    message: str = ""


class LemonSqueezySyncError(Exception):
    """Raised when a sync stage fails. The run stops at the failing item."""

    def __init__(self, resource: str, vendor_id: Optional[str], cause: Exception):
        self.resource = resource
        self.vendor_id = vendor_id
        self.cause = cause
        if vendor_id is None:
            message = f"Failed to fetch {resource}: {cause}"
        else:
            message = f"Failed to sync {resource} {vendor_id}: {cause}"
        super().__init__(message)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _parse_datetime(dt_str: Optional[str]) -> Optional[datetime]:
    """Parse ISO datetime string to datetime object.

    WHAT: Convert LemonSqueezy timestamps ("2024-01-31T12:00:00.000000Z") to datetime
    WHY: Vendor returns ISO strings; need timezone-aware datetimes for the DB
    """
    if not dt_str:
        return None
    try:
        return datetime.fromisoformat(dt_str.replace("Z", "+00:00"))
    except (ValueError, TypeError, AttributeError):
        return None


def _as_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def map_subscription(resource: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """Map a subscription resource to (subscription_id, column values)."""
    attrs = resource.get("attributes") or {}
    first_item = attrs.get("first_subscription_item") or {}
    return str(resource["id"]), {
        "lemonsqueezy_customer_id": _as_str(attrs.get("customer_id")),
        "status": attrs.get("status"),
        "variant_id": _as_str(attrs.get("variant_id")),
        "quantity": first_item.get("quantity") or 0,
        "metadata_": {},
        "cancel_at_period_end": bool(attrs.get("cancelled", False)),
        "current_period_start": _parse_datetime(attrs.get("created_at")),
        "current_period_end": _parse_datetime(attrs.get("renews_at")),
        "ended_at": _parse_datetime(attrs.get("ends_at")),
        "cancel_at": None,
        "canceled_at": None,
        "trial_start": None,
        "trial_end": _parse_datetime(attrs.get("trial_ends_at")),
    }


def map_variant(resource: Dict[str, Any], currency: str = "USD") -> Tuple[str, Dict[str, Any]]:
    """Map a variant resource to (variant_id, column values).

    Variants carry no currency of their own, so the store currency is used.
    """
    attrs = resource.get("attributes") or {}
    return str(resource["id"]), {
        "product_id": _as_str(attrs.get("product_id")),
        "active": attrs.get("status") == "published",
        "description": attrs.get("description"),
        "currency": currency,
        "unit_amount": attrs.get("price"),
        "type": "subscription" if attrs.get("is_subscription") else "one-time",
        "interval": attrs.get("interval"),
        "interval_count": attrs.get("interval_count"),
        "trial_period_days": (attrs.get("trial_interval_count") or 0) if attrs.get("has_free_trial") else 0,
        "metadata_": {},
    }


def map_product(resource: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """Map a product resource to (product_id, column values)."""
    attrs = resource.get("attributes") or {}
    return str(resource["id"]), {
        "active": attrs.get("status") == "published",
        "name": attrs.get("name"),
        "description": attrs.get("description"),
        "image": attrs.get("thumb_url"),
        "metadata_": {},
    }


def upsert_by_vendor_id(
    db: Session,
    model: Type[Base],
    key_column: str,
    vendor_id: str,
    values: Dict[str, Any],
) -> bool:
    """Find a row by its vendor id, then update it or create it.

    WHAT: Keyed find-then-create-or-update, committed per call
    WHY: Vendor ids carry a unique constraint. When two deliveries of the same
        event race, the losing insert hits IntegrityError and falls back to
        updating the row the other one created.

    Returns:
        True if a row was created, False if an existing row was updated
    """
    key = getattr(model, key_column)
    existing = db.query(model).filter(key == vendor_id).first()

    if existing is None:
        db.add(model(**{key_column: vendor_id}, **values))
        try:
            db.commit()
            return True
        except IntegrityError:
            db.rollback()
            existing = db.query(model).filter(key == vendor_id).first()
            if existing is None:
                raise
            logger.info(
                "[LEMONSQUEEZY_SYNC] Concurrent insert for %s %s, updating instead",
                model.__tablename__, vendor_id,
            )

    for column, value in values.items():
        setattr(existing, column, value)
    db.commit()
    return False


def upsert_subscription(db: Session, resource: Dict[str, Any]) -> bool:
    """Upsert one subscription resource (webhook `data` object or list item)."""
    subscription_id, values = map_subscription(resource)
    return upsert_by_vendor_id(db, Subscription, "subscription_id", subscription_id, values)


# =============================================================================
# SYNC STAGES
# =============================================================================

async def _sync_resource(
    db: Session,
    client: LemonSqueezyClient,
    resource: str,
    model: Type[Base],
    key_column: str,
    mapper: Callable[[Dict[str, Any]], Tuple[str, Dict[str, Any]]],
) -> Tuple[int, int]:
    """Fetch every item of `resource` and upsert each one in source order.

    Returns:
        (created, updated) counts

    Raises:
        LemonSqueezySyncError: On the first fetch or item failure
    """
    try:
        items = await client.list_resource(resource)
    except LemonSqueezyAPIError as e:
        logger.error(f"[LEMONSQUEEZY_SYNC] Fetching {resource} failed: {e}")
        raise LemonSqueezySyncError(resource, None, e) from e

    created = updated = 0
    for item in items:
        vendor_id = None
        try:
            vendor_id = _as_str(item.get("id"))
            key, values = mapper(item)
            if upsert_by_vendor_id(db, model, key_column, key, values):
                created += 1
            else:
                updated += 1
        except Exception as e:
            db.rollback()
            logger.error(f"[LEMONSQUEEZY_SYNC] Error syncing {resource} {vendor_id}: {e}")
            raise LemonSqueezySyncError(resource, vendor_id, e) from e

    logger.info(
        "[LEMONSQUEEZY_SYNC] %s synced: fetched=%d, created=%d, updated=%d",
        resource, len(items), created, updated,
    )
    return created, updated


async def sync_subscriptions(
    db: Session,
    client: LemonSqueezyClient,
    stats: LemonSqueezySyncStats,
) -> None:
    stats.subscriptions_created, stats.subscriptions_updated = await _sync_resource(
        db, client, "subscriptions", Subscription, "subscription_id", map_subscription,
    )


async def sync_variants(
    db: Session,
    client: LemonSqueezyClient,
    stats: LemonSqueezySyncStats,
    currency: str = "USD",
) -> None:
    stats.variants_created, stats.variants_updated = await _sync_resource(
        db, client, "variants", Variant, "variant_id",
        lambda item: map_variant(item, currency=currency),
    )


async def sync_products(
    db: Session,
    client: LemonSqueezyClient,
    stats: LemonSqueezySyncStats,
) -> None:
    stats.products_created, stats.products_updated = await _sync_resource(
        db, client, "products", Product, "product_id", map_product,
    )


async def sync_lemonsqueezy_all(
    db: Session,
    client: LemonSqueezyClient,
    currency: str = "USD",
) -> LemonSqueezySyncResponse:
    """Run full LemonSqueezy sync: subscriptions -> variants -> products.

    WHAT: Mirror all three vendor lists locally, keyed by vendor id
    WHY: Backfills anything webhooks missed and refreshes the price catalog

    There is no partial-failure isolation: the first failing item aborts the
    remaining items and every later stage.

    Args:
        db: Database session
        client: Configured LemonSqueezy client
        currency: Store currency recorded on variants

    Returns:
        LemonSqueezySyncResponse with per-resource statistics

    Raises:
        LemonSqueezySyncError: If any stage fails
    """
    start_time = datetime.utcnow()
    stats = LemonSqueezySyncStats()

    logger.info("[LEMONSQUEEZY_SYNC] Starting full sync")

    await sync_subscriptions(db, client, stats)
    await sync_variants(db, client, stats, currency=currency)
    await sync_products(db, client, stats)

    stats.duration_seconds = (datetime.utcnow() - start_time).total_seconds()

    logger.info(
        "[LEMONSQUEEZY_SYNC] Full sync complete: subscriptions=%d, variants=%d, products=%d, duration=%.2fs",
        stats.subscriptions_created + stats.subscriptions_updated,
        stats.variants_created + stats.variants_updated,
        stats.products_created + stats.products_updated,
        stats.duration_seconds,
    )

    return LemonSqueezySyncResponse(
        stats=stats,
        message=(
            f"Synced {stats.subscriptions_created + stats.subscriptions_updated} subscriptions, "
            f"{stats.variants_created + stats.variants_updated} variants, "
            f"{stats.products_created + stats.products_updated} products"
        ),
    )
