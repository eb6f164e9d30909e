"""LemonSqueezy checkout and customer portal endpoints.

WHAT: Proxies checkout creation and portal-link retrieval for the caller
WHY: The API key must never reach the browser; the frontend calls these
    endpoints with its own token and gets vendor URLs back.

Key flows:
    1. Checkout: POST /create-checkout-session → ensure vendor customer,
       create checkout, relay the vendor response verbatim
    2. Portal: GET /create-portal-link → look up the caller's vendor customer,
       return its signed portal URL

REFERENCES:
    - https://docs.lemonsqueezy.com/api/checkouts/create-checkout
    - https://docs.lemonsqueezy.com/api/customers/create-customer
    - https://docs.lemonsqueezy.com/api/customers/retrieve-customer
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import schemas
from ..config import get_settings
from ..database import get_db
from ..deps import get_current_user, get_lemonsqueezy_client
from ..models import Customer, User
from ..services.lemonsqueezy_client import LemonSqueezyAPIError, LemonSqueezyClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Billing"])


# =============================================================================
# HELPERS
# =============================================================================


async def _ensure_customer(db: Session, user: User, client: LemonSqueezyClient) -> Customer:
    """Return the caller's customer mapping, creating the vendor customer on first use.

    WHAT: One vendor call and one new row the first time, nothing afterwards
    WHY: Portal links are fetched by vendor customer id, so the mapping must
        exist before the first checkout completes
    """
    customer = db.query(Customer).filter(Customer.user_id == user.id).first()
    if customer:
        return customer

    try:
        body = await client.create_customer(
            name=user.display_name or user.email,
            email=user.email,
        )
        lemonsqueezy_customer_id = str(body["data"]["id"])
    except (LemonSqueezyAPIError, KeyError, TypeError) as e:
        logger.error(f"[BILLING] Customer creation failed for user {user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to create customer",
        )

    customer = Customer(user_id=user.id, lemonsqueezy_customer_id=lemonsqueezy_customer_id)
    db.add(customer)
    try:
        db.commit()
    except IntegrityError:
        # A parallel request for the same user stored its mapping first
        db.rollback()
        customer = db.query(Customer).filter(Customer.user_id == user.id).first()
        if not customer:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Failed to create customer",
            )
        return customer

    logger.info(f"[BILLING] Created customer {lemonsqueezy_customer_id} for user {user.id}")
    return customer


# =============================================================================
# CHECKOUT ENDPOINT
# =============================================================================


@router.post(
    "/create-checkout-session",
    summary="Create checkout session",
    description="""
    Create a LemonSqueezy checkout for one variant.

    Flow:
        1. Create the caller's LemonSqueezy customer if none exists yet
        2. Create the checkout with the caller's name, email and user id
        3. Relay the vendor response (status and body) unchanged
    """,
)
async def create_checkout_session(
    payload: schemas.CheckoutSessionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: LemonSqueezyClient = Depends(get_lemonsqueezy_client),
):
    """Create LemonSqueezy checkout."""
    await _ensure_customer(db, current_user, client)

    settings = get_settings()
    try:
        response = await client.create_checkout(
            variant_id=str(payload.variant_id),
            name=current_user.display_name or current_user.email,
            email=current_user.email,
            custom={"user_id": str(current_user.id)},
            button_color=settings.LEMONSQUEEZY_CHECKOUT_BUTTON_COLOR,
            preview=settings.LEMONSQUEEZY_CHECKOUT_PREVIEW,
        )
        content = response.json()
    except (LemonSqueezyAPIError, ValueError) as e:
        logger.error(f"[BILLING] Checkout creation failed for user {current_user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to create checkout",
        )

    if not response.is_success:
        logger.warning(
            f"[BILLING] LemonSqueezy rejected checkout for variant {payload.variant_id}: {response.status_code}"
        )

    return JSONResponse(status_code=response.status_code, content=content)


# =============================================================================
# PORTAL ENDPOINT
# =============================================================================


@router.get(
    "/create-portal-link",
    response_model=schemas.PortalLinkResponse,
    summary="Get customer portal URL",
    description="""
    Get the LemonSqueezy customer portal URL for self-service billing management.

    Requirements:
        - The caller must have completed a checkout (customer mapping exists)

    Portal allows users to:
        - Update payment method
        - View invoices
        - Cancel or resume subscriptions
    """,
)
async def create_portal_link(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: LemonSqueezyClient = Depends(get_lemonsqueezy_client),
):
    """Get LemonSqueezy customer portal URL."""
    customer = db.query(Customer).filter(Customer.user_id == current_user.id).first()
    if not customer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found",
        )

    try:
        response = await client.get_customer(customer.lemonsqueezy_customer_id)
        body = response.json()
        portal_link = body["data"]["attributes"]["urls"]["customer_portal"]
    except (LemonSqueezyAPIError, ValueError, KeyError, TypeError) as e:
        logger.error(
            f"[BILLING] Portal link lookup failed for customer {customer.lemonsqueezy_customer_id}: {e}"
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to retrieve customer portal link",
        )

    return JSONResponse(
        status_code=response.status_code,
        content={"customer_portal_link": portal_link},
    )
