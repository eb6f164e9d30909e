"""Pydantic schemas for request/response payloads."""

from typing import Optional, Union

from pydantic import BaseModel, Field


class MessageResponse(BaseModel):
    """Standard `{message}` response used for success and error bodies."""

    message: str = Field(description="Human-readable result or error message")

    model_config = {
        "json_schema_extra": {
            "example": {
                "message": "Data received successfully"
            }
        }
    }


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service status")

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "ok"
            }
        }
    }


# Billing Schemas

class CheckoutSessionRequest(BaseModel):
    """Payload for creating a LemonSqueezy checkout."""

    variant_id: Union[str, int] = Field(description="LemonSqueezy variant id to check out")

    model_config = {
        "json_schema_extra": {
            "example": {
                "variant_id": "123456"
            }
        }
    }


class PortalLinkResponse(BaseModel):
    """Customer portal link for self-service billing management."""

    customer_portal_link: Optional[str] = Field(
        default=None,
        description="Signed LemonSqueezy customer portal URL (valid for 24 hours)",
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "customer_portal_link": "https://my-store.lemonsqueezy.com/billing?expires=1666869343&signature=..."
            }
        }
    }
