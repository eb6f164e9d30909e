"""FastAPI application entrypoint.

Configures CORS, error rendering, includes routers, and exposes a healthcheck endpoint.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from .config import get_settings
from .routers import billing as billing_router
from .routers import lemonsqueezy_sync as lemonsqueezy_sync_router
from .routers import lemonsqueezy_webhooks as lemonsqueezy_webhooks_router
from .telemetry import init_sentry
from . import schemas

# Import models so Alembic can discover metadata
from . import models  # noqa: F401


def create_app() -> FastAPI:
    # Sentry must be initialized before the app so the FastAPI integration hooks in
    if init_sentry():
        logger.info("[STARTUP] Sentry error tracking enabled")

    app = FastAPI(
        title="LemonSqueezy Billing API",
        description="""
        Bridges the local user store to LemonSqueezy billing.

        This API provides endpoints for:
        - Receiving signed LemonSqueezy webhooks (subscription events)
        - Creating checkouts and customer portal links for the caller
        - Running a manual sync of subscriptions, variants and products

        ## Authentication

        Billing endpoints require an HS256 JWT in the `Authorization` header
        (optionally prefixed with `Bearer `) whose `sub` claim is the user id.

        ## Errors

        Every error body has the shape `{"message": "..."}`.
        """,
        version="1.0.0",
    )

    # Trust X-Forwarded-Proto headers from load balancers
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

    settings = get_settings()

    # BACKEND_CORS_ORIGINS can be a comma-separated list: "https://app.example.com,http://localhost:3000"
    allowed_origins = [origin.strip() for origin in settings.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]
    logger.info(f"[CORS] Allowed origins: {allowed_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Render every HTTP error as `{"message": detail}`."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    app.include_router(lemonsqueezy_webhooks_router.router)  # POST /lemonsqueezy
    app.include_router(billing_router.router)  # Checkout + portal proxy
    app.include_router(lemonsqueezy_sync_router.router)  # Manual sync

    @app.get(
        "/health",
        response_model=schemas.HealthResponse,
        tags=["Health"],
        summary="Health check",
        description="""
        Simple health check endpoint to verify the API is running.

        This endpoint:
        - Does not require authentication
        - Does not touch the database or LemonSqueezy
        - Can be used for load balancer health checks
        """
    )
    def health():
        return schemas.HealthResponse(status="ok")

    return app


app = create_app()
