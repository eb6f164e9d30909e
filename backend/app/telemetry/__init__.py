"""
Telemetry Module
================

Observability for the billing bridge.

Components:
- sentry.py: Error tracking

Environment Variables:
- SENTRY_DSN: Sentry project DSN
- ENVIRONMENT: Environment name reported with every event

Usage:
    from app.telemetry import init_sentry, capture_exception

    init_sentry()  # once, in create_app()
"""

from app.telemetry.sentry import (
    capture_exception,
    capture_message,
    init_sentry,
    set_user_context,
)

__all__ = [
    "init_sentry",
    "set_user_context",
    "capture_exception",
    "capture_message",
]
