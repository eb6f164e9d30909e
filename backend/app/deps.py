"""Dependency providers."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from jose import JWTError
from sqlalchemy.orm import Session

from .database import get_db
from .models import User
from .config import get_settings
from .security import decode_token
from .services.lemonsqueezy_client import LemonSqueezyClient
from .telemetry import set_user_context

logger = logging.getLogger(__name__)

NOT_AUTHORIZED = "User not authorized"


def get_current_user(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None),
) -> User:
    """Resolve the current user from the `Authorization` header.

    The header value is the raw token or "Bearer <jwt>". Every failure mode
    (missing token, bad signature, unknown user) answers 400 so callers cannot
    distinguish them.
    """
    if not authorization:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NOT_AUTHORIZED)

    # Remove optional "Bearer " prefix
    if authorization.startswith("Bearer "):
        token = authorization[len("Bearer "):]
    else:
        token = authorization

    try:
        payload = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NOT_AUTHORIZED)

    subject = payload.get("sub")
    try:
        user_id = UUID(str(subject))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NOT_AUTHORIZED)

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        logger.info("[AUTH] Token subject %s has no matching user", subject)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NOT_AUTHORIZED)

    set_user_context(user_id=str(user.id), email=user.email)
    return user


def get_lemonsqueezy_client() -> LemonSqueezyClient:
    """Build a LemonSqueezy client from settings. Overridden in tests."""
    return LemonSqueezyClient.from_settings(get_settings())
