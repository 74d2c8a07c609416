# backend/nestswap/api/dependencies/auth.py
"""
Acting-user dependencies.

Authentication happens upstream: the gateway verifies the session and
forwards the user's id in the X-User-ID header.
"""

from typing import Optional

from fastapi import Depends, Header

from ...core.exceptions import UnauthorizedException
from ...services.subscription_service import SubscriptionService
from .services import get_subscription_service


def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
) -> str:
    """
    Raises:
        HTTPException 401: if no acting user was forwarded
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise UnauthorizedException(
            "Authentication required", code="NOT_AUTHENTICATED"
        ).to_http_exception()
    return user_id


def require_subscription(
    user_id: str = Depends(get_current_user_id),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> str:
    """Acting user id, after checking they hold a membership (402 otherwise)."""
    subscription_service.require_subscription(user_id)
    return user_id
