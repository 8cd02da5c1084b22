"""FastAPI dependencies shared by the routers."""

import logging
from typing import Optional

from fastapi import Depends, Header, Query, Request
from servicedesk.config import settings
from servicedesk.errors import Unauthenticated
from servicedesk.models.user import User
from servicedesk.services.database import get_db
from servicedesk.services.notification_service import NotificationDispatcher
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the acting user from `Authorization: Bearer <user id>`.

    Raises:
        Unauthenticated: Header missing or malformed, or user unknown or inactive
    """
    if not authorization:
        raise Unauthenticated("Authorization header missing")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip().isdigit():
        raise Unauthenticated("Invalid authorization token")

    user = await db.get(User, int(token.strip()))
    if user is None or not user.is_active:
        logger.warning(f"Rejected credentials for user id {token.strip()}")
        raise Unauthenticated("User not found or inactive")

    return user


def get_dispatcher(request: Request) -> NotificationDispatcher:
    """The dispatcher built at startup (see main.lifespan)."""
    return request.app.state.dispatcher


class PageParams:
    """page/limit query parameters, converted to offset/limit."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    ):
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit
