"""Staff user management."""

import logging
from typing import Any, Dict, List, Optional

from servicedesk.errors import Conflict, InvalidArgument, NotFound, PermissionDenied, parse_enum
from servicedesk.models.user import User, UserRole
from servicedesk.policy import Action, authorize, is_allowed
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def _check_email_unique(db: AsyncSession, email: Optional[str], exclude_id: Optional[int] = None):
    if not email:
        return
    stmt = select(User.id).where(User.email == email)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    if await db.scalar(stmt) is not None:
        raise Conflict(f"User with email {email} already exists")


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound.for_entity("User", user_id)
    return user


async def create_user(db: AsyncSession, actor: User, fields: Dict[str, Any]) -> User:
    """
    Create a staff user (ADMIN only).

    Raises:
        PermissionDenied: Actor is not ADMIN
        InvalidArgument: Missing fields or unknown role
        Conflict: Email already registered
    """
    authorize(actor, Action.CREATE_USER, "Only Admin can create users")

    missing = [key for key in ("name", "phone", "role") if not fields.get(key)]
    if missing:
        raise InvalidArgument("Missing required fields", {"required": missing})

    role = parse_enum(UserRole, fields["role"], "role")
    email = fields.get("email")
    await _check_email_unique(db, email)

    user = User(name=fields["name"], email=email, phone=fields["phone"], role=role)
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info(f"User {user.uid} ({role.value}) created by user {actor.id}")
    return user


async def list_users(db: AsyncSession, role: Optional[str] = None, is_active: Optional[bool] = True) -> List[User]:
    """Active users by default; pass is_active=None for everyone."""
    stmt = select(User)
    if role:
        stmt = stmt.where(User.role == parse_enum(UserRole, role, "role"))
    if is_active is not None:
        stmt = stmt.where(User.is_active.is_(is_active))

    result = await db.execute(stmt.order_by(User.name, User.id))
    return result.scalars().all()


async def update_user(db: AsyncSession, actor: User, user_id: int, fields: Dict[str, Any]) -> User:
    """
    Update a user profile.

    Users may edit themselves; only ADMIN edits others or changes role and
    is_active.
    """
    user = await get_user(db, user_id)
    admin = is_allowed(actor, Action.MANAGE_USERS)

    if actor.id != user.id and not admin:
        raise PermissionDenied("You can only update your own profile")

    if fields.get("role") is not None:
        role = parse_enum(UserRole, fields["role"], "role")
        if role != user.role and not admin:
            raise PermissionDenied("Only Admin can change user roles")
        user.role = role
    if fields.get("is_active") is not None and fields["is_active"] != user.is_active:
        if not admin:
            raise PermissionDenied("Only Admin can activate or deactivate users")
        user.is_active = fields["is_active"]

    if fields.get("email") and fields["email"] != user.email:
        await _check_email_unique(db, fields["email"], exclude_id=user.id)
        user.email = fields["email"]
    if fields.get("name"):
        user.name = fields["name"]
    if fields.get("phone"):
        user.phone = fields["phone"]

    await db.commit()
    await db.refresh(user)
    logger.info(f"User {user.id} updated by user {actor.id}")
    return user


async def deactivate_user(db: AsyncSession, actor: User, user_id: int) -> User:
    """
    Soft-delete a user by clearing is_active.

    Raises:
        PermissionDenied: Actor is not ADMIN
        InvalidArgument: Actor tried to deactivate themselves
    """
    authorize(actor, Action.DEACTIVATE_USER, "Only Admin can delete users")
    if actor.id == user_id:
        raise InvalidArgument("You cannot delete your own account")

    user = await get_user(db, user_id)
    user.is_active = False
    await db.commit()
    await db.refresh(user)

    logger.info(f"User {user.id} deactivated by user {actor.id}")
    return user


async def register_push_token(db: AsyncSession, actor: User, push_token: str) -> User:
    """Store the caller's device token for push delivery."""
    if not push_token:
        raise InvalidArgument("Missing required field", {"required": ["push_token"]})

    user = await get_user(db, actor.id)
    user.push_token = push_token
    await db.commit()
    await db.refresh(user)
    logger.info(f"Push token registered for user {user.id}")
    return user
