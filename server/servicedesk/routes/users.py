"""User endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from servicedesk.dependencies import get_current_user
from servicedesk.models.user import User
from servicedesk.schemas import PushTokenIn, UserCreate, UserOut, UserUpdate
from servicedesk.services import user_service
from servicedesk.services.database import get_db
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = await user_service.create_user(db, current_user, payload.model_dump())
    return {"message": "User created successfully", "user": UserOut.model_validate(user)}


@router.get("")
async def list_users(
    role: Optional[str] = None,
    is_active: Optional[bool] = True,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List users; only active ones unless is_active=false is passed."""
    users = await user_service.list_users(db, role=role, is_active=is_active)
    return {
        "message": "Users retrieved successfully",
        "count": len(users),
        "users": [UserOut.model_validate(u) for u in users],
    }


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)):
    return {"user": UserOut.model_validate(current_user)}


@router.put("/push-token")
async def register_push_token(
    payload: PushTokenIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Register the caller's device token for push delivery."""
    user = await user_service.register_push_token(db, current_user, payload.push_token)
    return {"message": "Push token updated successfully", "user": UserOut.model_validate(user)}


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = await user_service.get_user(db, user_id)
    return {"message": "User retrieved successfully", "user": UserOut.model_validate(user)}


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = await user_service.update_user(db, current_user, user_id, payload.model_dump(exclude_unset=True))
    return {"message": "User updated successfully", "user": UserOut.model_validate(user)}


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Soft delete: the user is deactivated, never removed."""
    user = await user_service.deactivate_user(db, current_user, user_id)
    return {"message": "User deactivated successfully", "user": UserOut.model_validate(user)}
