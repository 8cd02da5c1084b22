"""Notification inbox endpoints, scoped to the calling user."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from servicedesk.dependencies import PageParams, get_current_user, get_dispatcher
from servicedesk.errors import InvalidArgument
from servicedesk.models.user import User
from servicedesk.policy import Action, authorize
from servicedesk.schemas import NotificationOut, NotificationSend, Pagination
from servicedesk.services import notification_service
from servicedesk.services.database import get_db
from servicedesk.services.notification_service import NotificationDispatcher
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


@router.get("")
async def list_notifications(
    is_read: Optional[bool] = None,
    type: Optional[str] = None,
    paging: PageParams = Depends(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notifications, total, unread = await notification_service.list_notifications(
        db, current_user.id, is_read, type, paging.offset, paging.limit
    )
    return {
        "message": "Notifications retrieved successfully",
        "notifications": [NotificationOut.model_validate(n) for n in notifications],
        "unread_count": unread,
        "pagination": Pagination.build(paging.page, paging.limit, total),
    }


@router.get("/unread-count")
async def unread_count(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    count = await notification_service.unread_count(db, current_user.id)
    return {"message": "Unread count retrieved successfully", "unread_count": count}


@router.put("/mark-all-read")
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    updated = await dispatcher.mark_all_read(db, current_user.id)
    return {"message": "All notifications marked as read", "updated_count": updated}


@router.delete("/clear-all")
async def clear_all(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    deleted = await notification_service.clear_all(db, current_user.id)
    return {"message": "All notifications cleared", "deleted_count": deleted}


@router.delete("/old/{days}")
async def purge_old(
    days: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Delete read notifications older than the given number of days (ADMIN only)."""
    authorize(current_user, Action.PURGE_NOTIFICATIONS, "Only Admin can purge old notifications")
    if days < 1:
        raise InvalidArgument(f"days must be at least 1, got {days}", {"field": "days"})

    deleted = await dispatcher.purge_old(db, days)
    return {"message": f"Deleted notifications older than {days} days", "deleted_count": deleted}


@router.post("/send", status_code=status.HTTP_201_CREATED)
async def send_notification(
    payload: NotificationSend,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    notifications = await notification_service.send_custom(
        db,
        dispatcher,
        current_user,
        title=payload.title,
        message=payload.message,
        user_ids=payload.user_ids,
        roles=payload.roles,
        type=payload.type,
        service_record_id=payload.service_record_id,
    )
    return {"message": "Notifications sent successfully", "sent_count": len(notifications)}


@router.get("/statistics")
async def notification_statistics(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    statistics = await notification_service.statistics(db, current_user)
    return {"message": "Notification statistics retrieved successfully", "statistics": statistics}


@router.get("/{notification_id}")
async def get_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notification = await notification_service.get_notification(db, notification_id, current_user.id)
    return {
        "message": "Notification retrieved successfully",
        "notification": NotificationOut.model_validate(notification),
    }


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    # Another user's notification is a silent no-op
    updated = await dispatcher.mark_read(db, notification_id, current_user.id)
    return {"message": "Notification marked as read", "updated_count": updated}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    deleted = await notification_service.delete_notification(db, notification_id, current_user.id)
    return {"message": "Notification deleted successfully", "deleted_count": deleted}
