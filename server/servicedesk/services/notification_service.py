"""
Notification dispatcher.

Persists in-app notifications and attempts best-effort push delivery. The
notification row is the authoritative side effect: a push failure is logged
and never propagates, and never stops the fan-out loop.
"""

import logging
from datetime import timedelta
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Tuple

from servicedesk.errors import InvalidArgument, NotFound, parse_enum
from servicedesk.models.base import utcnow
from servicedesk.models.notification import Notification, NotificationType
from servicedesk.models.point import Point
from servicedesk.models.service_record import ServiceRecord
from servicedesk.models.user import User, UserRole
from servicedesk.policy import Action, authorize
from servicedesk.services.push_sender import PushSender
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Audiences for workflow events
INSTALLATION_ROLES = frozenset({UserRole.ADMIN, UserRole.SERVICE_HEAD, UserRole.SALES, UserRole.COMMERCIAL})
REPORT_SUBMITTED_ROLES = INSTALLATION_ROLES
ESCALATION_ROLES = frozenset({UserRole.SERVICE_HEAD})
WARRANTY_EXPIRY_ROLES = frozenset({UserRole.ADMIN, UserRole.SERVICE_HEAD, UserRole.SALES})
PENDING_PAYMENT_ROLES = frozenset({UserRole.ADMIN, UserRole.SALES, UserRole.COMMERCIAL})


class NotificationDispatcher:
    """
    Fans notifications out to users selected by role or by explicit id.

    Example usage:
        dispatcher = NotificationDispatcher(PushSender.from_settings(settings))
        await dispatcher.notify_by_role(db, {UserRole.ADMIN}, "Title", "Message")
    """

    def __init__(self, push_sender: PushSender):
        self.push_sender = push_sender

    # ------------------------------------------------------------------
    # Fan-out primitives
    # ------------------------------------------------------------------

    async def notify_by_role(
        self,
        db: AsyncSession,
        roles: Iterable[UserRole],
        title: str,
        message: str,
        service_record_id: Optional[int] = None,
        type: NotificationType = NotificationType.INFO,
    ) -> List[Notification]:
        """
        Notify every active user holding one of the roles.

        Returns:
            Persisted notifications, one per recipient (empty if nobody matches)
        """
        roles = [UserRole(role) for role in roles]
        if not roles:
            return []

        result = await db.execute(
            select(User).where(User.role.in_(roles), User.is_active.is_(True)).order_by(User.id)
        )
        users = result.scalars().all()

        role_names = sorted(role.value for role in roles)
        logger.info(f"Notifying {len(users)} active users with roles {role_names}: {title}")

        notifications = []
        for user in users:
            notification = await self._persist(
                db,
                user.id,
                title,
                message,
                service_record_id,
                type,
                {"targetRoles": role_names},
            )
            notifications.append(notification)
            await self._push(user, notification)

        return notifications

    async def notify_user(
        self,
        db: AsyncSession,
        user_id: int,
        title: str,
        message: str,
        service_record_id: Optional[int] = None,
        type: NotificationType = NotificationType.INFO,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """
        Notify a single user.

        Raises:
            Exception: Only if the notification row cannot be persisted
        """
        notification = await self._persist(db, user_id, title, message, service_record_id, type, metadata)

        user = await db.get(User, user_id)
        if user is not None:
            await self._push(user, notification)

        return notification

    async def _persist(
        self,
        db: AsyncSession,
        user_id: int,
        title: str,
        message: str,
        service_record_id: Optional[int],
        type: NotificationType,
        metadata: Optional[Dict[str, Any]],
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=NotificationType(type),
            service_record_id=service_record_id,
            meta={"sentAt": utcnow().isoformat(), **(metadata or {})},
        )
        db.add(notification)
        await db.commit()
        logger.debug(f"Notification {notification.id} created for user {user_id}")
        return notification

    async def _push(self, user: User, notification: Notification):
        """Attempt push delivery; failures are logged and swallowed."""
        if not user.push_token:
            logger.debug(f"Skipping push for user {user.id} - no push token")
            return

        try:
            message_id = await self.push_sender.send(
                user.push_token,
                notification.title,
                notification.message,
                {
                    "notificationId": notification.id,
                    "serviceRecordId": notification.service_record_id or "",
                    "type": notification.type.value,
                },
            )
            if message_id:
                logger.info(f"Push sent to user {user.id}, messageId: {message_id}")
        except Exception as e:
            logger.error(f"Push failed for user {user.id}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Workflow events
    # ------------------------------------------------------------------

    async def send_installation_notification(
        self, db: AsyncSession, record: ServiceRecord, customer, machine
    ) -> List[Notification]:
        title = "New Installation Completed"
        message = (
            f"New installation completed for Customer: {customer.name}, "
            f"Machine: {machine.name}. Customer ID: {customer.uid}"
        )
        return await self.notify_by_role(db, INSTALLATION_ROLES, title, message, record.id, NotificationType.INFO)

    async def send_report_submission_notification(
        self, db: AsyncSession, record: ServiceRecord, customer, machine
    ) -> List[Notification]:
        title = "Service Report Submitted"
        message = (
            f"Service report submitted for Customer: {customer.name}, Machine: {machine.name}. "
            "Please review for any open points."
        )
        return await self.notify_by_role(db, REPORT_SUBMITTED_ROLES, title, message, record.id, NotificationType.INFO)

    async def send_escalation_notification(
        self, db: AsyncSession, record: ServiceRecord, customer, open_points: List[Point]
    ) -> List[Notification]:
        title = "Service Escalation Required"
        message = (
            f"Service escalation: {len(open_points)} open points remaining for Customer: "
            f"{customer.name}. Immediate attention required."
        )
        return await self.notify_by_role(db, ESCALATION_ROLES, title, message, record.id, NotificationType.URGENT)

    async def send_warranty_expiry_notification(
        self, db: AsyncSession, record: ServiceRecord, customer, machine
    ) -> List[Notification]:
        title = "Warranty Expiring Soon"
        message = (
            f"Warranty for {customer.name}'s {machine.name} expires on "
            f"{record.warranty_expires_at.isoformat()}"
        )
        return await self.notify_by_role(db, WARRANTY_EXPIRY_ROLES, title, message, record.id, NotificationType.WARNING)

    async def send_pending_payment_notification(
        self, db: AsyncSession, record: ServiceRecord, customer
    ) -> List[Notification]:
        """Pending-payment alert; sends nothing when nothing is owed."""
        if not record.pending_amount or record.pending_amount <= 0:
            logger.debug(f"No pending amount on service record {record.id} - skipping notification")
            return []

        title = "Pending Payment Alert"
        message = f"Pending payment of ₹{record.pending_amount:g} for Customer: {customer.name}"
        return await self.notify_by_role(db, PENDING_PAYMENT_ROLES, title, message, record.id, NotificationType.WARNING)

    async def send_point_assignment_notification(
        self, db: AsyncSession, point: Point, assigned_to_id: int, assignment: str = "ASSIGNED"
    ) -> Notification:
        """Tell the assignee about a point; assignment is ASSIGNED or REASSIGNED."""
        if assignment == "REASSIGNED":
            title = "Point Reassigned"
            message = f'A point has been reassigned to you: "{point.title}". Priority: {point.priority.value}'
        else:
            title = "New Point Assigned"
            message = f'You have been assigned a new point: "{point.title}". Priority: {point.priority.value}'

        return await self.notify_user(
            db,
            assigned_to_id,
            title,
            message,
            point.service_record_id,
            NotificationType.WARNING,
            {"pointId": point.id, "assignment": assignment},
        )

    # ------------------------------------------------------------------
    # Read state and retention
    # ------------------------------------------------------------------

    async def mark_read(self, db: AsyncSession, notification_id: int, user_id: int) -> int:
        """
        Mark one of the user's notifications as read.

        Returns:
            Rows affected; 0 when the notification is not the user's
        """
        result = await db.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(is_read=True)
        )
        await db.commit()
        return result.rowcount

    async def mark_all_read(self, db: AsyncSession, user_id: int) -> int:
        result = await db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        await db.commit()
        return result.rowcount

    async def purge_old(self, db: AsyncSession, older_than_days: int, only_if_read: bool = True) -> int:
        """Delete notifications created before the cutoff; returns rows deleted."""
        cutoff = utcnow() - timedelta(days=older_than_days)
        stmt = delete(Notification).where(Notification.created_at < cutoff)
        if only_if_read:
            stmt = stmt.where(Notification.is_read.is_(True))

        result = await db.execute(stmt)
        await db.commit()
        logger.info(f"Purged {result.rowcount} notifications older than {older_than_days} days")
        return result.rowcount


async def best_effort(db: AsyncSession, description: str, notification: Awaitable) -> bool:
    """
    Await a workflow notification issued after the primary write committed.

    A failure here is logged and the session rolled back so it stays usable;
    the caller's operation still succeeds. Rolling back expires every loaded
    instance, so everything still persistent afterwards is read back.

    Returns:
        True if the notification step completed
    """
    try:
        await notification
        return True
    except Exception as e:
        logger.error(f"Failed to send {description}: {e}", exc_info=True)
        loaded = list(db.identity_map.values())
        await db.rollback()
        for instance in loaded:
            if instance in db:
                await db.refresh(instance)
        return False


# ============================================================================
# Inbox queries
# ============================================================================


def _inbox_filter(stmt, user_id: int, is_read: Optional[bool] = None, type: Optional[str] = None):
    stmt = stmt.where(Notification.user_id == user_id)
    if is_read is not None:
        stmt = stmt.where(Notification.is_read.is_(is_read))
    if type:
        stmt = stmt.where(Notification.type == parse_enum(NotificationType, type, "type"))
    return stmt


async def list_notifications(
    db: AsyncSession,
    user_id: int,
    is_read: Optional[bool] = None,
    type: Optional[str] = None,
    offset: int = 0,
    limit: int = 20,
) -> Tuple[List[Notification], int, int]:
    """
    List a user's notifications, newest first.

    Returns:
        (page of notifications, total matching, user's unread count)
    """
    total = await db.scalar(_inbox_filter(select(func.count(Notification.id)), user_id, is_read, type))
    result = await db.execute(
        _inbox_filter(select(Notification), user_id, is_read, type)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
    )
    unread = await unread_count(db, user_id)
    return result.scalars().all(), total, unread


async def get_notification(db: AsyncSession, notification_id: int, user_id: int) -> Notification:
    result = await db.execute(
        select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFound.for_entity("Notification", notification_id)
    return notification


async def unread_count(db: AsyncSession, user_id: int) -> int:
    return await db.scalar(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        )
    )


async def delete_notification(db: AsyncSession, notification_id: int, user_id: int) -> int:
    """Delete one of the user's notifications; returns rows deleted."""
    result = await db.execute(
        delete(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    )
    await db.commit()
    return result.rowcount


async def clear_all(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(delete(Notification).where(Notification.user_id == user_id))
    await db.commit()
    logger.info(f"Cleared {result.rowcount} notifications for user {user_id}")
    return result.rowcount


async def send_custom(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    actor: User,
    title: str,
    message: str,
    user_ids: Optional[List[int]] = None,
    roles: Optional[List[str]] = None,
    type: str = "INFO",
    service_record_id: Optional[int] = None,
) -> List[Notification]:
    """
    Send an ad-hoc notification to explicit users and/or roles.

    Raises:
        PermissionDenied: Actor is not ADMIN or SERVICE_HEAD
        InvalidArgument: No audience given, or unknown role/type
    """
    authorize(actor, Action.SEND_CUSTOM_NOTIFICATION)

    if not user_ids and not roles:
        raise InvalidArgument("Either userIds or roles must be provided")

    notification_type = parse_enum(NotificationType, type, "type")
    parsed_roles = [parse_enum(UserRole, role, "role") for role in roles or []]

    notifications = []
    if parsed_roles:
        notifications.extend(
            await dispatcher.notify_by_role(db, parsed_roles, title, message, service_record_id, notification_type)
        )

    for user_id in user_ids or []:
        if await db.get(User, user_id) is None:
            logger.warning(f"Skipping custom notification for unknown user {user_id}")
            continue
        notifications.append(
            await dispatcher.notify_user(
                db, user_id, title, message, service_record_id, notification_type, {"sentBy": actor.id}
            )
        )

    logger.info(f"User {actor.id} sent custom notification '{title}' to {len(notifications)} recipients")
    return notifications


async def statistics(db: AsyncSession, actor: User, recent_days: int = 7) -> Dict[str, Any]:
    """Delivery statistics across all users (ADMIN only)."""
    authorize(actor, Action.VIEW_NOTIFICATION_STATISTICS)

    total = await db.scalar(select(func.count(Notification.id)))
    unread = await db.scalar(select(func.count(Notification.id)).where(Notification.is_read.is_(False)))

    result = await db.execute(select(Notification.type, func.count(Notification.id)).group_by(Notification.type))
    type_counts = {t.value: 0 for t in NotificationType}
    for notification_type, count in result.all():
        type_counts[notification_type.value] = count

    since = utcnow() - timedelta(days=recent_days)
    recent = await db.scalar(select(func.count(Notification.id)).where(Notification.created_at >= since))

    return {
        "total": total,
        "unread": unread,
        "read": total - unread,
        "read_rate": round((total - unread) / total * 100, 2) if total else 0.0,
        "type_counts": type_counts,
        "recent_activity": recent,
        "recent_days": recent_days,
    }
