"""
Open points reminder job.

Scans every point that is still open and sends:
- one summary per active admin with counts by priority, overdue and unassigned
- one summary per active assignee covering their own points (URGENT when any
  of them is overdue)
- one URGENT notification per overdue point, linked to its service record

Runs are not deduplicated; every run re-sends the reminders.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from servicedesk.models.base import utcnow
from servicedesk.models.customer import Customer
from servicedesk.models.machine import Machine
from servicedesk.models.notification import NotificationType
from servicedesk.models.point import OPEN_POINT_STATUSES, Point, PointPriority
from servicedesk.models.service_record import ServiceRecord
from servicedesk.models.user import User, UserRole
from servicedesk.services.notification_service import NotificationDispatcher
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

SOURCE = "openPointsScript"


def _priority_counts(points: List[Point]) -> Dict[str, int]:
    counts = {priority.value: 0 for priority in PointPriority}
    for point in points:
        counts[point.priority.value] += 1
    return counts


def _is_overdue(point: Point, now: datetime) -> bool:
    return point.due_date is not None and point.due_date < now


async def fetch_open_points(db: AsyncSession) -> List[Point]:
    result = await db.execute(
        select(Point)
        .where(Point.status.in_(OPEN_POINT_STATUSES))
        .order_by(Point.due_date.is_(None), Point.due_date, Point.created_at.desc())
    )
    return result.scalars().all()


async def _active_users(db: AsyncSession, **filters) -> List[User]:
    stmt = select(User).where(User.is_active.is_(True)).order_by(User.id)
    if "role" in filters:
        stmt = stmt.where(User.role == filters["role"])
    if "ids" in filters:
        stmt = stmt.where(User.id.in_(filters["ids"]))
    result = await db.execute(stmt)
    return result.scalars().all()


async def _notify_admins(
    db: AsyncSession, dispatcher: NotificationDispatcher, points: List[Point], now: datetime
) -> int:
    admins = await _active_users(db, role=UserRole.ADMIN)
    if not admins:
        logger.warning("No active admin users found for open points summary")
        return 0

    counts = _priority_counts(points)
    overdue = sum(1 for point in points if _is_overdue(point, now))
    unassigned = sum(1 for point in points if point.assigned_to_id is None)

    title = f"📊 Open Points Summary - {len(points)} Total"
    message = (
        f"HIGH: {counts['HIGH']} | MEDIUM: {counts['MEDIUM']} | LOW: {counts['LOW']} | "
        f"Overdue: {overdue} | Unassigned: {unassigned}"
    )

    for admin in admins:
        await dispatcher.notify_user(
            db, admin.id, title, message, None, NotificationType.WARNING, {"source": SOURCE}
        )
    return len(admins)


async def _overdue_message(db: AsyncSession, point: Point) -> str:
    record = await db.get(ServiceRecord, point.service_record_id)
    customer = await db.get(Customer, record.customer_id)
    machine = await db.get(Machine, record.machine_id)
    return f"Customer: {customer.name} | Machine: {machine.name} | Due: {point.due_date.date().isoformat()}"


async def _notify_assignees(
    db: AsyncSession, dispatcher: NotificationDispatcher, points: List[Point], now: datetime
) -> Dict[str, int]:
    by_assignee = defaultdict(list)
    for point in points:
        if point.assigned_to_id is not None:
            by_assignee[point.assigned_to_id].append(point)

    assignees = await _active_users(db, ids=list(by_assignee)) if by_assignee else []

    summaries = overdue_alerts = 0
    for user in assignees:
        own = by_assignee[user.id]
        counts = _priority_counts(own)
        overdue = [point for point in own if _is_overdue(point, now)]

        title = f"⚠️ You have {len(own)} open point{'s' if len(own) > 1 else ''}"
        message = f"HIGH: {counts['HIGH']} | MEDIUM: {counts['MEDIUM']} | LOW: {counts['LOW']}"
        if overdue:
            message += f" | ⏰ OVERDUE: {len(overdue)}"

        await dispatcher.notify_user(
            db,
            user.id,
            title,
            message,
            None,
            NotificationType.URGENT if overdue else NotificationType.WARNING,
            {"source": SOURCE},
        )
        summaries += 1

        for point in overdue:
            await dispatcher.notify_user(
                db,
                user.id,
                f"🚨 Overdue Point: {point.title}",
                await _overdue_message(db, point),
                point.service_record_id,
                NotificationType.URGENT,
                {"source": SOURCE, "pointId": point.id},
            )
            overdue_alerts += 1

    return {"assignee_summaries": summaries, "overdue_alerts": overdue_alerts}


async def run_open_points_reminder(
    db: AsyncSession, dispatcher: NotificationDispatcher, now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Send the open points reminders once.

    Returns:
        Counts of open points and of notifications sent, by kind
    """
    now = now or utcnow()
    points = await fetch_open_points(db)
    logger.info(f"Found {len(points)} open points")

    summary = {"open_points": len(points), "admin_summaries": 0, "assignee_summaries": 0, "overdue_alerts": 0}
    if not points:
        logger.info("No open points found - nothing to send")
        return summary

    summary["admin_summaries"] = await _notify_admins(db, dispatcher, points, now)
    summary.update(await _notify_assignees(db, dispatcher, points, now))
    return summary


async def open_points_reminder_job(session_maker: async_sessionmaker, dispatcher: NotificationDispatcher):
    """Scheduler entry point: runs the reminder in its own session."""
    logger.info("Running open points reminder job...")
    try:
        async with session_maker() as db:
            summary = await run_open_points_reminder(db, dispatcher)
        logger.info(f"Open points reminder job completed: {summary}")
    except Exception as e:
        logger.error(f"Error in open points reminder job: {e}", exc_info=True)
