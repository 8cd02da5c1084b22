"""
Point lifecycle management.

Points are follow-up action items raised against a service record. Status
transitions are advisory (any of the six values may be written), but the
vocabularies are enforced and assignment changes notify the new assignee.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from servicedesk.errors import NotFound, PermissionDenied, parse_enum
from servicedesk.models.base import utcnow
from servicedesk.models.customer import Customer
from servicedesk.models.point import (
    CLOSED_POINT_STATUSES,
    OPEN_POINT_STATUSES,
    Point,
    PointPriority,
    PointStatus,
)
from servicedesk.models.service_record import ServiceRecord
from servicedesk.models.user import User
from servicedesk.policy import Action, authorize, is_allowed
from servicedesk.services.notification_service import NotificationDispatcher, best_effort
from servicedesk.utils.dates import to_naive_utc
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

DEFAULT_ESCALATION_HOURS = 72

# HIGH sorts first
PRIORITY_RANK = case(
    {PointPriority.HIGH.value: 0, PointPriority.MEDIUM.value: 1, PointPriority.LOW.value: 2},
    value=Point.priority,
    else_=3,
)

UPDATABLE_FIELDS = ("title", "description", "status", "priority", "assigned_to_id", "due_date")


async def _get_service_record(db: AsyncSession, service_record_id: int) -> ServiceRecord:
    record = await db.get(ServiceRecord, service_record_id)
    if record is None:
        raise NotFound.for_entity("Service record", service_record_id)
    return record


async def _get_assignee(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound(f"Assigned user with ID {user_id} not found")
    return user


async def get_point(db: AsyncSession, point_id: int) -> Point:
    point = await db.get(Point, point_id)
    if point is None:
        raise NotFound.for_entity("Point", point_id)
    return point


async def create_point(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    actor: User,
    service_record_id: int,
    title: str,
    description: Optional[str] = None,
    priority: Any = PointPriority.MEDIUM,
    assigned_to_id: Optional[int] = None,
    due_date: Optional[datetime] = None,
) -> Point:
    """
    Create a point against a service record.

    When the point is assigned, the assignee receives a WARNING notification
    naming the point and its priority.

    Raises:
        PermissionDenied: Actor cannot manage points
        NotFound: Service record or assignee does not exist
        InvalidArgument: Unknown priority
    """
    authorize(actor, Action.MANAGE_POINTS, "Only Admin, Service Head, or Engineer can create points")

    await _get_service_record(db, service_record_id)
    if assigned_to_id is not None:
        await _get_assignee(db, assigned_to_id)

    point = Point(
        service_record_id=service_record_id,
        title=title,
        description=description,
        priority=parse_enum(PointPriority, priority or PointPriority.MEDIUM, "priority"),
        assigned_to_id=assigned_to_id,
        created_by_id=actor.id,
        due_date=to_naive_utc(due_date),
    )
    db.add(point)
    await db.commit()
    await db.refresh(point)

    logger.info(f"Point {point.id} created on service record {service_record_id} by user {actor.id}")

    if assigned_to_id is not None:
        await best_effort(
            db,
            f"assignment notification for point {point.id}",
            dispatcher.send_point_assignment_notification(db, point, assigned_to_id, "ASSIGNED"),
        )

    return point


async def update_point(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    actor: User,
    point_id: int,
    fields: Dict[str, Any],
) -> Point:
    """
    Partially update a point.

    Only keys present in fields are written. Writing status COMPLETED stamps
    completed_at with the current time on every such write. Changing the
    assignee to a different user notifies them, tagged REASSIGNED when the
    point already had an assignee.

    Raises:
        NotFound: Point or new assignee does not exist
        PermissionDenied: Actor is neither privileged, the assignee nor the creator
        InvalidArgument: Unknown status or priority
    """
    point = await get_point(db, point_id)

    if not (
        is_allowed(actor, Action.MANAGE_POINTS)
        or point.assigned_to_id == actor.id
        or point.created_by_id == actor.id
    ):
        raise PermissionDenied("You can only update points assigned to you or created by you")

    previous_assignee_id = point.assigned_to_id
    new_assignee_id = fields.get("assigned_to_id")
    reassigning = new_assignee_id is not None and new_assignee_id != previous_assignee_id
    if reassigning:
        await _get_assignee(db, new_assignee_id)

    if fields.get("status") is not None:
        status = parse_enum(PointStatus, fields["status"], "status")
        point.status = status
        if status == PointStatus.COMPLETED:
            point.completed_at = utcnow()
    if fields.get("priority") is not None:
        point.priority = parse_enum(PointPriority, fields["priority"], "priority")
    if fields.get("title"):
        point.title = fields["title"]
    if "description" in fields:
        point.description = fields["description"]
    if "assigned_to_id" in fields:
        point.assigned_to_id = new_assignee_id
    if "due_date" in fields:
        point.due_date = to_naive_utc(fields["due_date"])

    await db.commit()
    await db.refresh(point)

    changed = sorted(key for key in fields if key in UPDATABLE_FIELDS)
    logger.info(f"Point {point.id} updated by user {actor.id}: {changed}")

    if reassigning:
        assignment = "REASSIGNED" if previous_assignee_id is not None else "ASSIGNED"
        await best_effort(
            db,
            f"assignment notification for point {point.id}",
            dispatcher.send_point_assignment_notification(db, point, new_assignee_id, assignment),
        )

    return point


async def delete_point(db: AsyncSession, actor: User, point_id: int):
    """
    Delete a point.

    Raises:
        NotFound: Point does not exist
        PermissionDenied: Actor is neither ADMIN/SERVICE_HEAD nor the creator
    """
    point = await get_point(db, point_id)

    if not (is_allowed(actor, Action.DELETE_ANY_POINT) or point.created_by_id == actor.id):
        raise PermissionDenied("Only Admin, Service Head, or the point creator can delete points")

    await db.delete(point)
    await db.commit()
    logger.info(f"Point {point_id} deleted by user {actor.id}")


async def check_escalation(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    service_record_id: int,
    age_threshold_hours: int = DEFAULT_ESCALATION_HOURS,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Escalate a service record whose points have stayed open too long.

    Selects the record's points that are neither COMPLETED nor CLOSED and were
    created before now - age_threshold_hours. If any exist, every active
    SERVICE_HEAD receives one URGENT notification summarizing the count.

    Returns:
        {
            "escalation_required": bool,
            "open_points_count": int,
            "time_frame_hours": int,
            "open_points": List[Point],
        }
    """
    record = await _get_service_record(db, service_record_id)
    cutoff = (now or utcnow()) - timedelta(hours=age_threshold_hours)

    result = await db.execute(
        select(Point)
        .where(
            Point.service_record_id == service_record_id,
            Point.status.not_in(CLOSED_POINT_STATUSES),
            Point.created_at < cutoff,
        )
        .order_by(PRIORITY_RANK, Point.created_at)
    )
    open_points = result.scalars().all()

    if not open_points:
        logger.info(f"No escalation required for service record {service_record_id}")
        return {
            "escalation_required": False,
            "open_points_count": 0,
            "time_frame_hours": age_threshold_hours,
            "open_points": [],
        }

    customer = await db.get(Customer, record.customer_id)
    logger.warning(
        f"Escalating service record {service_record_id}: {len(open_points)} open points "
        f"older than {age_threshold_hours}h"
    )
    await dispatcher.send_escalation_notification(db, record, customer, open_points)

    return {
        "escalation_required": True,
        "open_points_count": len(open_points),
        "time_frame_hours": age_threshold_hours,
        "open_points": open_points,
    }


def _apply_filters(stmt, **filters):
    if filters.get("service_record_id") is not None:
        stmt = stmt.where(Point.service_record_id == filters["service_record_id"])
    if filters.get("assigned_to_id") is not None:
        stmt = stmt.where(Point.assigned_to_id == filters["assigned_to_id"])
    if filters.get("created_by_id") is not None:
        stmt = stmt.where(Point.created_by_id == filters["created_by_id"])
    if filters.get("status"):
        stmt = stmt.where(Point.status == parse_enum(PointStatus, filters["status"], "status"))
    if filters.get("priority"):
        stmt = stmt.where(Point.priority == parse_enum(PointPriority, filters["priority"], "priority"))
    return stmt


async def list_points(
    db: AsyncSession,
    service_record_id: Optional[int] = None,
    assigned_to_id: Optional[int] = None,
    created_by_id: Optional[int] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    offset: int = 0,
    limit: int = 20,
) -> Tuple[List[Point], int]:
    """List points, highest priority first then newest; returns (page, total)."""
    filters = dict(
        service_record_id=service_record_id,
        assigned_to_id=assigned_to_id,
        created_by_id=created_by_id,
        status=status,
        priority=priority,
    )
    total = await db.scalar(_apply_filters(select(func.count(Point.id)), **filters))
    result = await db.execute(
        _apply_filters(select(Point), **filters)
        .order_by(PRIORITY_RANK, Point.created_at.desc(), Point.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return result.scalars().all(), total


async def _status_counts(db: AsyncSession, service_record_id: Optional[int] = None) -> Dict[str, int]:
    stmt = select(Point.status, func.count(Point.id)).group_by(Point.status)
    if service_record_id is not None:
        stmt = stmt.where(Point.service_record_id == service_record_id)
    result = await db.execute(stmt)
    return {status.value: count for status, count in result.all()}


async def list_for_service_record(
    db: AsyncSession, service_record_id: int, status: Optional[str] = None
) -> Tuple[List[Point], Dict[str, int]]:
    """
    All points of one service record plus per-status counts.

    Raises:
        NotFound: Service record does not exist
    """
    await _get_service_record(db, service_record_id)

    stmt = _apply_filters(select(Point), service_record_id=service_record_id, status=status)
    result = await db.execute(stmt.order_by(PRIORITY_RANK, Point.created_at.desc(), Point.id.desc()))
    return result.scalars().all(), await _status_counts(db, service_record_id)


async def list_my_points(
    db: AsyncSession,
    actor: User,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    offset: int = 0,
    limit: int = 20,
) -> Tuple[List[Point], int]:
    """
    Points assigned to the actor.

    status OPEN selects points that are neither COMPLETED nor CLOSED, and
    status COMPLETED selects both COMPLETED and CLOSED. Any other value must
    be an exact point status.
    """
    conditions = [Point.assigned_to_id == actor.id]

    if status:
        normalized = status.upper()
        if normalized == "OPEN":
            conditions.append(Point.status.not_in(CLOSED_POINT_STATUSES))
        elif normalized == "COMPLETED":
            conditions.append(Point.status.in_(CLOSED_POINT_STATUSES))
        else:
            conditions.append(Point.status == parse_enum(PointStatus, status, "status"))
    if priority:
        conditions.append(Point.priority == parse_enum(PointPriority, priority, "priority"))

    total = await db.scalar(select(func.count(Point.id)).where(*conditions))
    result = await db.execute(
        select(Point)
        .where(*conditions)
        .order_by(PRIORITY_RANK, Point.due_date.is_(None), Point.due_date, Point.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return result.scalars().all(), total


async def point_statistics(db: AsyncSession, actor: User, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()

    total = await db.scalar(select(func.count(Point.id)))
    mine = await db.scalar(select(func.count(Point.id)).where(Point.assigned_to_id == actor.id))
    high_priority = await db.scalar(
        select(func.count(Point.id)).where(
            Point.priority == PointPriority.HIGH, Point.status.in_(OPEN_POINT_STATUSES)
        )
    )
    overdue = await db.scalar(
        select(func.count(Point.id)).where(Point.due_date < now, Point.status.in_(OPEN_POINT_STATUSES))
    )

    return {
        "total_points": total,
        "my_assigned_points": mine,
        "high_priority_points": high_priority,
        "overdue_points": overdue,
        "status_counts": await _status_counts(db),
    }
