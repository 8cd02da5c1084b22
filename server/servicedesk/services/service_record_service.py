"""
Service-record workflow.

A service record is created at installation time. Creation computes the
warranty expiry from the machine's warranty term and announces the
installation; later updates record verification and payment follow-up.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from servicedesk.errors import InvalidArgument, InvalidState, NotFound, parse_enum
from servicedesk.models.base import utcnow
from servicedesk.models.customer import Customer
from servicedesk.models.machine import Machine
from servicedesk.models.notification import Notification
from servicedesk.models.point import CLOSED_POINT_STATUSES, OPEN_POINT_STATUSES, Point
from servicedesk.models.report import Report
from servicedesk.models.service_record import ServiceRecord, ServiceRecordStatus
from servicedesk.models.user import User
from servicedesk.policy import Action, authorize
from servicedesk.services.notification_service import NotificationDispatcher, best_effort
from servicedesk.utils.dates import add_months, warranty_days_remaining, warranty_status
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def service_record_view(
    record: ServiceRecord, now: Optional[datetime] = None, open_points_count: Optional[int] = None
) -> Dict[str, Any]:
    """Column values plus the read-time warranty and payment fields."""
    now = now or utcnow()
    view = {
        "id": record.id,
        "customer_id": record.customer_id,
        "machine_id": record.machine_id,
        "created_by_id": record.created_by_id,
        "purchase_date": record.purchase_date,
        "warranty_expires_at": record.warranty_expires_at,
        "pending_amount": record.pending_amount,
        "status": record.status,
        "kpis": record.kpis or {},
        "created_at": record.created_at,
        "updated_at": record.updated_at,
        "warranty_status": warranty_status(record.warranty_expires_at, now),
        "warranty_days_remaining": warranty_days_remaining(record.warranty_expires_at, now),
        "has_pending_amount": (record.pending_amount or 0) > 0,
    }
    if open_points_count is not None:
        view["open_points_count"] = open_points_count
    return view


def _check_pending_amount(amount: Optional[float]):
    if amount is not None and amount < 0:
        raise InvalidArgument(f"Pending amount cannot be negative: {amount}", {"field": "pending_amount"})


async def get_service_record(db: AsyncSession, service_record_id: int) -> ServiceRecord:
    record = await db.get(ServiceRecord, service_record_id)
    if record is None:
        raise NotFound.for_entity("Service record", service_record_id)
    return record


async def count_open_points(db: AsyncSession, service_record_id: int) -> int:
    return await db.scalar(
        select(func.count(Point.id)).where(
            Point.service_record_id == service_record_id,
            Point.status.not_in(CLOSED_POINT_STATUSES),
        )
    )


async def create_service_record(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    actor: User,
    customer_id: int,
    machine_id: int,
    purchase_date: date,
    pending_amount: float = 0,
    kpis: Optional[Dict[str, Any]] = None,
) -> ServiceRecord:
    """
    Record a machine installation at a customer site.

    warranty_expires_at is purchase_date advanced by the machine's warranty
    term in calendar months. The installation notification always goes out;
    the pending-payment notification only when pending_amount > 0.

    Raises:
        PermissionDenied: Actor is not ADMIN, SERVICE_HEAD or ENGINEER
        NotFound: Customer or machine does not exist
        InvalidArgument: Negative pending amount
    """
    authorize(actor, Action.CREATE_SERVICE_RECORD, "Only Admin, Service Head, or Engineer can create service records")

    customer = await db.get(Customer, customer_id)
    if customer is None:
        raise NotFound.for_entity("Customer", customer_id)
    machine = await db.get(Machine, machine_id)
    if machine is None:
        raise NotFound.for_entity("Machine", machine_id)

    pending_amount = pending_amount or 0
    _check_pending_amount(pending_amount)

    record = ServiceRecord(
        customer_id=customer_id,
        machine_id=machine_id,
        created_by_id=actor.id,
        purchase_date=purchase_date,
        warranty_expires_at=add_months(purchase_date, machine.warranty_time_in_months),
        pending_amount=pending_amount,
        kpis=kpis or {},
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)

    logger.info(
        f"Service record {record.id} created for customer {customer.uid} / machine {machine.id}, "
        f"warranty until {record.warranty_expires_at}"
    )

    await best_effort(
        db,
        f"installation notification for service record {record.id}",
        dispatcher.send_installation_notification(db, record, customer, machine),
    )
    if record.pending_amount > 0:
        await best_effort(
            db,
            f"pending payment notification for service record {record.id}",
            dispatcher.send_pending_payment_notification(db, record, customer),
        )

    return record


async def update_service_record(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    actor: User,
    service_record_id: int,
    fields: Dict[str, Any],
) -> ServiceRecord:
    """
    Partially update pending_amount, kpis and status.

    Setting pending_amount to a positive value re-sends the pending-payment
    notification every time.

    Raises:
        NotFound: Service record does not exist
        InvalidArgument: Negative amount or unknown status
    """
    record = await get_service_record(db, service_record_id)

    if "pending_amount" in fields and fields["pending_amount"] is not None:
        _check_pending_amount(fields["pending_amount"])
        record.pending_amount = float(fields["pending_amount"])
    if fields.get("kpis") is not None:
        record.kpis = fields["kpis"]
    if fields.get("status") is not None:
        record.status = parse_enum(ServiceRecordStatus, fields["status"], "status")

    await db.commit()
    await db.refresh(record)
    logger.info(f"Service record {record.id} updated by user {actor.id}")

    if fields.get("pending_amount") is not None and fields["pending_amount"] > 0:
        customer = await db.get(Customer, record.customer_id)
        await best_effort(
            db,
            f"pending payment notification for service record {record.id}",
            dispatcher.send_pending_payment_notification(db, record, customer),
        )

    return record


async def delete_service_record(db: AsyncSession, actor: User, service_record_id: int):
    """
    Delete a service record that has no reports or points.

    Notifications linked to the record keep existing with the link cleared.

    Raises:
        PermissionDenied: Actor is not ADMIN or SERVICE_HEAD
        NotFound: Service record does not exist
        InvalidState: Reports or points still reference the record
    """
    authorize(actor, Action.DELETE_SERVICE_RECORD, "Only Admin or Service Head can delete service records")
    record = await get_service_record(db, service_record_id)

    reports = await db.scalar(select(func.count(Report.id)).where(Report.service_record_id == record.id))
    points = await db.scalar(select(func.count(Point.id)).where(Point.service_record_id == record.id))
    if reports or points:
        raise InvalidState(
            "Service record has related reports or points. "
            "Please delete them first or change status to CANCELLED.",
            {"reports": reports, "points": points},
        )

    await db.execute(
        update(Notification).where(Notification.service_record_id == record.id).values(service_record_id=None)
    )
    await db.delete(record)
    await db.commit()
    logger.info(f"Service record {service_record_id} deleted by user {actor.id}")


def _apply_filters(stmt, status=None, customer_id=None, machine_id=None, created_by_id=None):
    if status:
        stmt = stmt.where(ServiceRecord.status == parse_enum(ServiceRecordStatus, status, "status"))
    if customer_id is not None:
        stmt = stmt.where(ServiceRecord.customer_id == customer_id)
    if machine_id is not None:
        stmt = stmt.where(ServiceRecord.machine_id == machine_id)
    if created_by_id is not None:
        stmt = stmt.where(ServiceRecord.created_by_id == created_by_id)
    return stmt


async def list_service_records(
    db: AsyncSession,
    status: Optional[str] = None,
    customer_id: Optional[int] = None,
    machine_id: Optional[int] = None,
    created_by_id: Optional[int] = None,
    offset: int = 0,
    limit: int = 20,
) -> Tuple[List[ServiceRecord], int]:
    filters = dict(status=status, customer_id=customer_id, machine_id=machine_id, created_by_id=created_by_id)
    total = await db.scalar(_apply_filters(select(func.count(ServiceRecord.id)), **filters))
    result = await db.execute(
        _apply_filters(select(ServiceRecord), **filters)
        .order_by(ServiceRecord.created_at.desc(), ServiceRecord.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return result.scalars().all(), total


async def list_warranty_expiring(
    db: AsyncSession, days: int = 30, today: Optional[date] = None
) -> List[ServiceRecord]:
    """ACTIVE records whose warranty ends within the next `days` days, soonest first."""
    today = today or utcnow().date()
    result = await db.execute(
        select(ServiceRecord)
        .where(
            ServiceRecord.status == ServiceRecordStatus.ACTIVE,
            ServiceRecord.warranty_expires_at >= today,
            ServiceRecord.warranty_expires_at <= today + timedelta(days=days),
        )
        .order_by(ServiceRecord.warranty_expires_at)
    )
    return result.scalars().all()


async def pending_amounts_summary(db: AsyncSession) -> Tuple[List[ServiceRecord], float]:
    """ACTIVE records with money outstanding, largest first, and their total."""
    result = await db.execute(
        select(ServiceRecord)
        .where(ServiceRecord.status == ServiceRecordStatus.ACTIVE, ServiceRecord.pending_amount > 0)
        .order_by(ServiceRecord.pending_amount.desc())
    )
    records = result.scalars().all()
    return records, sum(record.pending_amount for record in records)


async def service_record_statistics(db: AsyncSession, warranty_window_days: int = 30) -> Dict[str, Any]:
    today = utcnow().date()
    count = select(func.count(ServiceRecord.id))

    total = await db.scalar(count)
    active = await db.scalar(count.where(ServiceRecord.status == ServiceRecordStatus.ACTIVE))
    completed = await db.scalar(count.where(ServiceRecord.status == ServiceRecordStatus.COMPLETED))
    total_pending = await db.scalar(
        select(func.coalesce(func.sum(ServiceRecord.pending_amount), 0)).where(
            ServiceRecord.status == ServiceRecordStatus.ACTIVE
        )
    )
    expiring = await db.scalar(
        count.where(
            ServiceRecord.status == ServiceRecordStatus.ACTIVE,
            ServiceRecord.warranty_expires_at >= today,
            ServiceRecord.warranty_expires_at <= today + timedelta(days=warranty_window_days),
        )
    )
    open_points = await db.scalar(select(func.count(Point.id)).where(Point.status.in_(OPEN_POINT_STATUSES)))

    return {
        "total_records": total,
        "active_records": active,
        "completed_records": completed,
        "total_pending_amount": float(total_pending or 0),
        "warranty_expiring_soon": expiring,
        "open_points": open_points,
    }
