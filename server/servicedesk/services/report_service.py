"""Field report management."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from servicedesk.errors import NotFound, PermissionDenied
from servicedesk.models.customer import Customer
from servicedesk.models.machine import Machine
from servicedesk.models.report import Report
from servicedesk.models.service_record import ServiceRecord
from servicedesk.models.user import User, UserRole
from servicedesk.policy import Action, authorize
from servicedesk.services.notification_service import NotificationDispatcher, best_effort
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

REPORT_FIELDS = ("report_data", "scan_data", "manual_url", "e_drawings_url")


def _check_owner(actor: User, report: Report):
    # Engineers may only touch their own reports
    if actor.role == UserRole.ENGINEER and report.engineer_id != actor.id:
        raise PermissionDenied("Engineers can only modify their own reports")


async def get_report(db: AsyncSession, report_id: int) -> Report:
    report = await db.get(Report, report_id)
    if report is None:
        raise NotFound.for_entity("Report", report_id)
    return report


async def create_report(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    actor: User,
    service_record_id: int,
    fields: Dict[str, Any],
) -> Report:
    """
    Submit a report against a service record; the actor is recorded as engineer.

    Management, service head, sales and commercial are told a report is ready
    for review.

    Raises:
        PermissionDenied: Actor is not ADMIN, SERVICE_HEAD or ENGINEER
        NotFound: Service record does not exist
    """
    authorize(actor, Action.WRITE_REPORT, "Only Admin, Service Head, or Engineer can create reports")

    record = await db.get(ServiceRecord, service_record_id)
    if record is None:
        raise NotFound.for_entity("Service record", service_record_id)

    report = Report(
        service_record_id=service_record_id,
        engineer_id=actor.id,
        report_data=fields.get("report_data") or {},
        scan_data=fields.get("scan_data") or {},
        manual_url=fields.get("manual_url"),
        e_drawings_url=fields.get("e_drawings_url"),
    )
    db.add(report)
    await db.commit()
    await db.refresh(report)

    logger.info(f"Report {report.id} submitted for service record {service_record_id} by user {actor.id}")

    customer = await db.get(Customer, record.customer_id)
    machine = await db.get(Machine, record.machine_id)
    await best_effort(
        db,
        f"report submission notification for report {report.id}",
        dispatcher.send_report_submission_notification(db, record, customer, machine),
    )

    return report


async def list_reports(
    db: AsyncSession,
    service_record_id: Optional[int] = None,
    engineer_id: Optional[int] = None,
    offset: int = 0,
    limit: int = 20,
) -> Tuple[List[Report], int]:
    conditions = []
    if service_record_id is not None:
        conditions.append(Report.service_record_id == service_record_id)
    if engineer_id is not None:
        conditions.append(Report.engineer_id == engineer_id)

    total = await db.scalar(select(func.count(Report.id)).where(*conditions))
    result = await db.execute(
        select(Report)
        .where(*conditions)
        .order_by(Report.created_at.desc(), Report.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return result.scalars().all(), total


async def reports_for_service_record(db: AsyncSession, service_record_id: int) -> List[Report]:
    if await db.get(ServiceRecord, service_record_id) is None:
        raise NotFound.for_entity("Service record", service_record_id)

    reports, _ = await list_reports(db, service_record_id=service_record_id, limit=None)
    return reports


async def reports_for_engineer(
    db: AsyncSession, engineer_id: int, offset: int = 0, limit: int = 20
) -> Tuple[List[Report], int]:
    if await db.get(User, engineer_id) is None:
        raise NotFound(f"Engineer with ID {engineer_id} not found")

    return await list_reports(db, engineer_id=engineer_id, offset=offset, limit=limit)


async def update_report(db: AsyncSession, actor: User, report_id: int, fields: Dict[str, Any]) -> Report:
    authorize(actor, Action.WRITE_REPORT, "Only Admin, Service Head, or Engineer can update reports")
    report = await get_report(db, report_id)
    _check_owner(actor, report)

    for key in REPORT_FIELDS:
        if key in fields and fields[key] is not None:
            setattr(report, key, fields[key])

    await db.commit()
    await db.refresh(report)
    logger.info(f"Report {report.id} updated by user {actor.id}")
    return report


async def delete_report(db: AsyncSession, actor: User, report_id: int):
    report = await get_report(db, report_id)
    _check_owner(actor, report)
    authorize(actor, Action.WRITE_REPORT, "Only Admin, Service Head, or Engineer can delete reports")

    await db.delete(report)
    await db.commit()
    logger.info(f"Report {report_id} deleted by user {actor.id}")
