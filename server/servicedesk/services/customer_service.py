"""Customer management, search and cascading delete."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from servicedesk.errors import InvalidArgument, NotFound
from servicedesk.models.customer import Customer
from servicedesk.models.machine import Machine
from servicedesk.models.notification import Notification
from servicedesk.models.point import Point
from servicedesk.models.report import Report
from servicedesk.models.service_record import ServiceRecord
from servicedesk.models.user import User
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

SEARCH_RESULT_LIMIT = 10
CUSTOMER_FIELDS = ("name", "phone", "email", "address")


def _assign(customer: Customer, fields: Dict[str, Any]):
    # Model validators raise ValueError for malformed phone numbers
    try:
        for key in CUSTOMER_FIELDS:
            if key in fields and (fields[key] is not None or key in ("email", "address")):
                setattr(customer, key, fields[key])
    except ValueError as e:
        raise InvalidArgument(str(e), {"field": "phone"})


async def create_customer(db: AsyncSession, actor: User, fields: Dict[str, Any]) -> Customer:
    """
    Create a customer; the uid is generated.

    Raises:
        InvalidArgument: Missing name or malformed phone
    """
    if not fields.get("name") or not fields.get("phone"):
        raise InvalidArgument("Missing required fields", {"required": ["name", "phone"]})

    customer = Customer()
    _assign(customer, fields)
    db.add(customer)
    await db.commit()
    await db.refresh(customer)

    logger.info(f"Customer {customer.uid} created by user {actor.id}")
    return customer


async def get_customer(db: AsyncSession, customer_id: int) -> Customer:
    customer = await db.get(Customer, customer_id)
    if customer is None:
        raise NotFound.for_entity("Customer", customer_id)
    return customer


async def get_customer_by_uid(db: AsyncSession, uid: str) -> Customer:
    result = await db.execute(select(Customer).where(Customer.uid == uid))
    customer = result.scalar_one_or_none()
    if customer is None:
        raise NotFound(f"Customer with UID {uid} not found")
    return customer


async def customer_service_records(db: AsyncSession, customer_id: int) -> List[ServiceRecord]:
    result = await db.execute(
        select(ServiceRecord)
        .where(ServiceRecord.customer_id == customer_id)
        .order_by(ServiceRecord.created_at.desc(), ServiceRecord.id.desc())
    )
    return result.scalars().all()


def _search_clause(term: str, include_serial: bool = False):
    pattern = f"%{term}%"
    clauses = [
        Customer.name.ilike(pattern),
        Customer.uid.ilike(pattern),
        Customer.phone.contains(term),
        Customer.email.ilike(pattern),
    ]
    if include_serial:
        clauses.append(
            Customer.service_records.any(ServiceRecord.machine.has(Machine.serial_number.ilike(pattern)))
        )
    return or_(*clauses)


async def list_customers(
    db: AsyncSession, search: Optional[str] = None, offset: int = 0, limit: int = 20
) -> Tuple[List[Customer], int]:
    count_stmt = select(func.count(Customer.id))
    stmt = select(Customer)
    if search:
        count_stmt = count_stmt.where(_search_clause(search))
        stmt = stmt.where(_search_clause(search))

    total = await db.scalar(count_stmt)
    result = await db.execute(stmt.order_by(Customer.created_at.desc(), Customer.id.desc()).offset(offset).limit(limit))
    return result.scalars().all(), total


async def search_customers(db: AsyncSession, query: str) -> List[Customer]:
    """
    Find customers for a service call by name, uid, phone or machine serial.

    Raises:
        InvalidArgument: Empty query
    """
    if not query or not query.strip():
        raise InvalidArgument("Search query required")

    result = await db.execute(
        select(Customer)
        .where(_search_clause(query.strip(), include_serial=True))
        .order_by(Customer.name)
        .limit(SEARCH_RESULT_LIMIT)
    )
    return result.scalars().all()


async def update_customer(db: AsyncSession, actor: User, customer_id: int, fields: Dict[str, Any]) -> Customer:
    customer = await get_customer(db, customer_id)
    _assign(customer, fields)
    await db.commit()
    await db.refresh(customer)
    logger.info(f"Customer {customer.uid} updated by user {actor.id}")
    return customer


async def delete_customer(db: AsyncSession, actor: User, customer_id: int) -> Dict[str, int]:
    """
    Delete a customer together with everything hanging off its service records.

    Runs as one transaction in the order points, reports, service records,
    customer. Notifications that referenced the deleted records keep existing
    with the link cleared. Nothing is deleted if any step fails.

    Returns:
        Counts of deleted points, reports and service records
    """
    customer = await get_customer(db, customer_id)
    record_ids = (
        await db.execute(select(ServiceRecord.id).where(ServiceRecord.customer_id == customer.id))
    ).scalars().all()

    try:
        points = reports = records = 0
        if record_ids:
            points = (await db.execute(delete(Point).where(Point.service_record_id.in_(record_ids)))).rowcount
            reports = (await db.execute(delete(Report).where(Report.service_record_id.in_(record_ids)))).rowcount
            await db.execute(
                update(Notification)
                .where(Notification.service_record_id.in_(record_ids))
                .values(service_record_id=None)
            )
            records = (
                await db.execute(delete(ServiceRecord).where(ServiceRecord.customer_id == customer.id))
            ).rowcount

        await db.execute(delete(Customer).where(Customer.id == customer.id))
        await db.commit()
    except Exception:
        await db.rollback()
        logger.error(f"Failed to delete customer {customer_id}, transaction rolled back", exc_info=True)
        raise

    logger.info(
        f"Customer {customer_id} deleted by user {actor.id} "
        f"({records} service records, {reports} reports, {points} points)"
    )
    return {
        "deleted_points": points,
        "deleted_reports": reports,
        "deleted_service_records": records,
    }
