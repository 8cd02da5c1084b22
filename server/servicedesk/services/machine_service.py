"""Machine catalogue management."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from servicedesk.errors import Conflict, InvalidArgument, InvalidState, NotFound
from servicedesk.models.machine import MAX_WARRANTY_MONTHS, Machine
from servicedesk.models.service_record import ServiceRecord
from servicedesk.models.user import User
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

MACHINE_FIELDS = ("name", "category", "brand", "warranty_time_in_months", "serial_number")


def _check_warranty(months: Optional[int]):
    if months is not None and not 0 <= months <= MAX_WARRANTY_MONTHS:
        raise InvalidArgument(
            f"Warranty time must be between 0 and {MAX_WARRANTY_MONTHS} months",
            {"field": "warranty_time_in_months"},
        )


async def _check_serial_unique(db: AsyncSession, brand: str, serial_number: Optional[str], exclude_id=None):
    if not serial_number:
        return
    stmt = select(Machine.id).where(Machine.brand == brand, Machine.serial_number == serial_number)
    if exclude_id is not None:
        stmt = stmt.where(Machine.id != exclude_id)
    if await db.scalar(stmt) is not None:
        raise Conflict(f"Machine with serial number {serial_number} already exists for brand {brand}")


async def create_machine(db: AsyncSession, actor: User, fields: Dict[str, Any]) -> Machine:
    """
    Add a machine to the catalogue.

    Raises:
        InvalidArgument: Missing fields or warranty outside 0-120 months
        Conflict: Serial number already used for this brand
    """
    missing = [key for key in ("name", "category", "brand", "warranty_time_in_months") if fields.get(key) is None]
    if missing:
        raise InvalidArgument("Missing required fields", {"required": missing})

    _check_warranty(fields["warranty_time_in_months"])
    await _check_serial_unique(db, fields["brand"], fields.get("serial_number"))

    machine = Machine(**{key: fields.get(key) for key in MACHINE_FIELDS})
    db.add(machine)
    await db.commit()
    await db.refresh(machine)

    logger.info(f"Machine {machine.id} ({machine.brand} {machine.name}) created by user {actor.id}")
    return machine


async def get_machine(db: AsyncSession, machine_id: int) -> Machine:
    machine = await db.get(Machine, machine_id)
    if machine is None:
        raise NotFound.for_entity("Machine", machine_id)
    return machine


async def list_machines(
    db: AsyncSession,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    search: Optional[str] = None,
    offset: int = 0,
    limit: int = 20,
) -> Tuple[List[Machine], int]:
    conditions = []
    if category:
        conditions.append(Machine.category.ilike(f"%{category}%"))
    if brand:
        conditions.append(Machine.brand.ilike(f"%{brand}%"))
    if search:
        pattern = f"%{search}%"
        conditions.append(
            or_(
                Machine.name.ilike(pattern),
                Machine.category.ilike(pattern),
                Machine.brand.ilike(pattern),
                Machine.serial_number.ilike(pattern),
            )
        )

    total = await db.scalar(select(func.count(Machine.id)).where(*conditions))
    result = await db.execute(
        select(Machine)
        .where(*conditions)
        .order_by(Machine.created_at.desc(), Machine.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return result.scalars().all(), total


async def find_by_serial(db: AsyncSession, serial_number: str) -> List[Machine]:
    """
    Machines whose serial number contains the given text.

    Raises:
        NotFound: No machine matches
    """
    result = await db.execute(
        select(Machine).where(Machine.serial_number.ilike(f"%{serial_number}%")).order_by(Machine.id)
    )
    machines = result.scalars().all()
    if not machines:
        raise NotFound(f'No machines found with serial number containing "{serial_number}"')
    return machines


async def machine_service_records(db: AsyncSession, machine_ids: List[int]) -> List[ServiceRecord]:
    result = await db.execute(
        select(ServiceRecord)
        .where(ServiceRecord.machine_id.in_(machine_ids))
        .order_by(ServiceRecord.created_at.desc(), ServiceRecord.id.desc())
    )
    return result.scalars().all()


async def update_machine(db: AsyncSession, actor: User, machine_id: int, fields: Dict[str, Any]) -> Machine:
    """
    Update catalogue fields; warranty and per-brand serial uniqueness are re-checked.

    The warranty term of existing service records is not recomputed.
    """
    machine = await get_machine(db, machine_id)

    if fields.get("warranty_time_in_months") is not None:
        _check_warranty(fields["warranty_time_in_months"])

    brand = fields.get("brand") or machine.brand
    serial_number = fields["serial_number"] if "serial_number" in fields else machine.serial_number
    if serial_number != machine.serial_number or brand != machine.brand:
        await _check_serial_unique(db, brand, serial_number, exclude_id=machine.id)

    for key in MACHINE_FIELDS:
        if key == "serial_number" and key in fields:
            machine.serial_number = fields[key]
        elif fields.get(key) is not None:
            setattr(machine, key, fields[key])

    await db.commit()
    await db.refresh(machine)
    logger.info(f"Machine {machine.id} updated by user {actor.id}")
    return machine


async def delete_machine(db: AsyncSession, actor: User, machine_id: int):
    """
    Remove a machine from the catalogue.

    Raises:
        InvalidState: A service record still references the machine
    """
    machine = await get_machine(db, machine_id)

    in_use = await db.scalar(select(func.count(ServiceRecord.id)).where(ServiceRecord.machine_id == machine.id))
    if in_use:
        raise InvalidState(
            "Cannot delete machine that is referenced by service records",
            {"service_records": in_use},
        )

    await db.delete(machine)
    await db.commit()
    logger.info(f"Machine {machine_id} deleted by user {actor.id}")


async def list_categories(db: AsyncSession) -> List[str]:
    result = await db.execute(select(Machine.category).distinct().order_by(Machine.category))
    return result.scalars().all()


async def list_brands(db: AsyncSession) -> List[str]:
    result = await db.execute(select(Machine.brand).distinct().order_by(Machine.brand))
    return result.scalars().all()
