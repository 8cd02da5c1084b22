"""Machine catalogue endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from servicedesk.dependencies import PageParams, get_current_user
from servicedesk.models.user import User
from servicedesk.schemas import MachineCreate, MachineDetailOut, MachineOut, MachineUpdate, Pagination, ServiceRecordOut
from servicedesk.services import machine_service
from servicedesk.services.database import get_db
from servicedesk.services.service_record_service import service_record_view
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_machine(
    payload: MachineCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    machine = await machine_service.create_machine(db, current_user, payload.model_dump())
    return {"message": "Machine created successfully", "machine": MachineOut.model_validate(machine)}


@router.get("")
async def list_machines(
    category: Optional[str] = None,
    brand: Optional[str] = None,
    search: Optional[str] = None,
    paging: PageParams = Depends(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    machines, total = await machine_service.list_machines(db, category, brand, search, paging.offset, paging.limit)
    return {
        "message": "Machines retrieved successfully",
        "machines": [MachineOut.model_validate(m) for m in machines],
        "pagination": Pagination.build(paging.page, paging.limit, total),
    }


@router.get("/categories")
async def list_categories(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return {"categories": await machine_service.list_categories(db)}


@router.get("/brands")
async def list_brands(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return {"brands": await machine_service.list_brands(db)}


@router.get("/serial/{serial_number}")
async def get_machines_by_serial(
    serial_number: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Machines whose serial contains the text, with their service records."""
    machines = await machine_service.find_by_serial(db, serial_number)
    records = await machine_service.machine_service_records(db, [m.id for m in machines])

    results = []
    for machine in machines:
        results.append(
            MachineDetailOut(
                **MachineOut.model_validate(machine).model_dump(),
                service_records=[
                    ServiceRecordOut.model_validate(service_record_view(r))
                    for r in records
                    if r.machine_id == machine.id
                ],
            )
        )
    return {"message": "Machines retrieved successfully", "count": len(results), "machines": results}


@router.get("/{machine_id}")
async def get_machine(
    machine_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    machine = await machine_service.get_machine(db, machine_id)
    records = await machine_service.machine_service_records(db, [machine.id])
    detail = MachineDetailOut(
        **MachineOut.model_validate(machine).model_dump(),
        service_records=[ServiceRecordOut.model_validate(service_record_view(r)) for r in records],
    )
    return {"message": "Machine retrieved successfully", "machine": detail}


@router.put("/{machine_id}")
async def update_machine(
    machine_id: int,
    payload: MachineUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    machine = await machine_service.update_machine(db, current_user, machine_id, payload.model_dump(exclude_unset=True))
    return {"message": "Machine updated successfully", "machine": MachineOut.model_validate(machine)}


@router.delete("/{machine_id}")
async def delete_machine(
    machine_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await machine_service.delete_machine(db, current_user, machine_id)
    return {"message": "Machine deleted successfully"}
