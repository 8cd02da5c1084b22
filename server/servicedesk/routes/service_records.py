"""Service record endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from servicedesk.config import settings
from servicedesk.dependencies import PageParams, get_current_user, get_dispatcher
from servicedesk.models.user import User
from servicedesk.schemas import Pagination, ServiceRecordCreate, ServiceRecordOut, ServiceRecordUpdate
from servicedesk.services import service_record_service
from servicedesk.services.database import get_db
from servicedesk.services.notification_service import NotificationDispatcher
from servicedesk.services.service_record_service import service_record_view
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


def _out(record, **extra) -> ServiceRecordOut:
    return ServiceRecordOut.model_validate(service_record_view(record, **extra))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_service_record(
    payload: ServiceRecordCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Record an installation; installation and payment notifications follow."""
    record = await service_record_service.create_service_record(
        db,
        dispatcher,
        current_user,
        customer_id=payload.customer_id,
        machine_id=payload.machine_id,
        purchase_date=payload.purchase_date,
        pending_amount=payload.pending_amount,
        kpis=payload.kpis,
    )
    return {"message": "Service record created successfully", "service_record": _out(record)}


@router.get("")
async def list_service_records(
    status: Optional[str] = None,
    customer_id: Optional[int] = None,
    machine_id: Optional[int] = None,
    engineer_id: Optional[int] = None,
    paging: PageParams = Depends(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    records, total = await service_record_service.list_service_records(
        db,
        status=status,
        customer_id=customer_id,
        machine_id=machine_id,
        created_by_id=engineer_id,
        offset=paging.offset,
        limit=paging.limit,
    )
    return {
        "message": "Service records retrieved successfully",
        "service_records": [_out(r) for r in records],
        "pagination": Pagination.build(paging.page, paging.limit, total),
    }


@router.get("/warranty-expiring")
async def warranty_expiring(
    days: int = Query(settings.WARRANTY_EXPIRY_WINDOW_DAYS, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    records = await service_record_service.list_warranty_expiring(db, days)
    return {
        "message": "Warranty expiring records retrieved successfully",
        "count": len(records),
        "service_records": [_out(r) for r in records],
    }


@router.get("/pending-amounts")
async def pending_amounts(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    records, total_pending = await service_record_service.pending_amounts_summary(db)
    return {
        "message": "Pending amounts summary retrieved successfully",
        "total_pending": total_pending,
        "count": len(records),
        "service_records": [_out(r) for r in records],
    }


@router.get("/statistics")
async def service_record_statistics(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    statistics = await service_record_service.service_record_statistics(db, settings.WARRANTY_EXPIRY_WINDOW_DAYS)
    return {"message": "Service statistics retrieved successfully", "statistics": statistics}


@router.get("/{service_record_id}")
async def get_service_record(
    service_record_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    record = await service_record_service.get_service_record(db, service_record_id)
    open_points = await service_record_service.count_open_points(db, record.id)
    return {
        "message": "Service record retrieved successfully",
        "service_record": _out(record, open_points_count=open_points),
    }


@router.put("/{service_record_id}")
async def update_service_record(
    service_record_id: int,
    payload: ServiceRecordUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    record = await service_record_service.update_service_record(
        db, dispatcher, current_user, service_record_id, payload.model_dump(exclude_unset=True)
    )
    return {"message": "Service record updated successfully", "service_record": _out(record)}


@router.delete("/{service_record_id}")
async def delete_service_record(
    service_record_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await service_record_service.delete_service_record(db, current_user, service_record_id)
    return {"message": "Service record deleted successfully"}
