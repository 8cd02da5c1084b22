"""Field report endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from servicedesk.dependencies import PageParams, get_current_user, get_dispatcher
from servicedesk.models.user import User
from servicedesk.schemas import Pagination, ReportCreate, ReportOut, ReportUpdate
from servicedesk.services import report_service
from servicedesk.services.database import get_db
from servicedesk.services.notification_service import NotificationDispatcher
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_report(
    payload: ReportCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    report = await report_service.create_report(
        db, dispatcher, current_user, payload.service_record_id, payload.model_dump(exclude={"service_record_id"})
    )
    return {"message": "Report created successfully", "report": ReportOut.model_validate(report)}


@router.get("")
async def list_reports(
    service_record_id: Optional[int] = None,
    engineer_id: Optional[int] = None,
    paging: PageParams = Depends(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reports, total = await report_service.list_reports(
        db, service_record_id, engineer_id, paging.offset, paging.limit
    )
    return {
        "message": "Reports retrieved successfully",
        "reports": [ReportOut.model_validate(r) for r in reports],
        "pagination": Pagination.build(paging.page, paging.limit, total),
    }


@router.get("/service-record/{service_record_id}")
async def reports_for_service_record(
    service_record_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reports = await report_service.reports_for_service_record(db, service_record_id)
    return {
        "message": "Reports retrieved successfully",
        "count": len(reports),
        "reports": [ReportOut.model_validate(r) for r in reports],
    }


@router.get("/engineer/{engineer_id}")
async def reports_for_engineer(
    engineer_id: int,
    paging: PageParams = Depends(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reports, total = await report_service.reports_for_engineer(db, engineer_id, paging.offset, paging.limit)
    return {
        "message": "Reports retrieved successfully",
        "reports": [ReportOut.model_validate(r) for r in reports],
        "pagination": Pagination.build(paging.page, paging.limit, total),
    }


@router.get("/{report_id}")
async def get_report(
    report_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    report = await report_service.get_report(db, report_id)
    return {"message": "Report retrieved successfully", "report": ReportOut.model_validate(report)}


@router.put("/{report_id}")
async def update_report(
    report_id: int,
    payload: ReportUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    report = await report_service.update_report(db, current_user, report_id, payload.model_dump(exclude_unset=True))
    return {"message": "Report updated successfully", "report": ReportOut.model_validate(report)}


@router.delete("/{report_id}")
async def delete_report(
    report_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await report_service.delete_report(db, current_user, report_id)
    return {"message": "Report deleted successfully"}
