"""Point (follow-up action item) endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from servicedesk.config import settings
from servicedesk.dependencies import PageParams, get_current_user, get_dispatcher
from servicedesk.models.user import User
from servicedesk.schemas import EscalationOut, Pagination, PointCreate, PointOut, PointUpdate
from servicedesk.services import point_service
from servicedesk.services.database import get_db
from servicedesk.services.notification_service import NotificationDispatcher
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_point(
    payload: PointCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    point = await point_service.create_point(
        db,
        dispatcher,
        current_user,
        service_record_id=payload.service_record_id,
        title=payload.title,
        description=payload.description,
        priority=payload.priority,
        assigned_to_id=payload.assigned_to_id,
        due_date=payload.due_date,
    )
    return {"message": "Point created successfully", "point": PointOut.model_validate(point)}


@router.get("")
async def list_points(
    service_record_id: Optional[int] = None,
    assigned_to_id: Optional[int] = None,
    created_by_id: Optional[int] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    paging: PageParams = Depends(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    points, total = await point_service.list_points(
        db,
        service_record_id=service_record_id,
        assigned_to_id=assigned_to_id,
        created_by_id=created_by_id,
        status=status,
        priority=priority,
        offset=paging.offset,
        limit=paging.limit,
    )
    return {
        "message": "Points retrieved successfully",
        "points": [PointOut.model_validate(p) for p in points],
        "pagination": Pagination.build(paging.page, paging.limit, total),
    }


@router.get("/my-points")
async def my_points(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    paging: PageParams = Depends(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Points assigned to the caller; status=OPEN or status=COMPLETED select groups."""
    points, total = await point_service.list_my_points(
        db, current_user, status=status, priority=priority, offset=paging.offset, limit=paging.limit
    )
    return {
        "message": "My assigned points retrieved successfully",
        "points": [PointOut.model_validate(p) for p in points],
        "pagination": Pagination.build(paging.page, paging.limit, total),
    }


@router.get("/statistics")
async def point_statistics(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    statistics = await point_service.point_statistics(db, current_user)
    return {"message": "Points statistics retrieved successfully", "statistics": statistics}


@router.get("/service-record/{service_record_id}")
async def points_for_service_record(
    service_record_id: int,
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    points, status_counts = await point_service.list_for_service_record(db, service_record_id, status)
    return {
        "message": "Points retrieved successfully",
        "count": len(points),
        "points": [PointOut.model_validate(p) for p in points],
        "status_counts": status_counts,
    }


@router.post("/escalation/{service_record_id}", response_model=EscalationOut)
async def check_escalation(
    service_record_id: int,
    time_frame_hours: int = Query(settings.ESCALATION_THRESHOLD_HOURS, alias="timeFrameHours", ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Escalate to service heads if the record has points open longer than the time frame."""
    result = await point_service.check_escalation(db, dispatcher, service_record_id, time_frame_hours)
    return EscalationOut(
        escalation_required=result["escalation_required"],
        open_points_count=result["open_points_count"],
        time_frame_hours=result["time_frame_hours"],
        open_points=[PointOut.model_validate(p) for p in result["open_points"]],
    )


@router.get("/{point_id}")
async def get_point(
    point_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    point = await point_service.get_point(db, point_id)
    return {"message": "Point retrieved successfully", "point": PointOut.model_validate(point)}


@router.put("/{point_id}")
async def update_point(
    point_id: int,
    payload: PointUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    point = await point_service.update_point(
        db, dispatcher, current_user, point_id, payload.model_dump(exclude_unset=True)
    )
    return {"message": "Point updated successfully", "point": PointOut.model_validate(point)}


@router.delete("/{point_id}")
async def delete_point(
    point_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await point_service.delete_point(db, current_user, point_id)
    return {"message": "Point deleted successfully"}
