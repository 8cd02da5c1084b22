"""Spares quotation endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from servicedesk.dependencies import PageParams, get_current_user
from servicedesk.models.spares_quotation import QuotationStatus
from servicedesk.models.user import User
from servicedesk.schemas import (
    Pagination,
    QuotationReview,
    SparesQuotationCreate,
    SparesQuotationOut,
    SparesQuotationUpdate,
)
from servicedesk.services import spares_quotation_service
from servicedesk.services.database import get_db
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_quotation(
    payload: SparesQuotationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    quotation = await spares_quotation_service.create_quotation(db, current_user, payload.model_dump())
    return {
        "message": "Spares quotation created successfully",
        "quotation": SparesQuotationOut.model_validate(quotation),
    }


@router.get("")
async def list_quotations(
    status: Optional[str] = None,
    search: Optional[str] = None,
    paging: PageParams = Depends(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    quotations, total = await spares_quotation_service.list_quotations(
        db, status, search, paging.offset, paging.limit
    )
    return {
        "message": "Spares quotations retrieved successfully",
        "quotations": [SparesQuotationOut.model_validate(q) for q in quotations],
        "pagination": Pagination.build(paging.page, paging.limit, total),
    }


@router.get("/search")
async def search_quotations(
    query: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    quotations = await spares_quotation_service.search_quotations(db, query)
    return {
        "message": "Search completed successfully",
        "count": len(quotations),
        "quotations": [SparesQuotationOut.model_validate(q) for q in quotations],
    }


@router.get("/status/{quotation_status}")
async def quotations_by_status(
    quotation_status: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    quotations = await spares_quotation_service.quotations_by_status(db, quotation_status)
    return {
        "message": "Spares quotations retrieved successfully",
        "count": len(quotations),
        "quotations": [SparesQuotationOut.model_validate(q) for q in quotations],
    }


@router.get("/statistics")
async def quotation_statistics(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    statistics = await spares_quotation_service.quotation_statistics(db)
    return {"message": "Spares quotation statistics retrieved successfully", "statistics": statistics}


@router.get("/{quotation_id}")
async def get_quotation(
    quotation_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    quotation = await spares_quotation_service.get_quotation(db, quotation_id)
    return {
        "message": "Spares quotation retrieved successfully",
        "quotation": SparesQuotationOut.model_validate(quotation),
    }


@router.put("/{quotation_id}")
async def update_quotation(
    quotation_id: int,
    payload: SparesQuotationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    quotation = await spares_quotation_service.update_quotation(
        db, current_user, quotation_id, payload.model_dump(exclude_unset=True)
    )
    return {
        "message": "Spares quotation updated successfully",
        "quotation": SparesQuotationOut.model_validate(quotation),
    }


@router.delete("/{quotation_id}")
async def delete_quotation(
    quotation_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await spares_quotation_service.delete_quotation(db, current_user, quotation_id)
    return {"message": "Spares quotation deleted successfully"}


async def _review(db: AsyncSession, actor: User, quotation_id: int, decision: QuotationStatus, payload):
    payload = payload or QuotationReview()
    quotation = await spares_quotation_service.review_quotation(
        db, actor, quotation_id, decision, payload.quotation_amount, payload.notes
    )
    return {
        "message": f"Spares quotation {decision.value.lower()} successfully",
        "quotation": SparesQuotationOut.model_validate(quotation),
    }


@router.put("/{quotation_id}/approve")
async def approve_quotation(
    quotation_id: int,
    payload: Optional[QuotationReview] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await _review(db, current_user, quotation_id, QuotationStatus.APPROVED, payload)


@router.put("/{quotation_id}/reject")
async def reject_quotation(
    quotation_id: int,
    payload: Optional[QuotationReview] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await _review(db, current_user, quotation_id, QuotationStatus.REJECTED, payload)
