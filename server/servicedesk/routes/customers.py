"""Customer endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from servicedesk.dependencies import PageParams, get_current_user
from servicedesk.models.user import User
from servicedesk.schemas import (
    CustomerCreate,
    CustomerDetailOut,
    CustomerOut,
    CustomerUpdate,
    Pagination,
    ServiceRecordOut,
)
from servicedesk.services import customer_service
from servicedesk.services.database import get_db
from servicedesk.services.service_record_service import service_record_view
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


async def _detail(db: AsyncSession, customer) -> CustomerDetailOut:
    records = await customer_service.customer_service_records(db, customer.id)
    return CustomerDetailOut(
        **CustomerOut.model_validate(customer).model_dump(),
        service_records=[ServiceRecordOut.model_validate(service_record_view(r)) for r in records],
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_customer(
    payload: CustomerCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    customer = await customer_service.create_customer(db, current_user, payload.model_dump())
    return {"message": "Customer created successfully", "customer": CustomerOut.model_validate(customer)}


@router.get("")
async def list_customers(
    search: Optional[str] = None,
    paging: PageParams = Depends(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    customers, total = await customer_service.list_customers(db, search, paging.offset, paging.limit)
    return {
        "message": "Customers retrieved successfully",
        "customers": [CustomerOut.model_validate(c) for c in customers],
        "pagination": Pagination.build(paging.page, paging.limit, total),
    }


@router.get("/search")
async def search_customers(
    query: str = Query(""),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Match name, uid, phone or an installed machine's serial number."""
    customers = await customer_service.search_customers(db, query)
    results = [await _detail(db, c) for c in customers]
    return {"message": "Search results retrieved successfully", "count": len(results), "customers": results}


@router.get("/uid/{uid}")
async def get_customer_by_uid(
    uid: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    customer = await customer_service.get_customer_by_uid(db, uid)
    return {"message": "Customer retrieved successfully", "customer": await _detail(db, customer)}


@router.get("/{customer_id}")
async def get_customer(
    customer_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    customer = await customer_service.get_customer(db, customer_id)
    return {"message": "Customer retrieved successfully", "customer": await _detail(db, customer)}


@router.put("/{customer_id}")
async def update_customer(
    customer_id: int,
    payload: CustomerUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    customer = await customer_service.update_customer(
        db, current_user, customer_id, payload.model_dump(exclude_unset=True)
    )
    return {"message": "Customer updated successfully", "customer": CustomerOut.model_validate(customer)}


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete the customer with its service records, reports and points."""
    counts = await customer_service.delete_customer(db, current_user, customer_id)
    return {"message": "Customer and all related service records deleted successfully", **counts}
