"""Spares quotation management."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from servicedesk.errors import InvalidArgument, NotFound, parse_enum
from servicedesk.models.spares_quotation import QuotationStatus, SparesQuotation
from servicedesk.models.user import User
from servicedesk.policy import Action, authorize
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def get_quotation(db: AsyncSession, quotation_id: int) -> SparesQuotation:
    quotation = await db.get(SparesQuotation, quotation_id)
    if quotation is None:
        raise NotFound.for_entity("Spares quotation", quotation_id)
    return quotation


async def create_quotation(db: AsyncSession, actor: User, fields: Dict[str, Any]) -> SparesQuotation:
    """
    Raises:
        InvalidArgument: Missing customer_name, machine_info or part_details,
            or part_details that is not a list or mapping
    """
    missing = [key for key in ("customer_name", "machine_info", "part_details") if not fields.get(key)]
    if missing:
        raise InvalidArgument("Missing required fields", {"required": missing})
    if not isinstance(fields["part_details"], (dict, list)):
        raise InvalidArgument("part_details must be an object or array containing spare part information")

    quotation = SparesQuotation(
        customer_name=fields["customer_name"],
        machine_info=fields["machine_info"],
        part_details=fields["part_details"],
        quotation_amount=fields.get("quotation_amount"),
        notes=fields.get("notes"),
    )
    db.add(quotation)
    await db.commit()
    await db.refresh(quotation)

    logger.info(f"Spares quotation {quotation.id} created by user {actor.id}")
    return quotation


def _search_clause(term: str, include_notes: bool = True):
    pattern = f"%{term}%"
    clauses = [SparesQuotation.customer_name.ilike(pattern), SparesQuotation.machine_info.ilike(pattern)]
    if include_notes:
        clauses.append(SparesQuotation.notes.ilike(pattern))
    return or_(*clauses)


async def list_quotations(
    db: AsyncSession,
    status: Optional[str] = None,
    search: Optional[str] = None,
    offset: int = 0,
    limit: int = 20,
) -> Tuple[List[SparesQuotation], int]:
    conditions = []
    if status:
        conditions.append(SparesQuotation.status == parse_enum(QuotationStatus, status, "status"))
    if search:
        conditions.append(_search_clause(search))

    total = await db.scalar(select(func.count(SparesQuotation.id)).where(*conditions))
    result = await db.execute(
        select(SparesQuotation)
        .where(*conditions)
        .order_by(SparesQuotation.created_at.desc(), SparesQuotation.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return result.scalars().all(), total


async def search_quotations(db: AsyncSession, query: str) -> List[SparesQuotation]:
    if not query or not query.strip():
        raise InvalidArgument("Search query required")

    result = await db.execute(
        select(SparesQuotation)
        .where(_search_clause(query.strip(), include_notes=False))
        .order_by(SparesQuotation.created_at.desc())
    )
    return result.scalars().all()


async def quotations_by_status(db: AsyncSession, status: str) -> List[SparesQuotation]:
    result = await db.execute(
        select(SparesQuotation)
        .where(SparesQuotation.status == parse_enum(QuotationStatus, status, "status"))
        .order_by(SparesQuotation.created_at.desc())
    )
    return result.scalars().all()


async def update_quotation(db: AsyncSession, actor: User, quotation_id: int, fields: Dict[str, Any]) -> SparesQuotation:
    quotation = await get_quotation(db, quotation_id)

    if fields.get("status") is not None:
        quotation.status = parse_enum(QuotationStatus, fields["status"], "status")
    if fields.get("part_details") is not None:
        if not isinstance(fields["part_details"], (dict, list)):
            raise InvalidArgument("part_details must be an object or array containing spare part information")
        quotation.part_details = fields["part_details"]
    for key in ("customer_name", "machine_info", "quotation_amount", "notes"):
        if fields.get(key) is not None:
            setattr(quotation, key, fields[key])

    await db.commit()
    await db.refresh(quotation)
    logger.info(f"Spares quotation {quotation.id} updated by user {actor.id}")
    return quotation


async def delete_quotation(db: AsyncSession, actor: User, quotation_id: int):
    authorize(actor, Action.DELETE_SPARES_QUOTATION, "Only Admin or Service Head can delete spares quotations")
    quotation = await get_quotation(db, quotation_id)

    await db.delete(quotation)
    await db.commit()
    logger.info(f"Spares quotation {quotation_id} deleted by user {actor.id}")


async def review_quotation(
    db: AsyncSession,
    actor: User,
    quotation_id: int,
    decision: QuotationStatus,
    quotation_amount: Optional[float] = None,
    notes: Optional[str] = None,
) -> SparesQuotation:
    """
    Approve or reject a quotation, optionally fixing the amount and adding notes.

    Raises:
        PermissionDenied: Actor is not ADMIN, SERVICE_HEAD or SALES
    """
    verb = "approve" if decision == QuotationStatus.APPROVED else "reject"
    authorize(actor, Action.REVIEW_SPARES_QUOTATION, f"Only Admin, Service Head, or Sales can {verb} quotations")

    quotation = await get_quotation(db, quotation_id)
    quotation.status = decision
    if quotation_amount:
        quotation.quotation_amount = float(quotation_amount)
    if notes:
        quotation.notes = notes

    await db.commit()
    await db.refresh(quotation)
    logger.info(f"Spares quotation {quotation.id} {decision.value.lower()} by user {actor.id}")
    return quotation


async def quotation_statistics(db: AsyncSession) -> Dict[str, Any]:
    result = await db.execute(
        select(SparesQuotation.status, func.count(SparesQuotation.id)).group_by(SparesQuotation.status)
    )
    status_counts = {status.value: 0 for status in QuotationStatus}
    for status, count in result.all():
        status_counts[status.value] = count

    total_value = await db.scalar(
        select(func.coalesce(func.sum(SparesQuotation.quotation_amount), 0)).where(
            SparesQuotation.status.in_((QuotationStatus.APPROVED, QuotationStatus.COMPLETED)),
            SparesQuotation.quotation_amount.is_not(None),
        )
    )

    return {
        "total_quotations": sum(status_counts.values()),
        "pending_quotations": status_counts[QuotationStatus.PENDING.value],
        "approved_quotations": status_counts[QuotationStatus.APPROVED.value],
        "rejected_quotations": status_counts[QuotationStatus.REJECTED.value],
        "completed_quotations": status_counts[QuotationStatus.COMPLETED.value],
        "total_quotation_value": float(total_value or 0),
        "status_counts": status_counts,
    }
