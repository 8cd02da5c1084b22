"""Spares quotation model."""

import enum

from servicedesk.models.base import Base, TimestampMixin
from sqlalchemy import JSON, Column
from sqlalchemy import Enum as SQLEnum
from sqlalchemy import Float, Integer, String, Text


class QuotationStatus(str, enum.Enum):
    """Spares quotation status enum."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class SparesQuotation(Base, TimestampMixin):
    """Quotation for spare parts.

    Customer and machine details are denormalized strings; the quotation is
    not linked to other entities.
    """

    __tablename__ = "spares_quotations"

    id = Column(Integer, primary_key=True, index=True)

    customer_name = Column(String(200), nullable=False, index=True)
    machine_info = Column(String(500), nullable=False)
    part_details = Column(JSON, nullable=False)
    quotation_amount = Column(Float)
    status = Column(SQLEnum(QuotationStatus), default=QuotationStatus.PENDING, nullable=False, index=True)
    notes = Column(Text)

    def __repr__(self):
        return f"<SparesQuotation(id={self.id}, customer='{self.customer_name}', status='{self.status}')>"
