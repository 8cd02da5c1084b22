"""Service record model."""

import enum

from servicedesk.models.base import Base, TimestampMixin
from sqlalchemy import JSON, Column, Date
from sqlalchemy import Enum as SQLEnum
from sqlalchemy import Float, ForeignKey, Index, Integer
from sqlalchemy.orm import relationship


class ServiceRecordStatus(str, enum.Enum):
    """Service record status enum."""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ServiceRecord(Base, TimestampMixin):
    """Installation of a machine at a customer site.

    Anchors warranty tracking and owns the reports and points raised against
    the installation. warranty_expires_at is computed once at creation from
    the purchase date and the machine's warranty term.
    """

    __tablename__ = "service_records"

    __table_args__ = (
        Index("ix_service_records_status_warranty", "status", "warranty_expires_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    machine_id = Column(Integer, ForeignKey("machines.id"), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), index=True)

    purchase_date = Column(Date, nullable=False)
    warranty_expires_at = Column(Date, nullable=False, index=True)
    pending_amount = Column(Float, nullable=False, default=0)
    status = Column(SQLEnum(ServiceRecordStatus), default=ServiceRecordStatus.ACTIVE, nullable=False, index=True)

    # Free-form KPI document, stored as-is
    kpis = Column(JSON, default=dict)

    customer = relationship("Customer", back_populates="service_records")
    machine = relationship("Machine", back_populates="service_records")
    reports = relationship("Report", back_populates="service_record")
    points = relationship("Point", back_populates="service_record")

    def __repr__(self):
        return (
            f"<ServiceRecord(id={self.id}, customer_id={self.customer_id}, "
            f"machine_id={self.machine_id}, status='{self.status}')>"
        )
