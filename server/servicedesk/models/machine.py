"""Machine model."""

from servicedesk.models.base import Base, TimestampMixin
from sqlalchemy import Column, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

MAX_WARRANTY_MONTHS = 120


class Machine(Base, TimestampMixin):
    """Machine catalogue entry with its warranty term."""

    __tablename__ = "machines"

    __table_args__ = (UniqueConstraint("brand", "serial_number", name="uq_machines_brand_serial"),)

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    brand = Column(String(100), nullable=False, index=True)
    warranty_time_in_months = Column(Integer, nullable=False, default=0)
    serial_number = Column(String(100), index=True)

    service_records = relationship("ServiceRecord", back_populates="machine")

    def __repr__(self):
        return f"<Machine(id={self.id}, name='{self.name}', brand='{self.brand}', serial='{self.serial_number}')>"
