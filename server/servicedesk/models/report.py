"""Field report model."""

from servicedesk.models.base import Base, TimestampMixin
from sqlalchemy import JSON, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship


class Report(Base, TimestampMixin):
    """Report submitted by an engineer against a service record."""

    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    service_record_id = Column(Integer, ForeignKey("service_records.id"), nullable=False, index=True)
    engineer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    report_data = Column(JSON, default=dict)
    scan_data = Column(JSON, default=dict)

    # Stored-file references for attached documents
    manual_url = Column(String(500))
    e_drawings_url = Column(String(500))

    service_record = relationship("ServiceRecord", back_populates="reports")

    def __repr__(self):
        return f"<Report(id={self.id}, service_record_id={self.service_record_id}, engineer_id={self.engineer_id})>"
