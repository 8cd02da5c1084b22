"""Point (follow-up action item) model."""

import enum

from servicedesk.models.base import Base, TimestampMixin
from sqlalchemy import Column, DateTime
from sqlalchemy import Enum as SQLEnum
from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship


class PointStatus(str, enum.Enum):
    """Point status enum.

    The lifecycle runs CREATED -> ASSIGNED -> REASSIGNED -> IN_PROGRESS ->
    COMPLETED -> CLOSED, but transitions are advisory: any value may be set.
    """

    CREATED = "CREATED"
    ASSIGNED = "ASSIGNED"
    REASSIGNED = "REASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CLOSED = "CLOSED"


class PointPriority(str, enum.Enum):
    """Point priority enum."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


OPEN_POINT_STATUSES = (
    PointStatus.CREATED,
    PointStatus.ASSIGNED,
    PointStatus.REASSIGNED,
    PointStatus.IN_PROGRESS,
)
CLOSED_POINT_STATUSES = (PointStatus.COMPLETED, PointStatus.CLOSED)


class Point(Base, TimestampMixin):
    """Trackable follow-up item raised against a service record."""

    __tablename__ = "points"

    __table_args__ = (
        Index("ix_points_status_due", "status", "due_date"),
        Index("ix_points_assignee_status", "assigned_to_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    service_record_id = Column(Integer, ForeignKey("service_records.id"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(SQLEnum(PointStatus), default=PointStatus.CREATED, nullable=False)
    priority = Column(SQLEnum(PointPriority), default=PointPriority.MEDIUM, nullable=False)

    assigned_to_id = Column(Integer, ForeignKey("users.id"))
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    due_date = Column(DateTime)
    completed_at = Column(DateTime)

    service_record = relationship("ServiceRecord", back_populates="points")
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    created_by = relationship("User", foreign_keys=[created_by_id])

    def __repr__(self):
        return f"<Point(id={self.id}, title='{self.title}', status='{self.status}', priority='{self.priority}')>"
