"""Notification model."""

import enum

from servicedesk.models.base import Base, TimestampMixin
from sqlalchemy import JSON, Boolean, Column
from sqlalchemy import Enum as SQLEnum
from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship


class NotificationType(str, enum.Enum):
    """Notification type enum."""

    INFO = "INFO"
    WARNING = "WARNING"
    URGENT = "URGENT"


class Notification(Base, TimestampMixin):
    """In-app notification for exactly one recipient.

    service_record_id is an informational link only; it is nulled when the
    referenced record goes away.
    """

    __tablename__ = "notifications"

    __table_args__ = (Index("ix_notifications_user_read", "user_id", "is_read"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    service_record_id = Column(
        Integer, ForeignKey("service_records.id", ondelete="SET NULL"), index=True
    )

    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(SQLEnum(NotificationType), default=NotificationType.INFO, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)

    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, default=dict)

    user = relationship("User", back_populates="notifications")

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id={self.user_id}, type='{self.type}', is_read={self.is_read})>"
