"""User model."""

import enum

from servicedesk.models.base import Base, TimestampMixin, generate_uid
from sqlalchemy import Boolean, Column
from sqlalchemy import Enum as SQLEnum
from sqlalchemy import Integer, String
from sqlalchemy.orm import relationship


class UserRole(str, enum.Enum):
    """User role enum."""

    ADMIN = "ADMIN"
    SERVICE_HEAD = "SERVICE_HEAD"
    ENGINEER = "ENGINEER"
    SALES = "SALES"
    COMMERCIAL = "COMMERCIAL"


class User(Base, TimestampMixin):
    """Staff member who signs in to the service app.

    Users are never hard-deleted: deactivation flips is_active, which also
    blocks authentication and removes them from notification audiences.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    uid = Column(String(20), unique=True, nullable=False, index=True, default=lambda: generate_uid("USR"))

    name = Column(String(150), nullable=False)
    email = Column(String(255), unique=True, index=True)
    phone = Column(String(20))
    role = Column(SQLEnum(UserRole), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Device registration token for push delivery
    push_token = Column(String(512))

    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, name='{self.name}', role='{self.role}')>"
