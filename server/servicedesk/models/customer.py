"""Customer model."""

import re

from servicedesk.models.base import Base, TimestampMixin, generate_uid
from sqlalchemy import Column, Integer, String, Text
from sqlalchemy.orm import relationship, validates


class Customer(Base, TimestampMixin):
    """Customer site where machines are installed and serviced."""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    uid = Column(String(20), unique=True, nullable=False, index=True, default=lambda: generate_uid("CUST"))

    name = Column(String(200), nullable=False, index=True)
    phone = Column(String(20), nullable=False, index=True)
    email = Column(String(255))
    address = Column(Text)

    service_records = relationship("ServiceRecord", back_populates="customer")

    @validates("phone")
    def validate_phone(self, key, value):
        """Allow digits with common formatting characters only."""
        if not value:
            raise ValueError("Phone number cannot be empty")

        digits_only = re.sub(r"[\s\-\(\)\+]", "", value)
        if not re.match(r"^\d+$", digits_only):
            raise ValueError(f"Phone number contains invalid characters: {value}")
        if len(value) > 20:
            raise ValueError(f"Phone number must be <= 20 characters, got {len(value)}")

        return value

    @validates("email")
    def validate_email(self, key, value):
        """Normalize email to lowercase."""
        return value.lower() if value else value

    def __repr__(self):
        return f"<Customer(id={self.id}, uid='{self.uid}', name='{self.name}')>"
