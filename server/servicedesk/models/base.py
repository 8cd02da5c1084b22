"""Declarative base and shared column mixins."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_uid(prefix: str) -> str:
    """Human-readable unique identifier, e.g. CUST-3F9A12BC."""
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


class TimestampMixin:
    """Adds created_at / updated_at columns."""

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
