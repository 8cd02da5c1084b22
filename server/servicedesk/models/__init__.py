"""Database models for the application."""

from servicedesk.models.customer import Customer
from servicedesk.models.machine import Machine
from servicedesk.models.notification import Notification, NotificationType
from servicedesk.models.point import Point, PointPriority, PointStatus
from servicedesk.models.report import Report
from servicedesk.models.service_record import ServiceRecord, ServiceRecordStatus
from servicedesk.models.spares_quotation import QuotationStatus, SparesQuotation
from servicedesk.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "Customer",
    "Machine",
    "ServiceRecord",
    "ServiceRecordStatus",
    "Report",
    "Point",
    "PointStatus",
    "PointPriority",
    "Notification",
    "NotificationType",
    "SparesQuotation",
    "QuotationStatus",
]
