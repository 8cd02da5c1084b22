"""Request and response schemas for the HTTP API."""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from servicedesk.models.notification import NotificationType
from servicedesk.models.point import PointPriority, PointStatus
from servicedesk.models.service_record import ServiceRecordStatus
from servicedesk.models.spares_quotation import QuotationStatus
from servicedesk.models.user import UserRole


class APIBase(BaseModel):
    """Response base: readable straight from ORM objects."""

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=(total + limit - 1) // limit if limit else 0)


# =========================================
# Users
# =========================================


class UserCreate(BaseModel):
    name: str
    phone: str
    role: str
    email: Optional[str] = None


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None


class PushTokenIn(BaseModel):
    push_token: str


class UserOut(APIBase):
    id: int
    uid: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: datetime


# =========================================
# Customers
# =========================================


class CustomerCreate(BaseModel):
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class CustomerOut(APIBase):
    id: int
    uid: str
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# =========================================
# Machines
# =========================================


class MachineCreate(BaseModel):
    name: str
    category: str
    brand: str
    warranty_time_in_months: int
    serial_number: Optional[str] = None


class MachineUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    warranty_time_in_months: Optional[int] = None
    serial_number: Optional[str] = None


class MachineOut(APIBase):
    id: int
    name: str
    category: str
    brand: str
    warranty_time_in_months: int
    serial_number: Optional[str] = None
    created_at: datetime


# =========================================
# Service records
# =========================================


class ServiceRecordCreate(BaseModel):
    customer_id: int
    machine_id: int
    purchase_date: date
    pending_amount: float = 0
    kpis: Optional[Dict[str, Any]] = None


class ServiceRecordUpdate(BaseModel):
    pending_amount: Optional[float] = None
    kpis: Optional[Dict[str, Any]] = None
    status: Optional[str] = None


class ServiceRecordOut(APIBase):
    id: int
    customer_id: int
    machine_id: int
    created_by_id: Optional[int] = None
    purchase_date: date
    warranty_expires_at: date
    pending_amount: float
    status: ServiceRecordStatus
    kpis: Dict[str, Any] = {}
    created_at: datetime
    updated_at: datetime

    # Derived at read time
    warranty_status: Optional[str] = None
    warranty_days_remaining: Optional[int] = None
    has_pending_amount: Optional[bool] = None
    open_points_count: Optional[int] = None


class CustomerDetailOut(CustomerOut):
    service_records: List[ServiceRecordOut] = []


class MachineDetailOut(MachineOut):
    service_records: List[ServiceRecordOut] = []


# =========================================
# Reports
# =========================================


class ReportCreate(BaseModel):
    service_record_id: int
    report_data: Optional[Dict[str, Any]] = None
    scan_data: Optional[Dict[str, Any]] = None
    manual_url: Optional[str] = None
    e_drawings_url: Optional[str] = None


class ReportUpdate(BaseModel):
    report_data: Optional[Dict[str, Any]] = None
    scan_data: Optional[Dict[str, Any]] = None
    manual_url: Optional[str] = None
    e_drawings_url: Optional[str] = None


class ReportOut(APIBase):
    id: int
    service_record_id: int
    engineer_id: int
    report_data: Dict[str, Any] = {}
    scan_data: Dict[str, Any] = {}
    manual_url: Optional[str] = None
    e_drawings_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# =========================================
# Points
# =========================================


class PointCreate(BaseModel):
    service_record_id: int
    title: str = Field(min_length=1)
    description: Optional[str] = None
    priority: Optional[str] = PointPriority.MEDIUM.value
    assigned_to_id: Optional[int] = None
    due_date: Optional[datetime] = None


class PointUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    assigned_to_id: Optional[int] = None
    due_date: Optional[datetime] = None


class PointOut(APIBase):
    id: int
    service_record_id: int
    title: str
    description: Optional[str] = None
    status: PointStatus
    priority: PointPriority
    assigned_to_id: Optional[int] = None
    created_by_id: int
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class EscalationOut(BaseModel):
    escalation_required: bool
    open_points_count: int
    time_frame_hours: int
    open_points: List[PointOut] = []


# =========================================
# Notifications
# =========================================


class NotificationOut(APIBase):
    id: int
    user_id: int
    service_record_id: Optional[int] = None
    title: str
    message: str
    type: NotificationType
    is_read: bool
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    created_at: datetime


class NotificationSend(BaseModel):
    title: str
    message: str
    user_ids: Optional[List[int]] = None
    roles: Optional[List[str]] = None
    type: str = NotificationType.INFO.value
    service_record_id: Optional[int] = None


# =========================================
# Spares quotations
# =========================================


class SparesQuotationCreate(BaseModel):
    customer_name: str
    machine_info: str
    part_details: Union[Dict[str, Any], List[Any]]
    quotation_amount: Optional[float] = None
    notes: Optional[str] = None


class SparesQuotationUpdate(BaseModel):
    customer_name: Optional[str] = None
    machine_info: Optional[str] = None
    part_details: Optional[Union[Dict[str, Any], List[Any]]] = None
    quotation_amount: Optional[float] = None
    status: Optional[str] = None
    notes: Optional[str] = None


class QuotationReview(BaseModel):
    quotation_amount: Optional[float] = None
    notes: Optional[str] = None


class SparesQuotationOut(APIBase):
    id: int
    customer_name: str
    machine_info: str
    part_details: Union[Dict[str, Any], List[Any]]
    quotation_amount: Optional[float] = None
    status: QuotationStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
