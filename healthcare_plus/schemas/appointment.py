from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Dict, List, Optional

from ..core.config import settings
from ..models.appointment import AppointmentStatus, Department


class AppointmentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    patient_name: str = Field(..., min_length=1, max_length=100)
    patient_email: EmailStr
    patient_phone: str = Field(..., min_length=1, max_length=30)
    department: Department
    message: str = Field("", max_length=settings.MESSAGE_MAX_LENGTH)

    @field_validator("department", mode="before")
    @classmethod
    def normalize_department(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("message", mode="before")
    @classmethod
    def default_message(cls, value):
        return "" if value is None else value


class StatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class BulkUpdate(BaseModel):
    ids: List[str] = Field(..., min_length=1)
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = None


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    reference: str
    patient_name: str
    patient_email: str
    patient_phone: str
    department: Optional[str] = None
    message: Optional[str] = ""
    # stored records may carry statuses outside the enum
    status: str
    notes: Optional[str] = None
    user_id: Optional[str] = None
    created_at: str
    updated_at: str
    updated_by: Optional[str] = None
    updated_by_name: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_by_name: Optional[str] = None
    cancellation_reason: Optional[str] = None
    deleted: bool = False


class BookingResponse(BaseModel):
    message: str
    appointment: AppointmentResponse


class AppointmentResult(BaseModel):
    message: str
    appointment: AppointmentResponse


class AppointmentListResponse(BaseModel):
    count: int
    total: int
    pages: int
    current_page: int
    appointments: List[AppointmentResponse]


class AppointmentCollection(BaseModel):
    count: int
    appointments: List[AppointmentResponse]


class CountResponse(BaseModel):
    message: str
    count: int


class StatsTotals(BaseModel):
    appointments: int
    patients: int
    registered_patients: int
    admins: int


class StatsToday(BaseModel):
    appointments: int
    pending: int


class StatsResponse(BaseModel):
    total: StatsTotals
    today: StatsToday
    this_week: int
    this_month: int
    by_status: Dict[str, int]
    by_department: Dict[str, int]
    by_month: Dict[str, int]
    recent: List[AppointmentResponse]
