import enum
from typing import Any, Dict

from ..core.config import settings

COLLECTION = "appointments"


class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Department(str, enum.Enum):
    CARDIOLOGY = "cardiology"
    ORTHOPEDICS = "orthopedics"
    PEDIATRICS = "pediatrics"
    EMERGENCY = "emergency"
    MATERNITY = "maternity"
    GENERAL = "general"


STATUS_VALUES = tuple(s.value for s in AppointmentStatus)
DEPARTMENT_VALUES = tuple(d.value for d in Department)

# Contact-field markers written when the owning account is deleted
DELETED_NAME = "[Account Deleted]"
DELETED_PHONE = "[Deleted]"


def reference_code(appointment_id: str) -> str:
    """Display reference: fixed tag plus the last (up to) 8 ID characters, uppercased."""
    return f"{settings.REFERENCE_PREFIX}{appointment_id[-8:]}".upper()


def anonymized(appointment: Dict[str, Any]) -> Dict[str, Any]:
    """Changes applied to an appointment whose owner deleted their account."""
    return {
        "status": AppointmentStatus.CANCELLED.value,
        "patient_name": DELETED_NAME,
        "patient_email": f"deleted_{appointment.get('patient_email', '')}",
        "patient_phone": DELETED_PHONE,
        "deleted": True,
    }
