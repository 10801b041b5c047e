from fastapi import APIRouter, Depends, Query, status
from typing import Any, Dict, Optional

from ...api.deps import (
    get_admin_principal, get_appointment_service, get_current_principal,
    get_principal, get_stats_service
)
from ...core.security import Principal
from ...models.appointment import AppointmentStatus, Department, reference_code
from ...schemas.appointment import (
    AppointmentCollection, AppointmentCreate, AppointmentListResponse,
    AppointmentResponse, AppointmentResult, BookingResponse, BulkUpdate,
    CancelRequest, CountResponse, StatsResponse, StatusUpdate
)
from ...services.appointment_service import AppointmentService
from ...services.stats_service import StatsService

router = APIRouter(prefix="/appointments", tags=["Appointments"])

def to_response(appointment: Dict[str, Any]) -> AppointmentResponse:
    return AppointmentResponse.model_validate(
        {**appointment, "reference": reference_code(appointment["id"])}
    )

@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    appointment_data: AppointmentCreate,
    principal: Principal = Depends(get_principal),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Book an appointment; open to anonymous callers."""
    appointment, _ = await service.book(appointment_data, principal)
    return BookingResponse(
        message="Appointment request submitted successfully! We will contact you shortly.",
        appointment=to_response(appointment)
    )

@router.get("/my", response_model=AppointmentCollection)
async def my_appointments(
    principal: Principal = Depends(get_current_principal),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Appointments owned by the caller, newest first."""
    appointments = await service.list_mine(principal)
    return AppointmentCollection(
        count=len(appointments),
        appointments=[to_response(a) for a in appointments]
    )

@router.get("/stats", response_model=StatsResponse)
async def appointment_stats(
    recent: int = Query(10, ge=1, le=50),
    principal: Principal = Depends(get_admin_principal),
    stats_service: StatsService = Depends(get_stats_service)
):
    """Aggregated appointment statistics (admin only)."""
    stats = await stats_service.compute(principal, recent_limit=recent)
    stats["recent"] = [to_response(a) for a in stats["recent"]]
    return stats

@router.get("/search", response_model=AppointmentCollection)
async def search_appointments(
    q: str = Query(..., min_length=1),
    principal: Principal = Depends(get_admin_principal),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Search by name, email, phone, department or ID (admin only)."""
    appointments = await service.search(q)
    return AppointmentCollection(
        count=len(appointments),
        appointments=[to_response(a) for a in appointments]
    )

@router.post("/bulk-update", response_model=CountResponse)
async def bulk_update_appointments(
    bulk_data: BulkUpdate,
    principal: Principal = Depends(get_admin_principal),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Apply a status and/or notes to many appointments at once (admin only)."""
    fields = {}
    if bulk_data.status is not None:
        fields["status"] = bulk_data.status.value
    if bulk_data.notes is not None:
        fields["notes"] = bulk_data.notes
    count = await service.bulk_update(bulk_data.ids, fields)
    return CountResponse(message=f"{count} appointment(s) updated", count=count)

@router.delete("/prune", response_model=CountResponse)
async def prune_appointments(
    days: int = Query(90, ge=0),
    principal: Principal = Depends(get_admin_principal),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Remove appointments older than ``days`` days (admin only)."""
    count = await service.prune_older_than(days)
    return CountResponse(message=f"{count} appointment(s) removed", count=count)

@router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    status_filter: Optional[AppointmentStatus] = Query(None, alias="status"),
    department: Optional[Department] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_admin_principal),
    service: AppointmentService = Depends(get_appointment_service)
):
    """All appointments, filterable and paginated (admin only)."""
    result = await service.list_all(
        principal,
        status=status_filter.value if status_filter else None,
        department=department.value if department else None,
        page=page,
        limit=limit
    )
    result["appointments"] = [to_response(a) for a in result["appointments"]]
    return result

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: str,
    principal: Principal = Depends(get_current_principal),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Get a single appointment (owner or admin)."""
    return to_response(await service.get(appointment_id, principal))

@router.put("/{appointment_id}/status", response_model=AppointmentResult)
async def update_appointment_status(
    appointment_id: str,
    status_data: StatusUpdate,
    principal: Principal = Depends(get_admin_principal),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Move an appointment to any status (admin only)."""
    appointment = await service.set_status(
        appointment_id, status_data.status, principal, notes=status_data.notes
    )
    return AppointmentResult(
        message=f"Appointment status updated to {appointment['status']}",
        appointment=to_response(appointment)
    )

@router.put("/{appointment_id}/cancel", response_model=AppointmentResult)
async def cancel_appointment(
    appointment_id: str,
    cancel_data: Optional[CancelRequest] = None,
    principal: Principal = Depends(get_current_principal),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Cancel an appointment (owner or admin)."""
    reason = cancel_data.reason if cancel_data else None
    appointment = await service.cancel(appointment_id, principal, reason=reason)
    return AppointmentResult(
        message="Appointment cancelled successfully",
        appointment=to_response(appointment)
    )

@router.delete("/{appointment_id}")
async def delete_appointment(
    appointment_id: str,
    principal: Principal = Depends(get_admin_principal),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Permanently delete an appointment (admin only)."""
    await service.delete(appointment_id, principal)
    return {"message": "Appointment deleted successfully"}
