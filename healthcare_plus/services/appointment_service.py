import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as SchemaError

from ..core.exceptions import AlreadyCancelled, Forbidden, NotFound, Unauthenticated, ValidationError
from ..core.security import Principal
from ..core.storage import RecordStore, parse_timestamp, to_timestamp, utc_now
from ..models.appointment import (
    COLLECTION, STATUS_VALUES, AppointmentStatus, reference_code
)
from ..schemas.appointment import AppointmentCreate
from .notification_service import NotificationDispatcher, NotificationEvent

logger = logging.getLogger(__name__)

Appointment = Dict[str, Any]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def newest_first(appointments: List[Appointment]) -> List[Appointment]:
    return sorted(
        appointments,
        key=lambda a: parse_timestamp(a.get("created_at")) or _EPOCH,
        reverse=True,
    )


def is_owner(principal: Principal, appointment: Appointment) -> bool:
    """Ownership by user ID or by case-insensitive patient email."""
    if not principal.is_authenticated:
        return False
    if appointment.get("user_id") and appointment.get("user_id") == principal.id:
        return True
    return principal.matches_email(appointment.get("patient_email"))


class AppointmentService:
    def __init__(self, store: RecordStore, notifier: Optional[NotificationDispatcher] = None):
        self.store = store
        self.notifier = notifier

    async def book(
        self,
        data: Union[AppointmentCreate, Mapping[str, Any]],
        principal: Optional[Principal] = None
    ) -> Tuple[Appointment, str]:
        """Create a pending appointment; the owner is recorded when the caller is signed in."""
        booking = self._validate_booking(data)
        principal = principal or Principal.anonymous()

        appointment = await self.store.create(COLLECTION, {
            "patient_name": booking.patient_name,
            "patient_email": booking.patient_email,
            "patient_phone": booking.patient_phone,
            "department": booking.department.value,
            "message": booking.message,
            "status": AppointmentStatus.PENDING.value,
            "notes": None,
            "user_id": principal.id if principal.is_authenticated else None,
        })

        reference = reference_code(appointment["id"])
        logger.info(f"Appointment {reference} booked for {booking.department.value}")
        self._notify(NotificationEvent.PENDING_RECEIVED, appointment, reference)
        return appointment, reference

    async def get(self, appointment_id: str, principal: Principal) -> Appointment:
        if not principal.is_authenticated:
            raise Unauthenticated()

        appointment = await self._require(appointment_id)
        if not principal.is_admin and not is_owner(principal, appointment):
            raise Forbidden("Not authorized to view this appointment")
        return appointment

    async def list_mine(self, principal: Principal) -> List[Appointment]:
        if not principal.is_authenticated:
            raise Unauthenticated()

        appointments = await self.store.list_all(COLLECTION)
        return newest_first([a for a in appointments if is_owner(principal, a)])

    async def list_all(
        self,
        principal: Principal,
        status: Optional[str] = None,
        department: Optional[str] = None,
        page: int = 1,
        limit: int = 10
    ) -> Dict[str, Any]:
        """Filtered, newest-first, paginated listing for admins."""
        self._require_admin(principal)
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive integers")

        appointments = await self.store.list_all(COLLECTION)
        if status:
            appointments = [a for a in appointments if a.get("status") == status]
        if department:
            appointments = [a for a in appointments if a.get("department") == department]

        ordered = newest_first(appointments)
        start = (page - 1) * limit
        items = ordered[start:start + limit]

        return {
            "count": len(items),
            "total": len(ordered),
            "pages": math.ceil(len(ordered) / limit),
            "current_page": page,
            "appointments": items,
        }

    async def set_status(
        self,
        appointment_id: str,
        new_status: str,
        principal: Principal,
        notes: Optional[str] = None
    ) -> Appointment:
        self._require_admin(principal)

        status = (new_status or "").strip().lower()
        if status not in STATUS_VALUES:
            raise ValidationError(
                "Invalid status. Must be: pending, confirmed, cancelled, or completed",
                errors=[{"field": "status", "message": f"unrecognized value '{new_status}'"}],
            )

        current = await self._require(appointment_id)
        old_status = current.get("status")

        changes = {
            "status": status,
            "updated_by": principal.id,
            "updated_by_name": principal.name,
        }
        if notes:
            changes["notes"] = notes
        reason = None
        if status == AppointmentStatus.CANCELLED.value and old_status != status:
            reason = notes or "Cancelled by administrator"
            changes["cancellation_reason"] = reason

        updated = await self._update(appointment_id, changes)
        reference = reference_code(appointment_id)
        logger.info(f"Appointment {reference} status {old_status} -> {status}")

        if status == AppointmentStatus.CONFIRMED.value and old_status != status:
            self._notify(NotificationEvent.CONFIRMED, updated, reference)
        elif reason is not None:
            self._notify(NotificationEvent.CANCELLED, updated, reference, reason)
        return updated

    async def cancel(
        self,
        appointment_id: str,
        principal: Principal,
        reason: Optional[str] = None
    ) -> Appointment:
        if not principal.is_authenticated:
            raise Unauthenticated()

        appointment = await self._require(appointment_id)
        if not principal.is_admin and not is_owner(principal, appointment):
            raise Forbidden("Not authorized to cancel this appointment")

        if appointment.get("status") == AppointmentStatus.CANCELLED.value:
            raise AlreadyCancelled()

        reason = reason or f"Cancelled by {'admin' if principal.is_admin else 'patient'}"
        updated = await self._update(appointment_id, {
            "status": AppointmentStatus.CANCELLED.value,
            "cancelled_by": principal.id,
            "cancelled_by_name": principal.name,
            "cancellation_reason": reason,
        })

        reference = reference_code(appointment_id)
        logger.info(f"Appointment {reference} cancelled by {principal.id}")
        self._notify(NotificationEvent.CANCELLED, updated, reference, reason)
        return updated

    async def delete(self, appointment_id: str, principal: Principal) -> bool:
        self._require_admin(principal)
        await self._require(appointment_id)
        removed = await self.store.remove(COLLECTION, appointment_id)
        logger.info(f"Appointment {appointment_id} deleted by {principal.id}")
        return removed

    async def search(self, query: str) -> List[Appointment]:
        """Case-insensitive substring match over contact fields, department and ID."""
        term = (query or "").strip().lower()
        if not term:
            return []

        fields = ("patient_name", "patient_email", "patient_phone", "department", "id")
        return [
            a for a in await self.store.list_all(COLLECTION)
            if any(term in str(a.get(f) or "").lower() for f in fields)
        ]

    async def find_by_date_range(self, start: datetime, end: datetime) -> List[Appointment]:
        matches = []
        for appointment in await self.store.list_all(COLLECTION):
            created = parse_timestamp(appointment.get("created_at"))
            if created is not None and start <= created <= end:
                matches.append(appointment)
        return matches

    async def bulk_update(self, ids: List[str], fields: Mapping[str, Any]) -> int:
        """Merge ``fields`` into every listed appointment in one write."""
        wanted = set(ids)
        changes = {k: v for k, v in fields.items() if k not in ("id", "created_at")}
        if "status" in changes and changes["status"] not in STATUS_VALUES:
            raise ValidationError(f"Invalid status '{changes['status']}'")
        stamp = to_timestamp(utc_now())

        def apply(appointments):
            count = 0
            for index, appt in enumerate(appointments):
                if appt.get("id") in wanted:
                    appointments[index] = {**appt, **changes, "updated_at": stamp}
                    count += 1
            return count

        updated = await self.store.modify(COLLECTION, apply)
        logger.info(f"Bulk-updated {updated} appointment(s)")
        return updated

    async def prune_older_than(self, days: int = 90) -> int:
        """Drop appointments created more than ``days`` days ago."""
        if days < 0:
            raise ValidationError("days must not be negative")
        cutoff = utc_now() - timedelta(days=days)

        def apply(appointments):
            kept = []
            for appt in appointments:
                created = parse_timestamp(appt.get("created_at"))
                if created is None or created >= cutoff:
                    kept.append(appt)
            removed = len(appointments) - len(kept)
            appointments[:] = kept
            return removed

        removed = await self.store.modify(COLLECTION, apply)
        logger.info(f"Pruned {removed} appointment(s) older than {days} days")
        return removed

    def _validate_booking(self, data) -> AppointmentCreate:
        if isinstance(data, AppointmentCreate):
            return data
        try:
            return AppointmentCreate.model_validate(dict(data))
        except SchemaError as exc:
            errors = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in exc.errors()
            ]
            raise ValidationError("Please fill in all required fields correctly", errors=errors)

    def _require_admin(self, principal: Principal) -> None:
        if not principal.is_authenticated:
            raise Unauthenticated()
        if not principal.is_admin:
            raise Forbidden("Admin access required")

    async def _require(self, appointment_id: str) -> Appointment:
        appointment = await self.store.get_by_id(COLLECTION, appointment_id)
        if not appointment:
            raise NotFound("Appointment not found")
        return appointment

    async def _update(self, appointment_id: str, changes: Dict[str, Any]) -> Appointment:
        updated = await self.store.update(COLLECTION, appointment_id, changes)
        if updated is None:
            # removed between the read and the write
            raise NotFound("Appointment not found")
        return updated

    def _notify(self, event, appointment, reference, reason=None) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify(event, appointment, reference, reason)
        except Exception as exc:
            logger.error(f"Could not schedule {event.value} notification for {reference}: {exc}")
