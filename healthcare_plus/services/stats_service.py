import calendar
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ..core.exceptions import Forbidden, Unauthenticated
from ..core.security import Principal, UserRole
from ..core.storage import RecordStore, parse_timestamp
from ..models import appointment as appointment_model
from ..models import user as user_model
from ..models.appointment import STATUS_VALUES, AppointmentStatus
from .appointment_service import newest_first


def months_before(moment: datetime, months: int) -> datetime:
    """Same wall-clock time ``months`` calendar months earlier (day clamped)."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def month_label(moment: datetime) -> str:
    return f"{calendar.month_abbr[moment.month]} {moment.year:04d}"


class StatsService:
    """Read-only aggregation over appointments and users."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def compute(
        self,
        principal: Principal,
        recent_limit: int = 10,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        if not principal.is_authenticated:
            raise Unauthenticated()
        if not principal.is_admin:
            raise Forbidden("Admin access required")

        appointments = await self.store.list_all(appointment_model.COLLECTION)
        users = await self.store.list_all(user_model.COLLECTION)
        return self.aggregate(appointments, users, recent_limit, now)

    def aggregate(
        self,
        appointments: List[Dict[str, Any]],
        users: List[Dict[str, Any]],
        recent_limit: int = 10,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        # calendar comparisons use server-local time
        now = (now or datetime.now()).astimezone()
        today = now.date()
        week_start = today - timedelta(days=(today.weekday() + 1) % 7)
        month_start = today.replace(day=1)
        six_months_ago = months_before(now, 6)

        by_status = {status: 0 for status in STATUS_VALUES}
        by_department: Counter = Counter()
        by_month: Counter = Counter()
        patients = set()
        today_total = today_pending = this_week = this_month = 0

        for appt in appointments:
            status = appt.get("status") or AppointmentStatus.PENDING.value
            by_status[status] = by_status.get(status, 0) + 1
            by_department[appt.get("department") or "general"] += 1
            if appt.get("patient_email"):
                patients.add(appt["patient_email"])

            created = parse_timestamp(appt.get("created_at"))
            if created is None:
                continue
            created = created.astimezone(now.tzinfo)
            created_day = created.date()

            if created_day == today:
                today_total += 1
                if status == AppointmentStatus.PENDING.value:
                    today_pending += 1
            if week_start <= created_day <= today:
                this_week += 1
            if month_start <= created_day <= today:
                this_month += 1
            if created >= six_months_ago:
                by_month[month_label(created)] += 1

        active_users = [u for u in users if user_model.is_active(u)]
        return {
            "total": {
                "appointments": len(appointments),
                "patients": len(patients),
                "registered_patients": sum(1 for u in active_users if u.get("role") == UserRole.PATIENT.value),
                "admins": sum(1 for u in active_users if u.get("role") == UserRole.ADMIN.value),
            },
            "today": {"appointments": today_total, "pending": today_pending},
            "this_week": this_week,
            "this_month": this_month,
            "by_status": by_status,
            "by_department": dict(by_department),
            "by_month": dict(by_month),
            "recent": newest_first(appointments)[:recent_limit],
        }
