import asyncio
from datetime import datetime

import pytest

from healthcare_plus.core.exceptions import Forbidden, Unauthenticated
from healthcare_plus.core.security import Principal
from healthcare_plus.core.storage import to_timestamp
from healthcare_plus.services.stats_service import StatsService, month_label, months_before
from tests.conftest import ADMIN, BOOKING, JANE


def local(*args):
    return datetime(*args).astimezone()


def appointment(appt_id, created, status="pending", department="general", email=None):
    record = {
        "id": appt_id,
        "patient_name": "Patient",
        "patient_email": email or f"{appt_id}@example.com",
        "patient_phone": "555",
        "status": status,
        "created_at": to_timestamp(created),
        "updated_at": to_timestamp(created),
    }
    if department is not None:
        record["department"] = department
    return record


NOW = local(2024, 8, 14, 12, 0)  # a Wednesday

APPOINTMENTS = [
    appointment("a", local(2024, 8, 14, 10, 0), "pending", "cardiology", email="same@example.com"),
    appointment("b", local(2024, 8, 14, 11, 0), "confirmed", "general", email="same@example.com"),
    appointment("c", local(2024, 8, 12, 9, 0), "cancelled", "pediatrics"),
    appointment("d", local(2024, 8, 2, 9, 0), "completed", department=None),
    appointment("e", local(2024, 5, 15, 12, 0), "pending", "cardiology"),
    appointment("f", local(2023, 12, 15, 12, 0), "archived", "maternity"),
]

USERS = [
    {"id": "u1", "role": "admin", "is_active": True},
    {"id": "u2", "role": "patient", "is_active": True},
    {"id": "u3", "role": "patient", "is_active": False},
]


@pytest.fixture
def stats(store):
    return StatsService(store).aggregate(APPOINTMENTS, USERS, recent_limit=3, now=NOW)


class TestAggregate:

    def test_status_counts_sum_to_total(self, stats):
        assert sum(stats["by_status"].values()) == len(APPOINTMENTS)
        assert stats["by_status"] == {
            "pending": 2, "confirmed": 1, "cancelled": 1, "completed": 1, "archived": 1
        }

    def test_department_counts_sum_to_total(self, stats):
        assert sum(stats["by_department"].values()) == len(APPOINTMENTS)
        assert stats["by_department"]["general"] == 2
        assert stats["by_department"]["cardiology"] == 2

    def test_totals(self, stats):
        assert stats["total"] == {
            "appointments": 6,
            "patients": 5,
            "registered_patients": 1,
            "admins": 1,
        }

    def test_calendar_windows(self, stats):
        assert stats["today"] == {"appointments": 2, "pending": 1}
        assert stats["this_week"] == 3
        assert stats["this_month"] == 4

    def test_by_month_covers_trailing_six_months(self, stats):
        assert stats["by_month"] == {"Aug 2024": 4, "May 2024": 1}

    def test_recent_is_newest_first(self, stats):
        assert [a["id"] for a in stats["recent"]] == ["b", "a", "c"]

    def test_status_zero_filled_when_empty(self, store):
        empty = StatsService(store).aggregate([], [], now=NOW)

        assert empty["by_status"] == {"pending": 0, "confirmed": 0, "cancelled": 0, "completed": 0}
        assert empty["by_department"] == {}
        assert empty["recent"] == []


class TestCalendarHelpers:

    def test_months_before_clamps_day(self):
        assert months_before(datetime(2024, 8, 31, 15, 30), 6) == datetime(2024, 2, 29, 15, 30)
        assert months_before(datetime(2023, 3, 31), 1) == datetime(2023, 2, 28)

    def test_months_before_crosses_year(self):
        assert months_before(datetime(2024, 1, 10), 2) == datetime(2023, 11, 10)

    def test_month_label(self):
        assert month_label(datetime(2024, 1, 5)) == "Jan 2024"


class TestCompute:

    def test_requires_admin(self, store):
        service = StatsService(store)

        with pytest.raises(Unauthenticated):
            asyncio.run(service.compute(Principal.anonymous()))
        with pytest.raises(Forbidden):
            asyncio.run(service.compute(JANE))

    def test_reads_store(self, store):
        asyncio.run(store.create("appointments", {**BOOKING, "status": "pending"}))

        result = asyncio.run(StatsService(store).compute(ADMIN))
        assert result["total"]["appointments"] == 1
        assert result["today"]["appointments"] == 1
        assert result["by_department"] == {"general": 1}

    def test_stats_endpoint(self, client, admin_headers, patient_headers):
        client.post("/api/v1/appointments", json=BOOKING)

        assert client.get("/api/v1/appointments/stats", headers=patient_headers).status_code == 403

        response = client.get("/api/v1/appointments/stats", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"]["appointments"] == 1
        assert data["total"]["admins"] == 1
        assert data["total"]["registered_patients"] == 1
        assert data["recent"][0]["reference"].startswith("APPT")

    def test_stats_endpoint_with_irregular_records(self, client, store, admin_headers):
        asyncio.run(store.create("appointments", {
            "patient_name": "Legacy", "patient_email": "legacy@example.com",
            "patient_phone": "555", "status": "pending",
        }))
        asyncio.run(store.create("appointments", {
            **BOOKING, "status": "archived",
        }))

        response = client.get("/api/v1/appointments/stats", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["by_department"] == {"general": 2}
        assert {a["status"] for a in data["recent"]} == {"pending", "archived"}
        assert any(a["department"] is None for a in data["recent"])
