import pytest
from fastapi.testclient import TestClient

from healthcare_plus.main import app
from healthcare_plus.api.deps import get_dispatcher
from healthcare_plus.core.config import settings
from healthcare_plus.core.security import Principal, UserRole
from healthcare_plus.core.storage import RecordStore, get_store


class RecordingDispatcher:
    """Stands in for the notification dispatcher and keeps every event."""

    def __init__(self):
        self.events = []

    def notify(self, event, appointment, reference, reason=None):
        self.events.append({
            "event": event,
            "appointment": dict(appointment),
            "reference": reference,
            "reason": reason,
        })

    def kinds(self):
        return [e["event"].value for e in self.events]


ADMIN_LOGIN = {
    "email": settings.DEFAULT_ADMIN_EMAIL,
    "password": settings.DEFAULT_ADMIN_PASSWORD,
}

PATIENT = {
    "name": "Jane Doe",
    "email": "jane@example.com",
    "phone": "555-0100",
    "password": "Secret123",
}

BOOKING = {
    "patient_name": "Jane Doe",
    "patient_email": "jane@example.com",
    "patient_phone": "555-0100",
    "department": "general",
    "message": "Recurring headaches",
}


@pytest.fixture
def store(tmp_path):
    return RecordStore(tmp_path / "data")


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def client(store, dispatcher):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(client):
    response = client.post("/api/v1/auth/login", json=ADMIN_LOGIN)
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def register(client, **overrides):
    """Register a user and return (auth headers, user payload)."""
    data = {**PATIENT, **overrides}
    response = client.post("/api/v1/auth/register", json=data)
    assert response.status_code == 201, response.text
    body = response.json()
    return {"Authorization": f"Bearer {body['access_token']}"}, body["user"]


@pytest.fixture
def patient_headers(client):
    headers, _ = register(client)
    return headers


# Principals for service-level tests
ADMIN = Principal(id="admin-1", email="admin@example.com", role=UserRole.ADMIN, name="Admin")
JANE = Principal(id="user-jane", email="jane@example.com", role=UserRole.PATIENT, name="Jane Doe")
BOB = Principal(id="user-bob", email="bob@example.com", role=UserRole.PATIENT, name="Bob")
