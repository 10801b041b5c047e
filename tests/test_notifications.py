import asyncio

import pytest

from healthcare_plus.core.config import Settings
from healthcare_plus.core.exceptions import UpstreamNotificationError
from healthcare_plus.services.appointment_service import AppointmentService
from healthcare_plus.services.notification_service import (
    LoggingTransport, NotificationDispatcher, NotificationEvent, SMTPTransport,
    build_transport, render_message
)
from tests.conftest import BOOKING

APPOINTMENT = {
    "id": "abc123xyz9",
    "patient_name": "Jane Doe",
    "patient_email": "jane@example.com",
    "department": "cardiology",
    "notes": "Bring previous results",
}


class CollectingTransport:
    def __init__(self):
        self.sent = []

    def send(self, message):
        self.sent.append(message)


class FailingTransport:
    def send(self, message):
        raise UpstreamNotificationError("SMTP server unavailable")


class TestRenderMessage:

    def test_pending_received(self):
        message = render_message(NotificationEvent.PENDING_RECEIVED, APPOINTMENT, "APPTABC123")

        assert message.to == "jane@example.com"
        assert message.subject == "Appointment Request Received - APPTABC123"
        assert "Cardiology" in message.text

    def test_confirmed_includes_notes(self):
        message = render_message(NotificationEvent.CONFIRMED, APPOINTMENT, "APPTABC123")

        assert message.subject == "Appointment Confirmed - APPTABC123"
        assert "Bring previous results" in message.text

    def test_cancelled_includes_reason(self):
        message = render_message(NotificationEvent.CANCELLED, APPOINTMENT, "APPTABC123", reason="Doctor unavailable")

        assert message.subject == "Appointment Cancelled - APPTABC123"
        assert "Reason: Doctor unavailable" in message.text

    def test_cancelled_without_reason(self):
        message = render_message(NotificationEvent.CANCELLED, APPOINTMENT, "APPTABC123")
        assert "Reason: Not specified" in message.text


class TestDispatcher:

    def test_delivers_in_background(self):
        transport = CollectingTransport()
        dispatcher = NotificationDispatcher(transport=transport)

        async def scenario():
            await dispatcher.init()
            dispatcher.notify(NotificationEvent.CONFIRMED, APPOINTMENT, "APPTABC123")
            assert dispatcher.pending == 1
            await dispatcher.shutdown()

        asyncio.run(scenario())
        assert [m.subject for m in transport.sent] == ["Appointment Confirmed - APPTABC123"]

    def test_failure_is_only_logged(self, caplog):
        dispatcher = NotificationDispatcher(transport=FailingTransport())

        async def scenario():
            await dispatcher.init()
            dispatcher.notify(NotificationEvent.CANCELLED, APPOINTMENT, "APPTABC123", "reason")
            await dispatcher.shutdown()

        asyncio.run(scenario())
        assert "SMTP server unavailable" in caplog.text

    def test_missing_email_is_logged(self, caplog):
        transport = CollectingTransport()
        dispatcher = NotificationDispatcher(transport=transport)

        async def scenario():
            await dispatcher.init()
            dispatcher.notify(NotificationEvent.CONFIRMED, {**APPOINTMENT, "patient_email": ""}, "APPTABC123")
            await dispatcher.shutdown()

        asyncio.run(scenario())
        assert transport.sent == []
        assert "no patient email" in caplog.text

    def test_events_before_init_are_dropped(self):
        transport = CollectingTransport()
        dispatcher = NotificationDispatcher(transport=transport)

        dispatcher.notify(NotificationEvent.CONFIRMED, APPOINTMENT, "APPTABC123")
        assert dispatcher.pending == 0

    def test_booking_survives_failing_transport(self, store):
        dispatcher = NotificationDispatcher(transport=FailingTransport())
        service = AppointmentService(store, dispatcher)

        async def scenario():
            await dispatcher.init()
            appointment, _ = await service.book(BOOKING)
            await dispatcher.shutdown()
            return appointment

        appointment = asyncio.run(scenario())
        assert asyncio.run(store.get_by_id("appointments", appointment["id"]))["status"] == "pending"


class TestTransportSelection:

    def test_logging_transport_without_smtp(self):
        assert isinstance(build_transport(Settings(SMTP_HOST=None)), LoggingTransport)

    def test_smtp_transport_when_configured(self):
        config = Settings(SMTP_HOST="smtp.example.com", SMTP_USER="mailer", SMTP_PASSWORD="secret")
        assert isinstance(build_transport(config), SMTPTransport)

    def test_smtp_failure_is_upstream_error(self):
        config = Settings(SMTP_HOST="127.0.0.1", SMTP_PORT=1)
        message = render_message(NotificationEvent.CONFIRMED, APPOINTMENT, "APPTABC123", config=config)

        with pytest.raises(UpstreamNotificationError):
            SMTPTransport(config).send(message)
