"""
Appointment notifications.

The dispatcher is built once at startup, receives lifecycle events from
the appointment service and delivers them in the background. Delivery
failures are logged and never reach the operation that raised the event.
"""
import asyncio
import enum
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Optional, Set

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import UpstreamNotificationError

logger = logging.getLogger(__name__)


class NotificationEvent(str, enum.Enum):
    PENDING_RECEIVED = "pendingReceived"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


@dataclass
class EmailMessage:
    to: str
    subject: str
    text: str


def render_message(
    event: NotificationEvent,
    appointment: Dict[str, Any],
    reference: str,
    reason: Optional[str] = None,
    config: Settings = default_settings,
) -> EmailMessage:
    """Build the plain-text email for one lifecycle event."""
    name = appointment.get("patient_name", "Patient")
    department = str(appointment.get("department", "")).title()

    if event == NotificationEvent.PENDING_RECEIVED:
        subject = f"Appointment Request Received - {reference}"
        body = (
            f"Dear {name},\n\n"
            f"We have received your appointment request for {department}.\n"
            f"Reference: {reference}\n"
            f"Status: Pending review\n\n"
            f"Our team will contact you shortly to confirm a time."
        )
    elif event == NotificationEvent.CONFIRMED:
        subject = f"Appointment Confirmed - {reference}"
        body = (
            f"Dear {name},\n\n"
            f"Your {department} appointment ({reference}) has been confirmed.\n"
        )
        if appointment.get("notes"):
            body += f"Notes: {appointment['notes']}\n"
        body += f"\nFor emergencies call {config.CONTACT_PHONE} immediately."
    else:
        subject = f"Appointment Cancelled - {reference}"
        body = (
            f"Dear {name},\n\n"
            f"Your {department} appointment ({reference}) has been cancelled.\n"
            f"Reason: {reason or 'Not specified'}\n\n"
            f"To book a new appointment visit {config.APP_URL} or call {config.CONTACT_PHONE}."
        )

    body += "\n\nHealthcare Plus"
    return EmailMessage(to=appointment.get("patient_email", ""), subject=subject, text=body)


class LoggingTransport:
    """Used when no SMTP server is configured: the message is only logged."""

    def send(self, message: EmailMessage) -> None:
        logger.info(f"EMAIL NOTIFICATION (no transport configured) to={message.to} subject={message.subject!r}")


class SMTPTransport:
    def __init__(self, config: Settings = default_settings):
        self.config = config

    def send(self, message: EmailMessage) -> None:
        mime = MIMEMultipart("alternative")
        mime["Subject"] = message.subject
        mime["From"] = self.config.EMAIL_FROM
        mime["To"] = message.to
        mime.attach(MIMEText(message.text, "plain"))

        try:
            with smtplib.SMTP(self.config.SMTP_HOST, self.config.SMTP_PORT, timeout=30) as server:
                if self.config.SMTP_USE_TLS:
                    server.starttls(context=ssl.create_default_context())
                if self.config.SMTP_USER and self.config.SMTP_PASSWORD:
                    server.login(self.config.SMTP_USER, self.config.SMTP_PASSWORD)
                server.sendmail(self.config.EMAIL_FROM, [message.to], mime.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            raise UpstreamNotificationError(f"Failed to send email to {message.to}: {exc}") from exc


def build_transport(config: Settings = default_settings):
    if config.email_configured:
        return SMTPTransport(config)
    return LoggingTransport()


class NotificationDispatcher:
    def __init__(self, transport=None, config: Settings = default_settings):
        self.transport = transport
        self.config = config
        self._tasks: Set[asyncio.Task] = set()
        self._running = False

    async def init(self) -> None:
        if self.transport is None:
            self.transport = build_transport(self.config)
        self._running = True
        logger.info(f"Notification dispatcher started ({type(self.transport).__name__})")

    async def shutdown(self) -> None:
        """Stop accepting events and wait for in-flight deliveries."""
        self._running = False
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        logger.info("Notification dispatcher stopped")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def notify(
        self,
        event: NotificationEvent,
        appointment: Dict[str, Any],
        reference: str,
        reason: Optional[str] = None
    ) -> None:
        """Schedule delivery and return immediately."""
        if not self._running:
            logger.warning(f"Dispatcher not running; dropped {event.value} notification for {reference}")
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop; dropped {event.value} notification for {reference}")
            return

        task = loop.create_task(self._deliver(event, dict(appointment), reference, reason))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(
        self,
        event: NotificationEvent,
        appointment: Dict[str, Any],
        reference: str,
        reason: Optional[str]
    ) -> bool:
        try:
            message = render_message(event, appointment, reference, reason, self.config)
            if not message.to:
                raise UpstreamNotificationError("Appointment has no patient email")
            await asyncio.to_thread(self.transport.send, message)
        except Exception as exc:
            # delivery outcome is only ever logged
            logger.error(f"Notification {event.value} for {reference} failed: {exc}")
            return False

        logger.info(f"Notification {event.value} sent for {reference} to {message.to}")
        return True
