"""
Notification service for rendering and delivering booking emails.
"""

import asyncio
import logging
import smtplib
from datetime import date
from decimal import Decimal
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import List, Optional, Set

from pydantic import BaseModel, EmailStr, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..config import Settings, get_settings
from ..models.booking import Booking
from ..models.bus import Bus
from ..models.route import Route
from ..models.user import User
from ..utils.exceptions import EmailServiceError

logger = logging.getLogger(__name__)

_recipient_adapter = TypeAdapter(EmailStr)


class BookingConfirmation(BaseModel):
    """Everything a booking confirmation email needs."""

    recipient: EmailStr
    name: str = "Customer"
    reference: str
    bus: str
    route: str
    travel_date: date
    seat_numbers: List[int] = Field(default_factory=list)
    total_price: Decimal = Decimal("0.00")

    @classmethod
    def from_booking(cls, booking: Booking, user: User, bus: Bus, route: Route) -> "BookingConfirmation":
        return cls(
            recipient=user.email,
            name=user.username or "Customer",
            reference=booking.reference,
            bus=bus.label,
            route=route.label,
            travel_date=booking.travel_date,
            seat_numbers=list(booking.seat_numbers),
            total_price=booking.total_price,
        )


class EmailMessage(BaseModel):
    """Rendered email content."""

    subject: str
    html: str
    text: str


def render_booking_confirmation(confirmation: BookingConfirmation) -> EmailMessage:
    """Render the subject, HTML and text bodies of a booking confirmation."""
    date_str = confirmation.travel_date.strftime("%a %b %d %Y")
    seat_list = ", ".join(str(seat) for seat in confirmation.seat_numbers)
    total_str = f"{confirmation.total_price:.2f}"

    subject = f"Your booking {confirmation.reference}"
    text = (
        f"Hi {confirmation.name}, your booking {confirmation.reference} for "
        f"{confirmation.bus} on {date_str} is confirmed. Route: {confirmation.route}. "
        f"Seats: {seat_list}. Total: ${total_str}"
    )
    html = f"""
    <div style="max-width: 600px; margin: auto; padding: 30px; font-family: Arial, sans-serif; color: #333;">
        <h2 style="color: #2b6cb0; text-align: center;">Booking Confirmation</h2>
        <p style="text-align: center;">Thank you for booking with GoBus, {escape(confirmation.name)}!</p>
        <ul style="list-style: none; padding: 0;">
            <li><strong>Reference:</strong> {escape(confirmation.reference)}</li>
            <li><strong>Bus:</strong> {escape(confirmation.bus)}</li>
            <li><strong>Route:</strong> {escape(confirmation.route)}</li>
            <li><strong>Travel Date:</strong> {date_str}</li>
            <li><strong>Seat Numbers:</strong> {seat_list}</li>
            <li><strong>Total Price:</strong> ${total_str}</li>
        </ul>
        <p style="text-align: center; color: #555;">Safe travels,<br><strong>The GoBus Team</strong></p>
    </div>
    """

    return EmailMessage(subject=subject, html=html, text=text)


class EmailSender:
    """Delivers rendered messages over SMTP."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def configured(self) -> bool:
        return bool(self.settings.smtp_server and self.settings.smtp_username)

    def send(self, to_email: str, message: EmailMessage) -> bool:
        """
        Send email using SMTP.

        Returns:
            bool: False when SMTP is not configured, True once delivered

        Raises:
            EmailServiceError: When the recipient is invalid or delivery fails
        """
        try:
            to_email = _recipient_adapter.validate_python(to_email)
        except PydanticValidationError as e:
            raise EmailServiceError("Invalid recipient email address") from e

        if not self.configured:
            logger.warning("Email configuration not available, skipping email send")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = f'"{self.settings.email_sender_name}" <{self.settings.smtp_username}>'
        msg["To"] = to_email

        msg.attach(MIMEText(message.text, "plain"))
        msg.attach(MIMEText(message.html, "html"))

        try:
            with smtplib.SMTP(self.settings.smtp_server, self.settings.smtp_port) as server:
                if self.settings.smtp_use_tls:
                    server.starttls()

                server.login(self.settings.smtp_username, self.settings.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailServiceError(str(e)) from e

        logger.info(f"Email sent successfully to {to_email}")
        return True


class NotificationDispatcher:
    """
    Detached delivery of booking notifications.

    Dispatch returns immediately; the Celery enqueue runs in a background
    asyncio task and any failure there is logged and dropped.
    """

    def __init__(self):
        self._pending: Set[asyncio.Task] = set()

    def dispatch_booking_confirmation(self, confirmation: BookingConfirmation) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._enqueue_confirmation(confirmation))
        except RuntimeError as e:
            logger.warning(f"Could not schedule booking confirmation for {confirmation.reference}: {e}")
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _enqueue_confirmation(self, confirmation: BookingConfirmation) -> None:
        try:
            from ..tasks.notification_tasks import send_booking_confirmation_task
            await asyncio.to_thread(
                send_booking_confirmation_task.delay,
                confirmation.model_dump(mode="json"),
            )
            logger.info(f"Booking confirmation notification queued for {confirmation.reference}")
        except Exception as e:
            logger.warning(f"Failed to queue booking confirmation notification: {e}")

    async def drain(self) -> None:
        """Wait for queued dispatches, used on shutdown."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)


_dispatcher = NotificationDispatcher()


def get_notification_dispatcher() -> NotificationDispatcher:
    """Get the process-wide notification dispatcher."""
    return _dispatcher
