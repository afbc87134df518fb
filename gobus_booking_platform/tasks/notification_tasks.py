"""
Celery tasks for notification delivery.
"""

import logging
from typing import Any, Dict

from pydantic import ValidationError as PydanticValidationError

from .celery_app import celery_app
from ..services.notification_service import (
    BookingConfirmation,
    EmailSender,
    render_booking_confirmation,
)
from ..utils.exceptions import EmailServiceError

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="send_booking_confirmation_task",
    max_retries=3,
    default_retry_delay=30,
)
def send_booking_confirmation_task(self, payload: Dict[str, Any]):
    """
    Task to send a booking confirmation email.

    Args:
        payload: Serialized BookingConfirmation
    """
    try:
        confirmation = BookingConfirmation.model_validate(payload)
    except PydanticValidationError as e:
        # A malformed payload will not improve on retry
        error = EmailServiceError(f"invalid confirmation payload: {e.error_count()} errors")
        logger.error(f"Dropping booking confirmation {payload.get('reference')}: {error.message}")
        return {"reference": payload.get("reference"), "status": "failed", "error": error.message}

    logger.info(f"Sending booking confirmation for {confirmation.reference}")

    message = render_booking_confirmation(confirmation)
    try:
        sent = EmailSender().send(confirmation.recipient, message)
    except EmailServiceError as e:
        logger.error(f"Failed to send booking confirmation for {confirmation.reference}: {e}")
        if self.request.retries >= self.max_retries:
            return {"reference": confirmation.reference, "status": "failed", "error": e.message}
        raise self.retry(exc=e)

    status = "sent" if sent else "skipped"
    return {"reference": confirmation.reference, "status": status}
