# services/subscriptions.py
"""
Waitlist subscription service

Persistence is the success condition. The welcome email is best-effort: a
missing transport or a failed send changes only the wording of the result,
never the stored row.
"""

import re
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from core.errors import ValidationError
from core.storage import add_subscriber
from core.transport import SendReceipt, TransportHandle
from tasks.email_sender import WelcomeMailer

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


class NotificationStatus(Enum):
    """What happened to the welcome email"""
    NOT_READY = "not_ready"
    SENT = "sent"
    FAILED = "failed"


SUCCESS_MESSAGES = {
    NotificationStatus.NOT_READY: 'Subscribed successfully! (Email service initializing...)',
    NotificationStatus.SENT: 'Subscribed successfully! Confirmation email sent.',
    NotificationStatus.FAILED: 'Subscribed successfully! (Email failed to send)',
}


@dataclass
class SubscriptionResult:
    """Persistence and notification outcome of one subscribe call"""
    subscriber_id: int
    email: str
    notification: NotificationStatus
    receipt: Optional[SendReceipt] = None
    notification_error: Optional[str] = None

    @property
    def message(self) -> str:
        return SUCCESS_MESSAGES[self.notification]


def validate_email(email: Any) -> str:
    """Return ``email`` unchanged or raise ValidationError"""
    if not email:
        raise ValidationError(ValidationError.MISSING)
    if not isinstance(email, str) or not EMAIL_PATTERN.fullmatch(email):
        raise ValidationError(ValidationError.MALFORMED)
    return email


class SubscriptionService:
    """Validate, store, then notify"""

    def __init__(self, transport_handle: TransportHandle, mailer: WelcomeMailer,
                 transport_wait_timeout: float = 0.0):
        self.transport_handle = transport_handle
        self.mailer = mailer
        self.transport_wait_timeout = transport_wait_timeout

    def subscribe(self, email: Any) -> SubscriptionResult:
        """
        Store a new subscriber and attempt the welcome email

        Raises:
            ValidationError: email missing or malformed
            DuplicateError: email already stored
            StorageError: any other persistence failure
        """
        email = validate_email(email)
        subscriber = add_subscriber(email)
        logger.info(f"New subscriber {subscriber.id}")

        transport = self.transport_handle.get(timeout=self.transport_wait_timeout)
        if transport is None:
            logger.warning(f"Transporter not ready yet ({self.transport_handle.describe()})")
            return SubscriptionResult(subscriber.id, email, NotificationStatus.NOT_READY)

        try:
            receipt = self.mailer.send_welcome(transport, email)
        except Exception as e:
            # the row is committed; any send-side error only changes the wording
            logger.error(f"Mail error: {e}", exc_info=True)
            return SubscriptionResult(subscriber.id, email, NotificationStatus.FAILED,
                                      notification_error=str(e))

        return SubscriptionResult(subscriber.id, email, NotificationStatus.SENT, receipt=receipt)
