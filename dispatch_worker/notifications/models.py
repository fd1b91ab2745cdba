"""Result types and exceptions for email delivery."""

from dataclasses import dataclass
from typing import Optional


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when template rendering fails due to configuration or missing variables."""

    pass


class MailDeliveryError(NotificationError):
    """Raised by a mail transport when a single send attempt fails."""

    pass


class DeliveryInterruptedError(NotificationError):
    """Raised when a backoff wait is cut short by shutdown.

    No outcome is known yet, so the notification must stay pending.

    Attributes:
        attempts: Send attempts made before the interruption
        last_error: Error from the most recent failed attempt
    """

    def __init__(self, message: str, attempts: int = 0, last_error: Optional[str] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


@dataclass(frozen=True)
class DeliveryOutcome:
    """Definitive result of sending one email, after all retries.

    Attributes:
        success: Whether the provider accepted the message
        detail: Provider confirmation token on success, last error message on failure
        attempts: Number of send attempts made
    """

    success: bool
    detail: Optional[str]
    attempts: int = 1

    @classmethod
    def sent(cls, token: Optional[str], attempts: int) -> "DeliveryOutcome":
        return cls(success=True, detail=token, attempts=attempts)

    @classmethod
    def failed(cls, error: str, attempts: int) -> "DeliveryOutcome":
        return cls(success=False, detail=error, attempts=attempts)
