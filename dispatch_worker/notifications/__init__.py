"""Email composition and delivery.

- TemplateRenderer: Jinja2 rendering of the plain text and HTML bodies
- Mailer: bounded retry with exponential backoff around a transport
- MailTransport: abstract send capability
- SMTPClient: smtplib implementation of MailTransport
"""

from .mailer import Mailer
from .models import (
    DeliveryInterruptedError,
    DeliveryOutcome,
    MailDeliveryError,
    NotificationError,
    NotificationTemplateError,
)
from .smtp_client import SMTPClient, build_sender_address
from .templates import TemplateRenderer
from .transport import MailTransport

__all__ = [
    "Mailer",
    "DeliveryOutcome",
    # Exceptions
    "NotificationError",
    "NotificationTemplateError",
    "MailDeliveryError",
    "DeliveryInterruptedError",
    # Components
    "MailTransport",
    "SMTPClient",
    "TemplateRenderer",
    "build_sender_address",
]
