"""Abstract mail transport interface."""

from abc import ABC, abstractmethod
from typing import Optional


class MailTransport(ABC):
    """Capability to hand one email to a mail provider.

    The mailer treats any exception raised by ``send_mail`` as a failed
    attempt and retries it; implementations do not retry on their own.
    """

    @abstractmethod
    def send_mail(
        self,
        to: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
    ) -> str:
        """Send one email.

        Returns:
            Provider confirmation token (e.g. the Message-ID)

        Raises:
            Exception: Any failure; callers do not inspect the type
        """
