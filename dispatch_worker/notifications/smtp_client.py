"""SMTP mail transport.

A thin wrapper around Python's smtplib with support for STARTTLS, implicit
TLS, authentication and proper connection lifecycle management. One
connection is opened per message so concurrent workers never share a socket.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Callable, Optional

from dispatch_worker.config.environment import EnvironmentConfig

from .models import MailDeliveryError
from .transport import MailTransport

logger = logging.getLogger(__name__)

IMPLICIT_TLS_PORT = 465


class SMTPClient(MailTransport):
    """Mail transport that delivers over SMTP.

    Designed to be easily mockable: the smtplib constructors can be injected.
    """

    def __init__(
        self,
        env_config: EnvironmentConfig,
        use_tls: bool = True,
        timeout: float = 30,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
    ):
        """
        Args:
            env_config: Environment configuration with SMTP settings
            use_tls: Upgrade plain connections with STARTTLS
            timeout: Socket timeout in seconds
            smtp_factory: Factory for SMTP instances (for mocking)
            smtp_ssl_factory: Factory for SMTP_SSL instances (for mocking)
        """
        self.env_config = env_config
        self.use_tls = use_tls
        self.timeout = timeout
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL

    @property
    def sender(self) -> str:
        """The From header, e.g. 'Blood Connect System <alerts@example.com>'."""
        return build_sender_address(self.env_config)

    def build_message(
        self, to: str, subject: str, text: str, html: Optional[str] = None
    ) -> EmailMessage:
        """Build the MIME message, with an HTML alternative when given."""
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = to
        message["Message-ID"] = make_msgid(domain=_sender_domain(self.env_config.smtp_user))

        message.set_content(text)
        if html:
            message.add_alternative(html, subtype="html")

        return message

    def send_mail(
        self,
        to: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
    ) -> str:
        """Send one email and return its Message-ID.

        Raises:
            MailDeliveryError: If delivery fails for any reason
        """
        message = self.build_message(to, subject, text, html)

        self._run(lambda smtp: smtp.send_message(message))

        logger.debug(f"Message {message['Message-ID']} accepted for {to}")
        return message["Message-ID"]

    def verify(self) -> None:
        """Connect and authenticate without sending anything.

        Raises:
            MailDeliveryError: If the server is unreachable or rejects the credentials
        """
        self._run(lambda smtp: smtp.noop())
        logger.info(
            f"SMTP credentials verified for {self.env_config.smtp_user} "
            f"at {self.env_config.smtp_host}:{self.env_config.smtp_port}"
        )

    def _run(self, action: Callable[[smtplib.SMTP], object]) -> None:
        """Open an authenticated connection, run ``action`` on it, always quit.

        Raises:
            MailDeliveryError: On any SMTP, network or unexpected failure
        """
        host = self.env_config.smtp_host
        port = self.env_config.smtp_port
        smtp = None
        try:
            if port == IMPLICIT_TLS_PORT:
                logger.debug(f"Connecting to {host}:{port} with implicit TLS")
                smtp = self.smtp_ssl_factory(
                    host, port, timeout=self.timeout, context=ssl.create_default_context()
                )
            else:
                logger.debug(f"Connecting to {host}:{port}")
                smtp = self.smtp_factory(host, port, timeout=self.timeout)

                if self.use_tls:
                    logger.debug("Upgrading connection with STARTTLS")
                    smtp.starttls(context=ssl.create_default_context())

            if self.env_config.smtp_user and self.env_config.smtp_pass:
                logger.debug(f"Authenticating as {self.env_config.smtp_user}")
                smtp.login(self.env_config.smtp_user, self.env_config.smtp_pass)

            action(smtp)

        except smtplib.SMTPException as e:
            raise MailDeliveryError(f"SMTP error: {e}") from e
        except OSError as e:
            raise MailDeliveryError(f"Network error during SMTP connection: {e}") from e
        except Exception as e:
            raise MailDeliveryError(f"Unexpected error during SMTP delivery: {e}") from e
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except Exception as e:
                    logger.warning(f"Error closing SMTP connection: {e}")


def _sender_domain(address: Optional[str]) -> Optional[str]:
    if address and "@" in address:
        return address.rsplit("@", 1)[1]
    return None


def build_sender_address(env_config: EnvironmentConfig) -> str:
    """Build the 'From' address for outgoing emails.

    Uses SMTP_SENDER_NAME with SMTP_USER, falling back to a noreply address
    at the SMTP host when no user is configured.

    Returns:
        Formatted sender address (e.g., 'Blood Connect System <user@example.com>')
    """
    sender_email = env_config.smtp_user or f"noreply@{env_config.smtp_host}"
    return formataddr((env_config.smtp_sender_name, sender_email))
