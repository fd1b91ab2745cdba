"""Email delivery with bounded retry and exponential backoff.

The mailer sits between the processor and a ``MailTransport``. It makes up
to ``max_retries + 1`` attempts and returns a ``DeliveryOutcome``;
transport failures never propagate to the caller. Backoff waits can be cut
short with ``interrupt()`` during shutdown, in which case ``send`` raises
``DeliveryInterruptedError`` and no outcome is reported.
"""

import threading
from typing import Callable, Optional

from dispatch_worker.logging import get_logger

from .models import DeliveryInterruptedError, DeliveryOutcome
from .transport import MailTransport

logger = get_logger(__name__, component="mailer")


class Mailer:
    """Sends one email through a transport, retrying failed attempts.

    Permanent and transient failures are treated alike: every exception from
    the transport counts as a failed attempt.
    """

    def __init__(
        self,
        transport: MailTransport,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        max_backoff: float = 60.0,
        sleep: Optional[Callable[[float], object]] = None,
    ):
        """
        Args:
            transport: Mail transport used for each attempt
            max_retries: Retries after the first attempt (0 disables retrying)
            backoff_base: Delay before the first retry, doubled for each later retry
            max_backoff: Upper bound for a single delay
            sleep: Blocking wait function (injectable for tests); by default
                waits on an internal event so ``interrupt()`` ends it early
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        self.transport = transport
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.max_backoff = max_backoff
        self._sleep = sleep
        self._interrupted = threading.Event()

    def backoff_delay(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (0-based): base * 2**n, clamped."""
        return min(self.backoff_base * (2 ** retry_number), self.max_backoff)

    def interrupt(self) -> None:
        """End pending backoff waits and refuse further retries. Irreversible."""
        self._interrupted.set()

    @property
    def interrupted(self) -> bool:
        return self._interrupted.is_set()

    def _wait(self, delay: float) -> bool:
        """Wait out one backoff delay; False if interrupted."""
        if self._sleep is not None:
            self._sleep(delay)
        else:
            self._interrupted.wait(delay)
        return not self._interrupted.is_set()

    def send(
        self,
        recipient_address: str,
        subject: str,
        text_body: str,
        html_body: Optional[str] = None,
    ) -> DeliveryOutcome:
        """Deliver one email, retrying with backoff until success or exhaustion.

        Returns:
            DeliveryOutcome carrying the provider token on success or the last
            error message once all attempts have failed

        Raises:
            DeliveryInterruptedError: If ``interrupt()`` ended a backoff wait
        """
        max_attempts = self.max_retries + 1
        last_error: Optional[str] = None

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = self.backoff_delay(attempt - 2)
                logger.info(
                    f"Retrying delivery to {recipient_address} "
                    f"(attempt {attempt}/{max_attempts}) after {delay:.1f}s",
                    extra={
                        "event": "mailer.retry.scheduled",
                        "attempt": attempt,
                        "delay_seconds": delay,
                    },
                )
                if not self._wait(delay):
                    logger.warning(
                        f"Retry to {recipient_address} abandoned: mailer interrupted",
                        extra={"event": "mailer.retry.interrupted", "attempt": attempt},
                    )
                    raise DeliveryInterruptedError(
                        f"Interrupted before attempt {attempt}/{max_attempts}",
                        attempts=attempt - 1,
                        last_error=last_error,
                    )

            try:
                token = self.transport.send_mail(
                    recipient_address, subject, text_body, html_body
                )
            except Exception as e:
                last_error = str(e) or type(e).__name__
                retry_remaining = attempt < max_attempts
                log = logger.warning if retry_remaining else logger.error
                log(
                    f"Email delivery to {recipient_address} failed "
                    f"(attempt {attempt}/{max_attempts}): {last_error}",
                    extra={
                        "event": "mailer.send.failure",
                        "attempt": attempt,
                        "error_type": type(e).__name__,
                        "retry_remaining": retry_remaining,
                    },
                )
                continue

            logger.info(
                f"Email delivered to {recipient_address} (attempts: {attempt})",
                extra={
                    "event": "mailer.send.success",
                    "attempt": attempt,
                    "token": token,
                },
            )
            return DeliveryOutcome.sent(token, attempts=attempt)

        return DeliveryOutcome.failed(last_error, attempts=max_attempts)
