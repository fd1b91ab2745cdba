"""Notification processor: fetch, compose, send, record.

``process`` is the single unit of work shared by live channel events and
recovery sweeps. It is safe to call repeatedly and concurrently for the same
id: a pending-state filter on the fetch, an in-process in-flight set and the
conditional update in the recorder together ensure one send and one write
per notification within a worker.
"""

import threading
from typing import Optional, Set

from dispatch_worker.logging import get_logger
from dispatch_worker.logging.context import log_context
from dispatch_worker.notifications.mailer import Mailer
from dispatch_worker.notifications.models import (
    DeliveryInterruptedError,
    NotificationTemplateError,
)
from dispatch_worker.notifications.templates import TemplateRenderer
from dispatch_worker.persistence.database import Database
from dispatch_worker.persistence.exceptions import PersistenceError
from dispatch_worker.persistence.repositories import NotificationRepository

from .models import ERROR, FAILED, IN_FLIGHT, INTERRUPTED, SENT, SKIPPED, ProcessResult
from .recorder import StatusRecorder

logger = get_logger(__name__, component="processor")


class NotificationProcessor:
    """Turns a notification id into a sent (or failed) email and a recorded state."""

    def __init__(
        self,
        database: Database,
        mailer: Mailer,
        renderer: Optional[TemplateRenderer] = None,
        recorder: Optional[StatusRecorder] = None,
        send_html: bool = True,
    ):
        """
        Args:
            database: Database used for the pending-notification lookup
            mailer: Mailer used for delivery (retries included)
            renderer: Template renderer (creates default if None)
            recorder: Status recorder (creates one on ``database`` if None)
            send_html: Attach the HTML alternative to each email
        """
        self.database = database
        self.mailer = mailer
        self.renderer = renderer or TemplateRenderer()
        self.recorder = recorder or StatusRecorder(database)
        self.send_html = send_html

        self._in_flight: Set[str] = set()
        self._in_flight_lock = threading.Lock()

    def process(self, notification_id: str) -> ProcessResult:
        """Process one notification id end to end.

        Never raises for expected failures; the returned status tells what
        happened. Rows that hit a fetch, render or record error, or whose
        retries were interrupted by shutdown, stay pending for the next
        recovery sweep.
        """
        if not self._claim(notification_id):
            logger.debug(
                f"Notification {notification_id} is already being processed",
                extra={"event": "processor.skipped.in_flight", "notification_id": notification_id},
            )
            return ProcessResult(notification_id, IN_FLIGHT, detail="already in flight")

        try:
            with log_context(notification_id=notification_id):
                return self._process(notification_id)
        finally:
            self._release(notification_id)

    def _process(self, notification_id: str) -> ProcessResult:
        try:
            with self.database.session() as session:
                delivery = NotificationRepository(session).get_pending_delivery(notification_id)
        except PersistenceError as e:
            logger.error(
                f"Could not load notification {notification_id}: {e}",
                extra={"event": "processor.fetch.failed"},
            )
            return ProcessResult(notification_id, ERROR, detail=str(e))

        if delivery is None:
            logger.info(
                f"Notification {notification_id} not found or already processed",
                extra={"event": "processor.skipped.not_pending"},
            )
            return ProcessResult(notification_id, SKIPPED, detail="not pending")

        try:
            bodies = self.renderer.render(
                self.renderer.build_context(delivery), include_html=self.send_html
            )
        except NotificationTemplateError as e:
            logger.error(
                f"Could not compose email for notification {notification_id}: {e}",
                extra={"event": "processor.compose.failed"},
            )
            return ProcessResult(notification_id, ERROR, detail=str(e))

        recipient = delivery.recipient
        logger.info(
            f"Sending notification {notification_id} to {recipient.email}",
            extra={"event": "processor.send.started", "recipient_id": recipient.id},
        )

        try:
            outcome = self.mailer.send(
                recipient.email,
                delivery.notification.title,
                bodies["text_body"],
                bodies["html_body"],
            )
        except DeliveryInterruptedError as e:
            logger.warning(
                f"Delivery of notification {notification_id} interrupted by shutdown "
                f"after {e.attempts} attempt(s); left pending",
                extra={"event": "processor.send.interrupted", "attempts": e.attempts},
            )
            return ProcessResult(
                notification_id, INTERRUPTED, attempts=e.attempts, detail=e.last_error
            )

        status = SENT if outcome.success else FAILED

        try:
            recorded = self.recorder.record(notification_id, outcome)
        except PersistenceError as e:
            logger.error(
                f"Email for notification {notification_id} was {status} "
                f"but the outcome could not be recorded: {e}",
                extra={"event": "processor.record.failed", "delivery_status": status},
            )
            recorded = False

        logger.info(
            f"Processed notification {notification_id}: {status} "
            f"after {outcome.attempts} attempt(s)",
            extra={
                "event": "processor.completed",
                "delivery_status": status,
                "attempts": outcome.attempts,
                "recorded": recorded,
            },
        )

        return ProcessResult(
            notification_id,
            status,
            attempts=outcome.attempts,
            recorded=recorded,
            detail=outcome.detail,
        )

    def _claim(self, notification_id: str) -> bool:
        with self._in_flight_lock:
            if notification_id in self._in_flight:
                return False
            self._in_flight.add(notification_id)
            return True

    def _release(self, notification_id: str) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(notification_id)

    @property
    def in_flight_count(self) -> int:
        with self._in_flight_lock:
            return len(self._in_flight)
