"""Durable recording of delivery outcomes."""

from datetime import datetime
from typing import Optional

from dispatch_worker.domain.models import DeliveryState
from dispatch_worker.logging import get_logger
from dispatch_worker.notifications.models import DeliveryOutcome
from dispatch_worker.persistence.database import Database
from dispatch_worker.persistence.repositories import NotificationRepository
from dispatch_worker.utils.timestamps import utc_now

logger = get_logger(__name__, component="recorder")


class StatusRecorder:
    """Writes the terminal state of a notification exactly once.

    The write is a single conditional update guarded by ``sent_status =
    'pending'``; a notification that already left pending is left untouched.
    """

    def __init__(self, database: Database):
        self.database = database

    def record(
        self,
        notification_id: str,
        outcome: DeliveryOutcome,
        recorded_at: Optional[datetime] = None,
    ) -> bool:
        """Persist ``outcome`` for a notification.

        Returns:
            True if this call moved the row out of pending, False if it was
            no longer pending

        Raises:
            PersistenceError: If the update fails
        """
        state = DeliveryState.SENT if outcome.success else DeliveryState.FAILED

        with self.database.session() as session:
            written = NotificationRepository(session).record_outcome(
                notification_id,
                state,
                outcome.detail,
                recorded_at or utc_now(),
            )

        if written:
            logger.info(
                f"Notification {notification_id} marked as {state.value}",
                extra={
                    "event": "recorder.state.written",
                    "notification_id": notification_id,
                    "state": state.value,
                },
            )
        else:
            logger.warning(
                f"Notification {notification_id} was no longer pending; outcome not recorded",
                extra={
                    "event": "recorder.state.conflict",
                    "notification_id": notification_id,
                    "state": state.value,
                },
            )

        return written
