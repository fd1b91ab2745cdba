"""Data access layer for the notification pipeline.

Repositories wrap a session owned by the caller and return domain models
rather than ORM rows. They never commit; ``Database.session()`` does.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from dispatch_worker.domain.models import DeliveryState, Notification, PendingDelivery

from .exceptions import DataIntegrityError, PersistenceError
from .schema import NotificationModel, UserModel

logger = logging.getLogger(__name__)


class NotificationRepository:
    """Repository for notification reads and delivery-state writes."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, notification_id: str) -> Optional[Notification]:
        """Retrieve a notification by id regardless of its state.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(NotificationModel, notification_id)
            return model.to_domain() if model is not None else None

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving notification {notification_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve notification: {e}") from e

    def get_pending_delivery(self, notification_id: str) -> Optional[PendingDelivery]:
        """Load a pending notification joined with its recipient.

        Filtering on the pending state here is the idempotency guard: sent,
        failed and unknown ids all come back as None.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                select(NotificationModel, UserModel)
                .join(UserModel, NotificationModel.user_id == UserModel.id)
                .where(
                    NotificationModel.id == notification_id,
                    NotificationModel.sent_status == DeliveryState.PENDING.value,
                )
            )
            row = self.session.execute(stmt).first()

            if row is None:
                return None

            notification_model, user_model = row
            return PendingDelivery(
                notification=notification_model.to_domain(),
                recipient=user_model.to_domain(),
            )

        except SQLAlchemyError as e:
            logger.error(
                f"Error loading pending notification {notification_id}: {e}", exc_info=True
            )
            raise PersistenceError(f"Failed to load pending notification: {e}") from e

    def list_pending_ids(self, created_before: datetime, limit: int) -> List[str]:
        """Ids of pending notifications created at or before ``created_before``, oldest first.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                select(NotificationModel.id)
                .where(
                    NotificationModel.sent_status == DeliveryState.PENDING.value,
                    NotificationModel.created_at <= created_before,
                )
                .order_by(NotificationModel.created_at.asc(), NotificationModel.id.asc())
                .limit(limit)
            )
            return list(self.session.execute(stmt).scalars().all())

        except SQLAlchemyError as e:
            logger.error(f"Error listing pending notifications: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list pending notifications: {e}") from e

    def record_outcome(
        self,
        notification_id: str,
        state: DeliveryState,
        detail: Optional[str],
        sent_at: datetime,
    ) -> bool:
        """Move a notification out of pending, only if it is still pending.

        A single conditional UPDATE; the state check and the write are one
        statement, so of two concurrent callers exactly one wins.

        Returns:
            True if the row was updated, False if it was no longer pending

        Raises:
            ValueError: If ``state`` is not terminal
            PersistenceError: If database error occurs
        """
        if not state.is_terminal:
            raise ValueError(f"Cannot record non-terminal state: {state.value}")

        try:
            stmt = (
                update(NotificationModel)
                .where(
                    NotificationModel.id == notification_id,
                    NotificationModel.sent_status == DeliveryState.PENDING.value,
                )
                .values(sent_status=state.value, sent_at=sent_at, email_result=detail)
                .execution_options(synchronize_session=False)
            )
            result = self.session.execute(stmt)
            return result.rowcount == 1

        except IntegrityError as e:
            logger.error(f"Integrity error recording outcome for {notification_id}: {e}")
            raise DataIntegrityError(f"Failed to record outcome: {e}") from e
        except SQLAlchemyError as e:
            logger.error(
                f"Error recording outcome for {notification_id}: {e}", exc_info=True
            )
            raise PersistenceError(f"Failed to record outcome: {e}") from e

    def count_by_state(self, state: DeliveryState) -> int:
        """Number of notifications in ``state``.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = select(func.count()).select_from(NotificationModel).where(
                NotificationModel.sent_status == state.value
            )
            return int(self.session.execute(stmt).scalar_one())

        except SQLAlchemyError as e:
            logger.error(f"Error counting notifications: {e}", exc_info=True)
            raise PersistenceError(f"Failed to count notifications: {e}") from e
