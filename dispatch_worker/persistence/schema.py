"""Database schema definition and ORM models.

The ``users`` and ``notifications`` tables belong to the Blood Connect
application; only the columns the dispatch pipeline touches are mapped here.
``create_schema`` exists for local databases and tests, and
``install_notify_trigger`` installs the PostgreSQL trigger that feeds the
event channel.
"""

import logging

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from dispatch_worker.domain.models import DeliveryState, Notification, Recipient

logger = logging.getLogger(__name__)

Base = declarative_base()


class UserModel(Base):
    """ORM model for the users table (read-only to the worker)."""

    __tablename__ = "users"

    id = Column(Text, primary_key=True, nullable=False)
    email = Column(Text, nullable=False, unique=True)
    full_name = Column(Text, nullable=False)

    def to_domain(self) -> Recipient:
        return Recipient(id=self.id, email=self.email, display_name=self.full_name)


class NotificationModel(Base):
    """ORM model for the notifications table.

    ``sent_status`` moves from 'pending' to 'sent' or 'failed' exactly once,
    via the conditional update in NotificationRepository.record_outcome.
    """

    __tablename__ = "notifications"

    id = Column(Text, primary_key=True, nullable=False)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    urgency = Column(Text, nullable=True)

    sent_status = Column(
        String(16),
        nullable=False,
        default=DeliveryState.PENDING.value,
        server_default=DeliveryState.PENDING.value,
    )
    sent_at = Column(DateTime(timezone=True), nullable=True)
    email_result = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    __table_args__ = (
        Index("idx_notifications_status_created", "sent_status", "created_at"),
    )

    def to_domain(self) -> Notification:
        return Notification(
            id=self.id,
            recipient_id=self.user_id,
            title=self.title,
            body=self.message,
            urgency=self.urgency,
            delivery_state=DeliveryState(self.sent_status),
            sent_at=self.sent_at,
            delivery_detail=self.email_result,
            created_at=self.created_at,
        )


def create_schema(engine: Engine) -> None:
    """Create the tables if they don't exist (idempotent)."""
    logger.info("Creating database schema if not exists")

    try:
        Base.metadata.create_all(engine, checkfirst=True)

        from sqlalchemy import inspect

        tables = inspect(engine).get_table_names()
        logger.info(f"Database schema ready. Tables: {', '.join(tables)}")

    except Exception as e:
        logger.error(f"Failed to create database schema: {e}", exc_info=True)
        raise


NOTIFY_FUNCTION_SQL = """
CREATE OR REPLACE FUNCTION notify_new_notification()
RETURNS TRIGGER AS $$
BEGIN
    PERFORM pg_notify('{channel}', row_to_json(NEW)::text);
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;
"""

DROP_TRIGGER_SQL = "DROP TRIGGER IF EXISTS trigger_notify_new_notification ON notifications;"

CREATE_TRIGGER_SQL = """
CREATE TRIGGER trigger_notify_new_notification
AFTER INSERT ON notifications
FOR EACH ROW
EXECUTE FUNCTION notify_new_notification();
"""


def install_notify_trigger(engine: Engine, channel: str) -> bool:
    """Install the insert trigger that publishes new notifications on ``channel``.

    The channel name must already be validated as a plain identifier
    (ListenerConfig does this). Only PostgreSQL has LISTEN/NOTIFY, so other
    dialects are skipped.

    Returns:
        True if the trigger was installed, False if the dialect was skipped
    """
    if engine.dialect.name != "postgresql":
        logger.warning(
            f"Skipping notify trigger: dialect '{engine.dialect.name}' has no LISTEN/NOTIFY"
        )
        return False

    with engine.begin() as conn:
        conn.execute(text(NOTIFY_FUNCTION_SQL.format(channel=channel)))
        conn.execute(text(DROP_TRIGGER_SQL))
        conn.execute(text(CREATE_TRIGGER_SQL))

    logger.info(f"Notify trigger installed on channel '{channel}'")
    return True
