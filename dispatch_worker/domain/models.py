"""Core domain models for notifications and their recipients.

This module defines the data structures the dispatch pipeline works with:
- Notification: one message owed to one recipient, with its delivery state
- Recipient: the read-only contact data of a user
- PendingDelivery: a pending notification joined with its recipient
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from dispatch_worker.utils.timestamps import ensure_utc


class DeliveryState(str, Enum):
    """Lifecycle stage of a notification with respect to email dispatch."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not DeliveryState.PENDING


class Urgency(str, Enum):
    """Ordered urgency levels. Stored for operators; delivery ignores it."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _URGENCY_RANK[self]

    @classmethod
    def _missing_(cls, value: object):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


_URGENCY_RANK = {
    Urgency.LOW: 0,
    Urgency.MEDIUM: 1,
    Urgency.HIGH: 2,
    Urgency.CRITICAL: 3,
}


class Recipient(BaseModel):
    """Contact data of the user a notification is addressed to.

    Owned by the account-management side of the application; the pipeline
    only reads it.
    """

    id: str = Field(..., description="User ID")
    email: str = Field(..., description="Delivery address")
    display_name: str = Field(..., description="Name used in the greeting")


class Notification(BaseModel):
    """A persisted notification record."""

    id: str = Field(..., description="Unique notification ID")
    recipient_id: str = Field(..., description="ID of the user to notify")
    title: str = Field(..., description="Used verbatim as the email subject")
    body: str = Field(..., description="Message text")
    urgency: Optional[Urgency] = Field(None, description="Informational urgency level")
    delivery_state: DeliveryState = Field(DeliveryState.PENDING)
    sent_at: Optional[datetime] = Field(None, description="Set when leaving pending (UTC)")
    delivery_detail: Optional[str] = Field(
        None, description="Provider message id on success, last error on failure"
    )
    created_at: Optional[datetime] = Field(None, description="Creation time (UTC)")

    @field_validator("urgency", mode="before")
    @classmethod
    def coerce_urgency(cls, v: Any) -> Optional[Urgency]:
        """Accept any casing; unknown labels are kept out of the way as None."""
        if v is None or isinstance(v, Urgency):
            return v
        try:
            return Urgency(v)
        except ValueError:
            return None

    @field_validator("sent_at", "created_at")
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def is_pending(self) -> bool:
        return self.delivery_state is DeliveryState.PENDING


class PendingDelivery(BaseModel):
    """A pending notification together with the recipient's contact data."""

    notification: Notification
    recipient: Recipient

    @property
    def notification_id(self) -> str:
        return self.notification.id
