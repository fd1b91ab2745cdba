"""Unit tests for the domain models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from dispatch_worker.domain.models import (
    DeliveryState,
    Notification,
    PendingDelivery,
    Recipient,
    Urgency,
)


def _notification(**overrides):
    data = {
        "id": "N1",
        "recipient_id": "U1",
        "title": "Urgent: O- needed",
        "body": "Please respond",
    }
    data.update(overrides)
    return Notification(**data)


class TestDeliveryState:
    def test_terminal_states(self):
        assert not DeliveryState.PENDING.is_terminal
        assert DeliveryState.SENT.is_terminal
        assert DeliveryState.FAILED.is_terminal


class TestUrgency:
    def test_ordering_by_rank(self):
        ranks = [u.rank for u in (Urgency.LOW, Urgency.MEDIUM, Urgency.HIGH, Urgency.CRITICAL)]
        assert ranks == sorted(ranks)
        assert len(set(ranks)) == 4

    def test_case_insensitive_lookup(self):
        assert Urgency("critical") is Urgency.CRITICAL
        assert Urgency(" HIGH ") is Urgency.HIGH

    def test_unknown_value(self):
        with pytest.raises(ValueError):
            Urgency("Extreme")


class TestNotification:
    def test_defaults(self):
        notification = _notification()

        assert notification.delivery_state is DeliveryState.PENDING
        assert notification.is_pending
        assert notification.urgency is None
        assert notification.sent_at is None

    def test_urgency_coercion(self):
        assert _notification(urgency="medium").urgency is Urgency.MEDIUM
        assert _notification(urgency="unheard-of").urgency is None

    def test_timestamps_normalized_to_utc(self):
        notification = _notification(
            created_at=datetime(2025, 1, 1, 12, 0, 0),
            sent_at=datetime(2025, 1, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2))),
        )

        assert notification.created_at.tzinfo == timezone.utc
        assert notification.sent_at == datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def test_sent_is_not_pending(self):
        assert not _notification(delivery_state="sent").is_pending

    def test_missing_required_field(self):
        with pytest.raises(ValidationError):
            Notification(id="N1", recipient_id="U1", title="t")


def test_pending_delivery_exposes_notification_id():
    delivery = PendingDelivery(
        notification=_notification(),
        recipient=Recipient(id="U1", email="a@x.org", display_name="Ana"),
    )

    assert delivery.notification_id == "N1"
