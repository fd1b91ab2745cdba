"""Unit tests for the retrying mailer."""

from unittest.mock import Mock

import threading
import time

import pytest

from dispatch_worker.notifications.mailer import Mailer
from dispatch_worker.notifications.models import (
    DeliveryInterruptedError,
    DeliveryOutcome,
    MailDeliveryError,
)

from tests.helpers import FakeTransport


class TestMailerSend:
    """Tests for Mailer.send retry behaviour."""

    def test_success_on_first_attempt(self):
        transport = FakeTransport()
        sleep = Mock()
        mailer = Mailer(transport, sleep=sleep)

        outcome = mailer.send("a@x.org", "Urgent: O- needed", "Hello Ana", "<p>Hello</p>")

        assert outcome == DeliveryOutcome(success=True, detail="<msg-1@test>", attempts=1)
        assert transport.sent == [("a@x.org", "Urgent: O- needed", "Hello Ana", "<p>Hello</p>")]
        sleep.assert_not_called()

    def test_fails_three_times_then_succeeds(self):
        """Test backoff delays of 1s, 2s, 4s before the successful 4th attempt."""
        transport = FakeTransport(failures=3)
        sleep = Mock()
        mailer = Mailer(transport, max_retries=3, backoff_base=1.0, sleep=sleep)

        outcome = mailer.send("a@x.org", "Subject", "Body")

        assert outcome.success is True
        assert outcome.detail == "<msg-4@test>"
        assert outcome.attempts == 4
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0, 4.0]

    def test_exhaustion_returns_last_error(self):
        """Test that no 5th attempt is made and the last error is reported."""
        transport = FakeTransport(failures=10, error=MailDeliveryError("SMTP error: 421 try later"))
        sleep = Mock()
        mailer = Mailer(transport, max_retries=3, sleep=sleep)

        outcome = mailer.send("a@x.org", "Subject", "Body")

        assert outcome.success is False
        assert outcome.detail == "SMTP error: 421 try later"
        assert outcome.attempts == 4
        assert transport.attempts == 4
        assert sleep.call_count == 3

    def test_permanent_failures_are_retried_like_transient_ones(self):
        transport = FakeTransport(failures=10, error=ValueError("550 mailbox unavailable"))
        mailer = Mailer(transport, max_retries=2, sleep=Mock())

        outcome = mailer.send("nobody@x.org", "Subject", "Body")

        assert transport.attempts == 3
        assert outcome.detail == "550 mailbox unavailable"

    def test_retries_disabled(self):
        transport = FakeTransport(failures=1)
        sleep = Mock()
        mailer = Mailer(transport, max_retries=0, sleep=sleep)

        outcome = mailer.send("a@x.org", "Subject", "Body")

        assert outcome.success is False
        assert outcome.attempts == 1
        sleep.assert_not_called()

    def test_error_without_message_uses_type_name(self):
        transport = FakeTransport(failures=1, error=TimeoutError())
        mailer = Mailer(transport, max_retries=0, sleep=Mock())

        assert mailer.send("a@x.org", "Subject", "Body").detail == "TimeoutError"

    def test_negative_retries_rejected(self):
        with pytest.raises(ValueError):
            Mailer(FakeTransport(), max_retries=-1)


class TestBackoffDelay:
    def test_delays_double(self):
        mailer = Mailer(FakeTransport(), backoff_base=0.5)

        delays = [mailer.backoff_delay(n) for n in range(4)]

        assert delays == [0.5, 1.0, 2.0, 4.0]
        assert all(a < b for a, b in zip(delays, delays[1:]))

    def test_delay_is_clamped(self):
        mailer = Mailer(FakeTransport(), backoff_base=10, max_backoff=30)

        assert mailer.backoff_delay(5) == 30


def test_delivery_outcome_constructors():
    assert DeliveryOutcome.sent("<id>", attempts=2) == DeliveryOutcome(True, "<id>", 2)
    assert DeliveryOutcome.failed("boom", attempts=4) == DeliveryOutcome(False, "boom", 4)


class TestMailerInterrupt:
    """Tests for cutting backoff waits short during shutdown."""

    def test_interrupt_ends_pending_backoff(self):
        transport = FakeTransport(failures=10, error=MailDeliveryError("SMTP error: 421 try later"))
        mailer = Mailer(transport, max_retries=3, backoff_base=30, max_backoff=60)
        errors = []

        def send():
            try:
                mailer.send("a@x.org", "Subject", "Body")
            except DeliveryInterruptedError as e:
                errors.append(e)

        thread = threading.Thread(target=send)
        started = time.monotonic()
        thread.start()

        deadline = time.monotonic() + 5
        while transport.attempts < 1 and time.monotonic() < deadline:
            time.sleep(0.01)
        mailer.interrupt()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert time.monotonic() - started < 5
        assert mailer.interrupted is True
        assert transport.attempts == 1
        assert errors[0].attempts == 1
        assert errors[0].last_error == "SMTP error: 421 try later"

    def test_interrupted_mailer_makes_no_further_retries(self):
        transport = FakeTransport(failures=1)
        mailer = Mailer(transport, max_retries=3, sleep=Mock())
        mailer.interrupt()

        with pytest.raises(DeliveryInterruptedError):
            mailer.send("a@x.org", "Subject", "Body")

        assert transport.attempts == 1

    def test_success_is_unaffected_by_interrupt(self):
        mailer = Mailer(FakeTransport(), sleep=Mock())
        mailer.interrupt()

        assert mailer.send("a@x.org", "Subject", "Body").success is True
