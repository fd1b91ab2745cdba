"""Unit tests for the channel listener, payload parsing and the psycopg2 subscription."""

import json
from unittest.mock import MagicMock, Mock, patch

import psycopg2
import pytest

from dispatch_worker.listener import (
    ChannelListener,
    MalformedEventError,
    PostgresSubscription,
    SubscriptionLostError,
    parse_event_payload,
)
from dispatch_worker.logging.context import get_log_context

from tests.helpers import FakeSubscription


class TestParseEventPayload:
    def test_row_json_payload(self):
        payload = json.dumps(
            {"id": "N1", "user_id": "U1", "title": "t", "message": "m", "sent_status": "pending"}
        )
        assert parse_event_payload(payload) == "N1"

    def test_integer_id_is_normalized(self):
        assert parse_event_payload('{"id": 42}') == "42"

    def test_bytes_payload(self):
        assert parse_event_payload(b'{"id": "N1"}') == "N1"

    def test_id_is_stripped(self):
        assert parse_event_payload('{"id": "  N1 "}') == "N1"

    @pytest.mark.parametrize(
        "payload",
        [
            "",
            "   ",
            "not json",
            "[1, 2]",
            '"N1"',
            "{}",
            '{"id": null}',
            '{"id": ""}',
            '{"id": "   "}',
            '{"id": true}',
            '{"id": {"nested": 1}}',
            b"\xff\xfe",
            None,
        ],
    )
    def test_malformed_payloads(self, payload):
        with pytest.raises(MalformedEventError):
            parse_event_payload(payload)


class TestChannelListener:
    def _listener(self, payloads, on_event, **kwargs):
        subscription = FakeSubscription(payloads, **kwargs)
        listener = ChannelListener(subscription, on_event, poll_interval=0.01)
        if not kwargs.get("lose_after"):
            subscription.on_drained = listener.stop
        return listener, subscription

    def test_dispatches_each_event(self):
        on_event = Mock()
        listener, subscription = self._listener(['{"id": "N1"}', '{"id": "N2"}'], on_event)

        listener.run()

        assert [c.args[0] for c in on_event.call_args_list] == ["N1", "N2"]
        assert subscription.opened == 1

    def test_events_are_dispatched_in_live_event_scope(self):
        contexts = []

        def on_event(notification_id):
            contexts.append(get_log_context())

        listener, _ = self._listener(['{"id": "N1"}'], on_event)

        listener.run()

        assert contexts == [{"operation": "live_event"}]
        assert get_log_context() == {}

    def test_malformed_payload_is_dropped_and_listening_continues(self):
        on_event = Mock()
        listener, _ = self._listener(["{broken", '{"id": "N2"}'], on_event)

        listener.run()

        on_event.assert_called_once_with("N2")

    def test_dispatch_error_does_not_stop_listener(self):
        on_event = Mock(side_effect=[RuntimeError("pool closed"), None])
        listener, _ = self._listener(['{"id": "N1"}', '{"id": "N2"}'], on_event)

        listener.run()

        assert on_event.call_count == 2

    def test_subscription_loss_propagates(self):
        on_event = Mock()
        listener, _ = self._listener(['{"id": "N1"}'], on_event, lose_after=True)

        with pytest.raises(SubscriptionLostError):
            listener.run()

        on_event.assert_called_once_with("N1")

    def test_open_subscription_is_reused(self):
        listener, subscription = self._listener([], Mock())
        subscription.open()

        listener.run()

        assert subscription.opened == 1

    def test_stop_before_run_returns_immediately(self):
        listener, subscription = self._listener(['{"id": "N1"}'], Mock())
        listener.stop()

        listener.run()

        assert listener.stopping
        assert subscription.polls == 0

    def test_close_closes_subscription(self):
        listener, subscription = self._listener([], Mock())
        listener.close()
        assert subscription.closed == 1


class TestPostgresSubscription:
    def _connection(self):
        conn = MagicMock()
        conn.closed = 0
        conn.notifies = []
        return conn

    def test_open_listens_on_quoted_channel(self):
        conn = self._connection()
        connect = Mock(return_value=conn)
        subscription = PostgresSubscription("postgresql://u:p@db/bc", "notification_channel", connect=connect)

        subscription.open()

        connect.assert_called_once_with("postgresql://u:p@db/bc")
        conn.set_isolation_level.assert_called_once()
        cursor = conn.cursor.return_value.__enter__.return_value
        cursor.execute.assert_called_once()
        assert subscription.is_open

    def test_open_failure_is_subscription_lost(self):
        connect = Mock(side_effect=psycopg2.OperationalError("could not connect"))
        subscription = PostgresSubscription("dsn", "notification_channel", connect=connect)

        with pytest.raises(SubscriptionLostError, match="could not connect"):
            subscription.open()

        assert not subscription.is_open

    def test_poll_drains_notifications(self):
        conn = self._connection()

        def fill():
            conn.notifies.extend([Mock(payload='{"id": "N1"}'), Mock(payload='{"id": "N2"}')])

        conn.poll.side_effect = fill
        subscription = PostgresSubscription("dsn", "c", connect=Mock(return_value=conn))
        subscription.open()

        with patch("dispatch_worker.listener.subscription.select.select", return_value=([conn], [], [])):
            assert subscription.poll(1.0) == ['{"id": "N1"}', '{"id": "N2"}']

        assert conn.notifies == []

    def test_poll_timeout_returns_nothing(self):
        conn = self._connection()
        subscription = PostgresSubscription("dsn", "c", connect=Mock(return_value=conn))
        subscription.open()

        with patch("dispatch_worker.listener.subscription.select.select", return_value=([], [], [])):
            assert subscription.poll(0.5) == []

        conn.poll.assert_not_called()

    def test_poll_error_is_subscription_lost(self):
        conn = self._connection()
        conn.poll.side_effect = psycopg2.OperationalError("server closed the connection unexpectedly")
        subscription = PostgresSubscription("dsn", "c", connect=Mock(return_value=conn))
        subscription.open()

        with patch("dispatch_worker.listener.subscription.select.select", return_value=([conn], [], [])):
            with pytest.raises(SubscriptionLostError, match="server closed"):
                subscription.poll(1.0)

    def test_poll_when_closed_is_subscription_lost(self):
        subscription = PostgresSubscription("dsn", "c", connect=Mock())

        with pytest.raises(SubscriptionLostError, match="not open"):
            subscription.poll(1.0)

    def test_close_is_idempotent(self):
        conn = self._connection()
        subscription = PostgresSubscription("dsn", "c", connect=Mock(return_value=conn))
        subscription.open()

        subscription.close()
        subscription.close()

        conn.close.assert_called_once()
        assert not subscription.is_open
