"""Unit tests for timestamp utilities."""

from datetime import datetime, timedelta, timezone

from dispatch_worker.utils.timestamps import ensure_utc, format_timestamp, utc_now, utc_now_minus


class TestUtcNow:
    """Tests for utc_now and utc_now_minus."""

    def test_utc_now_returns_aware_utc(self):
        before = datetime.now(timezone.utc)
        now = utc_now()
        after = datetime.now(timezone.utc)

        assert now.tzinfo == timezone.utc
        assert before <= now <= after

    def test_utc_now_minus(self):
        before = datetime.now(timezone.utc) - timedelta(seconds=30)
        cutoff = utc_now_minus(30)
        after = datetime.now(timezone.utc) - timedelta(seconds=30)

        assert before <= cutoff <= after


class TestEnsureUtc:
    """Tests for ensure_utc."""

    def test_none(self):
        assert ensure_utc(None) is None

    def test_naive_is_treated_as_utc(self):
        result = ensure_utc(datetime(2025, 1, 1, 12, 0, 0))
        assert result == datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def test_other_timezone_is_converted(self):
        plus_two = timezone(timedelta(hours=2))
        result = ensure_utc(datetime(2025, 1, 1, 14, 0, 0, tzinfo=plus_two))

        assert result.tzinfo == timezone.utc
        assert result.hour == 12


class TestFormatTimestamp:
    """Tests for format_timestamp."""

    def test_format(self):
        dt = datetime(2025, 11, 4, 12, 0, 0, 123456, tzinfo=timezone.utc)

        assert format_timestamp(dt) == "2025-11-04T12:00:00Z"
        assert format_timestamp(dt, include_microseconds=True) == "2025-11-04T12:00:00.123456Z"

    def test_none_formats_as_empty(self):
        assert format_timestamp(None) == ""
