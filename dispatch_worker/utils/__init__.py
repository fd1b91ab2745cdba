"""Small shared helpers."""

from .timestamps import ensure_utc, format_timestamp, utc_now, utc_now_minus

__all__ = [
    "utc_now",
    "utc_now_minus",
    "ensure_utc",
    "format_timestamp",
]
