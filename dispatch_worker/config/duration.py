"""Duration parsing utilities for configuration."""

import re
from typing import Union


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed."""

    pass


_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
}


def parse_duration(duration: Union[str, int, float], allow_zero: bool = False) -> int:
    """
    Parse a duration to whole seconds.

    Supports both human-readable formats and ISO-8601 durations:
    - Human-readable: "30s", "15m", "1h", "1h30m"
    - ISO-8601: "PT30S", "PT15M", "PT1H"
    - Plain numbers are taken as seconds

    Args:
        duration: Duration string or number of seconds
        allow_zero: Accept a zero duration (used for "disabled" settings)

    Returns:
        Duration in seconds

    Raises:
        DurationParseError: If the duration is invalid

    Examples:
        >>> parse_duration("30s")
        30
        >>> parse_duration("PT5M")
        300
    """
    if isinstance(duration, bool):
        raise DurationParseError(f"Invalid duration: {duration!r}")

    if isinstance(duration, (int, float)):
        seconds = int(duration)
        if seconds < 0:
            raise DurationParseError(f"Duration cannot be negative: {duration}")
        return _check_zero(seconds, str(duration), allow_zero)

    duration_str = duration.strip()

    if not duration_str:
        raise DurationParseError("Duration string cannot be empty")

    if duration_str.isdigit():
        return _check_zero(int(duration_str), duration_str, allow_zero)

    if duration_str.upper().startswith("P"):
        seconds = _parse_iso8601_duration(duration_str)
    else:
        seconds = _parse_human_readable_duration(duration_str)

    return _check_zero(seconds, duration_str, allow_zero)


def _check_zero(seconds: int, raw: str, allow_zero: bool) -> int:
    if seconds == 0 and not allow_zero:
        raise DurationParseError(f"Duration cannot be zero: '{raw}'")
    return seconds


def _parse_iso8601_duration(duration_str: str) -> int:
    """Parse P[n]D, PT[n]H[n]M[n]S and simplified forms."""
    duration_str = duration_str.upper()

    pattern = r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$"
    match = re.match(pattern, duration_str)

    if not match:
        raise DurationParseError(
            f"Invalid ISO-8601 duration format: '{duration_str}'. "
            "Expected format like 'PT30S', 'PT5M' or 'PT1H'"
        )

    days, hours, minutes, seconds = match.groups()

    total_seconds = 0
    if days:
        total_seconds += int(days) * _UNIT_SECONDS["d"]
    if hours:
        total_seconds += int(hours) * _UNIT_SECONDS["h"]
    if minutes:
        total_seconds += int(minutes) * _UNIT_SECONDS["m"]
    if seconds:
        total_seconds += int(float(seconds))

    return total_seconds


def _parse_human_readable_duration(duration_str: str) -> int:
    """Parse 30s, 15m, 1h, 2d and combinations such as 1h30m."""
    matches = re.findall(r"(\d+)\s*([smhd])", duration_str.lower())

    if not matches:
        raise DurationParseError(
            f"Invalid duration format: '{duration_str}'. "
            "Expected format like '30s', '5m', '1h', or combinations like '1h30m'"
        )

    # Reject leftovers such as "5m abc"
    parsed_str = "".join(f"{num}{unit}" for num, unit in matches)
    cleaned_input = re.sub(r"\s+", "", duration_str.lower())
    if parsed_str != cleaned_input:
        raise DurationParseError(
            f"Invalid characters in duration: '{duration_str}'. "
            "Use only digits and units: s (seconds), m (minutes), h (hours), d (days)"
        )

    return sum(int(num) * _UNIT_SECONDS[unit] for num, unit in matches)


def validate_duration_range(
    duration_seconds: int,
    min_seconds: int,
    max_seconds: int,
    label: str = "Duration",
) -> None:
    """
    Validate that a duration is within acceptable range.

    Raises:
        DurationParseError: If duration is outside the valid range
    """
    if duration_seconds < min_seconds:
        raise DurationParseError(
            f"{label} too short: {seconds_to_human_readable(duration_seconds)}. "
            f"Minimum is {seconds_to_human_readable(min_seconds)}."
        )

    if duration_seconds > max_seconds:
        raise DurationParseError(
            f"{label} too long: {seconds_to_human_readable(duration_seconds)}. "
            f"Maximum is {seconds_to_human_readable(max_seconds)}."
        )


def seconds_to_human_readable(seconds: int) -> str:
    """Convert seconds to a short phrase such as "5 minutes"."""
    if seconds < 60:
        return f"{seconds} second{'s' if seconds != 1 else ''}"
    elif seconds < 3600:
        minutes = seconds // 60
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    elif seconds < 86400:
        hours = seconds // 3600
        return f"{hours} hour{'s' if hours != 1 else ''}"
    days = seconds // 86400
    return f"{days} day{'s' if days != 1 else ''}"
