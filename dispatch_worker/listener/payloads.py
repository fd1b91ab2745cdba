"""Parsing of delivery event payloads published on the notification channel.

The insert trigger publishes ``row_to_json(NEW)``, so payloads carry the
whole notification row. Only ``id`` is used: the event is a wake-up signal
and the processor re-reads the authoritative row.
"""

import json
from typing import Any

from .exceptions import MalformedEventError


def parse_event_payload(raw: Any) -> str:
    """Extract the notification id from a raw channel payload.

    Args:
        raw: Payload text (str or bytes)

    Returns:
        The notification id as a non-empty string

    Raises:
        MalformedEventError: If the payload is not a JSON object with a usable id
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEventError(f"Payload is not valid UTF-8: {e}") from e

    if not isinstance(raw, str) or not raw.strip():
        raise MalformedEventError("Payload is empty")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedEventError(f"Payload is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedEventError(
            f"Payload must be a JSON object, got {type(data).__name__}"
        )

    if "id" not in data:
        raise MalformedEventError("Payload has no 'id' field")

    notification_id = data["id"]

    # bool is an int subclass
    if isinstance(notification_id, bool) or not isinstance(notification_id, (str, int)):
        raise MalformedEventError(
            f"Payload 'id' must be a string or integer, got {type(notification_id).__name__}"
        )

    notification_id = str(notification_id).strip()
    if not notification_id:
        raise MalformedEventError("Payload 'id' is blank")

    return notification_id
