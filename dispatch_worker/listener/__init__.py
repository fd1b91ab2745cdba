"""Event channel subscription and payload handling."""

from .exceptions import ListenerError, MalformedEventError, SubscriptionLostError
from .payloads import parse_event_payload
from .service import ChannelListener
from .subscription import PostgresSubscription

__all__ = [
    "ChannelListener",
    "PostgresSubscription",
    "parse_event_payload",
    "ListenerError",
    "MalformedEventError",
    "SubscriptionLostError",
]
