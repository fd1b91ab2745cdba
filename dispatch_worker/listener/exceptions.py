"""Exceptions raised by the channel listener."""


class ListenerError(Exception):
    """Base exception for listener errors."""

    pass


class SubscriptionLostError(ListenerError):
    """The LISTEN connection failed or dropped; the worker cannot continue."""

    pass


class MalformedEventError(ListenerError):
    """A channel payload could not be turned into a notification id."""

    pass
