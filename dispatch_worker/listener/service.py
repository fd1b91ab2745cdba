"""Channel listener: turns channel notifications into dispatch calls."""

import threading
from typing import Callable

from dispatch_worker.logging import get_logger
from dispatch_worker.logging.context import log_context

from .exceptions import MalformedEventError
from .payloads import parse_event_payload

logger = get_logger(__name__, component="listener")


class ChannelListener:
    """Long-running loop over a subscription.

    Each payload is parsed and the resulting notification id is handed to
    ``on_event``, which must return quickly (the dispatcher only queues the
    work). Malformed payloads are logged and dropped. ``SubscriptionLostError``
    from the subscription propagates out of ``run``.
    """

    def __init__(
        self,
        subscription,
        on_event: Callable[[str], object],
        poll_interval: float = 1.0,
    ):
        """
        Args:
            subscription: Object with open(), poll(timeout) and close()
            on_event: Called with each notification id
            poll_interval: Longest wait for a notification before checking
                for a stop request
        """
        self.subscription = subscription
        self.on_event = on_event
        self.poll_interval = poll_interval
        self._stop_event = threading.Event()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> None:
        """Subscribe and dispatch events until ``stop()`` is called.

        Raises:
            SubscriptionLostError: If the subscription cannot be opened or drops
        """
        if not self.subscription.is_open:
            self.subscription.open()

        logger.info(
            "Channel listener started",
            extra={"event": "listener.started", "poll_interval": self.poll_interval},
        )

        while not self._stop_event.is_set():
            for payload in self.subscription.poll(self.poll_interval):
                self.handle_payload(payload)

        logger.info("Channel listener stopped", extra={"event": "listener.stopped"})

    def handle_payload(self, payload) -> bool:
        """Parse one payload and dispatch it.

        Returns:
            True if an id was dispatched, False if the payload was dropped
        """
        try:
            notification_id = parse_event_payload(payload)
        except MalformedEventError as e:
            logger.warning(
                f"Dropping malformed channel payload: {e}",
                extra={"event": "listener.payload.malformed", "payload": _truncate(payload)},
            )
            return False

        logger.debug(
            f"Received event for notification {notification_id}",
            extra={"event": "listener.event.received", "notification_id": notification_id},
        )

        try:
            with log_context(operation="live_event"):
                self.on_event(notification_id)
        except Exception as e:
            # The row stays pending and the next sweep picks it up
            logger.error(
                f"Failed to dispatch notification {notification_id}: {e}",
                exc_info=True,
                extra={"event": "listener.dispatch.failed", "notification_id": notification_id},
            )
            return False

        return True

    def stop(self) -> None:
        """Ask ``run`` to return after the current poll. Safe from signal handlers."""
        self._stop_event.set()

    def close(self) -> None:
        self.subscription.close()


def _truncate(payload, limit: int = 200) -> str:
    text = payload if isinstance(payload, str) else repr(payload)
    return text if len(text) <= limit else text[:limit] + "..."
