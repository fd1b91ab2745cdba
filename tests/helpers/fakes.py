"""In-memory stand-ins for the mail transport and the channel subscription.

Both record every call so tests can assert on what the worker did without
an SMTP server or a PostgreSQL LISTEN connection.
"""

import threading
from collections import deque
from typing import Iterable, List, Optional

from dispatch_worker.listener.exceptions import SubscriptionLostError
from dispatch_worker.notifications.transport import MailTransport


class FakeTransport(MailTransport):
    """Mail transport that fails a configured number of times, then succeeds.

    Attributes:
        sent: (to, subject, text, html) tuples for every attempt
    """

    def __init__(self, failures: int = 0, error: Optional[Exception] = None, delay: float = 0.0):
        self.failures = failures
        self.error = error or RuntimeError("connection refused")
        self.delay = delay
        self.sent: List[tuple] = []
        self._lock = threading.Lock()

    @property
    def attempts(self) -> int:
        with self._lock:
            return len(self.sent)

    def send_mail(self, to, subject, text, html=None) -> str:
        with self._lock:
            self.sent.append((to, subject, text, html))
            attempt = len(self.sent)

        if self.delay:
            threading.Event().wait(self.delay)

        if attempt <= self.failures:
            raise self.error
        return f"<msg-{attempt}@test>"


class FakeSubscription:
    """Subscription that replays queued payloads, then optionally fails.

    Once the queued payloads are exhausted, ``poll`` calls ``on_drained`` so a
    test can stop the listener, then raises ``SubscriptionLostError`` when
    ``lose_after`` is set.
    """

    def __init__(
        self,
        payloads: Iterable = (),
        lose_after: bool = False,
        on_drained=None,
    ):
        self.queue = deque(payloads)
        self.lose_after = lose_after
        self.on_drained = on_drained
        self.opened = 0
        self.closed = 0
        self.polls = 0
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        self.opened += 1
        self._open = True

    def poll(self, timeout: float) -> list:
        self.polls += 1
        if self.queue:
            return [self.queue.popleft()]
        if self.on_drained is not None:
            self.on_drained()
        if self.lose_after:
            raise SubscriptionLostError("server closed the connection unexpectedly")
        return []

    def close(self) -> None:
        self.closed += 1
        self._open = False
