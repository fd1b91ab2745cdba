"""PostgreSQL LISTEN subscription built on psycopg2."""

import select
from typing import Callable, List, Optional

import psycopg2
from psycopg2 import sql
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT

from dispatch_worker.logging import get_logger

from .exceptions import SubscriptionLostError

logger = get_logger(__name__, component="listener")


class PostgresSubscription:
    """A dedicated autocommit connection listening on one channel.

    The connection is used for LISTEN only and never for writes. Any driver
    or socket error is reported as ``SubscriptionLostError``; reconnecting is
    left to the process supervisor.
    """

    def __init__(self, dsn: str, channel: str, connect: Callable = psycopg2.connect):
        """
        Args:
            dsn: libpq connection string (see persistence.to_libpq_dsn)
            channel: Channel name to LISTEN on
            connect: psycopg2.connect or a stand-in for tests
        """
        self.dsn = dsn
        self.channel = channel
        self._connect = connect
        self._conn = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None and not self._conn.closed

    def open(self) -> None:
        """Connect and issue LISTEN.

        Raises:
            SubscriptionLostError: If the connection or LISTEN fails
        """
        try:
            conn = self._connect(self.dsn)
            conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
            with conn.cursor() as cur:
                cur.execute(sql.SQL("LISTEN {}").format(sql.Identifier(self.channel)))
        except (psycopg2.Error, OSError) as e:
            raise SubscriptionLostError(
                f"Could not subscribe to channel '{self.channel}': {e}"
            ) from e

        self._conn = conn
        logger.info(
            f"Listening on channel '{self.channel}'",
            extra={"event": "listener.subscribed", "channel": self.channel},
        )

    def poll(self, timeout: float) -> List[str]:
        """Wait up to ``timeout`` seconds and return the payloads received.

        Returns an empty list when nothing arrived within the timeout.

        Raises:
            SubscriptionLostError: If the connection is closed or fails
        """
        if not self.is_open:
            raise SubscriptionLostError(f"Subscription to '{self.channel}' is not open")

        try:
            readable, _, _ = select.select([self._conn], [], [], timeout)
            if not readable:
                return []

            self._conn.poll()
            payloads = [notify.payload for notify in self._conn.notifies]
            self._conn.notifies.clear()
            return payloads

        except (psycopg2.Error, OSError, ValueError) as e:
            raise SubscriptionLostError(
                f"Subscription to '{self.channel}' lost: {e}"
            ) from e

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        conn: Optional[object] = self._conn
        self._conn = None
        if conn is None:
            return

        try:
            conn.close()
        except Exception as e:
            logger.warning(f"Error closing listener connection: {e}")
        else:
            logger.info(
                f"Stopped listening on channel '{self.channel}'",
                extra={"event": "listener.unsubscribed", "channel": self.channel},
            )
