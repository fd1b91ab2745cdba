"""Recovery sweep: re-dispatch notifications still pending after the grace period.

Live events can be lost (worker down, listener disconnected, crash between
send and record). The sweep finds pending rows older than the grace period
and feeds them through the same path as live events, so the pending filter
and the conditional update keep it idempotent.
"""

import time
from typing import Callable, Optional

from dispatch_worker.logging import get_logger
from dispatch_worker.logging.context import log_context
from dispatch_worker.persistence.database import Database
from dispatch_worker.persistence.exceptions import PersistenceError
from dispatch_worker.persistence.repositories import NotificationRepository
from dispatch_worker.utils.timestamps import format_timestamp, utc_now_minus

from .models import RecoveryResult

logger = get_logger(__name__, component="recovery")

DEFAULT_GRACE_PERIOD_SECONDS = 30
DEFAULT_BATCH_SIZE = 500


class RecoverySweep:
    """Finds stale pending notifications and dispatches them."""

    def __init__(
        self,
        database: Database,
        dispatch: Callable[[str], object],
        grace_period_seconds: float = DEFAULT_GRACE_PERIOD_SECONDS,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        """
        Args:
            database: Database to query for pending notifications
            dispatch: Called with each id; the worker passes its EventDispatcher,
                a sweep-only run passes ``processor.process``
            grace_period_seconds: Skip rows younger than this; live events
                normally handle them
            batch_size: Maximum ids dispatched per sweep, oldest first
        """
        self.database = database
        self.dispatch = dispatch
        self.grace_period_seconds = grace_period_seconds
        self.batch_size = batch_size

    def run(self) -> RecoveryResult:
        """Run one sweep. Never raises; failures are reported in the result."""
        start = time.monotonic()
        result = RecoveryResult()

        with log_context(operation="recovery_sweep"):
            cutoff = utc_now_minus(self.grace_period_seconds)

            try:
                with self.database.session() as session:
                    ids = NotificationRepository(session).list_pending_ids(
                        created_before=cutoff, limit=self.batch_size
                    )
            except PersistenceError as e:
                result.had_errors = True
                result.error_message = str(e)
                result.duration_seconds = time.monotonic() - start
                logger.error(
                    f"Recovery sweep could not query pending notifications: {e}",
                    extra={"event": "recovery.query.failed"},
                )
                return result

            result.found = len(ids)

            for notification_id in ids:
                try:
                    self.dispatch(notification_id)
                    result.dispatched += 1
                except Exception as e:
                    result.had_errors = True
                    if result.error_message is None:
                        result.error_message = str(e)
                    logger.error(
                        f"Recovery sweep failed to dispatch notification {notification_id}: {e}",
                        exc_info=True,
                        extra={
                            "event": "recovery.dispatch.failed",
                            "notification_id": notification_id,
                        },
                    )

            result.duration_seconds = time.monotonic() - start

            log = logger.info if result.found else logger.debug
            log(
                f"Recovery sweep dispatched {result.dispatched}/{result.found} "
                f"pending notification(s) in {result.duration_seconds:.2f}s",
                extra={
                    "event": "recovery.completed",
                    "found": result.found,
                    "dispatched": result.dispatched,
                    "had_errors": result.had_errors,
                    "cutoff": format_timestamp(cutoff),
                },
            )

        return result


def sweep_result_summary(result: Optional[RecoveryResult]) -> str:
    """One-line summary for CLI output."""
    if result is None:
        return "Recovery sweep did not run"
    status = "with errors" if result.had_errors else "ok"
    return (
        f"Recovery sweep {status}: {result.dispatched}/{result.found} dispatched "
        f"in {result.duration_seconds:.2f}s"
    )
