"""Bounded worker pool that runs the processor off the listener thread."""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Dict, List, Optional

from dispatch_worker.logging import get_logger
from dispatch_worker.logging.context import bind_log_context

from .models import ProcessResult
from .processor import NotificationProcessor

logger = get_logger(__name__, component="dispatcher")


class EventDispatcher:
    """Submits notification ids to a thread pool.

    ``submit`` never blocks on delivery, so a notification waiting out its
    backoff does not hold up the listener or other notifications. Tasks run
    with the logging context of the code that submitted them.
    """

    def __init__(self, processor: NotificationProcessor, max_workers: int = 4):
        self.processor = processor
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="dispatch"
        )
        self._futures: Dict[Future, str] = {}
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, notification_id: str) -> Optional[Future]:
        """Queue one id for processing.

        Returns:
            The task's Future, or None if the dispatcher is shut down
        """
        with self._lock:
            if self._closed:
                logger.warning(
                    f"Dispatcher is shut down; notification {notification_id} left pending",
                    extra={"event": "dispatcher.rejected", "notification_id": notification_id},
                )
                return None

            future = self._executor.submit(bind_log_context(self._run), notification_id)
            self._futures[future] = notification_id

        future.add_done_callback(self._forget)
        return future

    def __call__(self, notification_id: str) -> Optional[Future]:
        return self.submit(notification_id)

    def _run(self, notification_id: str) -> Optional[ProcessResult]:
        try:
            return self.processor.process(notification_id)
        except Exception as e:
            logger.error(
                f"Unexpected error processing notification {notification_id}: {e}",
                exc_info=True,
                extra={"event": "dispatcher.task.failed", "notification_id": notification_id},
            )
            return None

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._futures.pop(future, None)

    @property
    def pending_count(self) -> int:
        """Tasks submitted and not yet finished."""
        with self._lock:
            return len(self._futures)

    def pending_ids(self) -> List[str]:
        """Ids of tasks submitted and not yet finished."""
        with self._lock:
            return sorted(self._futures.values())

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """Stop accepting work and wait for running tasks.

        Queued tasks that have not started are cancelled; their notifications
        stay pending for the next sweep.

        Args:
            timeout: Longest wait for running tasks, None waits indefinitely

        Returns:
            True if every running task finished within the timeout
        """
        with self._lock:
            if self._closed:
                return True
            self._closed = True
            futures = dict(self._futures)

        self._executor.shutdown(wait=False, cancel_futures=True)

        cancelled = sum(1 for f in futures if f.cancelled())
        running = [f for f in futures if not f.cancelled()]

        logger.info(
            f"Waiting for {len(running)} in-flight notification(s) "
            f"({cancelled} queued task(s) cancelled)",
            extra={
                "event": "dispatcher.shutdown.started",
                "in_flight": len(running),
                "cancelled": cancelled,
            },
        )

        _, not_done = wait(running, timeout=timeout)

        if not_done:
            abandoned = sorted(futures[f] for f in not_done)
            logger.warning(
                f"{len(not_done)} notification(s) still in flight after {timeout}s: "
                f"{', '.join(abandoned)}; they stay pending unless already recorded",
                extra={
                    "event": "dispatcher.shutdown.timeout",
                    "in_flight": len(not_done),
                    "notification_ids": abandoned,
                },
            )
            return False

        logger.info("Dispatcher shut down", extra={"event": "dispatcher.shutdown.completed"})
        return True
