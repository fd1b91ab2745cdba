"""Worker assembly and lifecycle.

``build_processor`` wires the delivery path from configuration, and
``DispatchWorker`` runs it: subscribe, startup sweep, periodic sweeps, listen
until stopped, then drain in-flight work.
"""

import threading
from typing import Callable, Optional

from dispatch_worker.config.environment import EnvironmentConfig
from dispatch_worker.config.models import AppConfig
from dispatch_worker.listener.service import ChannelListener
from dispatch_worker.listener.subscription import PostgresSubscription
from dispatch_worker.logging import get_logger
from dispatch_worker.notifications.mailer import Mailer
from dispatch_worker.notifications.smtp_client import SMTPClient
from dispatch_worker.notifications.templates import TemplateRenderer
from dispatch_worker.notifications.transport import MailTransport
from dispatch_worker.persistence.database import Database, to_libpq_dsn
from dispatch_worker.pipeline.dispatcher import EventDispatcher
from dispatch_worker.pipeline.models import RecoveryResult
from dispatch_worker.pipeline.processor import NotificationProcessor
from dispatch_worker.pipeline.recovery import RecoverySweep
from dispatch_worker.scheduler.service import SchedulerService

logger = get_logger(__name__, component="worker")


def build_transport(app_config: AppConfig, env_config: EnvironmentConfig) -> SMTPClient:
    return SMTPClient(
        env_config,
        use_tls=app_config.delivery.use_tls,
        timeout=app_config.delivery.smtp_timeout_seconds,
    )


def build_processor(
    app_config: AppConfig,
    env_config: EnvironmentConfig,
    database: Database,
    transport: Optional[MailTransport] = None,
    sleep: Optional[Callable[[float], object]] = None,
) -> NotificationProcessor:
    """Wire renderer, mailer and recorder into a processor.

    ``sleep`` replaces the mailer's interruptible backoff wait (tests only).
    """
    delivery = app_config.delivery

    mailer = Mailer(
        transport or build_transport(app_config, env_config),
        max_retries=delivery.max_retries,
        backoff_base=delivery.backoff_base_seconds,
        max_backoff=delivery.max_backoff_seconds,
        sleep=sleep,
    )
    renderer = TemplateRenderer(dashboard_url=delivery.dashboard_url)

    return NotificationProcessor(
        database, mailer, renderer=renderer, send_html=delivery.send_html
    )


class DispatchWorker:
    """Long-running notification dispatch worker."""

    def __init__(
        self,
        app_config: AppConfig,
        env_config: EnvironmentConfig,
        database: Database,
        processor: NotificationProcessor,
        subscription=None,
    ):
        """
        Args:
            app_config: Validated application configuration
            env_config: Environment configuration (DATABASE_URL is used for LISTEN)
            database: Connected database
            processor: Processor shared by live events and sweeps
            subscription: Channel subscription; a PostgresSubscription on
                DATABASE_URL is created if None
        """
        self.app_config = app_config
        self.env_config = env_config
        self.database = database
        self.processor = processor

        self.dispatcher = EventDispatcher(processor, max_workers=app_config.worker.max_workers)
        self.sweep = RecoverySweep(
            database,
            self.dispatcher.submit,
            grace_period_seconds=app_config.recovery.grace_period_seconds,
            batch_size=app_config.recovery.batch_size,
        )

        if subscription is None:
            subscription = PostgresSubscription(
                to_libpq_dsn(env_config.database_url), app_config.listener.channel
            )
        self.listener = ChannelListener(
            subscription,
            self.dispatcher.submit,
            poll_interval=app_config.listener.poll_interval,
        )

        self.scheduler: Optional[SchedulerService] = None
        interval = app_config.recovery.sweep_interval_seconds
        if interval:
            self.scheduler = SchedulerService(self.run_sweep, interval)

        self._shutdown_lock = threading.Lock()
        self._shut_down = False
        self.drained = True

    def run(self) -> None:
        """Run until ``request_stop`` is called, then shut down.

        The subscription is opened before the startup sweep so notifications
        inserted during the sweep are not missed.

        Raises:
            SubscriptionLostError: If the subscription fails; in-flight work is
                drained before it propagates
        """
        try:
            self.listener.subscription.open()
            self.run_sweep()

            if self.scheduler is not None:
                self.scheduler.start()

            logger.info(
                "Dispatch worker running",
                extra={
                    "event": "worker.running",
                    "channel": self.app_config.listener.channel,
                    "max_workers": self.app_config.worker.max_workers,
                },
            )
            self.listener.run()
        finally:
            self.shutdown()

    def run_sweep(self) -> RecoveryResult:
        return self.sweep.run()

    def request_stop(self) -> None:
        """Ask the listener loop to exit. Safe to call from a signal handler."""
        self.listener.stop()

    def shutdown(self) -> bool:
        """Stop the listener and scheduler and drain in-flight deliveries.

        In-flight deliveries get ``worker.shutdown_timeout`` to finish. After
        that, pending backoff waits are interrupted so those notifications
        stay pending, and the caller is expected to exit without joining the
        remaining threads (see ``main``). Idempotent.

        Returns:
            True if all in-flight deliveries finished within the shutdown timeout
        """
        with self._shutdown_lock:
            if self._shut_down:
                return self.drained
            self._shut_down = True

        logger.info("Dispatch worker shutting down", extra={"event": "worker.stopping"})

        self.listener.stop()

        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)

        drained = self.dispatcher.shutdown(
            timeout=self.app_config.worker.shutdown_timeout_seconds
        )
        if not drained:
            self.processor.mailer.interrupt()
        self.drained = drained
        self.listener.close()

        logger.info(
            "Dispatch worker stopped",
            extra={"event": "worker.stopped", "drained": drained},
        )
        return drained
