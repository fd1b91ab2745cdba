"""Main entry point for the Blood Connect notification dispatch worker."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import logging
import os
import signal
import sys
import time
from pathlib import Path
from typing import Optional, Tuple

from dispatch_worker.config.environment import EnvironmentConfig
from dispatch_worker.config.exceptions import ConfigurationError
from dispatch_worker.config.loader import load_config
from dispatch_worker.config.models import AppConfig
from dispatch_worker.listener.exceptions import SubscriptionLostError
from dispatch_worker.logging import get_logger
from dispatch_worker.logging.config import configure_logging
from dispatch_worker.notifications.models import MailDeliveryError
from dispatch_worker.persistence.database import Database, redact_url
from dispatch_worker.persistence.schema import install_notify_trigger
from dispatch_worker.pipeline.recovery import RecoverySweep, sweep_result_summary
from dispatch_worker.worker import DispatchWorker, build_processor, build_transport

logger = get_logger(__name__, component="cli")

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_SUBSCRIPTION_LOST = 2


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and resolve the effective log level.

    Log level priority: CLI > LOG_LEVEL environment variable > config file > INFO.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif env_config.log_level:
        pass
    elif app_config.logging and app_config.logging.level:
        env_config.log_level = app_config.logging.level
    else:
        env_config.log_level = "INFO"

    return app_config, env_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dispatch-worker",
        description="Blood Connect notification dispatch worker - "
        "delivers notification emails from the database event channel",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml if present, else built-in defaults)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--sweep-only",
        action="store_true",
        help="Run one recovery sweep, wait for it to finish and exit",
    )
    mode.add_argument(
        "--verify-smtp",
        action="store_true",
        help="Check SMTP connectivity and credentials and exit",
    )
    mode.add_argument(
        "--init-schema",
        action="store_true",
        help="Create missing tables and install the notify trigger, then exit",
    )
    return parser


def main(argv=None) -> int:
    """
    Main entry point for the dispatch worker.

    Returns:
        Exit code: 0 on clean shutdown, 1 on configuration or fatal startup
        error, 2 when the channel subscription is lost.
    """
    start_time = time.time()
    args = build_parser().parse_args(argv)
    database: Optional[Database] = None

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
        )

        logger.info(
            "Blood Connect dispatch worker starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "database_url": redact_url(env_config.database_url),
            },
        )

        if args.verify_smtp:
            return verify_smtp(app_config, env_config)

        listening = not (args.sweep_only or args.init_schema)
        if listening and not env_config.is_postgres:
            raise ConfigurationError(
                "The channel listener requires a PostgreSQL DATABASE_URL",
                errors=[f"DATABASE_URL is {redact_url(env_config.database_url)}"],
                suggestions=[
                    "Point DATABASE_URL at the Blood Connect PostgreSQL database",
                    "Use --sweep-only to process pending notifications on other databases",
                ],
            )

        database = Database(
            env_config.database_url, pool_size=app_config.worker.max_workers
        ).connect(create_tables=args.init_schema)

        if args.init_schema:
            install_notify_trigger(database.engine, app_config.listener.channel)
            print("Schema ready", file=sys.stderr)
            return EXIT_OK

        processor = build_processor(app_config, env_config, database)

        if args.sweep_only:
            sweep = RecoverySweep(
                database,
                processor.process,
                grace_period_seconds=app_config.recovery.grace_period_seconds,
                batch_size=app_config.recovery.batch_size,
            )
            result = sweep.run()
            print(sweep_result_summary(result), file=sys.stderr)
            return EXIT_FATAL if result.had_errors else EXIT_OK

        worker = DispatchWorker(app_config, env_config, database, processor)

        def signal_handler(signum, frame):
            logger.info(
                f"Received signal {signum}, shutting down",
                extra={"event": "service.signal_received", "signal": signum},
            )
            worker.request_stop()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        exit_code = EXIT_OK
        try:
            worker.run()
        except SubscriptionLostError as e:
            logger.critical(
                f"Channel subscription lost: {e}",
                extra={"event": "service.subscription_lost"},
            )
            exit_code = EXIT_SUBSCRIPTION_LOST
        else:
            logger.info(
                "Blood Connect dispatch worker stopped",
                extra={
                    "event": "service.stopping",
                    "uptime_seconds": round(time.time() - start_time, 2),
                },
            )

        if not worker.drained:
            # Pool threads are joined at interpreter exit, which would ignore the timeout
            logger.warning(
                "Exiting with deliveries still in flight",
                extra={
                    "event": "service.exit.abandoned",
                    "notification_ids": worker.dispatcher.pending_ids(),
                },
            )
            database.close()
            _exit_now(exit_code)

        return exit_code

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={
                "event": "config.error",
                "error_type": "ConfigurationError",
                "errors": e.errors,
            },
        )
        return EXIT_FATAL
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return EXIT_OK
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            extra={
                "event": "service.startup.failed",
                "error_type": type(e).__name__,
                "error": str(e),
            },
            exc_info=True,
        )
        return EXIT_FATAL
    finally:
        if database is not None:
            database.close()


def _exit_now(exit_code: int) -> None:
    """Terminate immediately without joining worker threads."""
    for handler in logging.getLogger().handlers:
        handler.flush()
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(exit_code)


def verify_smtp(app_config: AppConfig, env_config: EnvironmentConfig) -> int:
    """Check SMTP connectivity and credentials without sending mail."""
    client = build_transport(app_config, env_config)
    print(
        f"Checking SMTP {env_config.smtp_host}:{env_config.smtp_port} as {env_config.smtp_user}",
        file=sys.stderr,
    )
    try:
        client.verify()
    except MailDeliveryError as e:
        print(f"SMTP verification failed: {e}", file=sys.stderr)
        return EXIT_FATAL

    print("SMTP configuration is valid", file=sys.stderr)
    return EXIT_OK


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
