"""Soft checks on configuration that warn rather than fail."""

import warnings
from typing import List

from .models import AppConfig


def check_for_warnings(app_config: AppConfig) -> List[str]:
    """
    Check a validated configuration for settings that are legal but risky.

    Args:
        app_config: Validated configuration

    Returns:
        List of warning messages
    """
    warning_messages = []

    if app_config.delivery.max_retries == 0:
        warning_messages.append(
            "delivery.max_retries is 0: a single transient SMTP error marks a notification failed"
        )

    if app_config.recovery.grace_period_seconds == 0:
        warning_messages.append(
            "recovery.grace_period is 0: sweeps may race with events that are still in flight"
        )

    if app_config.recovery.sweep_interval_seconds is None:
        warning_messages.append(
            "recovery.sweep_interval is disabled: missed events are only recovered on restart"
        )

    if app_config.worker.max_workers > 32:
        warning_messages.append(
            f"worker.max_workers={app_config.worker.max_workers} may exceed the SMTP provider's "
            "connection limits"
        )

    # Worst-case retry time for one notification must fit inside the shutdown window
    delivery = app_config.delivery
    worst_case = sum(
        min(delivery.backoff_base_seconds * (2 ** attempt), delivery.max_backoff_seconds)
        for attempt in range(delivery.max_retries)
    )
    if worst_case > app_config.worker.shutdown_timeout_seconds:
        warning_messages.append(
            f"Total backoff ({worst_case:.0f}s) exceeds worker.shutdown_timeout "
            f"({app_config.worker.shutdown_timeout_seconds}s); shutdown may abandon retries"
        )

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """Emit warning messages using Python's warnings module."""
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
