"""Notification processing pipeline.

- NotificationProcessor: fetch, compose, send and record one notification
- StatusRecorder: conditional terminal-state write
- EventDispatcher: bounded thread pool in front of the processor
- RecoverySweep: re-dispatch of stale pending notifications
"""

from .dispatcher import EventDispatcher
from .models import ProcessResult, RecoveryResult
from .processor import NotificationProcessor
from .recorder import StatusRecorder
from .recovery import RecoverySweep, sweep_result_summary

__all__ = [
    "EventDispatcher",
    "NotificationProcessor",
    "ProcessResult",
    "RecoverySweep",
    "RecoveryResult",
    "StatusRecorder",
    "sweep_result_summary",
]
