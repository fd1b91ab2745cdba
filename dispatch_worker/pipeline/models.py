"""Result types for processing and recovery runs."""

from dataclasses import dataclass
from typing import Optional

# ProcessResult.status values
SKIPPED = "skipped"
IN_FLIGHT = "in_flight"
ERROR = "error"
SENT = "sent"
FAILED = "failed"
INTERRUPTED = "interrupted"


@dataclass
class ProcessResult:
    """
    Outcome of processing one notification id.

    Attributes:
        notification_id: The id that was processed
        status: One of skipped, in_flight, error, sent, failed, interrupted
        attempts: Send attempts made (0 when nothing was sent)
        recorded: Whether the terminal state was written by this call
        detail: Provider token, terminal error or the reason for skipping
    """

    notification_id: str
    status: str
    attempts: int = 0
    recorded: bool = False
    detail: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.status == SENT


@dataclass
class RecoveryResult:
    """
    Summary of one recovery sweep.

    Attributes:
        found: Pending notifications older than the grace period
        dispatched: How many of them were handed to the dispatch callable
        had_errors: Whether the query or any dispatch call failed
        duration_seconds: Wall time of the sweep
        error_message: First error encountered, if any
    """

    found: int = 0
    dispatched: int = 0
    had_errors: bool = False
    duration_seconds: float = 0.0
    error_message: Optional[str] = None
