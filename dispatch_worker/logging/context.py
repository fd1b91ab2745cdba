"""Context propagation for structured logging.

Fields pushed here are injected into every log record emitted inside the
scope by ``ContextualFilter``. The processor scopes each notification with
``notification_id``, and the recovery sweep and listener tag the path a
notification arrived by with ``operation``.

Context lives in a ``ContextVar``. Threads in the dispatch pool start with an
empty context, so work submitted to the pool is wrapped with
``bind_log_context`` to carry the submitter's fields across.
"""

import functools
from contextvars import ContextVar, Token
from typing import Any, Callable, Dict, Optional, TypeVar

T = TypeVar("T")

LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Get the current logging context.

    Returns:
        A copy of the current context fields; mutating it has no effect
    """
    return LogContextVar.get().copy()


def push_log_context(**kwargs) -> Token:
    """Merge new fields into the logging context.

    Fields already present are overwritten for the duration of the scope.

    Args:
        **kwargs: Fields to attach to every record, e.g. notification_id

    Returns:
        Token to pass to pop_log_context() to restore the previous state

    Example:
        >>> token = push_log_context(notification_id="N1", operation="live_event")
        >>> pop_log_context(token)
    """
    current = LogContextVar.get()
    return LogContextVar.set({**current, **kwargs})


def pop_log_context(token: Token) -> None:
    """Restore the logging context to a previous state.

    Args:
        token: Token returned from push_log_context() in the same thread
    """
    LogContextVar.reset(token)


def clear_log_context() -> None:
    """Clear all logging context fields.

    The test suite calls this around every test so fields from one test never
    show up in another.
    """
    LogContextVar.set({})


def bind_log_context(func: Callable[..., T]) -> Callable[..., T]:
    """Capture the caller's logging context for a function run elsewhere.

    The fields are snapshotted when ``bind_log_context`` is called, not when
    the returned function runs, so a sweep can submit work and leave its
    scope before the pool picks the work up.

    Args:
        func: Callable that will run in another thread

    Returns:
        Wrapper that runs ``func`` inside a scope holding the captured fields

    Example:
        >>> with log_context(operation="recovery_sweep"):
        ...     executor.submit(bind_log_context(process), "N1")
    """
    fields = get_log_context()

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> T:
        with log_context(**fields):
            return func(*args, **kwargs)

    return wrapper


class log_context:
    """Context manager for scoped logging context.

    Pushes the fields on entry and restores the previous context on exit,
    including when the body raises.

    Example:
        >>> with log_context(notification_id="N1"):
        ...     logger.info("Processing")  # record carries notification_id
    """

    def __init__(self, **kwargs):
        """
        Args:
            **kwargs: Fields to add to the logging context inside the scope
        """
        self.kwargs = kwargs
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.kwargs)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
        return False
