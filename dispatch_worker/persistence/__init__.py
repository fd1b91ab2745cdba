"""Persistence layer for the notifications database.

Public API:
    - Database: engine + session factory, constructed once by the worker
    - NotificationRepository: pending lookups and conditional state updates
    - install_notify_trigger / create_schema: schema helpers for --init-schema
    - PersistenceError and subclasses

Example usage:
    >>> from dispatch_worker.persistence import Database, NotificationRepository
    >>> database = Database("sqlite:///./data/dispatch.db").connect(create_tables=True)
    >>> with database.session() as session:
    ...     delivery = NotificationRepository(session).get_pending_delivery("N1")
"""

from .database import Database, redact_url, to_libpq_dsn
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
)
from .repositories import NotificationRepository
from .schema import create_schema, install_notify_trigger

__all__ = [
    # Database
    "Database",
    "redact_url",
    "to_libpq_dsn",
    "create_schema",
    "install_notify_trigger",
    # Repositories
    "NotificationRepository",
    # Exceptions
    "PersistenceError",
    "DatabaseConnectionError",
    "DataIntegrityError",
]
