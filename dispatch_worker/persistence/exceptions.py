"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError so callers can
treat "the database is unhappy" as one condition.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when database connection or initialization fails.

    Examples:
    - Invalid database URL format
    - Database server unreachable
    - Driver not installed
    """

    pass


class DataIntegrityError(PersistenceError):
    """Raised when a database constraint is violated."""

    pass
