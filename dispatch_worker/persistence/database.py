"""Database connection and session management.

A ``Database`` instance owns one SQLAlchemy engine and session factory. The
worker constructs it once and passes it to the components that need storage,
so tests can hand each component its own throwaway database.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import Session, sessionmaker

from dispatch_worker.logging import get_logger

from .exceptions import DatabaseConnectionError

logger = get_logger(__name__, component="database")


class Database:
    """Engine plus session factory for the notifications database."""

    def __init__(self, database_url: str, pool_size: int = 5):
        """
        Args:
            database_url: SQLAlchemy URL (e.g. "postgresql+psycopg2://...")
            pool_size: Connection pool size for server databases; match it to
                the worker pool so every in-flight notification can get a
                connection without waiting
        """
        if not database_url or not isinstance(database_url, str):
            raise DatabaseConnectionError("Database URL must be a non-empty string")

        self.database_url = database_url
        self.pool_size = pool_size
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    def connect(self, create_tables: bool = False) -> "Database":
        """Create the engine, validate connectivity and optionally create tables.

        Args:
            create_tables: Create missing tables (local databases and tests)

        Returns:
            self, for chaining

        Raises:
            DatabaseConnectionError: If initialization fails
        """
        try:
            logger.info(
                "Initializing database",
                extra={
                    "event": "database.initializing",
                    "database_url": redact_url(self.database_url),
                },
            )

            is_sqlite = self.database_url.startswith("sqlite")

            if is_sqlite and not self.database_url.endswith(":memory:"):
                db_file = Path(self.database_url.replace("sqlite:///", ""))
                if not db_file.parent.exists():
                    logger.info(f"Creating database directory: {db_file.parent}")
                    db_file.parent.mkdir(parents=True, exist_ok=True)

            engine_kwargs = {"pool_pre_ping": True}
            if is_sqlite:
                engine_kwargs["connect_args"] = {
                    "check_same_thread": False,
                    "timeout": 30,
                }
            else:
                engine_kwargs["pool_size"] = self.pool_size
                engine_kwargs["max_overflow"] = 2

            self._engine = create_engine(self.database_url, **engine_kwargs)

            if is_sqlite:
                _configure_sqlite(self._engine)

            _validate_connection(self._engine)

            self._session_factory = sessionmaker(
                bind=self._engine,
                autoflush=True,
                expire_on_commit=False,
            )

            if create_tables:
                from .schema import create_schema

                create_schema(self._engine)

            logger.info(
                "Database initialized successfully",
                extra={
                    "event": "database.initialised",
                    "database_url": redact_url(self.database_url),
                },
            )

        except DatabaseConnectionError:
            raise
        except Exception as e:
            error_msg = f"Failed to initialize database: {e}"
            logger.error(error_msg, exc_info=True)
            raise DatabaseConnectionError(error_msg) from e

        return self

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise DatabaseConnectionError(
                "Database not initialized. Call connect() before using the engine"
            )
        return self._engine

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Provide a session that commits on success and rolls back on error.

        Each unit of work opens its own session; sessions are never shared
        between threads.

        Example:
            >>> with database.session() as session:
            ...     repo = NotificationRepository(session)
            ...     delivery = repo.get_pending_delivery("N1")
        """
        if self._session_factory is None:
            raise DatabaseConnectionError(
                "Database not initialized. Call connect() before opening sessions"
            )

        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.warning(
                f"Database session rolled back due to exception: {e}",
                extra={
                    "event": "database.session.rolled_back",
                    "error_type": type(e).__name__,
                },
            )
            raise
        finally:
            session.close()

    def close(self) -> None:
        """Dispose of pooled connections. Safe to call more than once."""
        if self._engine is not None:
            logger.info("Closing database connections")
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connections closed")


def _configure_sqlite(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def _validate_connection(engine: Engine) -> None:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        logger.debug("Database connection validated successfully")
    except Exception as e:
        raise DatabaseConnectionError(f"Failed to validate database connection: {e}") from e


def redact_url(url: str) -> str:
    """Hide the password of a database URL for logging."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<unparseable database url>"


def to_libpq_dsn(url: str) -> str:
    """Convert a SQLAlchemy PostgreSQL URL to a DSN psycopg2 accepts.

    "postgresql+psycopg2://u:p@host/db" becomes "postgresql://u:p@host/db".

    Raises:
        DatabaseConnectionError: If the URL is not a PostgreSQL URL
    """
    try:
        parsed = make_url(url)
    except ArgumentError as e:
        raise DatabaseConnectionError(f"Invalid database URL: {e}") from e

    if parsed.get_backend_name() not in ("postgresql", "postgres"):
        raise DatabaseConnectionError(
            f"LISTEN/NOTIFY requires PostgreSQL, got '{parsed.get_backend_name()}'"
        )

    return parsed.set(drivername="postgresql").render_as_string(hide_password=False)
