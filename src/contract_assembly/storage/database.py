"""Database connection management for clause and project storage."""

import os
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .models import Base


DATABASE_URL_ENV = "CONTRACT_ASSEMBLY_DATABASE_URL"


def get_database_url(
    host: Optional[str] = None,
    port: Optional[int] = None,
    database: Optional[str] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
) -> str:
    """
    Resolve the connection URL for the clause library.

    An explicit CONTRACT_ASSEMBLY_DATABASE_URL is used as-is unless
    connection parts are passed in. Otherwise a PostgreSQL URL is assembled
    from the arguments, falling back to the POSTGRES_* variables.
    """
    explicit = os.environ.get(DATABASE_URL_ENV)
    if explicit and not any((host, port, database, user, password)):
        return explicit

    parts = {
        "user": user or os.environ.get("POSTGRES_USER", "postgres"),
        "password": password or os.environ.get("POSTGRES_PASSWORD", "postgres"),
        "host": host or os.environ.get("POSTGRES_HOST", "localhost"),
        "port": port or int(os.environ.get("POSTGRES_PORT", "5432")),
        "database": database or os.environ.get("POSTGRES_DB", "contract_assembly"),
    }
    return "postgresql://{user}:{password}@{host}:{port}/{database}".format(**parts)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # Clause parent links rely on ON DELETE behaviour.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """
    Owns the engine and session factory shared by the clause store and the
    project repository.

    The engine is created on first use. SQLite URLs get a thread-shareable
    connection (package generation reads from worker threads) and foreign
    key enforcement; other backends get a pre-pinged connection pool.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
    ):
        """
        Args:
            database_url: SQLAlchemy URL. Resolved with get_database_url() when omitted.
            pool_size: Pooled connections kept open (ignored for SQLite).
            max_overflow: Extra connections allowed beyond the pool (ignored for SQLite).
            echo: Log emitted SQL.
        """
        self._database_url = database_url or get_database_url()
        self._pool_size = pool_size
        self._max_overflow = max_overflow
        self._echo = echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def database_url(self) -> str:
        return self._database_url

    @property
    def is_sqlite(self) -> bool:
        return self._database_url.startswith("sqlite")

    def _create_engine(self) -> Engine:
        if self.is_sqlite:
            engine = create_engine(
                self._database_url,
                echo=self._echo,
                connect_args={"check_same_thread": False},
            )
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
            return engine
        return create_engine(
            self._database_url,
            echo=self._echo,
            pool_size=self._pool_size,
            max_overflow=self._max_overflow,
            pool_pre_ping=True,
        )

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            # Stored rows are converted to dataclasses after commit.
            self._session_factory = sessionmaker(
                bind=self.engine,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Unit of work for one store operation.

        Commits when the block finishes, rolls back and re-raises when it
        fails, and always closes the session.
        """
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self) -> None:
        """Create the clause library and project tables if missing."""
        Base.metadata.create_all(self.engine)

    def drop_all_tables(self) -> None:
        """Drop every table, stored clauses and projects included."""
        Base.metadata.drop_all(self.engine)

    def health_check(self) -> bool:
        """Return True when a trivial query succeeds."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            return False
        return True

    def close(self) -> None:
        """Dispose of the engine; the next access creates a fresh one."""
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._session_factory = None
