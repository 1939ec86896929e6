"""
Storage - Database.

============================================================
RESPONSIBILITY
============================================================
Owns the SQLAlchemy engine and session factory.

- Constructed once at startup and passed by handle
- Provides session context managers
- Creates the schema
- Health check for the API root

============================================================
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import DatabaseConfig
from storage.models.base import Base


logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Base exception for database lifecycle errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Cannot connect to database."""
    pass


class DatabaseInitializationError(DatabaseError):
    """Database initialization failed."""
    pass


class Database:
    """
    Engine and session factory for one database.

    Usage:
        database = Database(DatabaseConfig(url="sqlite://"))
        database.create_all()

        with database.session_scope() as session:
            session.add(record)
            # Commits automatically at end
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self._config = config or DatabaseConfig()
        self._engine = self._create_engine(self._config)
        self._session_factory = sessionmaker(
            bind=self._engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    @staticmethod
    def _create_engine(config: DatabaseConfig) -> Engine:
        url = config.url
        kwargs = {"echo": config.echo, "future": True}

        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every session sees an empty database
                kwargs["poolclass"] = StaticPool
        else:
            kwargs.update(pool_size=10, max_overflow=20, pool_timeout=30, pool_recycle=1800)

        logger.info(f"Creating database engine for: {url.split('@')[-1]}")
        engine = create_engine(url, **kwargs)

        if url.startswith("sqlite"):
            @event.listens_for(engine, "connect")
            def on_connect(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        return engine

    @property
    def engine(self) -> Engine:
        return self._engine

    # =========================================================
    # SESSIONS
    # =========================================================

    def session(self) -> Session:
        """
        Get a new session.

        IMPORTANT: Caller is responsible for committing/closing.
        Prefer session_scope() instead.
        """
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Transaction boundary.

        Commits only if no exception occurs, rolls back on any
        exception and re-raises it.
        """
        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # =========================================================
    # LIFECYCLE
    # =========================================================

    def create_all(self) -> None:
        """
        Create all tables defined in ORM models.

        Raises:
            DatabaseInitializationError: If table creation fails
        """
        # Register the models on Base.metadata
        from storage import models  # noqa: F401

        try:
            Base.metadata.create_all(bind=self._engine)
            logger.info("Database tables created successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {e}")
            raise DatabaseInitializationError(f"Table creation failed: {e}") from e

    def health_check(self) -> bool:
        """
        Verify the database answers a trivial query.

        Raises:
            DatabaseConnectionError: If connection fails
        """
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            return True
        except OperationalError as e:
            logger.error(f"Database connection failed: {e}")
            raise DatabaseConnectionError(f"Cannot connect to database: {e}") from e

    def dispose(self) -> None:
        self._engine.dispose()


__all__ = [
    "Database",
    "DatabaseError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
