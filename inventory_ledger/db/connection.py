# inventory_ledger/db/connection.py
from contextlib import contextmanager
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError, InterfaceError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from inventory_ledger.config import config
from inventory_ledger.exceptions import BackendUnavailableError, DatabaseError
from inventory_ledger.logging_setup import get_logger
from inventory_ledger.models import Base

logger = get_logger('database')

# Errors meaning "cannot reach the database" rather than "bad statement"
CONNECTIVITY_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


class DatabaseConnection:
    """Pooled SQLAlchemy connection to the relational backend.

    The engine is created lazily; nothing touches the network until the
    first session is opened.
    """

    def __init__(self, url: Optional[str] = None, pool_settings: Optional[Dict[str, Any]] = None):
        """Initialize database connection settings.

        Args:
            url: SQLAlchemy URL; defaults to the configured one
            pool_settings: Overrides for pool_size/max_overflow/pool_timeout/pool_recycle/echo
        """
        self._url = url or config.get_db_url()
        self._pool_settings = dict(config.db_config)
        if pool_settings:
            self._pool_settings.update(pool_settings)
        self._engine = None
        self._SessionLocal = None

    def _initialize_engine(self):
        """Create the engine and session factory."""
        try:
            if self._url.startswith('sqlite'):
                # one shared connection; in-memory databases vanish with their connection
                self._engine = create_engine(
                    self._url,
                    poolclass=StaticPool,
                    connect_args={'check_same_thread': False},
                    echo=self._pool_settings['echo']
                )
            else:
                self._engine = create_engine(
                    self._url,
                    pool_size=self._pool_settings['pool_size'],
                    max_overflow=self._pool_settings['max_overflow'],
                    pool_timeout=self._pool_settings['pool_timeout'],
                    pool_recycle=self._pool_settings['pool_recycle'],
                    pool_pre_ping=True,
                    echo=self._pool_settings['echo']
                )

            self._SessionLocal = sessionmaker(
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
                bind=self._engine
            )
        except Exception as e:
            raise DatabaseError(f"Failed to initialize database engine: {str(e)}")

    @property
    def engine(self):
        """Get the SQLAlchemy engine."""
        if self._engine is None:
            self._initialize_engine()
        return self._engine

    @property
    def url(self) -> str:
        return self._url

    def test_connection(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database connection test failed: {str(e)}")
            return False

    def create_all_tables(self):
        """Create all tables defined in the models."""
        try:
            Base.metadata.create_all(bind=self.engine)
        except CONNECTIVITY_ERRORS as e:
            raise BackendUnavailableError(f"Cannot create tables: {str(e)}")

    def drop_all_tables(self):
        """Drop all tables from the database."""
        Base.metadata.drop_all(bind=self.engine)

    @contextmanager
    def session_scope(self) -> Session:
        """Provide a transactional scope around a series of operations.

        Connectivity failures and pool exhaustion are re-raised as
        ``BackendUnavailableError``; statement errors propagate unchanged
        after rollback.
        """
        if self._SessionLocal is None:
            self._initialize_engine()

        session = self._SessionLocal()
        try:
            yield session
            session.commit()
        except CONNECTIVITY_ERRORS as e:
            session.rollback()
            raise BackendUnavailableError(f"Database unreachable: {str(e)}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self):
        """Close all pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
