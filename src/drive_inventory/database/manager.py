"""
Database Manager for Drive Inventory.

Handles engine setup, transactional sessions and the checkpoint/run-history
queries. SQLAlchemy errors are mapped to the application's DatabaseError
hierarchy; transient "database is locked" errors are retried with
exponential backoff.
"""

import logging
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from sqlalchemy import create_engine, delete, event, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker, Session, scoped_session
from sqlalchemy.pool import StaticPool

from drive_inventory.core.constants import RUN_HISTORY_LIMIT
from drive_inventory.core.exceptions import (
    DatabaseError,
    DatabaseConnectionError,
    DatabaseIntegrityError,
)
from drive_inventory.database.models import Base, InventoryCheckpoint, RunHistory

logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Database manager for checkpoints and run history.

    Accepts either a SQLAlchemy URL or a filesystem path to a SQLite file.
    ``sqlite:///:memory:`` uses a StaticPool so every session shares the
    same in-memory database.
    """

    # Retry configuration
    MAX_RETRIES = 3
    RETRY_DELAY_BASE = 0.5  # seconds

    def __init__(
            self,
            database: Union[str, Path] = "sqlite:///:memory:",
            echo: bool = False,
            sqlite_timeout: int = 30
    ):
        """
        Initialize the database manager.

        Args:
            database: SQLAlchemy URL or path to a SQLite database file
            echo: If True, log all SQL statements
            sqlite_timeout: Seconds SQLite waits on a locked database

        Raises:
            DatabaseConnectionError: If database connection cannot be established
        """
        if isinstance(database, Path) or "://" not in str(database):
            path = Path(database).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            database_url = f"sqlite:///{path}"
        else:
            database_url = str(database)

        self.database_url = database_url
        self._engine: Optional[Engine] = None
        self._Session = None

        try:
            self._initialize_engine(database_url, echo, sqlite_timeout)
            self._test_connection()
            self.init_db()
        except SQLAlchemyError as e:
            logger.error(f"Failed to initialize database manager: {e}")
            raise DatabaseConnectionError(f"Database initialization failed: {e}") from e

    def _initialize_engine(self, database_url: str, echo: bool, sqlite_timeout: int) -> None:
        """Initialize the database engine with proper configuration."""
        engine_kwargs = {
            "echo": echo,
            "future": True,
        }

        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {
                "check_same_thread": False,
                "timeout": sqlite_timeout,
            }
            if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_pre_ping"] = True

        self._engine = create_engine(database_url, **engine_kwargs)

        if database_url.startswith("sqlite"):
            use_wal = "poolclass" not in engine_kwargs

            @event.listens_for(self._engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                if use_wal:
                    cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute(f"PRAGMA busy_timeout={sqlite_timeout * 1000}")
                cursor.execute("PRAGMA synchronous=NORMAL")
                cursor.close()

        self._Session = scoped_session(sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
            autoflush=True,
        ))

    def _test_connection(self) -> None:
        """Test database connection and raise error if it fails."""
        with self._engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.debug("Database connection test successful")

    def init_db(self) -> None:
        """Create tables that do not exist yet."""
        Base.metadata.create_all(self._engine)

    @property
    def engine(self) -> Engine:
        """Get the database engine."""
        if self._engine is None:
            raise DatabaseConnectionError("Database engine not initialized")
        return self._engine

    def close(self) -> None:
        """Dispose of the engine and its connections."""
        if self._Session is not None:
            self._Session.remove()
        if self._engine is not None:
            self._engine.dispose()

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        """
        Transactional session scope.

        Commits on success and rolls back on any error, so a failed write
        leaves the previous rows untouched.

        Raises:
            DatabaseIntegrityError: For constraint violations
            DatabaseConnectionError: For operational errors (locks, I/O)
            DatabaseError: For other database errors
        """
        if self._Session is None:
            raise DatabaseConnectionError("Database not initialized")

        session = self._Session()
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            session.rollback()
            logger.error(f"Database integrity error: {e}")
            raise DatabaseIntegrityError(f"Data integrity violation: {e}") from e
        except OperationalError as e:
            session.rollback()
            logger.error(f"Database operational error: {e}")
            raise DatabaseConnectionError(f"Database operation failed: {e}") from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error: {e}")
            raise DatabaseError(f"Database operation failed: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
            self._Session.remove()

    def _execute_with_retry(self, func, *args, **kwargs):
        """Execute a function with retry logic for transient errors."""
        for attempt in range(self.MAX_RETRIES):
            try:
                return func(*args, **kwargs)
            except DatabaseConnectionError as e:
                error_str = str(e).lower()
                retryable = any(err in error_str for err in ('timeout', 'locked', 'busy'))
                if not retryable or attempt == self.MAX_RETRIES - 1:
                    raise
                delay = self.RETRY_DELAY_BASE * (2 ** attempt)
                logger.warning(
                    f"Retryable database error on attempt {attempt + 1}/{self.MAX_RETRIES}: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                time.sleep(delay)

    # Checkpoints

    def get_checkpoint(self, inventory_name: str) -> Optional[Dict]:
        """Payload, status and last error of the checkpoint row, or None."""
        def _load():
            with self.get_session() as session:
                row = session.get(InventoryCheckpoint, inventory_name)
                if row is None:
                    return None
                return {"payload": row.payload, "status": row.status, "last_error": row.last_error}
        return self._execute_with_retry(_load)

    def upsert_checkpoint(
            self,
            inventory_name: str,
            payload: str,
            status: str,
            cursor: Optional[str],
            batch_count: int,
            files_processed: int,
            started_at: datetime,
            updated_at: datetime,
            size_bytes: int
    ) -> None:
        """Insert or replace the checkpoint row in a single transaction."""
        def _upsert():
            with self.get_session() as session:
                row = session.get(InventoryCheckpoint, inventory_name)
                if row is None:
                    row = InventoryCheckpoint(inventory_name=inventory_name)
                    session.add(row)
                row.payload = payload
                row.status = status
                row.cursor = cursor
                row.batch_count = batch_count
                row.files_processed = files_processed
                row.started_at = started_at
                row.updated_at = updated_at
                row.size_bytes = size_bytes
                row.last_error = None
        self._execute_with_retry(_upsert)

    def mark_checkpoint_error(self, inventory_name: str, message: str) -> bool:
        """Set status ERROR and the diagnostic; the payload is left alone."""
        def _mark():
            with self.get_session() as session:
                row = session.get(InventoryCheckpoint, inventory_name)
                if row is None:
                    return False
                row.status = "ERROR"
                row.last_error = message[:2000]
                return True
        return self._execute_with_retry(_mark)

    def delete_checkpoint(self, inventory_name: str) -> bool:
        """Delete the checkpoint row. Returns True if a row was removed."""
        def _delete():
            with self.get_session() as session:
                result = session.execute(
                    delete(InventoryCheckpoint).where(InventoryCheckpoint.inventory_name == inventory_name)
                )
                return result.rowcount > 0
        return self._execute_with_retry(_delete)

    # Run history

    def add_run(
            self,
            inventory_name: str,
            status: str,
            files_processed: int,
            batches: int,
            duration_seconds: float,
            error: Optional[str] = None,
            keep: int = RUN_HISTORY_LIMIT
    ) -> None:
        """Record one invocation and prune history beyond ``keep`` rows."""
        def _add():
            with self.get_session() as session:
                session.add(RunHistory(
                    inventory_name=inventory_name,
                    status=status,
                    files_processed=files_processed,
                    batches=batches,
                    duration_seconds=duration_seconds,
                    error=error[:2000] if error else None,
                ))
                session.flush()
                stale_ids = session.scalars(
                    select(RunHistory.id)
                    .where(RunHistory.inventory_name == inventory_name)
                    .order_by(RunHistory.id.desc())
                    .offset(keep)
                ).all()
                if stale_ids:
                    session.execute(delete(RunHistory).where(RunHistory.id.in_(stale_ids)))
        self._execute_with_retry(_add)

    def get_runs(self, inventory_name: str, limit: int = 20) -> List[Dict]:
        """Most recent invocations first."""
        with self.get_session() as session:
            rows = session.scalars(
                select(RunHistory)
                .where(RunHistory.inventory_name == inventory_name)
                .order_by(RunHistory.id.desc())
                .limit(limit)
            ).all()
            return [row.to_dict() for row in rows]
