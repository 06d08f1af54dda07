"""
SQLAlchemy-backed checkpoint store.
"""

import logging
from typing import Dict, List, Optional

from drive_inventory.core.checkpoint import (
    CheckpointStore,
    MemoryCheckpointStore,
    serialize_checkpoint,
    deserialize_checkpoint,
    enforce_size_limit,
)
from drive_inventory.core.config import Config, CheckpointBackend
from drive_inventory.core.exceptions import CheckpointError, DatabaseError
from drive_inventory.core.models import CheckpointRecord, RunStatus
from drive_inventory.database.manager import DatabaseManager

logger = logging.getLogger(__name__)


class DatabaseCheckpointStore(CheckpointStore):
    """
    Checkpoint store persisting one row per inventory name.

    The size ceiling is checked before any write, and the row is replaced in
    a single transaction, so a failed save leaves the previous checkpoint as
    it was.
    """

    def __init__(self, manager: DatabaseManager, inventory_name: str, max_bytes: int):
        super().__init__(inventory_name, max_bytes)
        self.manager = manager

    def load(self) -> Optional[CheckpointRecord]:
        try:
            row = self.manager.get_checkpoint(self.inventory_name)
        except DatabaseError as e:
            raise CheckpointError(f"Failed to load checkpoint '{self.inventory_name}': {e}") from e
        if row is None:
            return None
        record = deserialize_checkpoint(row["payload"])
        if row["status"] == RunStatus.ERROR.value:
            record.status = RunStatus.ERROR
            record.last_error = row["last_error"]
        return record

    def save(self, record: CheckpointRecord) -> int:
        blob = serialize_checkpoint(record)
        size = enforce_size_limit(blob, self.max_bytes)
        try:
            self.manager.upsert_checkpoint(
                inventory_name=self.inventory_name,
                payload=blob,
                status=record.status.value,
                cursor=record.cursor,
                batch_count=record.batch_count,
                files_processed=record.state.total_files,
                started_at=record.started_at,
                updated_at=record.updated_at,
                size_bytes=size,
            )
        except DatabaseError as e:
            raise CheckpointError(f"Failed to save checkpoint '{self.inventory_name}': {e}") from e
        logger.debug(f"Checkpoint '{self.inventory_name}' saved ({size} bytes, batch {record.batch_count})")
        return size

    def clear(self) -> None:
        try:
            removed = self.manager.delete_checkpoint(self.inventory_name)
        except DatabaseError as e:
            raise CheckpointError(f"Failed to clear checkpoint '{self.inventory_name}': {e}") from e
        if removed:
            logger.info(f"Checkpoint '{self.inventory_name}' cleared")

    def mark_error(self, message: str) -> bool:
        try:
            return self.manager.mark_checkpoint_error(self.inventory_name, message)
        except DatabaseError as e:
            raise CheckpointError(f"Failed to flag checkpoint '{self.inventory_name}': {e}") from e

    def record_run(
        self,
        status: RunStatus,
        files_processed: int,
        batches: int,
        duration_seconds: float,
        error: Optional[str] = None
    ) -> None:
        self.manager.add_run(
            inventory_name=self.inventory_name,
            status=status.value,
            files_processed=files_processed,
            batches=batches,
            duration_seconds=duration_seconds,
            error=error,
        )

    def history(self, limit: int = 20) -> List[Dict]:
        return self.manager.get_runs(self.inventory_name, limit=limit)


def create_checkpoint_store(config: Config) -> CheckpointStore:
    """
    Build the checkpoint store selected by ``config.checkpoint.backend``.

    Raises:
        CheckpointError: If the database cannot be opened
    """
    settings = config.checkpoint
    if settings.backend == CheckpointBackend.MEMORY:
        return MemoryCheckpointStore(config.inventory_name, settings.max_state_bytes)

    try:
        manager = DatabaseManager(
            settings.database_path,
            echo=settings.echo,
            sqlite_timeout=settings.sqlite_timeout,
        )
    except DatabaseError as e:
        raise CheckpointError(f"Cannot open checkpoint database {settings.database_path}: {e}") from e
    return DatabaseCheckpointStore(manager, config.inventory_name, settings.max_state_bytes)
