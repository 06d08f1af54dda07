# src/drive_inventory/core/checkpoint.py
"""
Checkpoint store interface and serialization.

A checkpoint holds the listing cursor, the serialized AggregateState and the
run status. Stores keep exactly one record per inventory name and overwrite
it on every save. A record that serializes larger than the configured ceiling
is rejected before anything is written, so the previous record survives.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from pydantic import ValidationError

from drive_inventory.core.exceptions import CheckpointCorruptedError, CheckpointQuotaExceededError
from drive_inventory.core.models import CheckpointRecord, RunStatus

logger = logging.getLogger(__name__)


def serialize_checkpoint(record: CheckpointRecord) -> str:
    """Serialize a checkpoint record to compact JSON."""
    return record.model_dump_json()


def deserialize_checkpoint(blob: str) -> CheckpointRecord:
    """
    Decode a serialized checkpoint record.

    Raises:
        CheckpointCorruptedError: If the blob is not a valid record
    """
    try:
        return CheckpointRecord.model_validate_json(blob)
    except ValidationError as e:
        raise CheckpointCorruptedError(f"Stored checkpoint could not be decoded: {e}") from e


def enforce_size_limit(blob: str, max_bytes: int) -> int:
    """
    Check the encoded size of a serialized record.

    Returns:
        Size in bytes

    Raises:
        CheckpointQuotaExceededError: If the blob is larger than ``max_bytes``
    """
    size = len(blob.encode("utf-8"))
    if size > max_bytes:
        raise CheckpointQuotaExceededError(size, max_bytes)
    return size


class CheckpointStore(ABC):
    """Durable, size-bounded persistence for one inventory's checkpoint."""

    def __init__(self, inventory_name: str, max_bytes: int):
        self.inventory_name = inventory_name
        self.max_bytes = max_bytes

    @abstractmethod
    def load(self) -> Optional[CheckpointRecord]:
        """Return the stored record, or None when no run is in progress."""

    @abstractmethod
    def save(self, record: CheckpointRecord) -> int:
        """
        Replace the stored record.

        Returns:
            Serialized size in bytes

        Raises:
            CheckpointQuotaExceededError: Record too large; stored record unchanged
        """

    @abstractmethod
    def clear(self) -> None:
        """Delete the stored record."""

    @abstractmethod
    def mark_error(self, message: str) -> bool:
        """
        Flag the stored record as ERROR without replacing its payload.

        The cursor and state of the last good save are kept, so a forced run
        resumes from them. The next save clears the flag.

        Returns:
            False when there is no stored record to flag
        """

    def record_run(
        self,
        status: RunStatus,
        files_processed: int,
        batches: int,
        duration_seconds: float,
        error: Optional[str] = None
    ) -> None:
        """Record one invocation in the run history. No-op unless supported."""

    def history(self, limit: int = 20) -> List[Dict]:
        """Most recent invocations first."""
        return []


class MemoryCheckpointStore(CheckpointStore):
    """
    In-process checkpoint store.

    Records are kept serialized so that load() exercises the same decode path
    as the durable stores.
    """

    def __init__(self, inventory_name: str = "drive", max_bytes: int = 2 * 1024 * 1024):
        super().__init__(inventory_name, max_bytes)
        self._blobs: Dict[str, str] = {}
        self._errors: Dict[str, str] = {}
        self._history: List[Dict] = []
        self.save_count = 0

    def load(self) -> Optional[CheckpointRecord]:
        blob = self._blobs.get(self.inventory_name)
        if blob is None:
            return None
        record = deserialize_checkpoint(blob)
        if self.inventory_name in self._errors:
            record.status = RunStatus.ERROR
            record.last_error = self._errors[self.inventory_name]
        return record

    def save(self, record: CheckpointRecord) -> int:
        blob = serialize_checkpoint(record)
        size = enforce_size_limit(blob, self.max_bytes)
        self._blobs[self.inventory_name] = blob
        self._errors.pop(self.inventory_name, None)
        self.save_count += 1
        logger.debug(f"Checkpoint saved in memory ({size} bytes)")
        return size

    def clear(self) -> None:
        self._blobs.pop(self.inventory_name, None)
        self._errors.pop(self.inventory_name, None)

    def mark_error(self, message: str) -> bool:
        if self.inventory_name not in self._blobs:
            return False
        self._errors[self.inventory_name] = message
        return True

    def raw(self) -> Optional[str]:
        """Stored serialized record, for inspection."""
        return self._blobs.get(self.inventory_name)

    def record_run(self, status, files_processed, batches, duration_seconds, error=None) -> None:
        self._history.append({
            "status": status.value,
            "files_processed": files_processed,
            "batches": batches,
            "duration_seconds": duration_seconds,
            "error": error,
        })

    def history(self, limit: int = 20) -> List[Dict]:
        return list(reversed(self._history))[:limit]
