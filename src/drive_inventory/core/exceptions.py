# src/drive_inventory/core/exceptions.py
"""
Exception hierarchy for Drive Inventory.

Remote adapters raise RemoteError subclasses; checkpoint stores raise
CheckpointError subclasses. The crawl scheduler translates these into run
statuses rather than letting them escape an invocation.
"""

from typing import Optional


class DriveInventoryError(Exception):
    """Base exception for all Drive Inventory errors."""
    pass


class ConfigurationError(DriveInventoryError):
    """Invalid or missing configuration."""
    pass


class RemoteError(DriveInventoryError):
    """A call against the remote file store failed."""

    def __init__(self, message: str, handle_id: Optional[str] = None):
        super().__init__(message)
        self.handle_id = handle_id


class RateLimitError(RemoteError):
    """The remote store rejected a call because of rate limiting."""
    pass


class CheckpointError(DriveInventoryError):
    """Base class for checkpoint persistence failures."""
    pass


class CheckpointQuotaExceededError(CheckpointError):
    """Serialized checkpoint is larger than the configured storage ceiling."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Serialized checkpoint is {size} bytes, exceeding the {limit} byte limit"
        )
        self.size = size
        self.limit = limit


class CheckpointCorruptedError(CheckpointError):
    """A stored checkpoint could not be decoded."""
    pass


class InventoryLockedError(DriveInventoryError):
    """Another invocation currently holds the inventory checkpoint."""
    pass


class ClassificationError(DriveInventoryError):
    """The classifier failed. It is total, so this indicates a bug."""
    pass


class DatabaseError(DriveInventoryError):
    """Base exception for database errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Database connection errors."""
    pass


class DatabaseIntegrityError(DatabaseError):
    """Database integrity constraint violations."""
    pass


class ExportError(DriveInventoryError):
    """Report rendering failed."""
    pass
