"""
SQLAlchemy-backed checkpoint persistence and run history.
"""

from drive_inventory.database.manager import DatabaseManager
from drive_inventory.database.store import DatabaseCheckpointStore, create_checkpoint_store

__all__ = [
    "DatabaseManager",
    "DatabaseCheckpointStore",
    "create_checkpoint_store",
]
