"""
SQLAlchemy database models for Drive Inventory.

Two tables: the current checkpoint of each inventory (at most one row per
inventory name) and a bounded history of invocations.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Text, Index, CheckConstraint
)
from sqlalchemy.orm import declarative_base, validates

Base = declarative_base()

_STATUSES = "('NOT_STARTED', 'RUNNING', 'PAUSED', 'COMPLETE', 'ERROR')"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InventoryCheckpoint(Base):
    """
    Durable checkpoint of one inventory run.

    ``payload`` holds the full serialized record; the other columns are
    denormalised from it for status queries. A failed run sets ``status`` to
    ERROR and fills ``last_error`` while ``payload`` keeps the last good save.
    """
    __tablename__ = 'inventory_checkpoints'

    inventory_name = Column(String(100), primary_key=True)
    status = Column(String(20), nullable=False)
    cursor = Column(Text)
    batch_count = Column(Integer, default=0, nullable=False)
    files_processed = Column(Integer, default=0, nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    size_bytes = Column(Integer, nullable=False)
    last_error = Column(Text)
    payload = Column(Text, nullable=False)

    __table_args__ = (
        CheckConstraint(f"status IN {_STATUSES}", name='check_checkpoint_status_valid'),
        CheckConstraint('batch_count >= 0', name='check_batch_count_positive'),
        CheckConstraint('size_bytes >= 0', name='check_size_bytes_positive'),
    )

    @validates('inventory_name')
    def validate_inventory_name(self, key, inventory_name):
        """Validate inventory_name is not empty."""
        if not inventory_name or not inventory_name.strip():
            raise ValueError("Inventory name cannot be empty")
        return inventory_name.strip()

    def __repr__(self):
        return (f"<InventoryCheckpoint(name='{self.inventory_name}', status='{self.status}', "
                f"batches={self.batch_count}, size={self.size_bytes})>")


class RunHistory(Base):
    """One scheduler invocation."""
    __tablename__ = 'run_history'

    id = Column(Integer, primary_key=True, autoincrement=True)
    inventory_name = Column(String(100), nullable=False)
    recorded_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    status = Column(String(20), nullable=False)
    files_processed = Column(Integer, default=0, nullable=False)
    batches = Column(Integer, default=0, nullable=False)
    duration_seconds = Column(Float, default=0.0, nullable=False)
    error = Column(Text)

    __table_args__ = (
        Index('idx_history_inventory', 'inventory_name', 'id'),
        CheckConstraint(f"status IN {_STATUSES}", name='check_history_status_valid'),
        CheckConstraint('files_processed >= 0', name='check_history_files_positive'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "inventory_name": self.inventory_name,
            "recorded_at": self.recorded_at,
            "status": self.status,
            "files_processed": self.files_processed,
            "batches": self.batches,
            "duration_seconds": self.duration_seconds,
            "error": self.error,
        }

    def __repr__(self):
        return f"<RunHistory(id={self.id}, inventory='{self.inventory_name}', status='{self.status}')>"
