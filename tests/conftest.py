"""
Pytest configuration and shared fixtures for Drive Inventory tests.
"""
import pytest
from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys

# Add src to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from drive_inventory.core.checkpoint import MemoryCheckpointStore
from drive_inventory.core.config import Config, CheckpointBackend
from drive_inventory.core.models import FileRecord, SharingAccess, SharingPermission
from drive_inventory.core.remote import FileMetadata, FolderInfo, InMemoryFileClient, SharingInfo

BASE_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock; optionally ticks on every read."""

    def __init__(self, start: datetime = BASE_TIME, tick_seconds: float = 0.0):
        self.now = start
        self.tick_seconds = tick_seconds

    def __call__(self) -> datetime:
        current = self.now
        if self.tick_seconds:
            self.now += timedelta(seconds=self.tick_seconds)
        return current

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def make_metadata(index: int, **overrides) -> FileMetadata:
    """Metadata for a small private text file numbered ``index``."""
    values = dict(
        file_id=f"f{index:04d}",
        name=f"file_{index:04d}.txt",
        size=1000 + index,
        mime_type="text/plain",
        created_at=BASE_TIME - timedelta(days=400 + index),
        modified_at=BASE_TIME - timedelta(days=index % 800),
        owner_email="owner@example.com",
        parent_ids=["folder-docs"],
        url=f"https://files.example.com/f{index:04d}",
    )
    values.update(overrides)
    return FileMetadata(**values)


def make_record(**overrides) -> FileRecord:
    """FileRecord with neutral defaults."""
    values = dict(
        file_id="r1",
        name="notes.txt",
        size=1000,
        mime_type="text/plain",
        created_at=BASE_TIME - timedelta(days=20),
        modified_at=BASE_TIME - timedelta(days=10),
        owner="owner@example.com",
        container_path=("Projects",),
        url="https://files.example.com/r1",
        access=SharingAccess.PRIVATE,
        permission=SharingPermission.NONE,
    )
    values.update(overrides)
    return FileRecord(**values)


@pytest.fixture
def fake_clock():
    """Clock fixed at BASE_TIME until advanced."""
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    """Configuration with in-memory checkpoints and no real delays."""
    cfg = Config(
        inventory_name="test-drive",
        output_directory=tmp_path / "reports",
        log_directory=tmp_path / "logs",
    )
    cfg.checkpoint.backend = CheckpointBackend.MEMORY
    cfg.checkpoint.database_path = tmp_path / "checkpoints.db"
    cfg.crawl.inter_batch_delay_seconds = 0
    cfg.crawl.retry_backoff_seconds = 0.5
    cfg.crawl.memory_limit_mb = None
    return cfg


@pytest.fixture
def memory_store(config):
    """Empty in-memory checkpoint store for the test inventory."""
    return MemoryCheckpointStore(config.inventory_name, config.checkpoint.max_state_bytes)


@pytest.fixture
def folders():
    """A two-level folder tree: Shared/Docs."""
    return {
        "folder-shared": FolderInfo("folder-shared", "Shared", []),
        "folder-docs": FolderInfo("folder-docs", "Docs", ["folder-shared"]),
    }


@pytest.fixture
def client_factory(folders):
    """Build an InMemoryFileClient over ``count`` generated files."""
    def factory(count: int, sharing=None, **kwargs) -> InMemoryFileClient:
        files = [make_metadata(index) for index in range(count)]
        return InMemoryFileClient(files, sharing=sharing, folders=folders, **kwargs)
    return factory


@pytest.fixture
def public_sharing():
    """Sharing settings for a publicly editable file with outside collaborators."""
    return SharingInfo(
        access_level=SharingAccess.PUBLIC,
        permission_level=SharingPermission.EDIT,
        viewers=["guest@partner.org"],
        editors=["contractor@vendor.io"],
    )
