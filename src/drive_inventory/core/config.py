# src/drive_inventory/core/config.py
"""
Configuration management using Pydantic Settings.

Supports loading from environment variables, YAML files, and defaults.
Environment variables use the ``DRIVE_INVENTORY_`` prefix with ``__`` as the
nested delimiter, e.g. ``DRIVE_INVENTORY_CRAWL__BATCH_SIZE=200``.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Optional
from functools import lru_cache

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml
import logging

from drive_inventory.core.constants import DEFAULT_INVENTORY_NAME

logger = logging.getLogger(__name__)


class InventoryProfile(str, Enum):
    """Which files an inventory run includes."""
    ALL = "all"
    DOCUMENTS = "documents"
    CODE = "code"
    IMAGES = "images"
    LARGE = "large"
    SHARED = "shared"
    MARKDOWN = "markdown"


class CheckpointBackend(str, Enum):
    """Where checkpoints are persisted."""
    DATABASE = "database"
    MEMORY = "memory"


class CrawlConfig(BaseModel):
    """Batch loop and remote listing configuration."""
    batch_size: int = Field(default=100, ge=1, le=1000, description="Listings requested per batch")
    max_runtime_seconds: float = Field(
        default=300.0,
        ge=0,
        description="Time budget per invocation; leave headroom under the host ceiling"
    )
    inter_batch_delay_seconds: float = Field(default=0.1, ge=0, description="Pause between batches")
    continuation_delay_seconds: float = Field(
        default=60.0,
        ge=0,
        description="Delay requested from the host before the next invocation"
    )
    save_interval: int = Field(
        default=0,
        ge=0,
        description="Also checkpoint after every N listings inside a batch (0 = batch boundaries only)"
    )
    max_listing_retries: int = Field(default=3, ge=0, le=10, description="Retries for a failed page request")
    retry_backoff_seconds: float = Field(default=0.5, ge=0, description="Initial retry delay, doubled per retry")
    memory_limit_mb: Optional[float] = Field(
        default=2048.0,
        gt=0,
        description="Pause at the batch boundary when process RSS exceeds this"
    )
    lock_timeout_seconds: float = Field(
        default=420.0,
        ge=0,
        description="Age after which a RUNNING checkpoint is considered abandoned"
    )

    # Inclusion
    include_native_files: bool = Field(default=True, description="Include native container documents")
    include_trashed: bool = Field(default=False, description="Include trashed items")
    track_permissions: bool = Field(default=True, description="Fetch sharing metadata per file")
    profile: InventoryProfile = Field(default=InventoryProfile.ALL, description="Inclusion profile")

    # Record construction
    path_depth_limit: int = Field(default=5, ge=0, le=50, description="Ancestor folders kept per path")
    max_collaborators: int = Field(default=20, ge=0, le=200, description="Viewer/editor identities kept per file")


class AnalysisConfig(BaseModel):
    """Scoring thresholds and bounded collection limits."""
    large_file_threshold_mb: float = Field(default=50.0, ge=0, description="Large file threshold")
    old_file_threshold_days: int = Field(default=365, ge=0, description="Old file threshold")
    high_risk_threshold: int = Field(default=70, ge=0, le=100, description="Risk score flagged as high")
    cleanup_threshold: int = Field(default=70, ge=0, le=100, description="Cleanup score flagged as candidate")

    top_k: int = Field(default=100, ge=1, le=1000, description="Entries retained per ranked list")
    max_group_keys: int = Field(
        default=500,
        ge=1,
        description="Distinct keys per grouped count map before overflowing to '(other)'"
    )
    max_duplicate_candidates: int = Field(
        default=4000,
        ge=0,
        description="Distinct (name, size) keys tracked for duplicate detection"
    )
    max_duplicate_groups: int = Field(default=50, ge=0, description="Duplicate groups reported")
    max_group_members: int = Field(default=5, ge=1, le=50, description="Locations remembered per duplicate group")

    @property
    def large_file_threshold_bytes(self) -> int:
        return int(self.large_file_threshold_mb * 1024 * 1024)


class CheckpointConfig(BaseModel):
    """Checkpoint persistence configuration."""
    backend: CheckpointBackend = Field(default=CheckpointBackend.DATABASE, description="Checkpoint backend")
    database_path: Path = Field(
        default=Path.home() / ".drive_inventory" / "checkpoints.db",
        description="SQLite database holding checkpoints and run history"
    )
    max_state_bytes: int = Field(
        default=2 * 1024 * 1024,
        ge=1024,
        description="Ceiling for one serialized checkpoint record"
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    sqlite_timeout: int = Field(default=30, ge=1, description="SQLite timeout for locked database")

    @field_validator('database_path', mode='before')
    @classmethod
    def expand_database_path(cls, v):
        """Expand ``~`` and environment variables in the database path."""
        if isinstance(v, str):
            v = Path(os.path.expandvars(v))
        return Path(v).expanduser()


class Config(BaseSettings):
    """Main application configuration."""
    model_config = SettingsConfigDict(
        env_prefix="DRIVE_INVENTORY_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Application info
    app_name: str = Field(default="Drive Inventory", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    inventory_name: str = Field(
        default=DEFAULT_INVENTORY_NAME,
        min_length=1,
        max_length=100,
        description="Checkpoint key; one run per name at a time"
    )

    # Sub-configurations
    crawl: CrawlConfig = Field(default_factory=CrawlConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    checkpoint: CheckpointConfig = Field(default_factory=CheckpointConfig)

    # Paths
    output_directory: Path = Field(
        default=Path.home() / "DriveInventoryReports",
        description="Default report directory"
    )
    log_directory: Path = Field(
        default=Path.home() / ".drive_inventory" / "logs",
        description="Log file directory"
    )

    @field_validator('output_directory', 'log_directory', mode='before')
    @classmethod
    def expand_directories(cls, v):
        """Expand ``~`` and environment variables in directory settings."""
        if isinstance(v, str):
            v = Path(os.path.expandvars(v))
        return Path(v).expanduser()

    def ensure_directories(self) -> None:
        """Create the output, log and checkpoint directories."""
        for directory in (self.output_directory, self.log_directory, self.checkpoint.database_path.parent):
            directory.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_yaml(cls, config_path: Path) -> "Config":
        """Load configuration from YAML file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}

        def expand_env_vars(obj):
            if isinstance(obj, dict):
                return {k: expand_env_vars(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [expand_env_vars(item) for item in obj]
            elif isinstance(obj, str):
                return os.path.expandvars(obj)
            return obj

        return cls(**expand_env_vars(config_data))

    def to_yaml(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_data = self.model_dump(mode="json")

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w') as f:
            yaml.dump(config_data, f, default_flow_style=False, sort_keys=False)


@lru_cache()
def get_config() -> Config:
    """Get application configuration (cached singleton)."""
    config_paths = [
        Path("config/drive_inventory.yaml"),
        Path.home() / ".drive_inventory" / "config.yaml",
    ]

    for config_path in config_paths:
        if config_path.exists():
            logger.info(f"Loading configuration from: {config_path}")
            return Config.from_yaml(config_path)

    logger.debug("No configuration file found, using defaults")
    return Config()
