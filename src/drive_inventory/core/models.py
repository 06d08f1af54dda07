# src/drive_inventory/core/models.py
"""
Pydantic data models for Drive Inventory.

These models provide type validation and serialization for file records,
classifications, the checkpointed aggregate state and the finalized report.
"""

from datetime import datetime
from typing import Optional, Dict, List, Tuple
from enum import Enum

from pydantic import BaseModel, Field, ConfigDict

from drive_inventory.core.constants import ROOT_FOLDER, PATH_SEPARATOR, UNKNOWN_OWNER


class SharingAccess(str, Enum):
    """Who can reach a file, ordered by exposure."""
    PRIVATE = "private"
    EXTERNAL = "external"
    DOMAIN = "domain"
    PUBLIC = "public"


class SharingPermission(str, Enum):
    """Strongest permission granted through sharing."""
    NONE = "none"
    VIEW = "view"
    EDIT = "edit"


class RunStatus(str, Enum):
    """Inventory run status."""
    NOT_STARTED = "NOT_STARTED"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


class FileCategory(str, Enum):
    """Role of a file within a project tree."""
    CONFIGURATION = "Configuration"
    SCRIPT = "Script"
    TEST = "Test"
    DOCUMENTATION = "Documentation"
    BUILD = "Build"
    SOURCE = "Source Code"
    GENERAL = "General"


class ErrorKind(str, Enum):
    """Per-file failure classes counted in the aggregate."""
    METADATA = "metadata"
    SHARING = "sharing"
    PROCESSING = "processing"


# Base configuration for all models
class BaseInventoryModel(BaseModel):
    """Base model with common configuration."""
    model_config = ConfigDict(
        validate_default=True,
    )


class FileRecord(BaseInventoryModel):
    """One observed file. Built fresh each crawl and never persisted on its own."""
    model_config = ConfigDict(frozen=True)

    file_id: str = Field(..., description="Remote identifier")
    name: str = Field(default="", description="File name including extension")
    size: int = Field(default=0, ge=0, description="Size in bytes")
    mime_type: str = Field(default="", description="Declared content type")
    created_at: Optional[datetime] = Field(default=None)
    modified_at: Optional[datetime] = Field(default=None)
    owner: str = Field(default=UNKNOWN_OWNER, description="Owner identity (e-mail)")
    container_path: Tuple[str, ...] = Field(default=(), description="Ancestor folder names, outermost first")
    url: str = Field(default="")
    description: str = Field(default="")
    access: SharingAccess = Field(default=SharingAccess.PRIVATE)
    permission: SharingPermission = Field(default=SharingPermission.NONE)
    viewers: Tuple[str, ...] = Field(default=())
    editors: Tuple[str, ...] = Field(default=())
    trashed: bool = Field(default=False)

    @property
    def path(self) -> str:
        """Container path as a display string."""
        return PATH_SEPARATOR.join(self.container_path) if self.container_path else ROOT_FOLDER

    @property
    def owner_domain(self) -> str:
        if "@" in self.owner:
            return self.owner.rsplit("@", 1)[1].lower()
        return UNKNOWN_OWNER


class Classification(BaseInventoryModel):
    """Derived labels and scores for one FileRecord."""
    type_label: str
    category: FileCategory
    extension: str = ""
    language: Optional[str] = None
    is_native: bool = False
    size_bucket: str
    age_days: Optional[int] = None
    cleanup_score: int = Field(default=0, ge=0, le=100)
    risk_score: int = Field(default=0, ge=0, le=100)
    cleanup_reasons: List[str] = Field(default_factory=list)
    risk_factors: List[str] = Field(default_factory=list)
    external_domains: List[str] = Field(default_factory=list)


class RankedFile(BaseInventoryModel):
    """Compact entry retained in a bounded top-K list."""
    file_id: str
    name: str
    size: int
    path: str
    url: str = ""
    owner: str = UNKNOWN_OWNER
    type_label: str
    modified_at: Optional[datetime] = None
    age_days: Optional[int] = None
    risk_score: int = 0
    cleanup_score: int = 0
    access: SharingAccess = SharingAccess.PRIVATE
    reasons: List[str] = Field(default_factory=list)


class DuplicateLocation(BaseInventoryModel):
    file_id: str
    path: str
    url: str = ""


class DuplicateCandidate(BaseInventoryModel):
    """Files sharing one (name, size) key."""
    name: str
    size: int
    count: int = 0
    locations: List[DuplicateLocation] = Field(default_factory=list)


class AggregateState(BaseInventoryModel):
    """
    Cumulative summary of every file processed so far in a run.

    This is the unit of checkpointing: everything the final report needs is
    tracked here, because raw file records are never retained.
    """
    total_files: int = 0
    total_bytes: int = 0
    native_files: int = 0
    shared_files_count: int = 0
    public_files: int = 0
    domain_files: int = 0
    external_files: int = 0
    cleanup_potential_bytes: int = 0
    errors: int = 0
    errors_by_kind: Dict[str, int] = Field(default_factory=dict)
    dropped_duplicate_candidates: int = 0
    readme_files: int = 0
    orphaned_files: int = 0

    # Grouped counts
    by_type: Dict[str, int] = Field(default_factory=dict)
    by_category: Dict[str, int] = Field(default_factory=dict)
    by_language: Dict[str, int] = Field(default_factory=dict)
    by_year: Dict[str, int] = Field(default_factory=dict)
    by_owner: Dict[str, int] = Field(default_factory=dict)
    by_domain: Dict[str, int] = Field(default_factory=dict)
    by_folder: Dict[str, int] = Field(default_factory=dict)
    by_project: Dict[str, int] = Field(default_factory=dict)
    by_access: Dict[str, int] = Field(default_factory=dict)
    by_permission: Dict[str, int] = Field(default_factory=dict)
    by_size_bucket: Dict[str, int] = Field(default_factory=dict)
    bytes_by_type: Dict[str, int] = Field(default_factory=dict)
    bytes_by_folder: Dict[str, int] = Field(default_factory=dict)
    external_domains: Dict[str, int] = Field(default_factory=dict)

    # Bounded ranked lists
    large_files: List[RankedFile] = Field(default_factory=list)
    old_files: List[RankedFile] = Field(default_factory=list)
    high_risk_files: List[RankedFile] = Field(default_factory=list)
    cleanup_candidates: List[RankedFile] = Field(default_factory=list)
    shared_files: List[RankedFile] = Field(default_factory=list)

    duplicate_candidates: Dict[str, DuplicateCandidate] = Field(default_factory=dict)


class CheckpointRecord(BaseInventoryModel):
    """Durable snapshot that lets a later invocation resume a run."""
    schema_version: int = 1
    cursor: Optional[str] = Field(default=None, description="Opaque listing cursor; None = start")
    page_offset: int = Field(default=0, ge=0, description="Listings of the page at cursor already processed")
    state: AggregateState = Field(default_factory=AggregateState)
    status: RunStatus = RunStatus.RUNNING
    batch_count: int = Field(default=0, ge=0)
    listings_seen: int = Field(default=0, ge=0)
    started_at: datetime
    updated_at: datetime
    last_error: Optional[str] = None


class InventoryStatus(BaseInventoryModel):
    """Operator-facing view of a checkpoint."""
    inventory_name: str
    status: RunStatus
    batch_count: int = 0
    files_processed: int = 0
    total_bytes: int = 0
    errors: int = 0
    has_cursor: bool = False
    started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_error: Optional[str] = None


class GroupCount(BaseInventoryModel):
    label: str
    count: int
    percentage: float = 0.0
    size_bytes: Optional[int] = None
    size: Optional[str] = None


class ReportFile(BaseInventoryModel):
    """Display-ready ranked file."""
    file_id: str
    name: str
    size_bytes: int
    size: str
    path: str
    url: str = ""
    owner: str = ""
    type_label: str = ""
    modified: str = ""
    age_days: Optional[int] = None
    risk_score: int = 0
    cleanup_score: int = 0
    access: str = ""
    reasons: str = ""


class DuplicateGroup(BaseInventoryModel):
    name: str
    size_bytes: int
    size: str
    count: int
    wasted_bytes: int
    wasted: str
    locations: List[str] = Field(default_factory=list)
    urls: List[str] = Field(default_factory=list)


class Recommendation(BaseInventoryModel):
    priority: str
    title: str
    description: str
    action: str = ""
    potential_savings: Optional[str] = None


class ReportModel(BaseInventoryModel):
    """Finalized, display-ready projection of an AggregateState."""
    inventory_name: str
    status: RunStatus
    started_at: Optional[datetime] = None
    generated_at: datetime
    batch_count: int = 0

    total_files: int = 0
    total_bytes: int = 0
    total_size: str = "0 Bytes"
    average_size: str = "0 Bytes"
    errors: int = 0
    errors_by_kind: Dict[str, int] = Field(default_factory=dict)
    native_files: int = 0
    shared_files_count: int = 0
    public_files: int = 0
    domain_files: int = 0
    external_files: int = 0
    cleanup_potential: str = "0 Bytes"
    dropped_duplicate_candidates: int = 0
    readme_files: int = 0
    orphaned_files: int = 0

    groupings: Dict[str, List[GroupCount]] = Field(default_factory=dict)
    largest_folders: List[GroupCount] = Field(default_factory=list)

    large_files: List[ReportFile] = Field(default_factory=list)
    old_files: List[ReportFile] = Field(default_factory=list)
    high_risk_files: List[ReportFile] = Field(default_factory=list)
    cleanup_candidates: List[ReportFile] = Field(default_factory=list)
    shared_files: List[ReportFile] = Field(default_factory=list)
    duplicate_groups: List[DuplicateGroup] = Field(default_factory=list)

    recommendations: List[Recommendation] = Field(default_factory=list)
