# src/drive_inventory/core/records.py
"""
FileRecord construction and inclusion filtering.

Turns remote metadata and sharing lookups into immutable FileRecords and
decides which records an inventory profile includes.
"""

import logging
from typing import Dict, List, Optional, Tuple

from drive_inventory.core.classifier import file_extension, native_subtype
from drive_inventory.core.config import CrawlConfig, InventoryProfile
from drive_inventory.core.constants import (
    NATIVE_FOLDER_SUBTYPE,
    DOCUMENT_TYPES,
    SPREADSHEET_TYPES,
    PRESENTATION_TYPES,
    MEDIA_TYPES,
    PROGRAMMING_LANGUAGES,
    SPECIAL_FILENAMES,
    CONFIG_FILES,
    MARKDOWN_EXTENSIONS,
    MARKDOWN_MIME_TYPES,
    SENSITIVE_NATIVE_SUBTYPES,
    UNKNOWN_FOLDER,
    UNKNOWN_OWNER,
)
from drive_inventory.core.exceptions import RemoteError
from drive_inventory.core.models import FileRecord, SharingAccess
from drive_inventory.core.remote import FileMetadata, RemoteFileClient, SharingInfo
from drive_inventory.utils.date_utils import ensure_utc

logger = logging.getLogger(__name__)

UNKNOWN_PATH: Tuple[str, ...] = (UNKNOWN_FOLDER,)
FOLDER_CACHE_LIMIT = 1000

_DOCUMENT_EXTENSIONS = frozenset(DOCUMENT_TYPES) | frozenset(SPREADSHEET_TYPES) | frozenset(PRESENTATION_TYPES) | {"md"}
_DOCUMENT_SUBTYPES = frozenset(SENSITIVE_NATIVE_SUBTYPES + ("presentation", "form", "drawing"))
_IMAGE_EXTENSIONS = frozenset(ext for ext, label in MEDIA_TYPES.items() if label == "Image")


class RecordBuilder:
    """
    Builds FileRecords from remote lookups.

    Folder lookups are cached for the lifetime of the builder, which is one
    scheduler invocation.
    """

    def __init__(self, client: RemoteFileClient, config: CrawlConfig):
        self.client = client
        self.depth_limit = config.path_depth_limit
        self.max_collaborators = config.max_collaborators
        self._folder_cache: Dict[str, Optional[Tuple[str, List[str]]]] = {}

    def _folder(self, folder_id: str) -> Optional[Tuple[str, List[str]]]:
        if folder_id not in self._folder_cache:
            if len(self._folder_cache) >= FOLDER_CACHE_LIMIT:
                self._folder_cache.clear()
            folder = self.client.get_folder(folder_id)
            self._folder_cache[folder_id] = (folder.name, folder.parent_ids) if folder else None
        return self._folder_cache[folder_id]

    def resolve_path(self, parent_ids: List[str]) -> Tuple[str, ...]:
        """Names of up to ``depth_limit`` nearest ancestors, outermost first."""
        names: List[str] = []
        current = parent_ids[0] if parent_ids else None
        try:
            while current is not None and len(names) < self.depth_limit:
                folder = self._folder(current)
                if folder is None:
                    break
                name, parents = folder
                names.append(name)
                current = parents[0] if parents else None
        except RemoteError as e:
            logger.debug(f"Folder lookup failed for {current}: {e}")
            return UNKNOWN_PATH
        return tuple(reversed(names))

    def build(self, metadata: FileMetadata, sharing: Optional[SharingInfo]) -> FileRecord:
        sharing = sharing or SharingInfo()
        viewers = tuple(sharing.viewers[:self.max_collaborators])
        editors = tuple(sharing.editors[:self.max_collaborators])
        owner = metadata.owner_email or UNKNOWN_OWNER

        access = sharing.access_level
        if access == SharingAccess.PRIVATE and _has_outside_collaborator(owner, viewers + editors):
            access = SharingAccess.EXTERNAL

        return FileRecord(
            file_id=metadata.file_id,
            name=metadata.name or "",
            size=max(0, metadata.size or 0),
            mime_type=metadata.mime_type or "",
            created_at=ensure_utc(metadata.created_at),
            modified_at=ensure_utc(metadata.modified_at),
            owner=owner,
            container_path=self.resolve_path(metadata.parent_ids),
            url=metadata.url or "",
            description=metadata.description or "",
            access=access,
            permission=sharing.permission_level,
            viewers=viewers,
            editors=editors,
            trashed=metadata.trashed,
        )


def _domain(identity: str) -> Optional[str]:
    if "@" not in identity:
        return None
    return identity.rsplit("@", 1)[1].lower()


def _has_outside_collaborator(owner: str, identities: Tuple[str, ...]) -> bool:
    owner_domain = _domain(owner)
    for identity in identities:
        domain = _domain(identity)
        if domain and domain != owner_domain:
            return True
    return False


class InclusionFilter:
    """Decides whether a record takes part in the inventory."""

    def __init__(self, config: CrawlConfig, large_file_threshold_bytes: int):
        self.include_native = config.include_native_files
        self.include_trashed = config.include_trashed
        self.profile = config.profile
        self.large_threshold = large_file_threshold_bytes

    def prefilter(self, metadata: FileMetadata) -> bool:
        """Cheap metadata-only checks, applied before sharing is fetched."""
        if metadata.trashed and not self.include_trashed:
            return False
        subtype = native_subtype(metadata.mime_type)
        if subtype == NATIVE_FOLDER_SUBTYPE:
            return False
        return subtype is None or self.include_native

    def includes(self, record: FileRecord) -> bool:
        if record.trashed and not self.include_trashed:
            return False

        subtype = native_subtype(record.mime_type)
        if subtype == NATIVE_FOLDER_SUBTYPE:
            return False
        if subtype is not None and not self.include_native:
            return False

        extension = file_extension(record.name)
        profile = self.profile
        if profile == InventoryProfile.ALL:
            return True
        if profile == InventoryProfile.DOCUMENTS:
            return extension in _DOCUMENT_EXTENSIONS or subtype in _DOCUMENT_SUBTYPES
        if profile == InventoryProfile.CODE:
            lower_name = record.name.lower()
            return (
                extension in PROGRAMMING_LANGUAGES
                or lower_name in SPECIAL_FILENAMES
                or lower_name in CONFIG_FILES
            )
        if profile == InventoryProfile.IMAGES:
            return extension in _IMAGE_EXTENSIONS or record.mime_type.startswith("image/")
        if profile == InventoryProfile.LARGE:
            return record.size >= self.large_threshold
        if profile == InventoryProfile.SHARED:
            return record.access != SharingAccess.PRIVATE
        if profile == InventoryProfile.MARKDOWN:
            return extension in MARKDOWN_EXTENSIONS or record.mime_type in MARKDOWN_MIME_TYPES
        return True
