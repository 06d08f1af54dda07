# src/drive_inventory/core/remote.py
"""
Remote file store client interface and adapters.

The crawl engine only depends on :class:`RemoteFileClient`. Cursors returned
by ``list_files`` are opaque strings: the scheduler stores and replays them
but never interprets them. Adapters must wrap their transport failures in
:class:`~drive_inventory.core.exceptions.RemoteError`.
"""

import logging
import mimetypes
import os
import stat
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import islice
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Set

from drive_inventory.core.constants import UNKNOWN_OWNER
from drive_inventory.core.exceptions import RemoteError, RateLimitError
from drive_inventory.core.models import SharingAccess, SharingPermission

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileHandle:
    """Reference to one listed file."""
    file_id: str


@dataclass
class FileMetadata:
    """Metadata of one file as reported by the remote store."""
    file_id: str
    name: str
    size: int = 0
    mime_type: str = ""
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    owner_email: str = UNKNOWN_OWNER
    parent_ids: List[str] = field(default_factory=list)
    url: str = ""
    description: str = ""
    trashed: bool = False


@dataclass
class SharingInfo:
    """Sharing settings of one file."""
    access_level: SharingAccess = SharingAccess.PRIVATE
    permission_level: SharingPermission = SharingPermission.NONE
    viewers: List[str] = field(default_factory=list)
    editors: List[str] = field(default_factory=list)


@dataclass
class FolderInfo:
    folder_id: str
    name: str
    parent_ids: List[str] = field(default_factory=list)


@dataclass
class ListPage:
    """One page of a paginated listing."""
    items: List[FileHandle]
    next_cursor: Optional[str] = None
    has_more: bool = False


_ACCESS_ALIASES: Dict[str, SharingAccess] = {
    "anyone": SharingAccess.PUBLIC,
    "anyone_with_link": SharingAccess.PUBLIC,
    "public": SharingAccess.PUBLIC,
    "domain": SharingAccess.DOMAIN,
    "domain_with_link": SharingAccess.DOMAIN,
    "external": SharingAccess.EXTERNAL,
    "private": SharingAccess.PRIVATE,
}

_PERMISSION_ALIASES: Dict[str, SharingPermission] = {
    "edit": SharingPermission.EDIT,
    "writer": SharingPermission.EDIT,
    "organizer": SharingPermission.EDIT,
    "owner": SharingPermission.EDIT,
    "view": SharingPermission.VIEW,
    "reader": SharingPermission.VIEW,
    "comment": SharingPermission.VIEW,
    "commenter": SharingPermission.VIEW,
    "none": SharingPermission.NONE,
}


def normalize_access(value: str) -> SharingAccess:
    """Map a store-specific access level name to SharingAccess (default private)."""
    return _ACCESS_ALIASES.get((value or "").strip().lower(), SharingAccess.PRIVATE)


def normalize_permission(value: str) -> SharingPermission:
    """Map a store-specific permission name to SharingPermission (default none)."""
    return _PERMISSION_ALIASES.get((value or "").strip().lower(), SharingPermission.NONE)


class RemoteFileClient(ABC):
    """Paginated listing plus per-file metadata and sharing lookups."""

    @abstractmethod
    def list_files(self, cursor: Optional[str], page_size: int) -> ListPage:
        """
        List up to ``page_size`` files starting at ``cursor``.

        Args:
            cursor: Value of a previous page's ``next_cursor``; None for the start
            page_size: Maximum number of handles to return

        Raises:
            RemoteError: Listing failed (retried by the scheduler)
        """

    @abstractmethod
    def get_metadata(self, handle: FileHandle) -> FileMetadata:
        """Fetch metadata for one file."""

    @abstractmethod
    def get_sharing(self, handle: FileHandle) -> SharingInfo:
        """Fetch sharing settings for one file."""

    def get_folder(self, folder_id: str) -> Optional[FolderInfo]:
        """Look up a folder for path building. None ends the path walk."""
        return None


class InMemoryFileClient(RemoteFileClient):
    """
    Deterministic client over an in-memory list of files.

    Supports fault injection for exercising the scheduler's error handling:
    ``listing_failures`` fails that many upcoming ``list_files`` calls,
    ``metadata_failures``/``sharing_failures`` fail lookups for those ids.
    """

    def __init__(
        self,
        files: Sequence[FileMetadata],
        sharing: Optional[Dict[str, SharingInfo]] = None,
        folders: Optional[Dict[str, FolderInfo]] = None,
        listing_failures: int = 0,
        metadata_failures: Optional[Set[str]] = None,
        sharing_failures: Optional[Set[str]] = None
    ):
        self.files = list(files)
        self._by_id = {metadata.file_id: metadata for metadata in self.files}
        self.sharing = dict(sharing or {})
        self.folders = dict(folders or {})
        self.listing_failures = listing_failures
        self.metadata_failures = set(metadata_failures or ())
        self.sharing_failures = set(sharing_failures or ())
        self.list_calls = 0
        self.metadata_calls: List[str] = []

    @staticmethod
    def _offset(cursor: Optional[str]) -> int:
        if cursor is None:
            return 0
        try:
            return int(cursor.split(":", 1)[1])
        except (IndexError, ValueError) as e:
            raise RemoteError(f"Invalid cursor: {cursor!r}") from e

    def list_files(self, cursor: Optional[str], page_size: int) -> ListPage:
        self.list_calls += 1
        if self.listing_failures > 0:
            self.listing_failures -= 1
            raise RateLimitError("Simulated rate limit on listing")

        offset = self._offset(cursor)
        chunk = self.files[offset:offset + page_size]
        next_offset = offset + len(chunk)
        has_more = next_offset < len(self.files)
        return ListPage(
            items=[FileHandle(metadata.file_id) for metadata in chunk],
            next_cursor=f"offset:{next_offset}" if has_more else None,
            has_more=has_more,
        )

    def get_metadata(self, handle: FileHandle) -> FileMetadata:
        self.metadata_calls.append(handle.file_id)
        if handle.file_id in self.metadata_failures:
            raise RemoteError("Simulated metadata failure", handle.file_id)
        try:
            return self._by_id[handle.file_id]
        except KeyError:
            raise RemoteError(f"File not found: {handle.file_id}", handle.file_id)

    def get_sharing(self, handle: FileHandle) -> SharingInfo:
        if handle.file_id in self.sharing_failures:
            raise RemoteError("Simulated sharing failure", handle.file_id)
        return self.sharing.get(handle.file_id, SharingInfo())

    def get_folder(self, folder_id: str) -> Optional[FolderInfo]:
        return self.folders.get(folder_id)


class LocalFileSystemClient(RemoteFileClient):
    """
    Treats a local directory tree as the file store.

    Files are listed in a stable sorted walk order and cursors are offsets
    into that order. Sharing is derived from POSIX permission bits:
    world-writable is public/edit, world-readable is domain/view.
    """

    def __init__(self, root: Path, follow_symlinks: bool = False):
        self.root = Path(root).resolve()
        self.follow_symlinks = follow_symlinks
        if not self.root.is_dir():
            raise RemoteError(f"Not a directory: {self.root}")

    def _walk(self) -> Iterator[str]:
        for dirpath, dirnames, filenames in os.walk(self.root, followlinks=self.follow_symlinks):
            dirnames.sort()
            relative_dir = Path(dirpath).relative_to(self.root)
            for filename in sorted(filenames):
                yield (relative_dir / filename).as_posix()

    def list_files(self, cursor: Optional[str], page_size: int) -> ListPage:
        try:
            offset = int(cursor) if cursor else 0
        except ValueError as e:
            raise RemoteError(f"Invalid cursor: {cursor!r}") from e

        try:
            window = list(islice(self._walk(), offset, offset + page_size + 1))
        except OSError as e:
            raise RemoteError(f"Listing failed under {self.root}: {e}") from e

        items = [FileHandle(file_id) for file_id in window[:page_size]]
        has_more = len(window) > page_size
        return ListPage(
            items=items,
            next_cursor=str(offset + len(items)) if has_more else None,
            has_more=has_more,
        )

    def _path(self, file_id: str) -> Path:
        return self.root / file_id

    def get_metadata(self, handle: FileHandle) -> FileMetadata:
        path = self._path(handle.file_id)
        try:
            stats = path.stat() if self.follow_symlinks else path.lstat()
        except OSError as e:
            raise RemoteError(f"Cannot stat {path}: {e}", handle.file_id) from e

        try:
            owner = path.owner()
        except (KeyError, NotImplementedError, OSError):
            owner = UNKNOWN_OWNER

        parent = Path(handle.file_id).parent.as_posix()
        return FileMetadata(
            file_id=handle.file_id,
            name=path.name,
            size=stats.st_size,
            mime_type=mimetypes.guess_type(path.name)[0] or "",
            created_at=datetime.fromtimestamp(stats.st_ctime, tz=timezone.utc),
            modified_at=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc),
            owner_email=owner,
            parent_ids=[parent] if parent != "." else [],
            url=path.as_uri(),
        )

    def get_sharing(self, handle: FileHandle) -> SharingInfo:
        path = self._path(handle.file_id)
        try:
            mode = path.lstat().st_mode
        except OSError as e:
            raise RemoteError(f"Cannot stat {path}: {e}", handle.file_id) from e

        if mode & stat.S_IWOTH:
            return SharingInfo(SharingAccess.PUBLIC, SharingPermission.EDIT)
        if mode & stat.S_IROTH:
            return SharingInfo(SharingAccess.DOMAIN, SharingPermission.VIEW)
        return SharingInfo()

    def get_folder(self, folder_id: str) -> Optional[FolderInfo]:
        folder = Path(folder_id)
        if not folder_id or folder_id == ".":
            return None
        parent = folder.parent.as_posix()
        return FolderInfo(
            folder_id=folder_id,
            name=folder.name,
            parent_ids=[parent] if parent != "." else [],
        )
