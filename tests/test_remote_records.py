"""
Tests for the remote client adapters, record construction and inclusion.
"""
import os
import pytest
from datetime import datetime, timezone

from drive_inventory.core.config import CrawlConfig, InventoryProfile
from drive_inventory.core.exceptions import RateLimitError, RemoteError
from drive_inventory.core.models import SharingAccess, SharingPermission
from drive_inventory.core.records import UNKNOWN_PATH, InclusionFilter, RecordBuilder
from drive_inventory.core.remote import (
    FileHandle,
    FolderInfo,
    LocalFileSystemClient,
    SharingInfo,
    normalize_access,
    normalize_permission,
)

from conftest import make_metadata, make_record

MB = 1024 * 1024


@pytest.fixture
def tree(tmp_path):
    """root.txt, z.txt, a/b.txt and a/c/d.py under tmp_path/drive."""
    root = tmp_path / "drive"
    (root / "a" / "c").mkdir(parents=True)
    (root / "root.txt").write_text("root")
    (root / "z.txt").write_text("zz")
    (root / "a" / "b.txt").write_text("hello")
    (root / "a" / "c" / "d.py").write_text("print('d')\n")
    return root


class TestInMemoryFileClient:
    """Test paging and fault injection."""

    def test_pages_through_all_files(self, client_factory):
        """Test cursors walk the collection without gaps."""
        client = client_factory(5)
        first = client.list_files(None, 2)
        assert [h.file_id for h in first.items] == ["f0000", "f0001"]
        assert first.has_more and first.next_cursor == "offset:2"

        last = client.list_files("offset:4", 2)
        assert [h.file_id for h in last.items] == ["f0004"]
        assert not last.has_more
        assert last.next_cursor is None

    def test_invalid_cursor(self, client_factory):
        """Test a malformed cursor is a RemoteError."""
        with pytest.raises(RemoteError):
            client_factory(1).list_files("garbage", 10)

    def test_fault_injection(self, client_factory):
        """Test injected listing, metadata and sharing failures."""
        client = client_factory(3, listing_failures=1, metadata_failures={"f0001"}, sharing_failures={"f0002"})
        with pytest.raises(RateLimitError):
            client.list_files(None, 10)
        assert len(client.list_files(None, 10).items) == 3

        with pytest.raises(RemoteError) as exc_info:
            client.get_metadata(FileHandle("f0001"))
        assert exc_info.value.handle_id == "f0001"
        with pytest.raises(RemoteError):
            client.get_sharing(FileHandle("f0002"))
        assert client.get_sharing(FileHandle("f0000")) == SharingInfo()


class TestLocalFileSystemClient:
    """Test the directory-tree adapter."""

    def test_sorted_listing_and_cursor(self, tree):
        """Test a stable walk order split across pages."""
        client = LocalFileSystemClient(tree)
        first = client.list_files(None, 2)
        assert [h.file_id for h in first.items] == ["root.txt", "z.txt"]
        assert first.has_more

        second = client.list_files(first.next_cursor, 2)
        assert [h.file_id for h in second.items] == ["a/b.txt", "a/c/d.py"]
        assert not second.has_more
        assert second.next_cursor is None

    def test_exact_page_has_no_more(self, tree):
        """Test a page that ends exactly at the last file reports no more."""
        page = LocalFileSystemClient(tree).list_files(None, 4)
        assert len(page.items) == 4
        assert not page.has_more

    def test_invalid_root_and_cursor(self, tree):
        """Test bad roots and cursors are RemoteErrors."""
        with pytest.raises(RemoteError):
            LocalFileSystemClient(tree / "root.txt")
        with pytest.raises(RemoteError):
            LocalFileSystemClient(tree).list_files("abc", 2)

    def test_metadata(self, tree):
        """Test stat results become FileMetadata."""
        client = LocalFileSystemClient(tree)
        metadata = client.get_metadata(FileHandle("a/b.txt"))
        assert metadata.name == "b.txt"
        assert metadata.size == 5
        assert metadata.mime_type == "text/plain"
        assert metadata.parent_ids == ["a"]
        assert metadata.modified_at.tzinfo is not None
        assert client.get_metadata(FileHandle("root.txt")).parent_ids == []

    def test_missing_file(self, tree):
        """Test a vanished file raises RemoteError with its id."""
        with pytest.raises(RemoteError) as exc_info:
            LocalFileSystemClient(tree).get_metadata(FileHandle("gone.txt"))
        assert exc_info.value.handle_id == "gone.txt"

    @pytest.mark.parametrize("mode,access,permission", [
        (0o600, SharingAccess.PRIVATE, SharingPermission.NONE),
        (0o644, SharingAccess.DOMAIN, SharingPermission.VIEW),
        (0o666, SharingAccess.PUBLIC, SharingPermission.EDIT),
    ])
    def test_sharing_from_permission_bits(self, tree, mode, access, permission):
        """Test world-readable and world-writable bits map to exposure."""
        os.chmod(tree / "z.txt", mode)
        sharing = LocalFileSystemClient(tree).get_sharing(FileHandle("z.txt"))
        assert (sharing.access_level, sharing.permission_level) == (access, permission)

    def test_folders(self, tree):
        """Test folder ids are relative directory paths."""
        client = LocalFileSystemClient(tree)
        assert client.get_folder("a/c") == FolderInfo("a/c", "c", ["a"])
        assert client.get_folder("a") == FolderInfo("a", "a", [])
        assert client.get_folder(".") is None

    def test_records_carry_directory_path(self, tree):
        """Test RecordBuilder resolves local directories into a path."""
        client = LocalFileSystemClient(tree)
        builder = RecordBuilder(client, CrawlConfig())
        record = builder.build(client.get_metadata(FileHandle("a/c/d.py")), None)
        assert record.container_path == ("a", "c")
        assert record.path == "a/c"


class TestNormalization:
    """Test store-specific sharing names."""

    @pytest.mark.parametrize("value,expected", [
        ("anyone_with_link", SharingAccess.PUBLIC),
        ("DOMAIN", SharingAccess.DOMAIN),
        (" external ", SharingAccess.EXTERNAL),
        ("restricted", SharingAccess.PRIVATE),
        (None, SharingAccess.PRIVATE),
    ])
    def test_access(self, value, expected):
        assert normalize_access(value) == expected

    @pytest.mark.parametrize("value,expected", [
        ("writer", SharingPermission.EDIT),
        ("commenter", SharingPermission.VIEW),
        ("Reader", SharingPermission.VIEW),
        ("", SharingPermission.NONE),
    ])
    def test_permission(self, value, expected):
        assert normalize_permission(value) == expected


class TestRecordBuilder:
    """Test FileRecord construction."""

    def test_path_resolution(self, client_factory):
        """Test ancestors are listed outermost first."""
        builder = RecordBuilder(client_factory(0), CrawlConfig())
        assert builder.resolve_path(["folder-docs"]) == ("Shared", "Docs")
        assert builder.resolve_path([]) == ()
        assert builder.resolve_path(["missing"]) == ()

    def test_depth_limit(self, client_factory):
        """Test only the nearest ancestors are kept."""
        builder = RecordBuilder(client_factory(0), CrawlConfig(path_depth_limit=1))
        assert builder.resolve_path(["folder-docs"]) == ("Docs",)

    def test_folder_failure_gives_unknown_path(self, client_factory):
        """Test a failed folder lookup yields the unknown path, not an error."""
        client = client_factory(1)

        def broken(folder_id):
            raise RemoteError("folder lookup failed")

        client.get_folder = broken
        record = RecordBuilder(client, CrawlConfig()).build(make_metadata(0), None)
        assert record.container_path == UNKNOWN_PATH

    def test_folder_lookups_are_cached(self, client_factory):
        """Test each folder is fetched once per builder."""
        client = client_factory(0)
        calls = []
        lookup = client.get_folder

        def counting(folder_id):
            calls.append(folder_id)
            return lookup(folder_id)

        client.get_folder = counting
        builder = RecordBuilder(client, CrawlConfig())
        builder.resolve_path(["folder-docs"])
        builder.resolve_path(["folder-docs"])
        assert calls == ["folder-docs", "folder-shared"]

    def test_collaborators_capped(self, client_factory):
        """Test viewer and editor lists are truncated."""
        sharing = SharingInfo(
            access_level=SharingAccess.DOMAIN,
            viewers=[f"v{i}@example.com" for i in range(5)],
            editors=[f"e{i}@example.com" for i in range(5)],
        )
        builder = RecordBuilder(client_factory(0), CrawlConfig(max_collaborators=2))
        record = builder.build(make_metadata(0), sharing)
        assert record.viewers == ("v0@example.com", "v1@example.com")
        assert len(record.editors) == 2

    def test_outside_collaborator_upgrades_private(self, client_factory):
        """Test a private file shared with another domain becomes external."""
        builder = RecordBuilder(client_factory(0), CrawlConfig())
        outside = builder.build(make_metadata(0), SharingInfo(viewers=["guest@other.org"]))
        inside = builder.build(make_metadata(1), SharingInfo(viewers=["peer@example.com"]))
        assert outside.access == SharingAccess.EXTERNAL
        assert inside.access == SharingAccess.PRIVATE

    def test_missing_sharing_is_private(self, client_factory):
        """Test absent sharing data defaults to private."""
        record = RecordBuilder(client_factory(0), CrawlConfig()).build(make_metadata(0), None)
        assert record.access == SharingAccess.PRIVATE
        assert record.permission == SharingPermission.NONE

    def test_metadata_normalized(self, client_factory):
        """Test negative sizes are clamped and naive times treated as UTC."""
        metadata = make_metadata(0, size=-5, modified_at=datetime(2024, 1, 1, 8, 0), owner_email="")
        record = RecordBuilder(client_factory(0), CrawlConfig()).build(metadata, None)
        assert record.size == 0
        assert record.modified_at == datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
        assert record.owner == "Unknown"


class TestInclusionFilter:
    """Test inclusion profiles."""

    def _filter(self, profile=InventoryProfile.ALL, **overrides):
        return InclusionFilter(CrawlConfig(profile=profile, **overrides), 100 * MB)

    def test_prefilter(self):
        """Test trashed items and folders are rejected before sharing lookups."""
        inclusion = self._filter()
        assert inclusion.prefilter(make_metadata(0))
        assert not inclusion.prefilter(make_metadata(0, trashed=True))
        assert not inclusion.prefilter(make_metadata(0, mime_type="application/vnd.google-apps.folder"))
        assert self._filter(include_trashed=True).prefilter(make_metadata(0, trashed=True))

    def test_native_documents_toggle(self):
        """Test include_native_files controls native documents."""
        doc = make_record(name="Plan", mime_type="application/vnd.google-apps.document")
        assert self._filter().includes(doc)
        assert not self._filter(include_native_files=False).includes(doc)

    @pytest.mark.parametrize("profile,included,excluded", [
        (InventoryProfile.DOCUMENTS, dict(name="report.pdf"), dict(name="main.py")),
        (InventoryProfile.CODE, dict(name="Dockerfile"), dict(name="photo.png")),
        (InventoryProfile.IMAGES, dict(name="scan", mime_type="image/tiff"), dict(name="notes.txt")),
        (InventoryProfile.LARGE, dict(size=200 * MB), dict(size=MB)),
        (InventoryProfile.SHARED, dict(access=SharingAccess.DOMAIN), dict(access=SharingAccess.PRIVATE)),
        (InventoryProfile.MARKDOWN, dict(name="README.md"), dict(name="notes.txt")),
        (InventoryProfile.MARKDOWN, dict(name="page.mdx"), dict(name="page.html")),
        (InventoryProfile.MARKDOWN, dict(name="CHANGES", mime_type="text/markdown"), dict(name="CHANGES")),
    ])
    def test_profiles(self, profile, included, excluded):
        """Test each profile accepts and rejects a representative file."""
        inclusion = self._filter(profile)
        assert inclusion.includes(make_record(**included))
        assert not inclusion.includes(make_record(**excluded))
