"""
Tests for bounded aggregation and report finalization.
"""
import random
from datetime import timedelta

import pytest

from drive_inventory.core.aggregator import RANKINGS, Aggregator, insert_ranked, is_sorted, project_name
from drive_inventory.core.classifier import FileClassifier
from drive_inventory.core.config import AnalysisConfig
from drive_inventory.core.constants import OTHER_GROUP_KEY
from drive_inventory.core.models import ErrorKind, RankedFile, RunStatus, SharingAccess, SharingPermission

from conftest import BASE_TIME, make_record

MB = 1024 * 1024


@pytest.fixture
def classifier():
    return FileClassifier(as_of=BASE_TIME)


def _feed(aggregator, classifier, records):
    state = aggregator.new_state()
    for record in records:
        aggregator.update(state, classifier.classify(record), record)
    return state


class TestDuplicateGrouping:
    """Test (name, size) duplicate detection."""

    def test_only_groups_with_two_members(self, classifier):
        """Test two identical entries form one group and singletons none."""
        aggregator = Aggregator(AnalysisConfig())
        records = [
            make_record(file_id="1", name="a.txt", size=100, container_path=("A",)),
            make_record(file_id="2", name="a.txt", size=100, container_path=("B",)),
            make_record(file_id="3", name="b.txt", size=50),
        ]
        report = aggregator.finalize(_feed(aggregator, classifier, records), "drive", RunStatus.COMPLETE)

        assert len(report.duplicate_groups) == 1
        group = report.duplicate_groups[0]
        assert group.name == "a.txt"
        assert group.count == 2
        assert group.wasted_bytes == 100
        assert group.locations == ["A", "B"]

    def test_same_name_different_size_is_not_duplicate(self, classifier):
        """Test size is part of the duplicate key."""
        aggregator = Aggregator(AnalysisConfig())
        records = [
            make_record(file_id="1", name="a.txt", size=100),
            make_record(file_id="2", name="a.txt", size=101),
        ]
        report = aggregator.finalize(_feed(aggregator, classifier, records), "drive", RunStatus.COMPLETE)
        assert report.duplicate_groups == []

    def test_candidate_table_is_capped(self, classifier):
        """Test new keys beyond the cap are counted as dropped."""
        aggregator = Aggregator(AnalysisConfig(max_duplicate_candidates=2, max_group_members=2))
        records = [make_record(file_id=str(i), name=f"n{i}.txt") for i in range(3)]
        records += [make_record(file_id=f"x{i}", name="n0.txt") for i in range(4)]
        state = _feed(aggregator, classifier, records)

        assert len(state.duplicate_candidates) == 2
        assert state.dropped_duplicate_candidates == 1
        candidate = state.duplicate_candidates["n0.txt|1000"]
        assert candidate.count == 5
        assert len(candidate.locations) == 2

        report = aggregator.finalize(state, "drive", RunStatus.COMPLETE)
        assert report.dropped_duplicate_candidates == 1
        titles = [item.title for item in report.recommendations]
        assert "Duplicate Detection Incomplete" in titles
        assert titles[-1] == "Implement Regular Audits"

    def test_groups_ordered_and_capped(self, classifier):
        """Test groups sort by member count then wasted bytes."""
        aggregator = Aggregator(AnalysisConfig(max_duplicate_groups=2))
        records = []
        for name, size, copies in [("small.bin", 10, 3), ("big.bin", 5000, 2), ("huge.bin", 9000, 3)]:
            records += [make_record(file_id=f"{name}{i}", name=name, size=size) for i in range(copies)]
        report = aggregator.finalize(_feed(aggregator, classifier, records), "drive", RunStatus.COMPLETE)
        assert [group.name for group in report.duplicate_groups] == ["huge.bin", "small.bin"]


class TestBoundedCollections:
    """Test every collection in the state has a ceiling."""

    def test_ranked_lists_stay_bounded_and_sorted(self, classifier):
        """Test top-K lists never exceed K and stay sorted."""
        config = AnalysisConfig(
            top_k=5,
            large_file_threshold_mb=0,
            old_file_threshold_days=0,
            high_risk_threshold=0,
            cleanup_threshold=0,
        )
        aggregator = Aggregator(config)
        rng = random.Random(7)
        state = aggregator.new_state()
        for index in range(200):
            record = make_record(
                file_id=f"f{index:03d}",
                name=f"doc{index}.pdf",
                size=rng.randint(1, 500) * MB,
                modified_at=BASE_TIME - timedelta(days=rng.randint(0, 2000)),
                access=rng.choice(list(SharingAccess)),
            )
            aggregator.update(state, classifier.classify(record), record)

            for field, key in RANKINGS.items():
                entries = getattr(state, field)
                assert len(entries) <= 5
                assert is_sorted(entries, key)

        assert state.total_files == 200
        assert state.large_files[0].size == max(entry.size for entry in state.large_files)

    def test_insert_ranked_breaks_ties_by_file_id(self):
        """Test equal keys are ordered by file identifier."""
        entries = []
        for file_id in ["c", "a", "b"]:
            entry = RankedFile(file_id=file_id, name=file_id, size=10, path="Root", type_label="PDF")
            insert_ranked(entries, entry, RANKINGS["large_files"], 2)
        assert [entry.file_id for entry in entries] == ["a", "b"]

    def test_grouped_maps_overflow_to_other(self, classifier):
        """Test keys beyond the cap are folded into the overflow key."""
        aggregator = Aggregator(AnalysisConfig(max_group_keys=3))
        records = [
            make_record(file_id=str(i), name=f"f{i}.txt", owner=f"user{i}@example.com")
            for i in range(5)
        ]
        state = _feed(aggregator, classifier, records)
        assert len(state.by_owner) == 4
        assert state.by_owner[OTHER_GROUP_KEY] == 2


class TestCounters:
    """Test counters and grouped counts."""

    def test_sharing_counters(self, classifier):
        """Test shared files are counted by exposure."""
        aggregator = Aggregator(AnalysisConfig())
        records = [
            make_record(file_id="1", access=SharingAccess.PUBLIC, permission=SharingPermission.VIEW),
            make_record(file_id="2", access=SharingAccess.DOMAIN),
            make_record(file_id="3", access=SharingAccess.EXTERNAL),
            make_record(file_id="4"),
        ]
        state = _feed(aggregator, classifier, records)
        assert (state.shared_files_count, state.public_files, state.domain_files, state.external_files) == (3, 1, 1, 1)
        assert [entry.file_id for entry in state.shared_files] == ["1", "2", "3"]
        assert state.by_access == {"public": 1, "domain": 1, "external": 1, "private": 1}

    def test_record_error(self):
        """Test errors are counted in total and by kind."""
        aggregator = Aggregator(AnalysisConfig())
        state = aggregator.new_state()
        aggregator.record_error(state, ErrorKind.METADATA)
        aggregator.record_error(state, ErrorKind.SHARING)
        aggregator.record_error(state, ErrorKind.METADATA)
        assert state.errors == 3
        assert state.errors_by_kind == {"metadata": 2, "sharing": 1}

    def test_cleanup_potential(self, classifier):
        """Test cleanup candidates contribute their size."""
        aggregator = Aggregator(AnalysisConfig(cleanup_threshold=50))
        old_archive = make_record(
            file_id="z", name="backup.zip", size=200 * MB,
            modified_at=BASE_TIME - timedelta(days=1000),
        )
        state = _feed(aggregator, classifier, [old_archive, make_record(file_id="n")])
        assert state.cleanup_potential_bytes == 200 * MB
        assert [entry.file_id for entry in state.cleanup_candidates] == ["z"]

    def test_snapshot_round_trip(self, classifier):
        """Test a restored snapshot equals the original state."""
        aggregator = Aggregator(AnalysisConfig())
        state = _feed(aggregator, classifier, [
            make_record(file_id="1", access=SharingAccess.PUBLIC),
            make_record(file_id="2", name="a.txt"),
            make_record(file_id="3", name="a.txt"),
        ])
        assert aggregator.restore(aggregator.snapshot(state)) == state


class TestProjects:
    """Test per-project grouping."""

    @pytest.mark.parametrize("container_path,project", [
        (("Website", "docs"), "Website"),
        (("Website",), "Website"),
        ((), "Uncategorized"),
        (("Unknown",), "Uncategorized"),
    ])
    def test_project_name(self, container_path, project):
        assert project_name(container_path) == project

    def test_projects_readmes_and_orphans(self, classifier):
        """Test files group by outermost folder and loose files count as orphaned."""
        aggregator = Aggregator(AnalysisConfig())
        state = _feed(aggregator, classifier, [
            make_record(file_id="1", name="README.md", container_path=("Website",)),
            make_record(file_id="2", name="guide.md", container_path=("Website", "docs")),
            make_record(file_id="3", name="notes.md", container_path=()),
            make_record(file_id="4", name="readme.txt", container_path=("Tools",)),
        ])

        assert state.by_project == {"Website": 2, "Uncategorized": 1, "Tools": 1}
        assert state.readme_files == 2
        assert state.orphaned_files == 1

        report = aggregator.finalize(state, "drive", RunStatus.COMPLETE)
        assert report.groupings["Projects"][0].label == "Website"
        assert report.orphaned_files == 1

    def test_project_map_is_capped(self, classifier):
        """Test project keys overflow like the other grouped counts."""
        aggregator = Aggregator(AnalysisConfig(max_group_keys=2))
        state = _feed(aggregator, classifier, [
            make_record(file_id=str(i), container_path=(f"P{i}",)) for i in range(4)
        ])
        assert len(state.by_project) == 3
        assert state.by_project[OTHER_GROUP_KEY] == 2


class TestFinalize:
    """Test report projection."""

    def test_groupings_and_sizes(self, classifier):
        """Test grouping rows are sorted and file types carry sizes."""
        aggregator = Aggregator(AnalysisConfig())
        records = [
            make_record(file_id="1", name="a.pdf", size=2048),
            make_record(file_id="2", name="b.pdf", size=2048),
            make_record(file_id="3", name="c.py", size=512),
        ]
        report = aggregator.finalize(
            _feed(aggregator, classifier, records), "drive", RunStatus.PAUSED, batch_count=3
        )

        types = report.groupings["File Types"]
        assert [(group.label, group.count) for group in types] == [("PDF", 2), ("Python", 1)]
        assert types[0].size == "4 KB"
        assert types[0].percentage == pytest.approx(66.7)
        assert report.status == RunStatus.PAUSED
        assert report.total_size == "4.5 KB"
        assert report.largest_folders[0].label == "Projects"

    def test_empty_state(self):
        """Test an empty state finalizes without errors."""
        aggregator = Aggregator(AnalysisConfig())
        report = aggregator.finalize(aggregator.new_state(), "drive", RunStatus.RUNNING)
        assert report.total_files == 0
        assert report.average_size == "0 Bytes"
        assert report.duplicate_groups == []
        assert report.recommendations[-1].title == "Implement Regular Audits"

    def test_recommendations(self, classifier):
        """Test public files trigger the urgent recommendation."""
        aggregator = Aggregator(AnalysisConfig())
        state = _feed(aggregator, classifier, [
            make_record(file_id="1", access=SharingAccess.PUBLIC, permission=SharingPermission.EDIT),
        ])
        report = aggregator.finalize(state, "drive", RunStatus.COMPLETE)
        assert report.recommendations[0].priority == "URGENT"

    def test_ranked_entries_are_display_ready(self, classifier):
        """Test report rows carry formatted size, path and reasons."""
        aggregator = Aggregator(AnalysisConfig(high_risk_threshold=50))
        record = make_record(
            file_id="1", name="salary.xlsx", size=3 * MB,
            access=SharingAccess.PUBLIC, permission=SharingPermission.EDIT,
            container_path=("HR", "2024"),
        )
        report = aggregator.finalize(_feed(aggregator, classifier, [record]), "drive", RunStatus.COMPLETE)
        row = report.high_risk_files[0]
        assert row.size == "3 MB"
        assert row.path == "HR/2024"
        assert "Publicly accessible" in row.reasons
        assert row.access == "public"
