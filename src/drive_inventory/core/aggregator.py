# src/drive_inventory/core/aggregator.py
"""
Bounded-memory aggregation of classified file records.

The Aggregator folds a stream of (FileRecord, Classification) pairs into an
AggregateState. Every collection in the state has an explicit ceiling:

- ranked lists keep the top ``top_k`` entries, re-sorted and truncated on insert
- grouped count maps keep ``max_group_keys`` keys, overflowing into "(other)"
- the duplicate candidate table keeps ``max_duplicate_candidates`` keys

Those ceilings are what keep a serialized checkpoint under its size limit.
"""

import json
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from drive_inventory.core.config import AnalysisConfig
from drive_inventory.core.constants import (
    OTHER_GROUP_KEY,
    README_MARKER,
    UNGROUPED_PROJECT,
    UNKNOWN_FOLDER,
)
from drive_inventory.core.models import (
    AggregateState,
    Classification,
    DuplicateCandidate,
    DuplicateGroup,
    DuplicateLocation,
    ErrorKind,
    FileRecord,
    GroupCount,
    RankedFile,
    Recommendation,
    ReportFile,
    ReportModel,
    RunStatus,
    SharingAccess,
)
from drive_inventory.utils.date_utils import utc_now
from drive_inventory.utils.formatting import format_bytes, format_percentage, format_timestamp

logger = logging.getLogger(__name__)

RankKey = Callable[[RankedFile], float]

# Ranking key per bounded list; all lists sort descending
RANKINGS: Dict[str, RankKey] = {
    "large_files": lambda entry: entry.size,
    "old_files": lambda entry: entry.age_days or 0,
    "high_risk_files": lambda entry: entry.risk_score,
    "cleanup_candidates": lambda entry: entry.cleanup_score,
    "shared_files": lambda entry: entry.risk_score,
}

GROUPING_FIELDS: Dict[str, str] = {
    "File Types": "by_type",
    "Categories": "by_category",
    "Languages": "by_language",
    "Years": "by_year",
    "Owners": "by_owner",
    "Owner Domains": "by_domain",
    "Folders": "by_folder",
    "Projects": "by_project",
    "Sharing Access": "by_access",
    "Sharing Permission": "by_permission",
    "Size Buckets": "by_size_bucket",
    "External Domains": "external_domains",
}

_MEDIA_LABELS = ("video", "audio")


def insert_ranked(entries: List[RankedFile], entry: RankedFile, key: RankKey, limit: int) -> None:
    """
    Insert ``entry`` into a bounded ranked list in place.

    Append, sort descending by ``key`` (ties by file id), truncate to ``limit``.
    """
    if entries and len(entries) >= limit and _sort_key(entry, key) > _sort_key(entries[-1], key):
        return
    entries.append(entry)
    entries.sort(key=lambda item: _sort_key(item, key))
    del entries[limit:]


def _sort_key(entry: RankedFile, key: RankKey) -> Tuple[float, str]:
    return -key(entry), entry.file_id


def is_sorted(entries: List[RankedFile], key: RankKey) -> bool:
    return all(
        _sort_key(a, key) <= _sort_key(b, key)
        for a, b in zip(entries, entries[1:])
    )


def duplicate_key(name: str, size: int) -> str:
    return f"{name}|{size}"


def project_name(container_path: Tuple[str, ...]) -> str:
    """Outermost folder of a path; files outside any known folder are ungrouped."""
    if not container_path or container_path[0] == UNKNOWN_FOLDER:
        return UNGROUPED_PROJECT
    return container_path[0]


class Aggregator:
    """Folds classified records into an AggregateState."""

    def __init__(self, config: AnalysisConfig):
        self.config = config
        self.top_k = config.top_k
        self.max_group_keys = config.max_group_keys
        self.large_threshold = config.large_file_threshold_bytes

    def new_state(self) -> AggregateState:
        return AggregateState()

    def _bump(self, mapping: Dict[str, int], key: str, amount: int = 1) -> None:
        if key in mapping or len(mapping) < self.max_group_keys:
            mapping[key] = mapping.get(key, 0) + amount
        else:
            mapping[OTHER_GROUP_KEY] = mapping.get(OTHER_GROUP_KEY, 0) + amount

    def update(self, state: AggregateState, classification: Classification, record: FileRecord) -> AggregateState:
        """
        Account for one processed file. Must be called exactly once per file.

        Args:
            state: State to mutate in place
            classification: Classifier output for ``record``
            record: The observed file

        Returns:
            The same ``state`` instance
        """
        state.total_files += 1
        state.total_bytes += record.size
        if classification.is_native:
            state.native_files += 1

        path = record.path
        year = str(record.modified_at.year) if record.modified_at else "Unknown"

        self._bump(state.by_type, classification.type_label)
        self._bump(state.by_category, classification.category.value)
        if classification.language:
            self._bump(state.by_language, classification.language)
        self._bump(state.by_year, year)
        self._bump(state.by_owner, record.owner)
        self._bump(state.by_domain, record.owner_domain)
        self._bump(state.by_folder, path)
        project = project_name(record.container_path)
        self._bump(state.by_project, project)
        if project == UNGROUPED_PROJECT:
            state.orphaned_files += 1
        if README_MARKER in record.name.lower():
            state.readme_files += 1
        self._bump(state.by_access, record.access.value)
        self._bump(state.by_permission, record.permission.value)
        self._bump(state.by_size_bucket, classification.size_bucket)
        self._bump(state.bytes_by_type, classification.type_label, record.size)
        self._bump(state.bytes_by_folder, path, record.size)
        for domain in classification.external_domains:
            self._bump(state.external_domains, domain)

        if record.access != SharingAccess.PRIVATE:
            state.shared_files_count += 1
            if record.access == SharingAccess.PUBLIC:
                state.public_files += 1
            elif record.access == SharingAccess.DOMAIN:
                state.domain_files += 1
            else:
                state.external_files += 1

        self._update_ranked_lists(state, classification, record)
        self._update_duplicates(state, record)
        return state

    def _ranked_entry(self, classification: Classification, record: FileRecord, reasons: List[str]) -> RankedFile:
        return RankedFile(
            file_id=record.file_id,
            name=record.name,
            size=record.size,
            path=record.path,
            url=record.url,
            owner=record.owner,
            type_label=classification.type_label,
            modified_at=record.modified_at,
            age_days=classification.age_days,
            risk_score=classification.risk_score,
            cleanup_score=classification.cleanup_score,
            access=record.access,
            reasons=reasons,
        )

    def _update_ranked_lists(self, state: AggregateState, classification: Classification, record: FileRecord) -> None:
        config = self.config

        if record.size >= self.large_threshold and record.size > 0:
            insert_ranked(
                state.large_files,
                self._ranked_entry(classification, record, []),
                RANKINGS["large_files"],
                self.top_k,
            )

        age = classification.age_days
        if age is not None and age >= config.old_file_threshold_days:
            insert_ranked(
                state.old_files,
                self._ranked_entry(classification, record, []),
                RANKINGS["old_files"],
                self.top_k,
            )

        if classification.risk_score >= config.high_risk_threshold:
            insert_ranked(
                state.high_risk_files,
                self._ranked_entry(classification, record, classification.risk_factors),
                RANKINGS["high_risk_files"],
                self.top_k,
            )

        if classification.cleanup_score >= config.cleanup_threshold:
            state.cleanup_potential_bytes += record.size
            insert_ranked(
                state.cleanup_candidates,
                self._ranked_entry(classification, record, classification.cleanup_reasons),
                RANKINGS["cleanup_candidates"],
                self.top_k,
            )

        if record.access != SharingAccess.PRIVATE:
            insert_ranked(
                state.shared_files,
                self._ranked_entry(classification, record, classification.risk_factors),
                RANKINGS["shared_files"],
                self.top_k,
            )

    def _update_duplicates(self, state: AggregateState, record: FileRecord) -> None:
        key = duplicate_key(record.name, record.size)
        candidate = state.duplicate_candidates.get(key)
        if candidate is None:
            if len(state.duplicate_candidates) >= self.config.max_duplicate_candidates:
                state.dropped_duplicate_candidates += 1
                return
            candidate = DuplicateCandidate(name=record.name, size=record.size)
            state.duplicate_candidates[key] = candidate

        candidate.count += 1
        if len(candidate.locations) < self.config.max_group_members:
            candidate.locations.append(
                DuplicateLocation(file_id=record.file_id, path=record.path, url=record.url)
            )

    def record_error(self, state: AggregateState, kind: ErrorKind) -> None:
        """Count a per-file failure."""
        state.errors += 1
        state.errors_by_kind[kind.value] = state.errors_by_kind.get(kind.value, 0) + 1

    # Checkpoint serialization

    def snapshot(self, state: AggregateState) -> str:
        """Serialize state as compact JSON for a checkpoint."""
        return state.model_dump_json()

    def restore(self, blob: str) -> AggregateState:
        """Rebuild state from :meth:`snapshot` output."""
        return AggregateState.model_validate(json.loads(blob))

    # Finalization

    def finalize(
        self,
        state: AggregateState,
        inventory_name: str,
        status: RunStatus,
        started_at: Optional[datetime] = None,
        batch_count: int = 0,
        generated_at: Optional[datetime] = None
    ) -> ReportModel:
        """
        Project the state into a display-ready report.

        Works at any status so partial results are always renderable. Only
        values tracked by :meth:`update` are used.
        """
        total = state.total_files
        groupings = {
            title: self._group_counts(getattr(state, field), total)
            for title, field in GROUPING_FIELDS.items()
        }
        for group in groupings["File Types"]:
            size_bytes = state.bytes_by_type.get(group.label, 0)
            group.size_bytes = size_bytes
            group.size = format_bytes(size_bytes)

        largest_folders = [
            GroupCount(
                label=folder,
                count=state.by_folder.get(folder, 0),
                percentage=format_percentage(size, state.total_bytes),
                size_bytes=size,
                size=format_bytes(size),
            )
            for folder, size in sorted(state.bytes_by_folder.items(), key=lambda item: (-item[1], item[0]))
        ][:self.top_k]

        duplicate_groups = self._duplicate_groups(state)

        report = ReportModel(
            inventory_name=inventory_name,
            status=status,
            started_at=started_at,
            generated_at=generated_at or utc_now(),
            batch_count=batch_count,
            total_files=total,
            total_bytes=state.total_bytes,
            total_size=format_bytes(state.total_bytes),
            average_size=format_bytes(state.total_bytes // total if total else 0),
            errors=state.errors,
            errors_by_kind=dict(state.errors_by_kind),
            native_files=state.native_files,
            shared_files_count=state.shared_files_count,
            public_files=state.public_files,
            domain_files=state.domain_files,
            external_files=state.external_files,
            cleanup_potential=format_bytes(state.cleanup_potential_bytes),
            dropped_duplicate_candidates=state.dropped_duplicate_candidates,
            readme_files=state.readme_files,
            orphaned_files=state.orphaned_files,
            groupings=groupings,
            largest_folders=largest_folders,
            large_files=[self._report_file(entry) for entry in state.large_files],
            old_files=[self._report_file(entry) for entry in state.old_files],
            high_risk_files=[self._report_file(entry) for entry in state.high_risk_files],
            cleanup_candidates=[self._report_file(entry) for entry in state.cleanup_candidates],
            shared_files=[self._report_file(entry) for entry in state.shared_files],
            duplicate_groups=duplicate_groups,
        )
        report.recommendations = build_recommendations(state, report)
        return report

    @staticmethod
    def _group_counts(mapping: Dict[str, int], total: int) -> List[GroupCount]:
        return [
            GroupCount(label=label, count=count, percentage=format_percentage(count, total))
            for label, count in sorted(mapping.items(), key=lambda item: (-item[1], item[0]))
        ]

    @staticmethod
    def _report_file(entry: RankedFile) -> ReportFile:
        return ReportFile(
            file_id=entry.file_id,
            name=entry.name,
            size_bytes=entry.size,
            size=format_bytes(entry.size),
            path=entry.path,
            url=entry.url,
            owner=entry.owner,
            type_label=entry.type_label,
            modified=format_timestamp(entry.modified_at),
            age_days=entry.age_days,
            risk_score=entry.risk_score,
            cleanup_score=entry.cleanup_score,
            access=entry.access.value,
            reasons="; ".join(entry.reasons),
        )

    def _duplicate_groups(self, state: AggregateState) -> List[DuplicateGroup]:
        groups = []
        for candidate in state.duplicate_candidates.values():
            if candidate.count < 2:
                continue
            wasted = candidate.size * (candidate.count - 1)
            groups.append(DuplicateGroup(
                name=candidate.name,
                size_bytes=candidate.size,
                size=format_bytes(candidate.size),
                count=candidate.count,
                wasted_bytes=wasted,
                wasted=format_bytes(wasted),
                locations=[location.path for location in candidate.locations],
                urls=[location.url for location in candidate.locations],
            ))
        groups.sort(key=lambda group: (-group.count, -group.wasted_bytes, group.name, group.size_bytes))
        return groups[:self.config.max_duplicate_groups]


def build_recommendations(state: AggregateState, report: ReportModel) -> List[Recommendation]:
    """Security and storage recommendations derived from aggregate counters."""
    recommendations: List[Recommendation] = []

    if state.public_files > 0:
        recommendations.append(Recommendation(
            priority="URGENT",
            title="Review Public Files",
            description=f"You have {state.public_files} files that are publicly accessible. "
                        f"This poses significant security risks.",
            action="Review each public file and change sharing to private or restricted access.",
        ))

    if state.high_risk_files:
        recommendations.append(Recommendation(
            priority="HIGH",
            title="Address High Risk Files",
            description=f"{len(state.high_risk_files)} files have been flagged as high risk "
                        f"due to their sharing settings and content.",
            action="Review the High Risk sheet and adjust permissions accordingly.",
        ))

    if state.external_files > 10:
        recommendations.append(Recommendation(
            priority="MEDIUM",
            title="Review External Sharing",
            description=f"{state.external_files} files are shared with external users. "
                        f"Ensure this is necessary and appropriate.",
            action="Audit external sharing and implement regular access reviews.",
        ))

    if state.domain_files > state.external_files + state.public_files and state.domain_files > 10:
        recommendations.append(Recommendation(
            priority="MEDIUM",
            title="Review Domain Sharing Policy",
            description="Many files are shared at the domain level. "
                        "Consider implementing more restrictive default sharing.",
            action="Update sharing policies to be more restrictive by default.",
        ))

    if state.cleanup_candidates:
        recommendations.append(Recommendation(
            priority="MEDIUM",
            title="Clean Up Old Large Files",
            description=f"{len(state.cleanup_candidates)} files are good candidates for cleanup. "
                        f"Focus on files that have not been modified recently and take up significant space.",
            action="Review the Cleanup Candidates sheet.",
            potential_savings=format_bytes(state.cleanup_potential_bytes),
        ))

    if report.duplicate_groups:
        savings = sum(group.wasted_bytes for group in report.duplicate_groups)
        recommendations.append(Recommendation(
            priority="LOW",
            title="Remove Duplicate Files",
            description=f"Found {len(report.duplicate_groups)} groups of potential duplicate files "
                        f"(same name and size). Removing copies frees space while keeping the originals.",
            action="Confirm duplicates before deleting; matching is by name and size only.",
            potential_savings=format_bytes(savings),
        ))

    if state.dropped_duplicate_candidates:
        recommendations.append(Recommendation(
            priority="LOW",
            title="Duplicate Detection Incomplete",
            description=f"{state.dropped_duplicate_candidates} files were not checked for duplicates because "
                        f"the candidate table was full. Duplicates among them are not reported.",
            action="Raise analysis.max_duplicate_candidates (and checkpoint.max_state_bytes if needed) "
                   "and run the inventory again.",
        ))

    if report.largest_folders:
        top_folders = ", ".join(group.label for group in report.largest_folders[:5])
        recommendations.append(Recommendation(
            priority="INFO",
            title="Review Large Folders",
            description=f"Your largest folders hold most of the data. Consider archiving or organizing: {top_folders}",
        ))

    media_files = sum(
        count for label, count in state.by_type.items()
        if any(marker in label.lower() for marker in _MEDIA_LABELS)
    )
    if media_files > 10:
        recommendations.append(Recommendation(
            priority="INFO",
            title="Optimize Media Files",
            description=f"You have {media_files} media files. Consider compressing videos "
                        f"or moving them to dedicated media storage.",
        ))

    recommendations.append(Recommendation(
        priority="INFO",
        title="Implement Regular Audits",
        description="Schedule regular inventory runs to keep sharing and storage under review.",
        action="Run the inventory monthly or quarterly.",
    ))
    return recommendations
