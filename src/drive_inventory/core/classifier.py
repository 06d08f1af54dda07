# src/drive_inventory/core/classifier.py
"""
File classification and scoring.

Maps a FileRecord to a semantic type label, a category and two scores:

- cleanup score: how good a candidate the file is for removal
- security risk score: how exposed potentially sensitive content is

Every function here is pure. Classification never fails for any name or
content type; unknown inputs produce the "Unknown" label.
"""

import os
import re
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from drive_inventory.core.constants import (
    NATIVE_MIME_PREFIX,
    NATIVE_TYPE_LABELS,
    EXTENSION_TYPES,
    PROGRAMMING_LANGUAGES,
    SPECIAL_FILENAMES,
    UNKNOWN_TYPE,
    CONFIG_FILES,
    SCRIPT_EXTENSIONS,
    SCRIPT_PATTERNS,
    TEST_PATTERNS,
    DOCUMENTATION_PATTERNS,
    BUILD_PATTERNS,
    HIGH_RISK_KEYWORDS,
    SENSITIVE_EXTENSIONS,
    SENSITIVE_NATIVE_SUBTYPES,
    DISPOSABLE_TYPE_MARKERS,
    MEDIA_TYPE_MARKERS,
    CLEANUP_AGE_POINTS,
    CLEANUP_SIZE_POINTS,
    CLEANUP_DISPOSABLE_POINTS,
    CLEANUP_MEDIA_POINTS,
    CLEANUP_PRIVATE_POINTS,
    RISK_EXPOSURE_POINTS,
    RISK_PUBLIC_EDIT_POINTS,
    RISK_EDIT_POINTS,
    RISK_KEYWORD_POINTS,
    RISK_KEYWORD_CAP,
    RISK_SENSITIVE_TYPE_POINTS,
    RISK_EXTERNAL_DOMAIN_POINTS,
    RISK_STALE_SHARE_POINTS,
    MAX_SCORE,
    SIZE_BUCKETS,
)
from drive_inventory.core.models import (
    Classification,
    FileCategory,
    FileRecord,
    SharingAccess,
    SharingPermission,
)
from drive_inventory.utils.date_utils import age_in_days
from drive_inventory.utils.formatting import format_bytes

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")
_BYTES_PER_MB = 1024 * 1024


def file_extension(name: str) -> str:
    """Lowercase last dot-segment of ``name``; empty for dotfiles and bare names."""
    return os.path.splitext(name or "")[1][1:].lower()


def native_subtype(mime_type: str) -> Optional[str]:
    """Subtype of a native container document, or None for regular files."""
    if mime_type and mime_type.startswith(NATIVE_MIME_PREFIX):
        return mime_type[len(NATIVE_MIME_PREFIX):]
    return None


def detect_type(name: str, mime_type: str) -> Tuple[str, Optional[str]]:
    """
    Determine the semantic type label of a file.

    Args:
        name: File name
        mime_type: Declared content type

    Returns:
        Tuple of (type label, programming language or None)
    """
    subtype = native_subtype(mime_type)
    if subtype is not None:
        label = NATIVE_TYPE_LABELS.get(subtype)
        if label is None:
            label = f"Google {subtype[:1].upper()}{subtype[1:]}".strip()
        return label, None

    lower_name = (name or "").lower()
    if lower_name in SPECIAL_FILENAMES:
        label = SPECIAL_FILENAMES[lower_name]
        return label, label

    extension = file_extension(name)
    label = EXTENSION_TYPES.get(extension) or extension.upper() or UNKNOWN_TYPE
    return label, PROGRAMMING_LANGUAGES.get(extension)


def _matches_script_pattern(stem: str) -> bool:
    tokens = [token for token in _TOKEN_SPLIT.split(stem) if token]
    return any(token.startswith(pattern) for token in tokens for pattern in SCRIPT_PATTERNS)


def detect_category(name: str, extension: str, language: Optional[str] = None) -> FileCategory:
    """
    Apply the ordered category rules. The first matching rule wins.

    Substring rules look at the file name without its extension so that,
    for example, ``budget.docx`` is not taken for documentation.
    """
    lower_name = (name or "").lower()
    stem = os.path.splitext(lower_name)[0]

    if lower_name in CONFIG_FILES or lower_name.startswith(".") or "config" in stem:
        return FileCategory.CONFIGURATION
    if extension in SCRIPT_EXTENSIONS or _matches_script_pattern(stem):
        return FileCategory.SCRIPT
    if any(pattern in stem for pattern in TEST_PATTERNS):
        return FileCategory.TEST
    if any(pattern in stem for pattern in DOCUMENTATION_PATTERNS):
        return FileCategory.DOCUMENTATION
    if any(pattern in stem for pattern in BUILD_PATTERNS):
        return FileCategory.BUILD
    return FileCategory.SOURCE if language else FileCategory.GENERAL


def size_bucket(size: int) -> str:
    for threshold, label in SIZE_BUCKETS:
        if size >= threshold:
            return label
    return SIZE_BUCKETS[-1][1]


def _bucket_points(value: float, table: Sequence[Tuple[int, int]]) -> int:
    """Points for the first threshold that ``value`` strictly exceeds."""
    for threshold, points in table:
        if value > threshold:
            return points
    return 0


def external_domains(record: FileRecord) -> List[str]:
    """Distinct collaborator e-mail domains that differ from the owner's domain."""
    owner_domain = record.owner_domain
    domains = set()
    for identity in (*record.viewers, *record.editors):
        if "@" not in identity:
            continue
        domain = identity.rsplit("@", 1)[1].lower()
        if domain and domain != owner_domain:
            domains.add(domain)
    return sorted(domains)


def cleanup_score(
    age_days: Optional[int],
    size: int,
    type_label: str,
    extension: str,
    access: SharingAccess
) -> Tuple[int, List[str]]:
    """
    Score how good a candidate a file is for cleanup.

    Returns:
        Tuple of (score in [0, 100], human readable reasons)
    """
    score = 0
    reasons: List[str] = []

    if age_days is not None:
        points = _bucket_points(age_days, CLEANUP_AGE_POINTS)
        if points:
            score += points
            reasons.append(f"Not modified for {age_days} days")

    points = _bucket_points(size / _BYTES_PER_MB, CLEANUP_SIZE_POINTS)
    if points:
        score += points
        reasons.append(f"Large file ({format_bytes(size)})")

    kind = f"{type_label} {extension}".lower()
    if any(marker in kind for marker in DISPOSABLE_TYPE_MARKERS):
        score += CLEANUP_DISPOSABLE_POINTS
        reasons.append("Archive or temporary file type")
    elif any(marker in kind for marker in MEDIA_TYPE_MARKERS):
        score += CLEANUP_MEDIA_POINTS
        reasons.append("Media file")

    if access == SharingAccess.PRIVATE:
        score += CLEANUP_PRIVATE_POINTS
        reasons.append("Not shared with anyone")

    return min(score, MAX_SCORE), reasons


def security_risk_score(
    name: str,
    description: str,
    extension: str,
    subtype: Optional[str],
    access: SharingAccess,
    permission: SharingPermission,
    domains: Sequence[str],
    age_days: Optional[int],
    keywords: Iterable[str] = HIGH_RISK_KEYWORDS
) -> Tuple[int, List[str]]:
    """
    Score the sharing exposure of a file.

    Each factor contributes independently; the keyword factor has its own
    ceiling before the total is clamped to 100.

    Returns:
        Tuple of (score in [0, 100], risk factor descriptions)
    """
    score = 0
    factors: List[str] = []

    exposure = RISK_EXPOSURE_POINTS[access.value]
    if exposure:
        score += exposure
        factors.append({
            SharingAccess.PUBLIC: "Publicly accessible",
            SharingAccess.DOMAIN: "Shared with entire domain",
            SharingAccess.EXTERNAL: "Shared with external users",
        }[access])

    if permission == SharingPermission.EDIT:
        if access == SharingAccess.PUBLIC:
            score += RISK_PUBLIC_EDIT_POINTS
            factors.append("Public edit access")
        else:
            score += RISK_EDIT_POINTS
            factors.append("Edit access granted")

    text = f"{name} {description}".lower()
    matches = [keyword for keyword in keywords if keyword in text]
    if matches:
        score += min(len(matches) * RISK_KEYWORD_POINTS, RISK_KEYWORD_CAP)
        factors.append(f"Sensitive keywords: {', '.join(matches)}")

    if extension in SENSITIVE_EXTENSIONS or subtype in SENSITIVE_NATIVE_SUBTYPES:
        score += RISK_SENSITIVE_TYPE_POINTS
        factors.append("Sensitive file type")

    points = _bucket_points(len(domains), RISK_EXTERNAL_DOMAIN_POINTS)
    if points:
        score += points
        factors.append(f"Shared with {len(domains)} external domain(s)")

    if access != SharingAccess.PRIVATE and age_days is not None:
        points = _bucket_points(age_days, RISK_STALE_SHARE_POINTS)
        if points:
            score += points
            factors.append(f"Shared and unmodified for {age_days} days")

    return min(score, MAX_SCORE), factors


class FileClassifier:
    """
    Classifies file records relative to a fixed reference time.

    The reference time is the run's start, so a file classified in the first
    invocation of a run and one classified after a resume are aged the same way.
    """

    def __init__(self, as_of: datetime, keywords: Iterable[str] = HIGH_RISK_KEYWORDS):
        self.as_of = as_of
        self.keywords = tuple(keyword.lower() for keyword in keywords)

    def classify(self, record: FileRecord) -> Classification:
        extension = file_extension(record.name)
        subtype = native_subtype(record.mime_type)
        type_label, language = detect_type(record.name, record.mime_type)
        category = detect_category(record.name, extension, language)
        age_days = age_in_days(record.modified_at or record.created_at, self.as_of)
        domains = external_domains(record)

        cleanup, cleanup_reasons = cleanup_score(
            age_days, record.size, type_label, extension, record.access
        )
        risk, risk_factors = security_risk_score(
            record.name,
            record.description,
            extension,
            subtype,
            record.access,
            record.permission,
            domains,
            age_days,
            self.keywords,
        )

        return Classification(
            type_label=type_label,
            category=category,
            extension=extension,
            language=language,
            is_native=subtype is not None,
            size_bucket=size_bucket(record.size),
            age_days=age_days,
            cleanup_score=cleanup,
            risk_score=risk,
            cleanup_reasons=cleanup_reasons,
            risk_factors=risk_factors,
            external_domains=domains,
        )


def classify(record: FileRecord, as_of: datetime) -> Classification:
    """Classify a single record; see FileClassifier."""
    return FileClassifier(as_of).classify(record)
