"""
Core data models for directory tree comparison and synchronization.

This module defines the data structures shared by the comparator and the
applier:
- Indexed file records
- Difference records and their kinds
- The comparison report
- Apply plans and results

All models are UI-agnostic and carry no I/O of their own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional


# =============================================================================
# Enumerations
# =============================================================================

class DifferenceKind(Enum):
    """Kind of difference between source and destination.

    The value is the ``Type`` string used in persisted reports.
    """
    MISSING_IN_DESTINATION = "MissingInDestination"
    EXTRA_IN_DESTINATION = "ExtraInDestination"
    SIZE_MISMATCH = "SizeMismatch"
    CONTENT_MISMATCH = "HashMismatch"
    CONTENT_VERIFICATION_ERROR = "HashError"

    @property
    def report_type(self) -> str:
        return self.value

    @classmethod
    def from_report_type(cls, value: str) -> 'DifferenceKind':
        """Parse a report ``Type`` string."""
        for kind in cls:
            if kind.value == value:
                return kind
        raise ValueError(f"Unknown difference type: {value!r}")


class ApplyAction(Enum):
    """Outcome of a single apply item."""
    COPIED = "copied"
    WOULD_COPY = "would copy"
    SKIPPED = "skipped"
    FAILED = "failed"


# =============================================================================
# Index Models
# =============================================================================

@dataclass(frozen=True)
class FileRecord:
    """A regular file found under an indexed root."""
    relative_path: str      # Canonical form, '/' separated
    absolute_path: Path
    size: int

    @property
    def is_empty(self) -> bool:
        return self.size == 0


@dataclass
class DirectoryIndex:
    """All regular files under one root, keyed by relative path."""
    root_path: Path
    files: dict[str, FileRecord] = field(default_factory=dict)
    total_size: int = 0
    scan_time: float = 0.0

    @property
    def file_count(self) -> int:
        return len(self.files)

    def __contains__(self, relative_path: object) -> bool:
        return relative_path in self.files

    def get(self, relative_path: str) -> Optional[FileRecord]:
        return self.files.get(relative_path)

    def iter_files(self) -> Iterator[FileRecord]:
        """Iterate over records in index order."""
        yield from self.files.values()


# =============================================================================
# Comparison Models
# =============================================================================

@dataclass(frozen=True)
class Difference:
    """
    One reconciliation result for a relative path.

    Digests are only set for content mismatches and ``error`` only for
    verification errors.
    """
    kind: DifferenceKind
    relative_path: str
    source_size: Optional[int] = None
    destination_size: Optional[int] = None
    source_digest: Optional[str] = None
    destination_digest: Optional[str] = None
    error: Optional[str] = None

    def describe(self) -> str:
        """Short human-readable description."""
        if self.kind == DifferenceKind.MISSING_IN_DESTINATION:
            return f"{self.source_size} bytes, not in destination"
        if self.kind == DifferenceKind.EXTRA_IN_DESTINATION:
            return f"{self.destination_size} bytes, not in source"
        if self.kind == DifferenceKind.SIZE_MISMATCH:
            return f"source {self.source_size} bytes, destination {self.destination_size} bytes"
        if self.kind == DifferenceKind.CONTENT_MISMATCH:
            return f"source {self.source_digest}, destination {self.destination_digest}"
        return self.error or "verification failed"


@dataclass
class VerificationResult:
    """Result of verifying the content of one file pair."""
    matches: bool
    source_digest: Optional[str] = None
    destination_digest: Optional[str] = None
    failed_side: Optional[str] = None  # 'source' or 'destination'
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.failed_side is not None


@dataclass
class CompareProgress:
    """Progress of a comparison run."""
    phase: str  # 'indexing_source', 'indexing_destination', 'comparing', 'verifying'
    current_path: str
    items_processed: int
    total_items: int


@dataclass
class ComparisonReport:
    """Complete result of a comparison run."""
    source: str
    destination: str
    timestamp: datetime
    source_file_count: int = 0
    destination_file_count: int = 0
    differences: list[Difference] = field(default_factory=list)

    @property
    def differences_count(self) -> int:
        return len(self.differences)

    @property
    def is_identical(self) -> bool:
        return not self.differences

    @property
    def summary(self) -> list[tuple[DifferenceKind, int]]:
        """Count per kind, in kind order, omitting kinds that never occur."""
        counts = {kind: 0 for kind in DifferenceKind}
        for difference in self.differences:
            counts[difference.kind] += 1
        return [(kind, count) for kind, count in counts.items() if count]

    def iter_by_kind(self, kind: DifferenceKind) -> Iterator[Difference]:
        """Iterate over differences of the given kind."""
        for difference in self.differences:
            if difference.kind == kind:
                yield difference


# =============================================================================
# Apply Models
# =============================================================================

@dataclass
class ApplyItem:
    """A file to be copied from source to destination."""
    relative_path: str
    expected_size: Optional[int] = None


@dataclass
class ApplyPlan:
    """Copy plan derived from a comparison report."""
    items: list[ApplyItem]
    source_path: str
    destination_path: str

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def total_bytes(self) -> int:
        """Bytes expected to be copied, as recorded in the report."""
        return sum(item.expected_size or 0 for item in self.items)


@dataclass
class ApplyProgress:
    """Progress information for an apply run."""
    current_item: str
    items_completed: int
    total_items: int
    bytes_copied: int
    action: Optional[ApplyAction] = None


@dataclass
class ApplyResult:
    """Result of applying a plan."""
    candidates: int
    copied: int = 0
    skipped: int = 0
    failed: int = 0
    bytes_copied: int = 0
    dry_run: bool = False
    skipped_paths: list[str] = field(default_factory=list)
    errors: list[tuple[str, str]] = field(default_factory=list)  # (path, error)
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def summary(self) -> str:
        verb = "Would copy" if self.dry_run else "Copied"
        return (f"Candidates: {self.candidates}, {verb}: {self.copied}, "
                f"Skipped: {self.skipped}, Errors: {self.failed}")
