"""
Folder comparison engine.

Compares two directory trees and classifies each relative path as:
- Missing in destination
- Extra in destination
- Size mismatch
- Content mismatch (optional verification pass)
- Content verification error
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from treesync.core.folder.scanner import FolderScanner, ScanOptions, ScanProgress
from treesync.core.folder.verifier import ContentVerifier
from treesync.core.models import (
    CompareProgress,
    ComparisonReport,
    Difference,
    DifferenceKind,
    DirectoryIndex,
    FileRecord,
    VerificationResult,
)
from treesync.services.hashing import HashAlgorithm


@dataclass
class CompareOptions:
    """Options for folder comparison."""
    # Content verification
    verify_content: bool = False
    skip_empty_files: bool = False
    hash_algorithm: HashAlgorithm = HashAlgorithm.SHA256
    chunk_size: int = 65536

    # Scanning options
    follow_symlinks: bool = False
    exclude_patterns: list[str] = field(default_factory=list)

    # Performance
    parallel_workers: int = 4


class FolderComparer:
    """
    Compares two folder trees.

    Both roots are indexed completely before any classification happens.
    Size is checked before content, so a path is never reported both as
    a size mismatch and as a content mismatch.
    """

    def __init__(self, options: Optional[CompareOptions] = None):
        self.options = options or CompareOptions()
        self._progress_callback: Optional[Callable[[CompareProgress], None]] = None

    def compare(
        self,
        source_path: Path | str,
        destination_path: Path | str,
        progress_callback: Optional[Callable[[CompareProgress], None]] = None
    ) -> ComparisonReport:
        """
        Compare two directories.

        Args:
            source_path: Source directory
            destination_path: Destination directory
            progress_callback: Called with progress updates

        Returns:
            ComparisonReport with every difference found

        Raises:
            EnumerationError: either root could not be indexed
        """
        start_time = time.time()
        self._progress_callback = progress_callback

        scanner = FolderScanner(ScanOptions(
            follow_symlinks=self.options.follow_symlinks,
            exclude_patterns=self.options.exclude_patterns,
        ))

        with ThreadPoolExecutor(max_workers=2) as executor:
            source_future = executor.submit(
                scanner.scan,
                source_path,
                self._scan_progress('indexing_source')
            )
            destination_future = executor.submit(
                scanner.scan,
                destination_path,
                self._scan_progress('indexing_destination')
            )
            source_index = source_future.result()
            destination_index = destination_future.result()

        logging.info(
            f"FolderComparer - Indexed {source_index.file_count} source files and "
            f"{destination_index.file_count} destination files"
        )

        differences = self.compare_indexes(source_index, destination_index)

        report = ComparisonReport(
            source=str(source_index.root_path),
            destination=str(destination_index.root_path),
            timestamp=datetime.now().astimezone(),
            source_file_count=source_index.file_count,
            destination_file_count=destination_index.file_count,
            differences=differences,
        )

        logging.info(
            f"FolderComparer - Found {report.differences_count} differences "
            f"in {time.time() - start_time:.2f}s"
        )
        return report

    def compare_indexes(
        self,
        source_index: DirectoryIndex,
        destination_index: DirectoryIndex
    ) -> list[Difference]:
        """
        Classify the differences between two complete indexes.

        Emission order: source-side differences in source index order,
        then extras in destination index order, then content differences
        in source index order.
        """
        differences: list[Difference] = []
        candidates: list[tuple[FileRecord, FileRecord]] = []
        total = source_index.file_count
        processed = 0

        for source_record in source_index.iter_files():
            rel_path = source_record.relative_path
            destination_record = destination_index.get(rel_path)

            if destination_record is None:
                differences.append(Difference(
                    kind=DifferenceKind.MISSING_IN_DESTINATION,
                    relative_path=rel_path,
                    source_size=source_record.size,
                ))
            elif source_record.size != destination_record.size:
                differences.append(Difference(
                    kind=DifferenceKind.SIZE_MISMATCH,
                    relative_path=rel_path,
                    source_size=source_record.size,
                    destination_size=destination_record.size,
                ))
            else:
                candidates.append((source_record, destination_record))

            processed += 1
            self._report_progress('comparing', rel_path, processed, total)

        for destination_record in destination_index.iter_files():
            if destination_record.relative_path not in source_index:
                differences.append(Difference(
                    kind=DifferenceKind.EXTRA_IN_DESTINATION,
                    relative_path=destination_record.relative_path,
                    destination_size=destination_record.size,
                ))

        if self.options.verify_content:
            differences.extend(self._verify_candidates(candidates))

        return differences

    def _verify_candidates(
        self,
        candidates: list[tuple[FileRecord, FileRecord]]
    ) -> list[Difference]:
        """Run content verification over same-size pairs."""
        if self.options.skip_empty_files:
            candidates = [pair for pair in candidates if not pair[0].is_empty]

        verifier = ContentVerifier(self.options.hash_algorithm, self.options.chunk_size)
        total = len(candidates)
        logging.info(f"FolderComparer - Verifying content of {total} files with {self.options.hash_algorithm.value}")

        def verify(pair: tuple[FileRecord, FileRecord]) -> VerificationResult:
            source_record, destination_record = pair
            return verifier.verify(source_record.absolute_path, destination_record.absolute_path)

        if self.options.parallel_workers > 1 and total > 1:
            with ThreadPoolExecutor(max_workers=self.options.parallel_workers) as executor:
                # map() yields in submission order
                outcomes = executor.map(verify, candidates)
                results = self._collect_verifications(candidates, outcomes, total)
        else:
            results = self._collect_verifications(candidates, map(verify, candidates), total)

        return results

    def _collect_verifications(self, candidates, outcomes, total: int) -> list[Difference]:
        differences: list[Difference] = []

        for processed, ((source_record, destination_record), outcome) in enumerate(
            zip(candidates, outcomes), start=1
        ):
            rel_path = source_record.relative_path
            self._report_progress('verifying', rel_path, processed, total)

            if outcome.failed:
                differences.append(Difference(
                    kind=DifferenceKind.CONTENT_VERIFICATION_ERROR,
                    relative_path=rel_path,
                    source_size=source_record.size,
                    destination_size=destination_record.size,
                    error=outcome.error,
                ))
            elif not outcome.matches:
                differences.append(Difference(
                    kind=DifferenceKind.CONTENT_MISMATCH,
                    relative_path=rel_path,
                    source_size=source_record.size,
                    destination_size=destination_record.size,
                    source_digest=outcome.source_digest,
                    destination_digest=outcome.destination_digest,
                ))

        return differences

    def _scan_progress(self, phase: str) -> Callable[[ScanProgress], None]:
        def callback(progress: ScanProgress) -> None:
            self._report_progress(phase, progress.current_path, progress.files_found, 0)
        return callback

    def _report_progress(
        self,
        phase: str,
        current_path: str,
        processed: int,
        total: int
    ) -> None:
        """Report progress to callback."""
        if self._progress_callback:
            self._progress_callback(CompareProgress(
                phase=phase,
                current_path=current_path,
                items_processed=processed,
                total_items=total,
            ))
