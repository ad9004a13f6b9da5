"""
Report applier.

Copies every file a comparison report lists as missing from the
destination. Other difference kinds are reported by the comparator only
and never acted upon here: mismatched files are not overwritten and
extra files are not deleted.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable, Optional

from treesync.core.errors import CopyError
from treesync.core.models import (
    ApplyAction,
    ApplyItem,
    ApplyPlan,
    ApplyProgress,
    ApplyResult,
    ComparisonReport,
    DifferenceKind,
)


@dataclass
class SyncOptions:
    """Options for applying a report."""
    preview_only: bool = False     # Dry run, no filesystem changes
    buffer_size: int = 65536
    preserve_timestamps: bool = True
    preserve_permissions: bool = True


def resolve_relative(root: Path, relative_path: str) -> Path:
    """
    Resolve a report relative path against a root.

    Raises CopyError for paths that are empty, absolute or climb out of
    the root.
    """
    pure = PurePosixPath(relative_path)
    if not relative_path or pure.is_absolute() or '..' in pure.parts or '\\' in relative_path:
        raise CopyError(f"Refusing unsafe relative path {relative_path!r}", relative_path)
    return root.joinpath(*pure.parts)


class FolderSync:
    """
    Applies the MissingInDestination entries of a comparison report.

    Per-item failures are counted and processing moves on to the next
    item; the result reports totals once every item has been handled.
    """

    def __init__(self, options: Optional[SyncOptions] = None):
        self.options = options or SyncOptions()

    def create_plan(self, report: ComparisonReport) -> ApplyPlan:
        """Create a copy plan from the report's missing files, in report order."""
        items = [
            ApplyItem(relative_path=d.relative_path, expected_size=d.source_size)
            for d in report.iter_by_kind(DifferenceKind.MISSING_IN_DESTINATION)
        ]
        return ApplyPlan(
            items=items,
            source_path=report.source,
            destination_path=report.destination,
        )

    def execute(
        self,
        plan: ApplyPlan,
        progress_callback: Optional[Callable[[ApplyProgress], None]] = None
    ) -> ApplyResult:
        """
        Execute a copy plan.

        Args:
            plan: The plan to execute
            progress_callback: Called after each item with its outcome

        Returns:
            ApplyResult with aggregated counts
        """
        start_time = time.time()

        source_root = Path(plan.source_path)
        destination_root = Path(plan.destination_path)

        result = ApplyResult(candidates=plan.total_items, dry_run=self.options.preview_only)

        for i, item in enumerate(plan.items):
            action = self._apply_item(item, source_root, destination_root, result)

            if progress_callback:
                progress_callback(ApplyProgress(
                    current_item=item.relative_path,
                    items_completed=i + 1,
                    total_items=plan.total_items,
                    bytes_copied=result.bytes_copied,
                    action=action,
                ))

        result.duration = time.time() - start_time
        logging.info(f"FolderSync - {result.summary}")
        return result

    def apply(
        self,
        report: ComparisonReport,
        progress_callback: Optional[Callable[[ApplyProgress], None]] = None
    ) -> ApplyResult:
        """Plan and execute in one step."""
        return self.execute(self.create_plan(report), progress_callback)

    def _apply_item(
        self,
        item: ApplyItem,
        source_root: Path,
        destination_root: Path,
        result: ApplyResult
    ) -> ApplyAction:
        """Handle one item and record its outcome in ``result``."""
        rel_path = item.relative_path

        try:
            source = resolve_relative(source_root, rel_path)
            dest = resolve_relative(destination_root, rel_path)

            if not source.is_file():
                logging.warning(f"FolderSync - Source no longer exists, skipping: {source}")
                result.skipped += 1
                result.skipped_paths.append(rel_path)
                return ApplyAction.SKIPPED

            if self.options.preview_only:
                logging.debug(f"FolderSync - Would copy {source} -> {dest}")
                result.copied += 1
                return ApplyAction.WOULD_COPY

            result.bytes_copied += self._copy_file(source, dest, rel_path)
            result.copied += 1
            logging.debug(f"FolderSync - Copied {source} -> {dest}")
            return ApplyAction.COPIED

        except CopyError as e:
            logging.error(f"FolderSync - Failed to copy {rel_path}: {e}")
            result.failed += 1
            result.errors.append((rel_path, str(e)))
            return ApplyAction.FAILED

    def _copy_file(self, source: Path, dest: Path, rel_path: str) -> int:
        """
        Copy a file from source to destination, overwriting the destination.

        Returns bytes copied.
        """
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CopyError(f"Cannot create directory {dest.parent}: {e.strerror or e}", rel_path) from e

        bytes_copied = 0
        # Written beside the target and moved into place once complete
        partial = dest.with_name(f".{dest.name}.{os.getpid()}.part")

        try:
            with open(source, 'rb') as src:
                with open(partial, 'wb') as dst:
                    while chunk := src.read(self.options.buffer_size):
                        dst.write(chunk)
                        bytes_copied += len(chunk)

            if self.options.preserve_timestamps:
                stat = source.stat()
                os.utime(partial, (stat.st_atime, stat.st_mtime))

            if self.options.preserve_permissions:
                shutil.copymode(source, partial)

            os.replace(partial, dest)
        except OSError as e:
            try:
                partial.unlink(missing_ok=True)
            except OSError as cleanup_error:
                logging.warning(f"FolderSync - Could not remove {partial}: {cleanup_error}")
            raise CopyError(f"Cannot copy {source} to {dest}: {e.strerror or e}", rel_path) from e

        return bytes_copied
