"""
Applier command line tool.

Copies the files a comparison report lists as MissingInDestination.

Exit codes:
    0  success, including nothing to copy
    1  one or more copy or mkdir failures
    2  report not found, unparsable or missing required fields
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from typing import List, Optional, TextIO

from treesync import APP_NAME
from treesync.cli.common import (
    EXIT_FAILURE,
    EXIT_INVALID_INPUT,
    EXIT_OK,
    add_common_arguments,
    init_logging,
    load_settings,
    resolve_log_level,
)
from treesync.core.errors import ReportParseError
from treesync.core.folder.sync import FolderSync, SyncOptions
from treesync.core.models import ApplyAction, ApplyProgress, ApplyResult
from treesync.core.report import ReportReader


@dataclass
class ApplyArgs:
    """Parsed command line arguments."""
    report_path: str
    dry_run: bool = False
    config_file: Optional[str] = None
    log_level: Optional[str] = None


def parse_arguments(args: Optional[List[str]] = None) -> ApplyArgs:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog=f'{APP_NAME}-apply',
        description="Copy files reported as missing from the destination",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s treesync-report.json            Copy missing files
  %(prog)s treesync-report.json --dry-run  Show what would be copied
        """
    )

    parser.add_argument('report', help='Report written by treesync-compare')
    parser.add_argument(
        '-n', '--dry-run',
        action='store_true',
        help='Report what would be copied without changing anything'
    )

    add_common_arguments(parser)

    parsed = parser.parse_args(args)

    return ApplyArgs(
        report_path=parsed.report,
        dry_run=parsed.dry_run,
        config_file=parsed.config,
        log_level=resolve_log_level(parsed),
    )


def _print_progress(out: TextIO):
    def callback(progress: ApplyProgress) -> None:
        label = progress.action.value if progress.action else ''
        print(f"[{progress.items_completed}/{progress.total_items}] {label:<10} {progress.current_item}", file=out)
    return callback


def print_result(result: ApplyResult, out: Optional[TextIO] = None) -> None:
    """Print the final summary and any per-item errors."""
    out = out or sys.stdout
    if result.candidates == 0:
        print("Nothing to copy.", file=out)
    for rel_path, error in result.errors:
        print(f"error: {rel_path}: {error}", file=out)
    prefix = "Dry run. " if result.dry_run else ""
    print(f"{prefix}{result.summary}", file=out)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Applier entry point.

    Returns:
        Exit code
    """
    args = parse_arguments(argv)
    settings = load_settings(args.config_file)
    logger = init_logging(settings, args.log_level)

    try:
        report = ReportReader().read(args.report_path)
    except ReportParseError as e:
        logger.error(f"Cannot load report: {e}")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    sync = FolderSync(SyncOptions(
        preview_only=args.dry_run,
        buffer_size=settings.apply.buffer_size,
        preserve_timestamps=settings.apply.preserve_timestamps,
        preserve_permissions=settings.apply.preserve_permissions,
    ))

    logger.info(f"Applying {args.report_path}: {report.source} -> {report.destination}")
    result = sync.apply(report, _print_progress(sys.stdout))
    print_result(result)

    return EXIT_OK if result.success else EXIT_FAILURE


if __name__ == '__main__':
    sys.exit(main())
