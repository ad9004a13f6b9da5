"""
Comparator command line tool.

Exit codes:
    0  no differences
    1  differences found
    2  invalid input or enumeration failure
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
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
from treesync.core.errors import EnumerationError
from treesync.core.folder.comparer import CompareOptions, FolderComparer
from treesync.core.folder.scanner import PatternMatcher
from treesync.core.models import CompareProgress, ComparisonReport
from treesync.core.report import ReportWriter
from treesync.services.hashing import HashAlgorithm
from treesync.services.settings import TreeSyncSettings


@dataclass
class CompareArgs:
    """Parsed command line arguments."""
    source: str
    destination: str
    verify: Optional[bool] = None
    skip_empty: Optional[bool] = None
    hash_algorithm: Optional[str] = None
    workers: Optional[int] = None
    exclude_patterns: list[str] = field(default_factory=list)
    follow_symlinks: Optional[bool] = None
    write_json: bool = False
    output_path: Optional[str] = None
    config_file: Optional[str] = None
    log_level: Optional[str] = None


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def _exclude_pattern(value: str) -> str:
    try:
        PatternMatcher([value])
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None
    return value


def parse_arguments(args: Optional[List[str]] = None) -> CompareArgs:
    """
    Parse command line arguments.

    Invalid arguments terminate with exit code 2.
    """
    parser = argparse.ArgumentParser(
        prog=f'{APP_NAME}-compare',
        description="Compare a source directory tree with a destination tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s src/ backup/                  Compare by presence and size
  %(prog)s src/ backup/ --verify         Also compare content of same-size files
  %(prog)s src/ backup/ --json           Write report to ./treesync-report.json
  %(prog)s src/ backup/ -o report.json   Write report to report.json
        """
    )

    parser.add_argument('source', help='Source directory')
    parser.add_argument('destination', help='Destination directory')

    verify_group = parser.add_argument_group('content verification')
    verify_group.add_argument(
        '--verify',
        action='store_true',
        default=None,
        help='Compare file contents by hash when sizes match'
    )
    verify_group.add_argument(
        '--skip-empty',
        action='store_true',
        default=None,
        help='Do not hash zero-byte files'
    )
    verify_group.add_argument(
        '--hash-algorithm',
        choices=[a.value for a in HashAlgorithm],
        help='Digest used for verification (default: sha256)'
    )
    verify_group.add_argument(
        '-w', '--workers',
        type=_positive_int,
        help='Parallel hashing workers'
    )

    scan_group = parser.add_argument_group('scanning')
    scan_group.add_argument(
        '-x', '--exclude',
        action='append',
        default=[],
        type=_exclude_pattern,
        metavar='PATTERN',
        help='Gitignore-style pattern to exclude (repeatable)'
    )
    scan_group.add_argument(
        '--follow-symlinks',
        action='store_true',
        default=None,
        help='Follow symbolic links instead of skipping them'
    )

    report_group = parser.add_argument_group('report')
    report_group.add_argument(
        '--json',
        action='store_true',
        help='Write a JSON report to the current directory'
    )
    report_group.add_argument(
        '-o', '--output',
        metavar='PATH',
        help='Write a JSON report to PATH (implies --json)'
    )

    add_common_arguments(parser)

    parsed = parser.parse_args(args)

    return CompareArgs(
        source=parsed.source,
        destination=parsed.destination,
        verify=parsed.verify,
        skip_empty=parsed.skip_empty,
        hash_algorithm=parsed.hash_algorithm,
        workers=parsed.workers,
        exclude_patterns=parsed.exclude,
        follow_symlinks=parsed.follow_symlinks,
        write_json=parsed.json or parsed.output is not None,
        output_path=parsed.output,
        config_file=parsed.config,
        log_level=resolve_log_level(parsed),
    )


def build_options(args: CompareArgs, settings: TreeSyncSettings) -> CompareOptions:
    """Merge command line flags over settings."""
    compare = settings.compare

    def pick(flag, configured):
        return configured if flag is None else flag

    algorithm = compare.hash_algorithm
    if args.hash_algorithm:
        algorithm = HashAlgorithm.from_string(args.hash_algorithm)

    return CompareOptions(
        verify_content=pick(args.verify, compare.verify_content),
        skip_empty_files=pick(args.skip_empty, compare.skip_empty_files),
        hash_algorithm=algorithm,
        chunk_size=compare.chunk_size,
        follow_symlinks=pick(args.follow_symlinks, compare.follow_symlinks),
        exclude_patterns=list(compare.exclude_patterns) + list(args.exclude_patterns),
        parallel_workers=pick(args.workers, compare.parallel_workers),
    )


def print_report(report: ComparisonReport, out: Optional[TextIO] = None) -> None:
    """Print a human-readable summary followed by each difference."""
    out = out or sys.stdout
    print(f"Source:      {report.source} ({report.source_file_count} files)", file=out)
    print(f"Destination: {report.destination} ({report.destination_file_count} files)", file=out)

    if report.is_identical:
        print("No differences found.", file=out)
        return

    print(f"Differences: {report.differences_count}", file=out)
    for kind, count in report.summary:
        print(f"  {kind.report_type:<22} {count}", file=out)

    print(file=out)
    for difference in sorted(report.differences, key=lambda d: (d.relative_path, d.kind.value)):
        print(f"{difference.kind.report_type:<22} {difference.relative_path}  ({difference.describe()})", file=out)


def _log_progress(progress: CompareProgress) -> None:
    logging.debug(f"{progress.phase}: {progress.current_path} ({progress.items_processed})")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Comparator entry point.

    Returns:
        Exit code
    """
    args = parse_arguments(argv)
    settings = load_settings(args.config_file)
    logger = init_logging(settings, args.log_level)

    options = build_options(args, settings)
    comparer = FolderComparer(options)

    try:
        report = comparer.compare(args.source, args.destination, _log_progress)
    except EnumerationError as e:
        logger.error(f"Comparison aborted: {e}")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    print_report(report)

    if args.write_json:
        output_path = Path(args.output_path) if args.output_path else Path.cwd() / settings.compare.report_name
        try:
            ReportWriter().write(report, output_path)
        except OSError as e:
            logger.error(f"Could not write report to {output_path}: {e}")
            print(f"error: could not write report: {e}", file=sys.stderr)
            return EXIT_INVALID_INPUT
        print(f"Report written to {output_path}")

    return EXIT_OK if report.is_identical else EXIT_FAILURE


if __name__ == '__main__':
    sys.exit(main())
