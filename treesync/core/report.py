"""
Persisted comparison report.

The report is a JSON document with the following top-level keys:

    Source, Destination        root paths (strings, required)
    Timestamp                  ISO-8601 string
    SourceFileCount            integer
    DestinationFileCount       integer
    DifferencesCount           integer
    Summary                    list of {Type, Count}
    Differences                list of differences (required)

Each difference has ``Type``, ``RelativePath``, ``SourceSize``,
``DestinationSize``, ``SourceHash``, ``DestinationHash`` and ``Error``;
absent values are written as null.

Reports are validated on load. Anything that does not fit the schema
raises ReportParseError instead of leaking partially-typed values.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from treesync.core.errors import ReportParseError
from treesync.core.models import ComparisonReport, Difference, DifferenceKind

DEFAULT_REPORT_NAME = "treesync-report.json"

_REPORT_KEYS = {
    'Source', 'Destination', 'Timestamp', 'SourceFileCount',
    'DestinationFileCount', 'DifferencesCount', 'Summary', 'Differences',
}
_DIFFERENCE_KEYS = {
    'Type', 'RelativePath', 'SourceSize', 'DestinationSize',
    'SourceHash', 'DestinationHash', 'Error',
}

_FRACTION = re.compile(r'\.(\d+)')
_BASIC_FORMATS = ('%Y%m%dT%H%M%S%z', '%Y%m%dT%H%M%S', '%Y%m%dT%H%M%z')


# =============================================================================
# Schema mapping
# =============================================================================

def difference_to_dict(difference: Difference) -> dict[str, Any]:
    return {
        'Type': difference.kind.report_type,
        'RelativePath': difference.relative_path,
        'SourceSize': difference.source_size,
        'DestinationSize': difference.destination_size,
        'SourceHash': difference.source_digest,
        'DestinationHash': difference.destination_digest,
        'Error': difference.error,
    }


def report_to_dict(report: ComparisonReport) -> dict[str, Any]:
    """Convert a report to its persisted JSON structure."""
    return {
        'Source': report.source,
        'Destination': report.destination,
        'Timestamp': report.timestamp.isoformat(),
        'SourceFileCount': report.source_file_count,
        'DestinationFileCount': report.destination_file_count,
        'DifferencesCount': report.differences_count,
        'Summary': [
            {'Type': kind.report_type, 'Count': count}
            for kind, count in report.summary
        ],
        'Differences': [difference_to_dict(d) for d in report.differences],
    }


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_unknown_keys(data: dict, allowed: set[str], where: str) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ReportParseError(f"{where}: unknown field(s) {', '.join(unknown)}")


def _optional_int(data: dict, key: str, where: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if not _is_int(value) or value < 0:
        raise ReportParseError(f"{where}: '{key}' must be a non-negative integer or null")
    return value


def _optional_str(data: dict, key: str, where: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ReportParseError(f"{where}: '{key}' must be a string or null")
    return value


def _required_str(data: dict, key: str, where: str) -> str:
    if key not in data or data[key] is None:
        raise ReportParseError(f"{where}: missing required field '{key}'")
    value = data[key]
    if not isinstance(value, str) or not value:
        raise ReportParseError(f"{where}: '{key}' must be a non-empty string")
    return value


def parse_timestamp(text: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp as written by other producers.

    Accepts a trailing ``Z``, fractions of any length and the basic
    ``YYYYMMDDTHHMMSS`` form. Returns None if the text is not recognised.
    """
    text = text.strip()
    extended = text[:-1] + '+00:00' if text[-1:] in ('Z', 'z') else text
    extended = _FRACTION.sub(lambda m: '.' + m.group(1)[:6].ljust(6, '0'), extended)

    try:
        return datetime.fromisoformat(extended)
    except ValueError:
        pass

    for fmt in _BASIC_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    return None


def difference_from_dict(data: Any, index: int) -> Difference:
    where = f"Differences[{index}]"
    if not isinstance(data, dict):
        raise ReportParseError(f"{where}: expected an object")
    _check_unknown_keys(data, _DIFFERENCE_KEYS, where)

    type_name = _required_str(data, 'Type', where)
    try:
        kind = DifferenceKind.from_report_type(type_name)
    except ValueError as e:
        raise ReportParseError(f"{where}: {e}") from None

    return Difference(
        kind=kind,
        relative_path=_required_str(data, 'RelativePath', where),
        source_size=_optional_int(data, 'SourceSize', where),
        destination_size=_optional_int(data, 'DestinationSize', where),
        source_digest=_optional_str(data, 'SourceHash', where),
        destination_digest=_optional_str(data, 'DestinationHash', where),
        error=_optional_str(data, 'Error', where),
    )


def report_from_dict(data: Any) -> ComparisonReport:
    """
    Validate a decoded JSON document and build a report from it.

    Counts and Summary are type-checked but not recomputed.
    """
    if not isinstance(data, dict):
        raise ReportParseError("Report must be a JSON object")
    _check_unknown_keys(data, _REPORT_KEYS, "Report")

    source = _required_str(data, 'Source', "Report")
    destination = _required_str(data, 'Destination', "Report")

    if 'Differences' not in data:
        raise ReportParseError("Report: missing required field 'Differences'")
    raw_differences = data['Differences']
    if not isinstance(raw_differences, list):
        raise ReportParseError("Report: 'Differences' must be a list")

    timestamp_text = _optional_str(data, 'Timestamp', "Report")
    timestamp = parse_timestamp(timestamp_text) if timestamp_text is not None else None
    if timestamp is None:
        if timestamp_text is not None:
            logging.warning(f"ReportReader - Unrecognised Timestamp {timestamp_text!r}, using load time")
        timestamp = datetime.now().astimezone()

    for key in ('SourceFileCount', 'DestinationFileCount', 'DifferencesCount'):
        _optional_int(data, key, "Report")

    summary = data.get('Summary')
    if summary is not None:
        if not isinstance(summary, list):
            raise ReportParseError("Report: 'Summary' must be a list")
        for i, entry in enumerate(summary):
            where = f"Summary[{i}]"
            if not isinstance(entry, dict):
                raise ReportParseError(f"{where}: expected an object")
            _check_unknown_keys(entry, {'Type', 'Count'}, where)
            _required_str(entry, 'Type', where)
            if not _is_int(entry.get('Count')):
                raise ReportParseError(f"{where}: 'Count' must be an integer")

    return ComparisonReport(
        source=source,
        destination=destination,
        timestamp=timestamp,
        source_file_count=data.get('SourceFileCount') or 0,
        destination_file_count=data.get('DestinationFileCount') or 0,
        differences=[difference_from_dict(d, i) for i, d in enumerate(raw_differences)],
    )


# =============================================================================
# Reading and writing
# =============================================================================

class ReportWriter:
    """Writes comparison reports as JSON."""

    def __init__(self, indent: int = 2):
        self.indent = indent

    def write(self, report: ComparisonReport, path: Path | str) -> int:
        """
        Write a report atomically.

        The document is written to a temporary file next to the target and
        then moved into place, so a failed write never leaves a partial
        report behind.

        Returns:
            Number of bytes written
        """
        path = Path(path)
        encoded = json.dumps(report_to_dict(report), indent=self.indent, ensure_ascii=False).encode('utf-8')

        dir_path = path.parent
        dir_path.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(dir=dir_path, prefix='.treesync-', suffix='.tmp')
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(encoded)
            os.replace(temp_path, path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

        logging.info(f"ReportWriter - Wrote report with {report.differences_count} differences to {path}")
        return len(encoded)


class ReportReader:
    """Reads and validates persisted comparison reports."""

    def read(self, path: Path | str) -> ComparisonReport:
        """
        Load a report.

        Raises:
            ReportParseError: file missing, unreadable, not JSON or invalid
        """
        path = Path(path)

        try:
            with open(path, 'r', encoding='utf-8-sig') as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ReportParseError("Report file not found", path) from None
        except (OSError, UnicodeDecodeError) as e:
            raise ReportParseError(f"Cannot read report: {e}", path) from e
        except json.JSONDecodeError as e:
            raise ReportParseError(f"Invalid JSON: {e}", path) from e
        except RecursionError:
            raise ReportParseError("Invalid JSON: nesting too deep", path) from None

        try:
            report = report_from_dict(data)
        except ReportParseError as e:
            raise ReportParseError(str(e), path) from None

        logging.debug(f"ReportReader - Loaded {report.differences_count} differences from {path}")
        return report
