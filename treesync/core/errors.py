"""
Error types raised by the comparator and the applier.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class TreeSyncError(Exception):
    """Base class for all treesync errors."""


class EnumerationError(TreeSyncError):
    """A root could not be indexed: missing, not a directory or unreadable."""

    def __init__(self, message: str, path: Optional[Path | str] = None):
        super().__init__(message)
        self.path = path


class ReportParseError(TreeSyncError):
    """A persisted report is missing, unreadable or fails schema validation."""

    def __init__(self, message: str, path: Optional[Path | str] = None):
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        message = super().__str__()
        if self.path is not None:
            return f"{self.path}: {message}"
        return message


class CopyError(TreeSyncError):
    """Copying a single file failed."""

    def __init__(self, message: str, relative_path: str):
        super().__init__(message)
        self.relative_path = relative_path
