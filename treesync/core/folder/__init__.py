"""
Folder comparison module.

Provides functionality for:
- Recursive directory indexing
- Folder-to-folder difference classification
- Content verification by digest
- Applying reports by copying missing files
"""

from treesync.core.folder.scanner import (
    FolderScanner,
    ScanOptions,
    PatternMatcher,
)
from treesync.core.folder.comparer import (
    FolderComparer,
    CompareOptions,
)
from treesync.core.folder.verifier import ContentVerifier
from treesync.core.folder.sync import (
    FolderSync,
    SyncOptions,
)

__all__ = [
    # Scanner
    'FolderScanner',
    'ScanOptions',
    'PatternMatcher',
    # Comparer
    'FolderComparer',
    'CompareOptions',
    'ContentVerifier',
    # Sync
    'FolderSync',
    'SyncOptions',
]
