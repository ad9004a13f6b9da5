"""
Directory indexer for tree comparison.

Walks a root recursively and builds a DirectoryIndex of every regular file
below it, keyed by a canonical relative path:
- Root prefix stripped
- Separators normalized to '/'
- Unicode normalized to NFC
- Case preserved

The same ScanOptions must be used for both roots of a comparison so that
symlink handling and exclusions are applied identically.
"""

from __future__ import annotations

import logging
import os
import re
import stat
import time
import unicodedata
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Callable, Optional

from treesync.core.errors import EnumerationError
from treesync.core.models import DirectoryIndex, FileRecord


def canonical_relative_path(relative: PurePath | str) -> str:
    """Return the join key used to match files across roots."""
    text = PurePath(relative).as_posix()
    return unicodedata.normalize('NFC', text)


@dataclass
class ScanOptions:
    """Options for directory indexing."""
    follow_symlinks: bool = False
    exclude_patterns: list[str] = field(default_factory=list)


@dataclass
class ScanProgress:
    """Progress information for indexing."""
    current_path: str
    files_found: int
    directories_visited: int


class PatternMatcher:
    """
    Gitignore-style pattern matcher.

    Supports:
    - * (matches any characters except /)
    - ** (matches any characters including /)
    - ? (matches single character)
    - [abc] (character class)
    - ! (negation)
    - / prefix (anchored to root)
    - / suffix (directory only)

    Raises ValueError for a pattern that does not compile.
    """

    def __init__(self, patterns: list[str]):
        self._positive_patterns: list[tuple[re.Pattern, bool]] = []  # (regex, dir_only)
        self._negative_patterns: list[tuple[re.Pattern, bool]] = []

        for pattern in patterns:
            self._compile_pattern(pattern)

    def __bool__(self) -> bool:
        return bool(self._positive_patterns)

    def _compile_pattern(self, pattern: str) -> None:
        original = pattern
        pattern = pattern.strip()
        if not pattern or pattern.startswith('#'):
            return

        is_negative = pattern.startswith('!')
        if is_negative:
            pattern = pattern[1:]

        dir_only = pattern.endswith('/')
        if dir_only:
            pattern = pattern[:-1]

        anchored = pattern.startswith('/')
        if anchored:
            pattern = pattern[1:]

        try:
            compiled = re.compile(self._pattern_to_regex(pattern, anchored))
        except re.error as e:
            raise ValueError(f"Invalid exclude pattern {original!r}: {e}") from None

        if is_negative:
            self._negative_patterns.append((compiled, dir_only))
        else:
            self._positive_patterns.append((compiled, dir_only))

    @staticmethod
    def _pattern_to_regex(pattern: str, anchored: bool) -> str:
        """Convert gitignore pattern to regex."""
        result = []
        i = 0

        while i < len(pattern):
            c = pattern[i]

            if c == '*':
                if pattern.startswith('**/', i):
                    result.append('(?:.*/)?')
                    i += 3
                    continue
                if pattern.startswith('**', i):
                    result.append('.*')
                    i += 2
                    continue
                result.append('[^/]*')
            elif c == '?':
                result.append('[^/]')
            elif c == '[':
                end = pattern.find(']', i + 1)
                if end == -1:
                    result.append(re.escape(c))
                else:
                    body = pattern[i + 1:end]
                    if body.startswith('!'):
                        body = '^' + body[1:]
                    result.append(f'[{body}]')
                    i = end
            else:
                result.append(re.escape(c))

            i += 1

        regex = ''.join(result)
        prefix = '^' if anchored else '(?:^|/)'
        return prefix + regex + '(?:/.*)?$'

    def matches(self, path: str, is_dir: bool = False) -> bool:
        """
        Check if a canonical relative path matches the patterns.

        Returns True if the path should be excluded.
        """
        path = path.lstrip('/')

        matched = any(
            regex.search(path)
            for regex, dir_only in self._positive_patterns
            if is_dir or not dir_only
        )
        if not matched:
            return False

        for regex, dir_only in self._negative_patterns:
            if dir_only and not is_dir:
                continue
            if regex.search(path):
                return False

        return True


class FolderScanner:
    """
    Builds a DirectoryIndex for a root directory.

    Only regular files are indexed. Symbolic links are skipped unless
    ``follow_symlinks`` is set, in which case their targets are indexed
    when they resolve to regular files. Any traversal failure aborts the
    whole scan with EnumerationError.
    """

    def __init__(self, options: Optional[ScanOptions] = None):
        self.options = options or ScanOptions()
        self._matcher = PatternMatcher(self.options.exclude_patterns)

    def scan(
        self,
        root_path: Path | str,
        progress_callback: Optional[Callable[[ScanProgress], None]] = None
    ) -> DirectoryIndex:
        """
        Index a directory tree.

        Args:
            root_path: Root directory to index
            progress_callback: Called once per visited directory

        Returns:
            DirectoryIndex with every regular file below the root

        Raises:
            EnumerationError: root missing, not a directory, or unreadable
        """
        start_time = time.time()
        root_path = self._resolve_root(root_path)

        files: dict[str, FileRecord] = {}
        total_size = 0
        directories_visited = 0
        visited_dirs: set[tuple[int, int]] = set()

        def on_walk_error(error: OSError) -> None:
            logging.error(f"FolderScanner - Cannot read directory {error.filename}: {error.strerror}")
            raise EnumerationError(
                f"Cannot read directory {error.filename}: {error.strerror}",
                error.filename
            ) from error

        for dirpath, dirnames, filenames in os.walk(
            root_path,
            topdown=True,
            followlinks=self.options.follow_symlinks,
            onerror=on_walk_error
        ):
            current_path = Path(dirpath)
            rel_dir = current_path.relative_to(root_path)

            if self.options.follow_symlinks:
                # Symlinked directories can form cycles
                dir_key = self._dir_key(current_path)
                if dir_key in visited_dirs:
                    logging.warning(f"FolderScanner - Skipping directory cycle at {current_path}")
                    dirnames.clear()
                    continue
                visited_dirs.add(dir_key)

            dirnames[:] = sorted(
                d for d in dirnames
                if self._should_descend(current_path / d, canonical_relative_path(rel_dir / d))
            )
            filenames.sort()
            directories_visited += 1

            for filename in filenames:
                rel_path = canonical_relative_path(rel_dir / filename)

                if self._matcher and self._matcher.matches(rel_path, False):
                    continue

                record = self._index_file(current_path / filename, rel_path)
                if record is None:
                    continue

                if rel_path in files:
                    logging.error(f"FolderScanner - Ambiguous relative path {rel_path!r} under {root_path}")
                    raise EnumerationError(
                        f"Two files map to the same relative path {rel_path!r}",
                        root_path
                    )

                files[rel_path] = record
                total_size += record.size

            if progress_callback:
                progress_callback(ScanProgress(
                    current_path=canonical_relative_path(rel_dir),
                    files_found=len(files),
                    directories_visited=directories_visited,
                ))

        scan_time = time.time() - start_time
        logging.debug(f"FolderScanner - Indexed {len(files)} files under {root_path} in {scan_time:.2f}s")

        return DirectoryIndex(
            root_path=root_path,
            files=files,
            total_size=total_size,
            scan_time=scan_time,
        )

    def _resolve_root(self, root_path: Path | str) -> Path:
        """Validate the root and return its absolute form."""
        root_path = Path(root_path)

        try:
            resolved = root_path.resolve(strict=True)
        except FileNotFoundError:
            logging.error(f"FolderScanner - Root path not found: {root_path}")
            raise EnumerationError(f"Directory not found: {root_path}", root_path) from None
        except OSError as e:
            logging.error(f"FolderScanner - Cannot access root path {root_path}: {e}")
            raise EnumerationError(f"Cannot access {root_path}: {e}", root_path) from e

        if not resolved.is_dir():
            logging.error(f"FolderScanner - Root path is not a directory: {root_path}")
            raise EnumerationError(f"Not a directory: {root_path}", root_path)

        return resolved

    def _should_descend(self, dir_path: Path, rel_path: str) -> bool:
        """Check whether the walk should enter a subdirectory."""
        if not self.options.follow_symlinks and dir_path.is_symlink():
            return False
        if self._matcher and self._matcher.matches(rel_path, True):
            return False
        return True

    def _index_file(self, path: Path, rel_path: str) -> Optional[FileRecord]:
        """Stat a directory entry; None if it is not an indexable regular file."""
        try:
            if self.options.follow_symlinks:
                stat_result = path.stat()
            else:
                stat_result = path.lstat()
        except FileNotFoundError:
            if path.is_symlink():
                logging.warning(f"FolderScanner - Skipping broken symlink {rel_path}")
            else:
                logging.warning(f"FolderScanner - File vanished during scan: {rel_path}")
            return None
        except OSError as e:
            logging.error(f"FolderScanner - Cannot stat {path}: {e}")
            raise EnumerationError(f"Cannot read file {path}: {e.strerror or e}", path) from e

        if not stat.S_ISREG(stat_result.st_mode):
            logging.debug(f"FolderScanner - Skipping non-regular entry {rel_path}")
            return None

        return FileRecord(
            relative_path=rel_path,
            absolute_path=path,
            size=stat_result.st_size,
        )

    @staticmethod
    def _dir_key(path: Path) -> tuple[int, int]:
        try:
            stat_result = path.stat()
        except OSError as e:
            raise EnumerationError(f"Cannot read directory {path}: {e.strerror or e}", path) from e
        return stat_result.st_dev, stat_result.st_ino
