"""
Settings management.

Settings are stored as JSON and layered: command line flags override the
settings file, which overrides the defaults below.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from treesync.core.folder.scanner import PatternMatcher
from treesync.core.report import DEFAULT_REPORT_NAME
from treesync.services.hashing import HashAlgorithm


@dataclass
class CompareSettings:
    """Settings for the comparator."""
    verify_content: bool = False
    skip_empty_files: bool = False
    hash_algorithm: HashAlgorithm = HashAlgorithm.SHA256
    chunk_size: int = 65536
    parallel_workers: int = 4
    follow_symlinks: bool = False
    exclude_patterns: list[str] = field(default_factory=list)
    report_name: str = DEFAULT_REPORT_NAME


@dataclass
class ApplySettings:
    """Settings for the applier."""
    buffer_size: int = 65536
    preserve_timestamps: bool = True
    preserve_permissions: bool = True


@dataclass
class TreeSyncSettings:
    """Main settings container."""
    compare: CompareSettings = field(default_factory=CompareSettings)
    apply: ApplySettings = field(default_factory=ApplySettings)
    log_level: str = "INFO"
    log_file: Optional[str] = None


class SettingsManager:
    """Loads settings from a JSON file."""

    def __init__(self, settings_path: Optional[Path] = None):
        self.settings_path = Path(settings_path) if settings_path else self._get_default_path()
        self._settings: Optional[TreeSyncSettings] = None

    @staticmethod
    def _get_default_path() -> Path:
        """Get the default settings file path."""
        if os.name == 'nt':
            app_data = os.environ.get('APPDATA', os.path.expanduser('~'))
            return Path(app_data) / 'treesync' / 'settings.json'
        else:
            config_home = os.environ.get('XDG_CONFIG_HOME',
                                         os.path.expanduser('~/.config'))
            return Path(config_home) / 'treesync' / 'settings.json'

    @property
    def settings(self) -> TreeSyncSettings:
        """Get current settings, loading from disk if needed."""
        if self._settings is None:
            self._settings = self.load()
        return self._settings

    def load(self) -> TreeSyncSettings:
        """Load settings from disk; defaults if the file is absent or invalid."""
        if not self.settings_path.exists():
            return TreeSyncSettings()

        try:
            with open(self.settings_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError, RecursionError) as e:
            logging.warning(f"SettingsManager - Could not read {self.settings_path}, using defaults: {e}")
            return TreeSyncSettings()

        if not isinstance(data, dict):
            logging.warning(f"SettingsManager - {self.settings_path} is not a JSON object, using defaults")
            return TreeSyncSettings()

        return self._from_dict(data)

    def _from_dict(self, data: dict) -> TreeSyncSettings:
        """Convert dictionary back to settings objects."""
        compare_data = data.get('compare') if isinstance(data.get('compare'), dict) else {}
        apply_data = data.get('apply') if isinstance(data.get('apply'), dict) else {}
        defaults = TreeSyncSettings()

        def get(section: dict, key: str, default: Any, expected: type) -> Any:
            value = section.get(key, default)
            # Sizes and worker counts must be positive
            if expected is int and (isinstance(value, bool) or not isinstance(value, int) or value < 1):
                value = None
            if not isinstance(value, expected):
                logging.warning(f"SettingsManager - Ignoring invalid value for '{key}': {value!r}")
                return default
            return value

        algorithm_name = get(compare_data, 'hash_algorithm', defaults.compare.hash_algorithm.value, str)
        try:
            algorithm = HashAlgorithm.from_string(algorithm_name)
        except ValueError as e:
            logging.warning(f"SettingsManager - {e}; using {defaults.compare.hash_algorithm.value}")
            algorithm = defaults.compare.hash_algorithm

        patterns = get(compare_data, 'exclude_patterns', defaults.compare.exclude_patterns, list)
        exclude_patterns = []
        for pattern in patterns:
            try:
                if not isinstance(pattern, str):
                    raise ValueError(f"not a string: {pattern!r}")
                PatternMatcher([pattern])
            except ValueError as e:
                logging.warning(f"SettingsManager - Ignoring exclude pattern: {e}")
                continue
            exclude_patterns.append(pattern)

        compare = CompareSettings(
            verify_content=get(compare_data, 'verify_content', defaults.compare.verify_content, bool),
            skip_empty_files=get(compare_data, 'skip_empty_files', defaults.compare.skip_empty_files, bool),
            hash_algorithm=algorithm,
            chunk_size=get(compare_data, 'chunk_size', defaults.compare.chunk_size, int),
            parallel_workers=get(compare_data, 'parallel_workers', defaults.compare.parallel_workers, int),
            follow_symlinks=get(compare_data, 'follow_symlinks', defaults.compare.follow_symlinks, bool),
            exclude_patterns=exclude_patterns,
            report_name=get(compare_data, 'report_name', defaults.compare.report_name, str),
        )

        apply = ApplySettings(
            buffer_size=get(apply_data, 'buffer_size', defaults.apply.buffer_size, int),
            preserve_timestamps=get(apply_data, 'preserve_timestamps', defaults.apply.preserve_timestamps, bool),
            preserve_permissions=get(apply_data, 'preserve_permissions', defaults.apply.preserve_permissions, bool),
        )

        log_file = data.get('log_file')
        return TreeSyncSettings(
            compare=compare,
            apply=apply,
            log_level=get(data, 'log_level', defaults.log_level, str),
            log_file=log_file if isinstance(log_file, str) else None,
        )
