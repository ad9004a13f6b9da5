"""
Helpers shared by the command line tools.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from treesync import APP_NAME, APP_VERSION
from treesync.logging_setup import setup_logging
from treesync.services.settings import SettingsManager, TreeSyncSettings

# Exit codes
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_INPUT = 2


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Add configuration, logging and version options."""
    parser.add_argument(
        '-c', '--config',
        help='Settings file path'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default=None,
        help='Log level (default: from settings, else INFO)'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'{APP_NAME} {APP_VERSION}'
    )


def resolve_log_level(parsed: argparse.Namespace) -> Optional[str]:
    """Log level requested on the command line, if any."""
    if parsed.verbose:
        return 'DEBUG'
    return parsed.log_level


def load_settings(config_file: Optional[str]) -> TreeSyncSettings:
    """Load settings from an explicit file or the default location."""
    manager = SettingsManager(Path(config_file) if config_file else None)
    return manager.settings


def init_logging(settings: TreeSyncSettings, level: Optional[str]) -> logging.Logger:
    """Set up logging, command line level first, then settings."""
    log_file = Path(settings.log_file) if settings.log_file else None
    return setup_logging(level or settings.log_level, log_file)
