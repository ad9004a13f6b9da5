from __future__ import annotations

import logging
from pathlib import Path

import pytest

from treesync.logging_setup import setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_log_file_receives_records(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "treesync.log"

    logger = setup_logging("DEBUG", log_file)
    logging.info("FolderScanner - hello")
    for handler in logger.handlers:
        handler.flush()

    assert "FolderScanner - hello" in log_file.read_text(encoding="utf-8")


def test_unusable_log_file_falls_back_to_console(tmp_path: Path, capsys) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")

    logger = setup_logging("INFO", blocker / "sub" / "log.txt")

    assert [type(h) for h in logger.handlers] == [logging.StreamHandler]
    assert "logging to console only" in capsys.readouterr().err


def test_unknown_level_name_uses_info() -> None:
    assert setup_logging("Handler").level == logging.INFO
    assert setup_logging("verbose").level == logging.INFO
