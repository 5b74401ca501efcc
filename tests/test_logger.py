"""Tests for loguru sink setup."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from gameshelf.logger import LOG_FILE_NAME, LOG_RETENTION, LOG_ROTATION, setup_logger


class TestSetupLogger:
    def teardown_method(self) -> None:
        logger.remove()

    def test_rotation_policy(self) -> None:
        assert LOG_ROTATION == "5 MB"
        assert LOG_RETENTION == "7 days"

    def test_console_only(self) -> None:
        assert setup_logger() is None

    def test_file_sink(self, tmp_path: Path) -> None:
        log_dir = tmp_path / "logs"
        log_file = setup_logger(log_dir, verbose=True)

        assert log_file == log_dir / LOG_FILE_NAME
        logger.info("library scan started")
        logger.complete()
        logger.remove()
        assert "library scan started" in log_file.read_text(encoding="utf-8")
