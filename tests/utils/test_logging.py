# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the structured JSON logger.

We verify:
  - output is valid JSON on stderr, nothing on stdout
  - all mandatory fields are present (ts, level, module, msg)
  - log levels filter correctly
  - extra context fields get merged into the JSON
"""

import json
import logging
from pathlib import Path

import pytest

from erunner.logging.logger import configure_package_logging, get_logger


@pytest.fixture(autouse=True)
def _reset_loggers() -> None:
    """Drop handlers of the loggers created here so each test binds fresh streams."""
    yield  # type: ignore[misc]
    configure_package_logging("INFO")
    for name in list(logging.Logger.manager.loggerDict):
        if name.startswith("erunner.test"):
            logger = logging.getLogger(name)
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()


class TestJsonOutput:
    def test_output_is_json_on_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("erunner.test.json", log_level="INFO")
        logger.info("hello")
        captured = capsys.readouterr()

        assert captured.out == ""
        parsed = json.loads(captured.err.strip())
        assert isinstance(parsed, dict)

    def test_mandatory_fields_are_present(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("erunner.test.fields", log_level="INFO")
        logger.info("Cache hit")
        parsed = json.loads(capsys.readouterr().err.strip())

        assert "ts" in parsed
        assert parsed["level"] == "INFO"
        assert parsed["module"] == "erunner.test.fields"
        assert parsed["msg"] == "Cache hit"

    def test_extra_fields_are_included(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("erunner.test.extra", log_level="DEBUG")
        logger.info("Compiled", extra={"file": "main.c", "elapsed_seconds": 0.25})
        parsed = json.loads(capsys.readouterr().err.strip())

        assert parsed["file"] == "main.c"
        assert parsed["elapsed_seconds"] == 0.25

    def test_exception_is_rendered(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("erunner.test.exc", log_level="INFO")
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.error("Runtime error", exc_info=True)
        parsed = json.loads(capsys.readouterr().err.strip())

        assert "RuntimeError: boom" in parsed["exc"]


class TestLogLevelFiltering:
    def test_debug_messages_hidden_at_info_level(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("erunner.test.level_filter", log_level="INFO")
        logger.debug("this should not appear")
        assert capsys.readouterr().err.strip() == ""

    def test_repeated_get_logger_does_not_stack_handlers(self) -> None:
        first = get_logger("erunner.test.stacking", log_level="INFO")
        second = get_logger("erunner.test.stacking", log_level="DEBUG")

        assert first is second
        assert len(second.handlers) == 1
        assert second.level == logging.DEBUG

    def test_package_level_applies_to_existing_loggers(self) -> None:
        logger = get_logger("erunner.test.package_level", log_level="INFO")
        configure_package_logging("WARNING")
        assert logger.level == logging.WARNING


class TestFileOutput:
    def test_logs_are_written_to_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "erunner.log"
        logger = get_logger("erunner.test.file_output", log_level="INFO", log_file=log_file)
        logger.info("file log test")

        parsed = json.loads(log_file.read_text(encoding="utf-8").strip())
        assert parsed["msg"] == "file log test"


class TestInvalidLogLevel:
    def test_invalid_level_raises_value_error(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            get_logger("erunner.test.invalid", log_level="INVALID")
