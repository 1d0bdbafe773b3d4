from __future__ import annotations

import io
import sys
import logging
import threading
from typing import Generator
from unittest.mock import MagicMock, patch

import pytest

from modkeeper.utils.logger import (
    ROOT_LOGGER_NAME,
    ColoredFormatter,
    disable_logging,
    get_logger,
    is_logging_configured,
    setup_logging,
)


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def clean_logger_state() -> Generator[None, None, None]:
    """Return the modkeeper logger tree to its silent state around a test."""
    disable_logging()
    yield
    disable_logging()
    for name in ("httpx", "httpcore", "hpack"):
        logging.getLogger(name).setLevel(logging.NOTSET)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("CI", raising=False)


def _record(level: int = logging.INFO, msg: str = "resolved") -> logging.LogRecord:
    return logging.LogRecord(
        name="modkeeper.planner",
        level=level,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


# ==============================================================================
# ColoredFormatter Tests
# ==============================================================================


@pytest.mark.unit
class TestColoredFormatter:
    """Tests for ColoredFormatter."""

    def test_format_with_color(self, clean_env: None) -> None:
        """Test the level name is wrapped in ANSI codes on a TTY.

        Happy path.
        """
        formatter = ColoredFormatter("%(levelname)s: %(message)s")
        with patch.object(sys.stderr, "isatty", return_value=True):
            output = formatter.format(_record(logging.WARNING))

        assert output == "\033[33mWARNING\033[0m: resolved"

    def test_format_without_color(self, clean_env: None) -> None:
        """Test use_color=False yields plain text."""
        formatter = ColoredFormatter("%(levelname)s: %(message)s", use_color=False)
        assert formatter.format(_record()) == "INFO: resolved"

    @pytest.mark.parametrize("variable", ["NO_COLOR", "CI"])
    def test_env_disables_color(
        self,
        monkeypatch: pytest.MonkeyPatch,
        clean_env: None,
        variable: str,
    ) -> None:
        """Test NO_COLOR and CI suppress colour at format time."""
        monkeypatch.setenv(variable, "1")
        formatter = ColoredFormatter("%(levelname)s")
        with patch.object(sys.stderr, "isatty", return_value=True):
            assert formatter.format(_record(logging.ERROR)) == "ERROR"

    def test_record_left_unchanged(self, clean_env: None) -> None:
        """Test other handlers still see the plain level name.

        Edge case: The record is shared between handlers.
        """
        record = _record(logging.DEBUG)
        formatter = ColoredFormatter("%(levelname)s")
        with patch.object(sys.stderr, "isatty", return_value=True):
            formatter.format(record)
        assert record.levelname == "DEBUG"

    def test_isatty_failure(self, clean_env: None) -> None:
        """Test a stderr whose isatty raises disables colour."""
        mock_stderr = MagicMock()
        mock_stderr.isatty.side_effect = OSError("closed")
        with patch.object(sys, "stderr", mock_stderr):
            assert ColoredFormatter._should_use_color() is False


# ==============================================================================
# setup_logging Tests
# ==============================================================================


@pytest.mark.unit
class TestSetupLogging:
    """Tests for setup_logging."""

    def test_default_config(self, clean_logger_state: None) -> None:
        """Test one stream handler at INFO with propagation off.

        Happy path.
        """
        setup_logging()
        root = logging.getLogger(ROOT_LOGGER_NAME)

        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], logging.StreamHandler)
        assert root.propagate is False
        assert is_logging_configured() is True

    def test_output_reaches_stream(
        self,
        clean_logger_state: None,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test messages from child loggers are written and DEBUG is filtered."""
        monkeypatch.setenv("NO_COLOR", "1")
        stream = io.StringIO()
        setup_logging(stream=stream)

        get_logger("planner").debug("hidden")
        get_logger("planner").info("Resolving 3 module(s)")

        assert stream.getvalue() == "INFO: Resolving 3 module(s)\n"

    def test_verbose_format(self, clean_logger_state: None, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the verbose format includes the logger name."""
        monkeypatch.setenv("NO_COLOR", "1")
        stream = io.StringIO()
        setup_logging(level=logging.DEBUG, verbose=True, stream=stream)

        get_logger("data_store").debug("fetching")

        assert "modkeeper.data_store - DEBUG - fetching" in stream.getvalue()

    def test_repeated_setup_replaces_handler(self, clean_logger_state: None) -> None:
        """Test calling setup twice leaves a single handler.

        Edge case.
        """
        setup_logging()
        setup_logging(level=logging.DEBUG)
        root = logging.getLogger(ROOT_LOGGER_NAME)
        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG

    @pytest.mark.parametrize(
        "level,expected",
        [
            (logging.INFO, logging.WARNING),
            (logging.WARNING, logging.WARNING),
            (logging.DEBUG, logging.DEBUG),
        ],
    )
    def test_http_library_loggers(
        self,
        clean_logger_state: None,
        level: int,
        expected: int,
    ) -> None:
        """Test httpx and httpcore stay quiet unless modkeeper runs at DEBUG."""
        setup_logging(level=level)
        assert logging.getLogger("httpx").level == expected
        assert logging.getLogger("httpcore").level == expected

    def test_thread_safe(self, clean_logger_state: None) -> None:
        """Test concurrent setup calls leave exactly one handler."""
        threads = [threading.Thread(target=setup_logging) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == 1

    def test_disable_logging(self, clean_logger_state: None) -> None:
        """Test disable_logging undoes setup."""
        setup_logging()
        disable_logging()
        root = logging.getLogger(ROOT_LOGGER_NAME)
        assert is_logging_configured() is False
        assert all(isinstance(h, logging.NullHandler) for h in root.handlers)


# ==============================================================================
# get_logger Tests
# ==============================================================================


@pytest.mark.unit
class TestGetLogger:
    """Tests for get_logger."""

    @pytest.mark.parametrize("name", [None, "", "modkeeper"])
    def test_root_logger(self, clean_logger_state: None, name) -> None:
        """Test empty names return the package root logger."""
        assert get_logger(name).name == ROOT_LOGGER_NAME

    @pytest.mark.parametrize("name", ["planner", "modkeeper.planner"])
    def test_child_logger(self, clean_logger_state: None, name: str) -> None:
        """Test short and qualified names resolve to the same logger."""
        logger = get_logger(name)
        assert logger.name == "modkeeper.planner"
        assert logger is logging.getLogger("modkeeper.planner")

    def test_prefix_lookalike_is_namespaced(self, clean_logger_state: None) -> None:
        """Test a name that only starts with the package name is nested.

        Edge case.
        """
        assert get_logger("modkeeperx").name == "modkeeper.modkeeperx"

    def test_silent_until_configured(self, clean_logger_state: None) -> None:
        """Test the logger tree has a NullHandler before setup."""
        logger = get_logger("parser")
        handlers = logger.handlers or logger.parent.handlers
        assert any(isinstance(h, logging.NullHandler) for h in handlers)
