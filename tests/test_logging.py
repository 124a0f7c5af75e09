"""Tests for CLI logging setup."""

import io
import logging
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

from mdcite._logging import DEFAULT_LEVEL, StderrHandler, configure_logging, resolve_level
from mdcite.cli import cli


@pytest.fixture(autouse=True)
def reset_level():
    """Leave the mdcite logger at its default level for other tests."""
    yield
    configure_logging()


def stderr_handlers() -> list[logging.Handler]:
    return [h for h in logging.getLogger("mdcite").handlers if isinstance(h, StderrHandler)]


class TestResolveLevel:
    def test_default(self):
        assert resolve_level() == DEFAULT_LEVEL == logging.WARNING

    def test_environment(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("MDCITE_LOG_LEVEL", "info")

        assert resolve_level() == logging.INFO

    def test_unknown_name_falls_back(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("MDCITE_LOG_LEVEL", "chatty")

        assert resolve_level() == logging.WARNING

    def test_verbose_wins(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("MDCITE_LOG_LEVEL", "ERROR")

        assert resolve_level(verbose=True) == logging.DEBUG


class TestConfigureLogging:
    def test_single_handler_across_calls(self):
        configure_logging()
        logger = configure_logging(verbose=True)

        assert len(stderr_handlers()) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_level_reapplied(self):
        configure_logging(verbose=True)
        logger = configure_logging()

        assert logger.level == logging.WARNING
        assert stderr_handlers()[0].level == logging.WARNING

    def test_handler_follows_current_stderr(self, monkeypatch: pytest.MonkeyPatch):
        configure_logging()
        replacement = io.StringIO()
        monkeypatch.setattr(sys, "stderr", replacement)

        logging.getLogger("mdcite.test").warning("routed")

        assert stderr_handlers()[0].stream is replacement
        assert "[WARNING] mdcite.test: routed" in replacement.getvalue()


class TestVerboseFlag:
    def test_verbose_logs_scope_scan(self, sample_vault: Path):
        """--verbose surfaces the scope scan on stderr; stdout stays a report."""
        result = CliRunner().invoke(
            cli, ["--verbose", "validate", str(sample_vault / "guide.md"), "--scope", str(sample_vault)]
        )

        assert "[INFO] mdcite.cli: Scanned" in result.output
        assert "VALIDATION FAILED" in result.output

    def test_quiet_by_default(self, sample_vault: Path):
        result = CliRunner().invoke(cli, ["validate", str(sample_vault / "guide.md"), "--scope", str(sample_vault)])

        assert "mdcite.cli: Scanned" not in result.output
