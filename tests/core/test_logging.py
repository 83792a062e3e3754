# tests/core/test_logging.py
"""Tests for structured logging configuration."""

import io
import json
import logging

import pytest


class TestLoggingConfig:
    """Tests for logging configuration."""

    def test_get_logger_returns_logger(self) -> None:
        from cytogate.core.logging import get_logger

        logger = get_logger("test")
        assert hasattr(logger, "info")
        assert hasattr(logger, "bind")

    def test_logger_outputs_structured(self, capsys: pytest.CaptureFixture[str]) -> None:
        from cytogate.core.logging import configure_logging, get_logger

        configure_logging(json_output=True)
        logger = get_logger("test")

        logger.info("population added", path="/cd3")

        captured = capsys.readouterr()
        log_line = captured.err.strip().split("\n")[-1]
        data = json.loads(log_line)
        assert data["event"] == "population added"
        assert data["path"] == "/cd3"
        assert data["level"] == "info"
        assert "_record" not in data
        assert "_from_structlog" not in data

    def test_logger_console_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        from cytogate.core.logging import configure_logging, get_logger

        configure_logging(json_output=False)
        logger = get_logger("test")

        logger.info("population added", path="/cd3")

        captured = capsys.readouterr()
        assert "population added" in captured.err

    def test_stdlib_logging_uses_same_format(self, capsys: pytest.CaptureFixture[str]) -> None:
        from cytogate.core.logging import configure_logging

        configure_logging(json_output=True)
        logging.getLogger("plain.stdlib").warning("from stdlib")

        captured = capsys.readouterr()
        data = json.loads(captured.err.strip().split("\n")[-1])
        assert data["event"] == "from stdlib"

    def test_level_filters_messages(self, capsys: pytest.CaptureFixture[str]) -> None:
        from cytogate.core.logging import configure_logging, get_logger

        configure_logging(json_output=True, level="WARNING")
        get_logger("test").info("hidden")

        assert "hidden" not in capsys.readouterr().err

    def test_noisy_loggers_capped_at_warning(self) -> None:
        from cytogate.core.logging import configure_logging

        configure_logging(level="DEBUG")

        assert logging.getLogger("distributed").level == logging.WARNING

    def test_stdout_left_for_command_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        from cytogate.core.logging import configure_logging, get_logger

        configure_logging(json_output=True)
        get_logger("test").warning("dispatch finished")

        assert capsys.readouterr().out == ""

    def test_explicit_stream(self) -> None:
        from cytogate.core.logging import configure_logging, get_logger

        stream = io.StringIO()
        configure_logging(json_output=True, stream=stream)
        get_logger("test").info("template loaded")

        assert json.loads(stream.getvalue().splitlines()[-1])["event"] == "template loaded"

    def test_template_context_tags_events(self) -> None:
        from cytogate.core.logging import configure_logging, get_logger, template_context

        stream = io.StringIO()
        configure_logging(json_output=True, stream=stream)
        with template_context("tcell"):
            get_logger("test").info("population computed")
        get_logger("test").info("outside")

        inside, outside = (json.loads(line) for line in stream.getvalue().splitlines()[-2:])
        assert inside["template"] == "tcell"
        assert "template" not in outside
