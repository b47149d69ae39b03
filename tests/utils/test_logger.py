"""Tests for logging setup."""

import io
import sys

import pytest
from loguru import logger

from chronograph.config import LoggingConfig
from chronograph.utils.logger import get_logger, setup_logging


@pytest.fixture
def console():
    stream = io.StringIO()
    setup_logging(LoggingConfig(log_to_file=False, level="DEBUG"), console=stream)
    yield stream
    logger.remove()
    logger.add(sys.stderr)


class TestLogFormat:
    def test_line_names_module_and_user(self, console):
        log = get_logger("chronograph.services.graph_service")

        log.info("Created goal node", extra={"user_id": "user-1", "session_id": "node_s1"})

        line = console.getvalue()
        assert "chronograph.services.graph_service" in line
        assert "user=user-1" in line
        assert "session=node_s1" in line
        assert "Created goal node" in line

    def test_defaults_without_context(self, console):
        logger.info("Starting ChronoGraph server")

        line = console.getvalue()
        assert "| chronograph:" in line
        assert "user=- session=-" in line

    def test_level_from_config(self):
        stream = io.StringIO()
        setup_logging(LoggingConfig(log_to_file=False, level="WARNING"), console=stream)
        try:
            get_logger("chronograph.tests").info("hidden")
            get_logger("chronograph.tests").warning("shown")
        finally:
            logger.remove()
            logger.add(sys.stderr)

        assert "hidden" not in stream.getvalue()
        assert "shown" in stream.getvalue()

    def test_file_sink(self, tmp_path):
        config = LoggingConfig(log_dir=str(tmp_path / "logs"), serialize=False, level="INFO")
        setup_logging(config, console=io.StringIO())
        try:
            get_logger("chronograph.core").info("Store ready", extra={"user_id": "user-1"})
            logger.complete()
        finally:
            logger.remove()
            logger.add(sys.stderr)

        files = list((tmp_path / "logs").glob("chronograph_*.log"))
        assert len(files) == 1
        content = files[0].read_text()
        assert "chronograph.core" in content
        assert "user=user-1" in content
