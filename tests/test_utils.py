"""
Tests for utility modules.
"""

import io
import logging

import pytest
from gophervr.utils.logging import (
    DEBUG_FORMAT, EXTERNAL_LOGGERS, PACKAGE_LOGGER,
    configure_cli_logging, setup_logger, silence_external_loggers,
)


@pytest.mark.unit
class TestSetupLogger:
    """Test cases for setup_logger."""

    def test_setup_logger_default(self):
        logger = setup_logger("test_logger")
        assert logger.name == "test_logger"
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1

    def test_setup_logger_custom_format(self):
        custom_format = "%(name)s - %(message)s"
        logger = setup_logger("test_custom", format_string=custom_format)
        assert logger.handlers[0].formatter._fmt == custom_format

    def test_setup_logger_no_timestamp(self):
        logger = setup_logger("test_no_timestamp", include_timestamp=False)
        assert "%(asctime)s" not in logger.handlers[0].formatter._fmt

    def test_setup_logger_stream(self):
        stream = io.StringIO()
        logger = setup_logger("test_stream", include_timestamp=False, stream=stream)
        logger.info("connected")
        assert stream.getvalue() == "test_stream - INFO - connected\n"

    def test_setup_logger_no_duplicate_handlers(self):
        logger1 = setup_logger("test_no_duplicate")
        logger2 = setup_logger("test_no_duplicate", level=logging.DEBUG)

        assert logger1 is logger2
        assert len(logger1.handlers) == 1
        assert logger1.handlers[0].level == logging.DEBUG


@pytest.mark.unit
class TestCliLogging:
    """Test cases for the command line logging setup."""

    def test_quiet_by_default(self):
        stream = io.StringIO()
        logger = configure_cli_logging(stream=stream)

        assert logger.name == PACKAGE_LOGGER
        assert logger.level == logging.WARNING

        logging.getLogger("gophervr.gopher.client").info("not shown")
        logging.getLogger("gophervr.gopher.client").warning("shown")
        assert stream.getvalue() == "gophervr.gopher.client - WARNING - shown\n"

    def test_verbose_shows_state_changes(self):
        stream = io.StringIO()
        logger = configure_cli_logging(verbose=True, stream=stream)

        assert logger.level == logging.DEBUG
        assert logger.handlers[0].formatter._fmt == DEBUG_FORMAT

        logging.getLogger("gophervr.gopher.client").debug("[host:70] -> connecting")
        assert "[host:70] -> connecting" in stream.getvalue()

    def test_repeated_configuration(self):
        configure_cli_logging(stream=io.StringIO())
        logger = configure_cli_logging(verbose=True, stream=io.StringIO())

        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG

    def test_silence_external_loggers(self):
        silence_external_loggers()
        for name in EXTERNAL_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING
