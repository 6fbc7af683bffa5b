"""
Logging configuration for the gopher-client and gopher-replay commands.

Library code only calls logging.getLogger(__name__). Handlers are attached
here, once, to the "gophervr" package logger, and every module logger
inherits from it.
"""

import logging
import sys
from typing import Optional, TextIO


PACKAGE_LOGGER = "gophervr"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
BRIEF_FORMAT = '%(name)s - %(levelname)s - %(message)s'
# Transaction state changes are easier to follow with the source line
DEBUG_FORMAT = '%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s'

EXTERNAL_LOGGERS = ['asyncio', 'rich']


def setup_logger(
    name: str,
    level: int = logging.INFO,
    format_string: Optional[str] = None,
    include_timestamp: bool = True,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Attach a stream handler to a logger.

    Calling it again for the same logger only changes the level, so the
    commands can be invoked repeatedly in one process without duplicating
    output.

    Args:
        name: Logger name
        level: Logging level for the logger and its handler
        format_string: Custom format string
        include_timestamp: Whether the default format includes a timestamp
        stream: Output stream, stdout by default

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    if format_string is None:
        format_string = LOG_FORMAT if include_timestamp else BRIEF_FORMAT

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(format_string))
    logger.addHandler(handler)

    return logger


def silence_external_loggers(level: int = logging.WARNING) -> None:
    """Raise the threshold of the asyncio and rich loggers."""
    for name in EXTERNAL_LOGGERS:
        logging.getLogger(name).setLevel(level)


def configure_cli_logging(verbose: bool = False, stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Configure logging for a command line entry point.

    Log records go to stderr so they never mix with documents rendered on
    stdout. Only warnings and errors are shown unless verbose is set, in
    which case every transaction state change is logged.
    """
    if verbose:
        level, format_string = logging.DEBUG, DEBUG_FORMAT
    else:
        level, format_string = logging.WARNING, BRIEF_FORMAT

    silence_external_loggers()
    return setup_logger(
        PACKAGE_LOGGER,
        level=level,
        format_string=format_string,
        stream=stream or sys.stderr,
    )
