"""
Logging configuration using Loguru.

Every line names the module that logged it and, when known, the user and
session it concerns. Services attach those as `extra={"user_id": ...}`;
the patcher below lifts them to the top level of the record so the sink
formats can show them.
"""

import sys
from pathlib import Path
from typing import Any, TextIO

from loguru import logger

from chronograph.config import LoggingConfig

# Values shown when a record carries no module, user or session
DEFAULT_EXTRA = {"module": "chronograph", "user_id": "-", "session_id": "-"}

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "user={extra[user_id]} session={extra[session_id]} - "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
    "{extra[module]}:{function}:{line} | "
    "user={extra[user_id]} session={extra[session_id]} - {message}"
)


def _flatten_extra(record: dict[str, Any]) -> None:
    nested = record["extra"].pop("extra", None)
    if isinstance(nested, dict):
        record["extra"].update(nested)
    for key, value in DEFAULT_EXTRA.items():
        if record["extra"].get(key) is None:
            record["extra"][key] = value


def setup_logging(config: LoggingConfig | None = None, console: TextIO | None = None) -> None:
    """
    Configure Loguru from a LoggingConfig.

    Args:
        config: Level and file sink settings (defaults when omitted)
        console: Stream for console output (stderr when omitted)
    """
    config = config or LoggingConfig()

    logger.remove()
    logger.configure(extra=DEFAULT_EXTRA, patcher=_flatten_extra)

    # Console logging
    logger.add(
        console or sys.stderr,
        level=config.level,
        format=CONSOLE_FORMAT,
        colorize=None,
        serialize=False,
    )

    if config.log_to_file:
        log_path = Path(config.log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        # File logging, JSON when serialize is on
        logger.add(
            log_path / "chronograph_{time:YYYY-MM-DD}.log",
            level=config.level,
            format=FILE_FORMAT,
            rotation=config.file_rotation,
            retention=config.file_retention,
            compression=config.compression,
            serialize=config.serialize,
            enqueue=True,
        )


def get_logger(name: str):
    """Get a logger instance for a module."""
    return logger.bind(module=name)
