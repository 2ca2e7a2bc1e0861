"""Loguru sinks for otcmachine.

The package logger stays silent until a host opts in with setup_logging();
the otc-machine command does so for every invocation.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Literal

from loguru import logger

logger.disable("otcmachine")

type LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

STDERR_FORMAT = "<level>{level: <8}</level> | <level>{message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} - {message}"


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Stderr level and an optional log file, which always records DEBUG."""

    level: LogLevel = "INFO"
    file: str | None = None


def setup_logging(config: LogConfig) -> list[int]:
    """Enable otcmachine logs and return the added handler IDs."""
    logger.enable("otcmachine")
    handler_ids = [logger.add(sys.stderr, level=config.level, format=STDERR_FORMAT, filter="otcmachine")]
    if config.file:
        # no variable values in tracebacks, the state holds credentials
        handler_ids.append(
            logger.add(config.file, level="DEBUG", format=FILE_FORMAT, diagnose=False, filter="otcmachine")
        )
    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("otcmachine")
