"""
Logging for the EquiClear indexer.

Every module logs through ``equiclear.<subsystem>`` (events, storage,
sync, pricing, query, cli). Console output is colored and tagged with the
subsystem. A log directory adds a plain-text indexer.log with the same
tags, for tailing a long ingestion run.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

import colorlog

ROOT_LOGGER = "equiclear"
LOG_FILE = "indexer.log"

CONSOLE_FORMAT = "%(log_color)s%(asctime)s %(subsystem)-16s %(levelname)-8s%(reset)s %(message)s"
FILE_FORMAT = "%(asctime)s %(subsystem)s %(levelname)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class SubsystemFilter(logging.Filter):
    """Tag records with their subsystem (``equiclear.sync`` -> ``sync``)."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(ROOT_LOGGER + "."):
            name = name[len(ROOT_LOGGER) + 1:]
        record.subsystem = f"[{name}]"
        return True


def resolve_level(level: Union[int, str]) -> int:
    """
    Turn a level name ("debug", "WARNING") or number into a logging level.

    Raises:
        ValueError: unknown level name
    """
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


class IndexerLogger:
    """Configures the ``equiclear`` logger tree once per process."""

    _initialized = False
    _log_dir: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: Union[int, str] = logging.INFO,
        log_dir: Optional[str] = None,
        force: bool = False,
    ):
        """
        Setup logging configuration.

        Args:
            level: Logging level, as a number or name
            log_dir: Directory for indexer.log; console only if None
            force: Reconfigure even if already initialized
        """
        if cls._initialized and not force:
            return

        level = resolve_level(level)
        root_logger = logging.getLogger(ROOT_LOGGER)
        root_logger.setLevel(level)
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

        console_handler = colorlog.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.addFilter(SubsystemFilter())
        console_handler.setFormatter(colorlog.ColoredFormatter(
            CONSOLE_FORMAT,
            datefmt=DATE_FORMAT,
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        ))
        root_logger.addHandler(console_handler)

        cls._log_dir = Path(log_dir) if log_dir else None
        if cls._log_dir is not None:
            cls._log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(cls._log_dir / LOG_FILE)
            file_handler.setLevel(level)
            file_handler.addFilter(SubsystemFilter())
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
            root_logger.addHandler(file_handler)

        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        if not cls._initialized:
            cls.setup()
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific subsystem"""
    return IndexerLogger.get_logger(name)


def setup_logging(level: Union[int, str] = logging.INFO, log_dir: Optional[str] = None):
    """(Re)configure logging; a log_dir also enables the file log."""
    IndexerLogger.setup(level=level, log_dir=log_dir, force=True)
