"""Colored, filtered console logging for propagation runs.

The console only shows run summaries and problems; everything down to
DEBUG (per-pass change counts, phase timings) goes to a rotating file.
"""
import logging
import logging.handlers
from pathlib import Path
from typing import Optional

LOG_FILE_NAME = "copra.log"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 5

CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"


class Colors:
    """ANSI color codes."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"


class ColoredFormatter(logging.Formatter):
    """Colors the level name; leaves the rest of the line untouched."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DIM + Colors.CYAN,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record):
        levelname = record.levelname
        color = self.LEVEL_COLORS.get(record.levelno)
        if color:
            record.levelname = f"{color}{levelname:<7}{Colors.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class ConsoleFilter(logging.Filter):
    """Pass warnings, run summaries and CLI messages to the console."""

    SUMMARY_SOURCES = {
        "copra.community.driver": "COPRA",   # Run summaries
        "copra.graph.builder": "Loaded",     # Graph loading
    }

    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        if record.levelno != logging.INFO:
            return False

        marker = self.SUMMARY_SOURCES.get(record.name)
        if marker is not None and marker in record.getMessage():
            return True
        return "run_copra" in record.name


def _console_handler(level) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    handler.addFilter(ConsoleFilter())
    return handler


def _file_handler(log_dir: Path, level) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_dir / LOG_FILE_NAME, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def setup_logging(
    console_level=logging.INFO,
    file_level=logging.DEBUG,
    quiet=False,
    log_dir: Optional[Path] = None,
):
    """
    Replace the root handlers with a colored, filtered console handler
    (skipped when ``quiet``) and a rotating file under ``log_dir``.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if not quiet:
        root_logger.addHandler(_console_handler(console_level))
    root_logger.addHandler(_file_handler(Path(log_dir or "logs"), file_level))

    logging.getLogger(__name__).debug(
        "Logging to %s (console %s)",
        Path(log_dir or "logs") / LOG_FILE_NAME,
        "off" if quiet else logging.getLevelName(console_level),
    )
