"""Logging configuration for CommClimb."""

import logging
import sys
from typing import Optional, TextIO

PACKAGE_LOGGER = "commclimb"

# Chatty libraries that log every request; kept at WARNING unless verbose
THIRD_PARTY_LOGGERS = ("werkzeug", "urllib3", "httpx", "google_genai")

CONSOLE_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name when writing to a terminal."""

    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str, datefmt: str = None, stream: Optional[TextIO] = None, use_colors: bool = True):
        super().__init__(fmt, datefmt)
        stream = stream or sys.stderr
        self.use_colors = use_colors and hasattr(stream, "isatty") and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)
        # Other handlers share the record, so color a copy
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{self.COLORS.get(record.levelno, '')}{record.levelname}{self.RESET}"
        return super().format(colored)


def setup_logging(
    verbose: bool = False,
    quiet: bool = False,
    log_file: Optional[str] = None,
    use_colors: bool = True,
) -> None:
    """Configure the ``commclimb`` logger hierarchy.

    Args:
        verbose: DEBUG level, timestamps, and request logs from Flask and HTTP clients
        quiet: ERROR level only
        log_file: Optional path that receives every record at DEBUG level
        use_colors: Color level names when stderr is a terminal
    """
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.INFO

    package = logging.getLogger(PACKAGE_LOGGER)
    package.setLevel(logging.DEBUG if log_file else level)
    package.handlers.clear()
    package.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(
        ColoredFormatter(
            VERBOSE_FORMAT if verbose else CONSOLE_FORMAT,
            datefmt="%H:%M:%S",
            stream=sys.stderr,
            use_colors=use_colors,
        )
    )
    package.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(VERBOSE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        package.addHandler(file_handler)

    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Logger for one module, e.g. ``get_logger(__name__)`` gives ``commclimb.store``."""
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name.split('.')[-1]}")


def short_id(value: str) -> str:
    """First eight characters of an id, enough to tell records apart in a log line."""
    return value[:8]
