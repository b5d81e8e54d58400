"""
Logging for Relaycord.

Every component logger is a child of the ``relaycord`` logger, which owns the
handlers: a coloured prompt_toolkit console handler and a rotating file under
``logs/`` shared by the whole session. Component loggers only carry a name.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import ANSI

ROOT_LOGGER_NAME = "relaycord"

LOGS_DIR: Path = (Path(__file__).parents[3] / "logs").resolve()
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s:%(lineno)d] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
FILE_STAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

# A restart within this many seconds keeps writing to the previous file
SESSION_REUSE_SECONDS = 60
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3

LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}
RESET_COLOR = "\033[0m"

NOISY_LOGGERS = ("discord", "aiosqlite", "websockets", "aiohttp")

_log_filepath: Path | None = None


class ColorFormatter(logging.Formatter):
    """Wraps each formatted record in the ANSI colour of its level."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        return f"{color}{text}{RESET_COLOR}" if color else text


class PromptToolkitHandler(logging.Handler):
    """Console handler printing through prompt_toolkit so an active prompt stays intact."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            print_formatted_text(ANSI(self.format(record)))
        except Exception:
            self.handleError(record)


def should_use_color() -> bool:
    """True when stderr is a terminal and ``NO_COLOR`` is not set."""
    if os.getenv("NO_COLOR"):
        return False
    isatty = getattr(sys.stderr, "isatty", None)
    return bool(isatty and isatty())


def console_level() -> int:
    """Console threshold from ``RELAYCORD_LOG_LEVEL`` (INFO when unset or unknown)."""
    name = os.getenv("RELAYCORD_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_log_filepath() -> Path:
    """
    Path of this session's log file.

    Resolved once per process. A file written less than
    ``SESSION_REUSE_SECONDS`` ago is reused so a quick restart continues the
    same log; otherwise a new ``relaycord-<timestamp>.log`` is chosen.
    """
    global _log_filepath

    if _log_filepath is None:
        LOGS_DIR.mkdir(parents=True, exist_ok=True)
        now = datetime.now()
        recent = sorted(LOGS_DIR.glob("relaycord-*.log"), key=lambda p: p.stat().st_mtime, reverse=True)
        if recent and now.timestamp() - recent[0].stat().st_mtime < SESSION_REUSE_SECONDS:
            _log_filepath = recent[0]
        else:
            _log_filepath = LOGS_DIR / f"relaycord-{now.strftime(FILE_STAMP_FORMAT)}.log"

    return _log_filepath


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root

    root.setLevel(logging.DEBUG)
    root.propagate = False

    formatter_cls = ColorFormatter if should_use_color() else logging.Formatter
    console = PromptToolkitHandler()
    console.setLevel(console_level())
    console.setFormatter(formatter_cls(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        get_log_filepath(),
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)

    return root


def setup_logger(logger_name: str) -> logging.Logger:
    """Return the ``relaycord.<logger_name>`` logger, installing the shared handlers on first use."""
    _configure_root()
    if logger_name == ROOT_LOGGER_NAME or logger_name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(logger_name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{logger_name}")


get_logger = setup_logger


def handle_exception(exception_type, exception_instance, exception_traceback) -> None:
    """``sys.excepthook`` that logs uncaught exceptions; Ctrl+C keeps the default behaviour."""
    if issubclass(exception_type, KeyboardInterrupt):
        sys.__excepthook__(exception_type, exception_instance, exception_traceback)
        return
    get_logger("crash").critical(
        "Uncaught exception", exc_info=(exception_type, exception_instance, exception_traceback)
    )
