"""
Logging configuration module.

Console output goes to stderr (stdout carries the rich tables), with the
level name colored when stderr is a terminal. An optional log file
receives everything at DEBUG in plain text.
"""

import logging
import sys
from pathlib import Path

CONSOLE_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"
CONSOLE_DATEFMT = "%H:%M:%S"
FILE_FORMAT = "[%(asctime)s] %(levelname)-8s [%(name)s] %(message)s"
FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("openpyxl", "httpx", "httpcore")


class Colors:
    """ANSI escape sequences for terminal colors."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    WHITE = "\033[37m"
    CYAN = "\033[36m"
    YELLOW = "\033[33m"
    BRIGHT_RED = "\033[91m"
    BG_RED = "\033[41m"


class ColoredFormatter(logging.Formatter):
    """
    Formatter that colors the level name and dims the logger name.

    Colors:
        DEBUG    - Dim
        INFO     - Cyan
        WARNING  - Yellow
        ERROR    - Red
        CRITICAL - Bold on red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DIM + Colors.WHITE,
        logging.INFO: Colors.CYAN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.BRIGHT_RED,
        logging.CRITICAL: Colors.BOLD + Colors.WHITE + Colors.BG_RED,
    }

    def __init__(self, fmt: str, datefmt: str | None = None, use_colors: bool = True):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)

        # Other handlers share the record, so restore what we touch
        levelname, name = record.levelname, record.name
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        record.levelname = f"{color}{levelname:8}{Colors.RESET}"
        record.name = f"{Colors.DIM}{name}{Colors.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname, record.name = levelname, name


def _console_handler(level: int, use_colors: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, CONSOLE_DATEFMT, use_colors))
    handler.setLevel(level)
    return handler


def _file_handler(log_file: str | Path) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(FILE_FORMAT, FILE_DATEFMT))
    handler.setLevel(logging.DEBUG)
    return handler


def setup_logging(
    level: int = logging.INFO,
    log_file: str | Path | None = None,
    use_colors: bool | None = None,
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Console logging level
        log_file: Optional path to a log file (always DEBUG)
        use_colors: Force colors on/off; defaults to whether stderr is a TTY
    """
    if use_colors is None:
        use_colors = sys.stderr.isatty()

    handlers = [_console_handler(level, use_colors)]
    if log_file:
        handlers.append(_file_handler(log_file))

    # Root captures everything; each handler filters
    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging initialized at %s%s",
        logging.getLevelName(level),
        f", file {log_file}" if log_file else "",
    )
