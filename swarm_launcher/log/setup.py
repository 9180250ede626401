import sys
import logging
from pathlib import Path
from typing import Optional

from swarm_launcher.local import app_globals


class Colors:
    """ANSI escape sequences for terminal output."""
    BOLD = "\033[1m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    RESET = "\033[0m"


def colorize(text: str, *styles: str) -> str:
    """Wraps text in the given styles when stdout is a terminal."""
    if not sys.stdout.isatty():
        return text
    return f"{''.join(styles)}{text}{Colors.RESET}"


class FileFormatter(logging.Formatter):
    """Formats records as '[YYYY-mm-dd HH:MM:SS] [LEVEL] message'."""

    def __init__(self) -> None:
        super().__init__(fmt="[%(asctime)s] [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record):
        # WARNING is written as WARN, like the rest of the launcher's output.
        if record.levelno == logging.WARNING:
            original = record.levelname
            record.levelname = "WARN"
            try:
                return super().format(record)
            finally:
                record.levelname = original
        return super().format(record)


class ConsoleFilter(logging.Filter):
    """
    Lets node output (`proc.*` loggers) through unconditionally and the
    launcher's own records only at WARNING and above, unless verbose.
    """

    def filter(self, record):
        if record.name.startswith('proc.'):
            return True
        if app_globals.VERBOSE_LOGGING:
            return True
        return record.levelno >= logging.WARNING


class FileFilter(logging.Filter):
    """Keeps node output (`proc.*` loggers) out of the launcher's log file."""

    def filter(self, record):
        return not record.name.startswith('proc.')


class MainFormatter(logging.Formatter):
    """A custom formatter to color launcher messages and pass node output raw."""

    LEVEL_COLORS = {
        logging.CRITICAL: Colors.RED,
        logging.ERROR: Colors.RED,
        logging.WARNING: Colors.YELLOW,
    }

    def format(self, record):
        # If the log is from the node, just return the raw message.
        if record.name.startswith('proc.'):
            return record.getMessage()

        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        color = self.LEVEL_COLORS.get(record.levelno)
        return colorize(message, color) if color else message


def setup_logging(console_level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    """
    Configures the root logger for the launcher.
    This sets up the console and log file handlers, clearing any previously
    configured handlers to prevent duplication.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    :param log_file: The append-only log file. Defaults to LOG_FILE.
    """
    log_file = Path(log_file) if log_file is not None else app_globals.LOG_FILE

    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    # Clear any existing handlers to prevent re-adding them on re-runs
    if root_logger.hasHandlers():
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.addFilter(ConsoleFilter())
    console_handler.setFormatter(MainFormatter())
    root_logger.addHandler(console_handler)

    # --- File Handler (append-only, no rotation) ---
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        file_handler.addFilter(FileFilter())
        file_handler.setFormatter(FileFormatter())
        root_logger.addHandler(file_handler)
    except OSError as e:
        root_logger.error(f"Failed to open log file '{log_file}': {e}. Logging to file will be disabled.")
