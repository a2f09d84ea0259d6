"""
Centralized logging configuration for Kagikanri.

Provides:
- Console logging with colored, prefixed output by application area
- Optional file logging with timestamps for post-mortem analysis
- Logger factory for the different components

Never log secret values, passwords, one-time codes, session ids or
access tokens.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


# ANSI color codes for console output
class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"

    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_BLUE = "\033[94m"
    BRIGHT_MAGENTA = "\033[95m"
    BRIGHT_CYAN = "\033[96m"


# Area-specific colors and prefixes
AREA_CONFIG = {
    "main": {"color": Colors.BRIGHT_CYAN, "prefix": "KAGIKANRI.main"},
    "auth": {"color": Colors.BRIGHT_GREEN, "prefix": "KAGIKANRI.auth"},
    "sessions": {"color": Colors.GREEN, "prefix": "KAGIKANRI.sessions"},
    "sync": {"color": Colors.BRIGHT_MAGENTA, "prefix": "KAGIKANRI.sync"},
    "store": {"color": Colors.BRIGHT_BLUE, "prefix": "KAGIKANRI.store"},
    "passkeys": {"color": Colors.BRIGHT_YELLOW, "prefix": "KAGIKANRI.passkeys"},
    "api": {"color": Colors.CYAN, "prefix": "KAGIKANRI.api"},
}

DEFAULT_AREA_CONFIG = {"color": Colors.WHITE, "prefix": "KAGIKANRI"}

LEVEL_NAMES = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class ColoredConsoleFormatter(logging.Formatter):
    """Adds colors and area prefixes to console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DIM,
        logging.INFO: Colors.RESET,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BRIGHT_RED + Colors.BOLD,
    }

    def __init__(self, area: str = "main"):
        super().__init__()
        config = AREA_CONFIG.get(area, DEFAULT_AREA_CONFIG)
        self.area_color = config["color"]
        self.area_prefix = config["prefix"]

    def format(self, record: logging.LogRecord) -> str:
        level_color = self.LEVEL_COLORS.get(record.levelno, Colors.RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        # Format: [KAGIKANRI.area] HH:MM:SS LEVEL message
        prefix = f"{self.area_color}[{self.area_prefix}]{Colors.RESET}"
        time_str = f"{Colors.DIM}{timestamp}{Colors.RESET}"
        level_str = f"{level_color}{record.levelname:<8}{Colors.RESET}"

        message = f"{prefix} {time_str} {level_str} {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


class FileFormatter(logging.Formatter):
    """Formatter for file output with full timestamps."""

    def __init__(self, area: str = "main"):
        super().__init__()
        config = AREA_CONFIG.get(area, DEFAULT_AREA_CONFIG)
        self.area_prefix = config["prefix"]

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

        extra = ""
        if hasattr(record, "session"):
            extra += f" session={record.session}"
        if hasattr(record, "path"):
            extra += f" path={record.path}"

        line = f"{timestamp} [{self.area_prefix}] {record.levelname}: {record.getMessage()}{extra}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


_log_dir: Optional[Path] = None
_log_path: Optional[Path] = None
_console_level: int = logging.INFO


def parse_level(name: str) -> int:
    """Map a textual level (``info``, ``DEBUG``...) to a logging level."""
    return LEVEL_NAMES.get(name.strip().lower(), logging.INFO)


def setup_logging(
    log_dir: Optional[str] = None,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Optional[Path]:
    """
    Initialize the logging system.

    Args:
        log_dir: Directory for log files. Console only when omitted.
        console_level: Minimum level for console output
        file_level: Minimum level for file output

    Returns:
        Path to the log directory, or None for console-only logging
    """
    global _log_dir, _log_path, _console_level

    _console_level = console_level

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    if not log_dir:
        _log_dir = None
        _log_path = None
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(ColoredConsoleFormatter("main"))
        root_logger.addHandler(console_handler)
        _reconfigure_area_loggers()
        return None

    _log_dir = Path(log_dir)
    _log_dir.mkdir(parents=True, exist_ok=True)

    log_filename = datetime.now().strftime("kagikanri_%Y%m%d_%H%M%S.log")
    _log_path = _log_dir / log_filename

    latest_link = _log_dir / "latest.log"
    try:
        if latest_link.is_symlink() or latest_link.exists():
            latest_link.unlink()
        latest_link.symlink_to(log_filename)
    except OSError:
        pass  # Symlinks may not work on all systems

    file_handler = logging.FileHandler(_log_path, encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(FileFormatter("main"))
    root_logger.addHandler(file_handler)

    root_logger.info(f"Logging initialized. Log file: {_log_path}")
    _reconfigure_area_loggers()
    return _log_dir


def _configure(logger: logging.Logger, area: str) -> None:
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(_console_level)
    console_handler.setFormatter(ColoredConsoleFormatter(area))
    logger.addHandler(console_handler)

    if _log_path:
        area_file_handler = logging.FileHandler(_log_path, encoding="utf-8")
        area_file_handler.setLevel(logging.DEBUG)
        area_file_handler.setFormatter(FileFormatter(area))
        logger.addHandler(area_file_handler)

    # Don't propagate to root to avoid duplicate logs
    logger.propagate = False


def _reconfigure_area_loggers() -> None:
    # Module-level loggers exist before setup_logging runs
    for name, logger in list(logging.Logger.manager.loggerDict.items()):
        if name.startswith("kagikanri.") and isinstance(logger, logging.Logger):
            _configure(logger, name.split(".", 1)[1])


def get_logger(area: str = "main") -> logging.Logger:
    """
    Get a logger for a specific application area.

    Args:
        area: The application area (e.g., "auth", "sync", "store")

    Returns:
        Configured logger instance

    Example:
        logger = get_logger("sync")
        logger.info("Repository cloned")
        # Output: [KAGIKANRI.sync] 14:32:15 INFO     Repository cloned
    """
    logger = logging.getLogger(f"kagikanri.{area}")
    if not logger.handlers:
        _configure(logger, area)
    return logger


def session_hint(session_id: Optional[str]) -> str:
    """Short, non-reusable prefix of a session id for log lines."""
    if not session_id:
        return "-"
    return session_id[:6] + "..."
