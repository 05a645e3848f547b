"""
Structured logging for the ingestion scripts.
Timestamped, level-based lines; warnings and errors go to stderr.
"""
import sys
from datetime import datetime
from enum import Enum
from typing import Optional


class LogLevel(Enum):
    """Log severity levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"

    @classmethod
    def from_name(cls, name: str, default: "LogLevel" = None) -> "LogLevel":
        """Resolve a level from its name (case-insensitive)."""
        try:
            return cls[name.strip().upper()]
        except (KeyError, AttributeError):
            return default or cls.INFO


_LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.SUCCESS: 1,
    LogLevel.WARNING: 2,
    LogLevel.ERROR: 3,
}


class StructuredLogger:
    """
    Logger with structured key=value details.

    Output format:
        [2024-01-01 12:00:00] [INFO] Batch 1/3 (33%) (rows=500)
    """

    def __init__(self, min_level: LogLevel = LogLevel.INFO, show_timestamp: bool = True):
        self.min_level = min_level
        self.show_timestamp = show_timestamp

    def _should_log(self, level: LogLevel) -> bool:
        return _LEVEL_ORDER[level] >= _LEVEL_ORDER[self.min_level]

    def _format_message(self, level: LogLevel, message: str, details: Optional[dict] = None) -> str:
        parts = []

        if self.show_timestamp:
            parts.append(f"[{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}]")

        parts.append(f"[{level.value}]")
        parts.append(message)

        if details:
            detail_strs = [f"{k}={v}" for k, v in details.items()]
            parts.append(f"({', '.join(detail_strs)})")

        return " ".join(parts)

    def _write(self, level: LogLevel, message: str, details: Optional[dict] = None):
        if not self._should_log(level):
            return

        formatted = self._format_message(level, message, details)

        stream = sys.stderr if level in (LogLevel.ERROR, LogLevel.WARNING) else sys.stdout
        stream.write(formatted + "\n")
        stream.flush()

    def debug(self, message: str, **details):
        self._write(LogLevel.DEBUG, message, details or None)

    def info(self, message: str, **details):
        self._write(LogLevel.INFO, message, details or None)

    def success(self, message: str, **details):
        self._write(LogLevel.SUCCESS, message, details or None)

    def warning(self, message: str, **details):
        self._write(LogLevel.WARNING, message, details or None)

    def error(self, message: str, **details):
        self._write(LogLevel.ERROR, message, details or None)

    def section(self, title: str):
        """Log section header."""
        separator = "=" * 60
        self._write(LogLevel.INFO, separator)
        self._write(LogLevel.INFO, title)
        self._write(LogLevel.INFO, separator)

    def banner(self, title: str, width: int = 42):
        """Print a boxed title without timestamp or level."""
        if not self._should_log(LogLevel.INFO):
            return
        inner = width - 2
        lines = [
            "",
            "╔" + "═" * inner + "╗",
            "║" + title.center(inner) + "║",
            "╚" + "═" * inner + "╝",
            "",
        ]
        sys.stdout.write("\n".join(lines) + "\n")
        sys.stdout.flush()


_default_logger: Optional[StructuredLogger] = None


def get_logger() -> StructuredLogger:
    """Get or create default logger instance."""
    global _default_logger
    if _default_logger is None:
        _default_logger = StructuredLogger()
    return _default_logger


def set_logger(logger: StructuredLogger):
    """Set custom logger instance."""
    global _default_logger
    _default_logger = logger
