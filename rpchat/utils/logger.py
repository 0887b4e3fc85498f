"""
Logger Utility
==============

Context-aware logging for the assistant's operator-facing output.

Every component creates its own logger with a context prefix, so a single
request can be followed through the catalog, resolver, agent and provider:

    [2025-01-31T10:30:00] [INFO] [Catalog] Tool sync completed tool_count=12

Structured data is appended as key=value pairs on the same line, which keeps
the output greppable. Provider payloads and stack traces only ever show up
here, never in responses sent back to end users.

Usage:
    from rpchat.utils.logger import Logger

    logger = Logger("Catalog")
    logger.info("Tool sync completed", {"tool_count": 12})

    sync_logger = logger.child("Sync")
    sync_logger.warning("Attempt failed", {"attempt": 2})
"""

import os
import sys
from datetime import datetime
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    """
    Log levels with numeric values for comparison.
    Higher values = more severe = always shown.
    """
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40


class Colors:
    """ANSI escape codes for colored terminal output."""
    RESET = "\033[0m"
    DEBUG = "\033[36m"    # Cyan
    INFO = "\033[32m"     # Green
    WARNING = "\033[33m"  # Yellow
    ERROR = "\033[31m"    # Red
    DIM = "\033[2m"


_LEVEL_NAMES = {
    "DEBUG": LogLevel.DEBUG,
    "INFO": LogLevel.INFO,
    "WARNING": LogLevel.WARNING,
    "WARN": LogLevel.WARNING,
    "ERROR": LogLevel.ERROR,
}


def parse_log_level(value: str | None) -> LogLevel:
    """
    Parse a level name such as "debug" or "WARN".

    Unknown or empty values fall back to INFO.
    """
    if not value:
        return LogLevel.INFO
    return _LEVEL_NAMES.get(value.strip().upper(), LogLevel.INFO)


# Process-wide minimum level; LOG_LEVEL applies until configure_logging runs
_min_level: LogLevel = parse_log_level(os.getenv("LOG_LEVEL"))


def configure_logging(level: str) -> None:
    """
    Set the minimum level for every logger.

    Called once from the entry point with the loaded configuration.

    Args:
        level: Level name ("debug", "info", "warning", "error")
    """
    global _min_level
    _min_level = parse_log_level(level)


def _format_value(value: Any) -> str:
    text = str(value)
    if " " in text or not text:
        return repr(text)
    return text


def format_data(data: dict[str, Any] | None) -> str:
    """
    Render structured data as space-separated key=value pairs.

    Example:
        format_data({"attempt": 2, "error": "timed out"})
        # "attempt=2 error='timed out'"
    """
    if not data:
        return ""
    return " ".join(f"{key}={_format_value(value)}" for key, value in data.items())


class Logger:
    """
    A context-aware logger with colored output.

    Example:
        logger = Logger("Agent")
        logger.info("Processing message", {"session_id": "session_1"})

        executor_logger = logger.child("Executor")
        # Logs will show [Agent:Executor]
    """

    def __init__(self, context: str = ""):
        """
        Initialize a logger with an optional context.

        Args:
            context: A prefix for all log lines (e.g., "Catalog", "Resolver")
        """
        self.context = context

    def child(self, child_context: str) -> "Logger":
        """Create a logger with a nested context (e.g. "Agent:Executor")."""
        new_context = f"{self.context}:{child_context}" if self.context else child_context
        return Logger(new_context)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return level >= _min_level

    def _format_message(
        self,
        level_name: str,
        message: str,
        color: str,
        data: dict[str, Any] | None
    ) -> str:
        timestamp = datetime.now().isoformat(timespec="seconds")
        context_str = f"[{self.context}] " if self.context else ""
        data_str = format_data(data)
        suffix = f" {Colors.DIM}{data_str}{Colors.RESET}" if data_str else ""

        return (
            f"{Colors.DIM}[{timestamp}]{Colors.RESET} "
            f"{color}[{level_name}]{Colors.RESET} "
            f"{context_str}{message}{suffix}"
        )

    def _log(
        self,
        level: LogLevel,
        level_name: str,
        color: str,
        message: str,
        data: dict[str, Any] | None = None
    ) -> None:
        if not self.is_enabled_for(level):
            return

        stream = sys.stderr if level >= LogLevel.ERROR else sys.stdout
        print(self._format_message(level_name, message, color, data), file=stream)

    def debug(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log a debug message (only shown with LOG_LEVEL=debug)."""
        self._log(LogLevel.DEBUG, "DEBUG", Colors.DEBUG, message, data)

    def info(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log an info message."""
        self._log(LogLevel.INFO, "INFO", Colors.INFO, message, data)

    def warning(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log a warning: something degraded but the request can go on."""
        self._log(LogLevel.WARNING, "WARN", Colors.WARNING, message, data)

    def error(
        self,
        message: str,
        error: BaseException | None = None,
        data: dict[str, Any] | None = None
    ) -> None:
        """
        Log an error message.

        Args:
            message: The error message
            error: Optional exception; its type and message are recorded
            data: Optional extra structured data
        """
        merged: dict[str, Any] = dict(data or {})
        if error is not None:
            merged["error_type"] = type(error).__name__
            merged["error_message"] = str(error)
        self._log(LogLevel.ERROR, "ERROR", Colors.ERROR, message, merged)


# Default logger instance for general use
logger = Logger("RPChat")
