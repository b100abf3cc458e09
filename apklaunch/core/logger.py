"""apklaunch structured logging system."""

from __future__ import annotations

import os
import sys
from typing import Any, Optional

from loguru import logger

from .config import config


class Logger:
    """Structured logging system for apklaunch."""

    def __init__(self, name: str = "apklaunch", level: Optional[str] = None) -> None:
        """Initialize and configure a *Loguru* logger instance."""
        self.name = name
        self._setup_logger(level or config.log_level)

    def _setup_logger(self, level: str) -> None:
        """Configure the logger with proper formatting and handlers."""
        # Remove default handler
        logger.remove()

        # ------------------------------------------------------------------
        # Console handler
        # ------------------------------------------------------------------
        console_format = (
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level:<8}</level> | "
            "<level>{message}</level>"
        )

        logger.add(
            sys.stderr,
            format=console_format,
            level=level.upper(),
            colorize=True,
        )

        if not config.log_to_file:
            return

        # ------------------------------------------------------------------
        # File handler
        # ------------------------------------------------------------------
        logs_dir = config.get_log_path()
        os.makedirs(logs_dir, exist_ok=True)

        file_format = (
            "{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | "
            "{name}:{function}:{line} | {message}"
        )

        logger.add(
            os.path.join(logs_dir, "apklaunch_{time:YYYY-MM-DD}.log"),
            format=file_format,
            level="DEBUG",
            rotation="1 day",
            retention="30 days",
            compression="zip",
        )

    def set_level(self, level: str) -> None:
        """Reconfigure the handlers with a new console level."""
        self._setup_logger(level)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        logger.opt(depth=1).info(message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        logger.opt(depth=1).debug(message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        logger.opt(depth=1).warning(message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        logger.opt(depth=1).error(message, **kwargs)

    def success(self, message: str, **kwargs: Any) -> None:
        """Log success message."""
        logger.opt(depth=1).success(message, **kwargs)

    def log_phase(self, phase: str, details: dict[str, Any] | None = None) -> None:
        """Log a lifecycle phase transition with details."""
        message = f"PHASE: {phase}"
        if details:
            message += f" | Details: {details}"
        self.debug(message)

    def log_adb_command(self, args: list[str], returncode: int, duration_ms: float) -> None:
        """Log a finished adb/emulator invocation."""
        self.debug(f"COMMAND: {' '.join(args)} -> rc={returncode} ({duration_ms:.0f}ms)")


# Global logger instance
log = Logger()
