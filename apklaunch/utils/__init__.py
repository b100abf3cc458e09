"""Utility functions for apklaunch.

This sub-package provides utility functions for:
- Polling helpers and formatting
- Command-line input validation
- Subprocess execution
"""

from .helpers import format_duration, wait_for_condition
from .process import CommandResult, run_command
from .validation import validate_apk_path, validate_port_mapping

__all__ = [
    "CommandResult",
    "format_duration",
    "run_command",
    "validate_apk_path",
    "validate_port_mapping",
    "wait_for_condition",
]
