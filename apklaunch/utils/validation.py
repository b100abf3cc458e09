"""Validation of command-line input before any device is touched."""

from __future__ import annotations

import os
from typing import Optional

from ..core.errors import BadInputError
from ..core.logger import log
from ..core.models import PortMapping


def validate_apk_path(apk_path: Optional[str]) -> str:
    """Validate the ``--app`` value.

    Args:
        apk_path: Path given on the command line.

    Returns:
        The path, unchanged.

    Raises:
        BadInputError: If the value is missing or does not point at a file.
    """
    if not apk_path:
        raise BadInputError("--app is required")

    if not os.path.isfile(apk_path):
        raise BadInputError(f"APK not found: {apk_path}")

    if not apk_path.lower().endswith(".apk"):
        log.warning(f"{apk_path} does not have an .apk extension")

    return apk_path


def validate_port_mapping(value: Optional[str]) -> Optional[PortMapping]:
    """Validate the ``--forward`` value, ``None`` when the flag was not given."""
    if value is None:
        return None
    return PortMapping.parse(value)
