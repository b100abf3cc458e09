"""Helper utility functions for apklaunch."""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, Optional, Union

Condition = Callable[[], Union[bool, Awaitable[bool]]]


async def wait_for_condition(
    condition_func: Condition,
    timeout: Optional[float] = 30.0,
    check_interval: float = 0.5
) -> bool:
    """Wait for a condition to become true.

    Args:
        condition_func: Sync or async callable that returns True when the
            condition is met.
        timeout: Maximum time to wait in seconds, ``None`` waits forever.
        check_interval: Interval between condition checks in seconds.

    Returns:
        True if condition was met, False if timeout occurred.
    """
    start_time = time.monotonic()

    while timeout is None or time.monotonic() - start_time < timeout:
        result = condition_func()
        if inspect.isawaitable(result):
            result = await result
        if result:
            return True
        await asyncio.sleep(check_interval)

    return False


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Args:
        seconds: Duration in seconds.

    Returns:
        Formatted duration string.
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


def parse_properties(text: str, separator: str = "=") -> dict[str, Any]:
    """Parse ``key=value`` lines (``.ini`` files without sections).

    Blank lines and ``#`` comments are skipped; later keys win.
    """
    properties: dict[str, Any] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or separator not in line:
            continue
        key, value = line.split(separator, 1)
        properties[key.strip()] = value.strip()
    return properties
