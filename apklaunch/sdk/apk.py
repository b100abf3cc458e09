"""APK metadata through ``aapt dump badging``."""

from __future__ import annotations

import asyncio
import os
import re
from typing import Mapping, Optional

from ..core.config import config
from ..core.errors import ApkError, BadInputError
from ..core.logger import log
from ..core.models import ApplicationInfo
from ..utils import process

_PACKAGE_RE = re.compile(r"^package:.*?\bname='([^']+)'", re.MULTILINE)
_ACTIVITY_RE = re.compile(r"^launchable-activity:.*?\bname='([^']+)'", re.MULTILINE)


def parse_badging(output: str) -> ApplicationInfo:
    package = _PACKAGE_RE.search(output)
    if not package:
        raise ApkError("Could not read application id from APK")

    activity = _ACTIVITY_RE.search(output)
    if not activity:
        raise ApkError(f"No launchable activity found in {package.group(1)}")

    return ApplicationInfo(app_id=package.group(1), activity_name=activity.group(1))


class ApkInspector:
    """Resolves application id and launch activity once per APK path."""

    def __init__(self, aapt_path: str = "aapt", env: Optional[Mapping[str, str]] = None) -> None:
        self.aapt_path = aapt_path
        self.env = env
        self._cache: dict[str, ApplicationInfo] = {}

    async def inspect(self, apk_path: str) -> ApplicationInfo:
        apk_path = os.path.abspath(apk_path)
        if apk_path in self._cache:
            return self._cache[apk_path]

        if not os.path.isfile(apk_path):
            raise BadInputError(f"APK not found: {apk_path}")

        try:
            result = await process.run_command(
                [self.aapt_path, "dump", "badging", apk_path],
                timeout=config.adb_command_timeout,
                env=self.env,
            )
        except OSError as e:
            raise ApkError(f"Could not run {self.aapt_path}: {e}") from e
        except asyncio.TimeoutError:
            raise ApkError(f"{self.aapt_path} timed out reading {apk_path}") from None

        if not result.ok():
            raise ApkError(f"Failed to read {apk_path}: {result.output}")

        info = parse_badging(result.stdout)
        log.debug(f"APK {apk_path}: {info.component}")
        self._cache[apk_path] = info
        return info
