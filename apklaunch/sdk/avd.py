"""Installed Android virtual device definitions."""

from __future__ import annotations

import glob
import os
import re
from typing import Optional

from ..core.logger import log
from ..core.models import AVD
from ..utils.helpers import parse_properties
from .sdk import SDK

_TARGET_RE = re.compile(r"android-(\d+)")


def _read_properties(path: str) -> dict:
    with open(path, encoding="utf-8", errors="replace") as f:
        return parse_properties(f.read())


def _parse_api_level(target: Optional[str]) -> Optional[int]:
    if not target:
        return None
    m = _TARGET_RE.search(target)
    return int(m.group(1)) if m else None


def read_avd(ini_path: str, avd_home: str) -> Optional[AVD]:
    """Build an :class:`AVD` from ``<avd home>/<id>.ini``, ``None`` if unusable."""
    avd_id = os.path.splitext(os.path.basename(ini_path))[0]
    ini = _read_properties(ini_path)

    path = ini.get("path")
    if not path or not os.path.isdir(path):
        rel = ini.get("path.rel")
        path = os.path.join(os.path.dirname(avd_home), rel) if rel else None
    if not path or not os.path.isdir(path):
        log.debug(f"Skipping AVD {avd_id}: no image directory")
        return None

    name = avd_id
    config_ini = os.path.join(path, "config.ini")
    if os.path.isfile(config_ini):
        name = _read_properties(config_ini).get("avd.ini.displayname", avd_id)

    return AVD(id=avd_id, path=path, name=name, api_level=_parse_api_level(ini.get("target")))


def list_avds(sdk: SDK) -> list[AVD]:
    avds = []
    for ini_path in sorted(glob.glob(os.path.join(sdk.avd_home, "*.ini"))):
        avd = read_avd(ini_path, sdk.avd_home)
        if avd:
            avds.append(avd)
    log.debug(f"Installed AVDs: {[a.id for a in avds]}")
    return avds
