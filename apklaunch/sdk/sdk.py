"""Android SDK, emulator home and AVD home resolution."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Optional

from ..core.config import Config, config
from ..core.errors import EnvironmentNotFoundError, SDKNotFoundError
from ..core.logger import log


def _platform_sdk_directories(settings: Config) -> Optional[list[str]]:
    home = os.path.expanduser("~")
    if sys.platform == "darwin":
        return [os.path.join(home, "Library", "Android", "sdk")]
    if sys.platform.startswith("linux"):
        return [os.path.join(home, "Android", "sdk")]
    if sys.platform == "win32":
        local_app_data = settings.localappdata or os.path.join(home, "AppData", "Local")
        return [os.path.join(local_app_data, "Android", "sdk")]
    return None


@dataclass(frozen=True)
class SDK:
    root: str
    emulator_home: str
    avd_home: str

    def environ(self) -> dict[str, str]:
        """Process environment for spawned SDK tools."""
        return {
            **os.environ,
            "ANDROID_SDK_ROOT": self.root,
            "ANDROID_EMULATOR_HOME": self.emulator_home,
            "ANDROID_AVD_HOME": self.avd_home,
        }


def get_sdk(settings: Config = config) -> SDK:
    return SDK(
        root=resolve_sdk_root(settings),
        emulator_home=resolve_emulator_home(settings),
        avd_home=resolve_avd_home(settings),
    )


def resolve_sdk_root(settings: Config = config) -> str:
    # $ANDROID_HOME is deprecated but still wins when it points somewhere real.
    log.debug("Looking for $ANDROID_HOME")
    if settings.android_home and os.path.isdir(settings.android_home):
        log.debug(f"Using $ANDROID_HOME at {settings.android_home}")
        return settings.android_home

    log.debug("Looking for $ANDROID_SDK_ROOT")
    if settings.android_sdk_root and os.path.isdir(settings.android_sdk_root):
        log.debug(f"Using $ANDROID_SDK_ROOT at {settings.android_sdk_root}")
        return settings.android_sdk_root

    sdk_dirs = _platform_sdk_directories(settings)
    if sdk_dirs is None:
        raise SDKNotFoundError(f"Unsupported platform: {sys.platform}")

    log.debug(f"Looking at following directories: {sdk_dirs}")
    for sdk_dir in sdk_dirs:
        if os.path.isdir(sdk_dir):
            log.debug(f"Using {sdk_dir}")
            return sdk_dir

    raise SDKNotFoundError("No valid Android SDK root found.")


def resolve_emulator_home(settings: Config = config) -> str:
    if settings.android_emulator_home and os.path.isdir(settings.android_emulator_home):
        log.debug(f"Using $ANDROID_EMULATOR_HOME at {settings.android_emulator_home}")
        return settings.android_emulator_home

    home_emulator_home = os.path.join(os.path.expanduser("~"), ".android")
    if os.path.isdir(home_emulator_home):
        log.debug(f"Using $HOME/.android/ at {home_emulator_home}")
        return home_emulator_home

    raise EnvironmentNotFoundError("No valid Android Emulator home found.")


def resolve_avd_home(settings: Config = config) -> str:
    if settings.android_avd_home and os.path.isdir(settings.android_avd_home):
        log.debug(f"Using $ANDROID_AVD_HOME at {settings.android_avd_home}")
        return settings.android_avd_home

    home_avd_home = os.path.join(os.path.expanduser("~"), ".android", "avd")
    if os.path.isdir(home_avd_home):
        log.debug(f"Using $HOME/.android/avd/ at {home_avd_home}")
        return home_avd_home

    raise EnvironmentNotFoundError("No valid Android AVD home found.")
