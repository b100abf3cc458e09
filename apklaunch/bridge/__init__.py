"""Device bridge implementations.

This sub-package provides:
- The abstract ``DeviceBridge`` capability used by the core
- An ``adb``-backed implementation
- Emulator process management for installed AVDs
"""

from .adb import AdbBridge
from .base import DeviceBridge
from .emulator import EmulatorLauncher

__all__ = [
    "AdbBridge",
    "DeviceBridge",
    "EmulatorLauncher",
]
