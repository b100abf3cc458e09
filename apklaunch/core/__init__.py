"""Core components of apklaunch."""

from .config import Config, config
from .errors import ApkLaunchError, ErrorKind
from .logger import Logger, log
from .models import AVD, ApplicationInfo, Device, DeviceType, Inventory, PortMapping
from .orchestrator import LifecycleOrchestrator, RunContext, RunOptions, RunState
from .selector import DeviceSelector
from .teardown import TeardownRegistry

__all__ = [
    "AVD",
    "ApkLaunchError",
    "ApplicationInfo",
    "Config",
    "Device",
    "DeviceSelector",
    "DeviceType",
    "ErrorKind",
    "Inventory",
    "LifecycleOrchestrator",
    "Logger",
    "PortMapping",
    "RunContext",
    "RunOptions",
    "RunState",
    "TeardownRegistry",
    "config",
    "log",
]
