"""Error kinds and exception hierarchy for apklaunch.

Every failure that reaches the command line is an :class:`ApkLaunchError`
tagged with an :class:`ErrorKind`. The top level maps it to one message and a
non-zero exit code; nothing below it retries.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Machine-readable error kinds reported by the CLI."""

    BAD_INPUT = "ERR_BAD_INPUT"
    TARGET_NOT_FOUND = "ERR_TARGET_NOT_FOUND"
    NO_DEVICE = "ERR_NO_DEVICE"
    DEVICE_COMMUNICATION = "ERR_DEVICE_COMMUNICATION"
    SDK_NOT_FOUND = "ERR_SDK_NOT_FOUND"
    ENVIRONMENT_NOT_FOUND = "ERR_ENVIRONMENT_NOT_FOUND"
    SDK_PACKAGE_NOT_FOUND = "ERR_SDK_PACKAGE_NOT_FOUND"
    INVALID_SDK_PACKAGE = "ERR_INVALID_SDK_PACKAGE"
    APK = "ERR_APK"


class ApkLaunchError(RuntimeError):
    """Base class for all errors surfaced to the user."""

    kind: ErrorKind = ErrorKind.DEVICE_COMMUNICATION

    def __init__(self, message: str, kind: Optional[ErrorKind] = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    def serialize(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.kind.value}

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


class BadInputError(ApkLaunchError):
    """Malformed or missing command-line input."""

    kind = ErrorKind.BAD_INPUT


class TargetNotFoundError(ApkLaunchError):
    """An explicit ``--target`` matched neither a device nor an AVD."""

    kind = ErrorKind.TARGET_NOT_FOUND

    def __init__(self, target: str) -> None:
        super().__init__(f"Target not found: {target}")
        self.target = target


class NoDeviceAvailableError(ApkLaunchError):
    """No hardware device is connected and no virtual device can be used."""

    kind = ErrorKind.NO_DEVICE


class DeviceCommunicationError(ApkLaunchError):
    """A device bridge operation failed."""

    kind = ErrorKind.DEVICE_COMMUNICATION

    def __init__(self, message: str, serial: Optional[str] = None) -> None:
        super().__init__(message)
        self.serial = serial


class ADBError(DeviceCommunicationError):
    """Custom exception raised when an ADB-related error occurs."""

    def __init__(
        self,
        message: str,
        serial: Optional[str] = None,
        returncode: Optional[int] = None,
        output: str = "",
    ) -> None:
        super().__init__(message, serial)
        self.returncode = returncode
        self.output = output


class EmulatorError(DeviceCommunicationError):
    """The emulator process could not be started or never came online."""


class InstallError(DeviceCommunicationError):
    """Installing an APK onto a device failed."""

    def __init__(
        self,
        message: str,
        serial: Optional[str] = None,
        apk_path: Optional[str] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message, serial)
        self.apk_path = apk_path
        self.code = code


class SDKNotFoundError(ApkLaunchError):
    """No usable Android SDK root."""

    kind = ErrorKind.SDK_NOT_FOUND


class EnvironmentNotFoundError(ApkLaunchError):
    """Emulator or AVD home directory could not be resolved."""

    kind = ErrorKind.ENVIRONMENT_NOT_FOUND


class SDKPackageNotFoundError(ApkLaunchError):
    kind = ErrorKind.SDK_PACKAGE_NOT_FOUND


class InvalidSDKPackageError(ApkLaunchError):
    kind = ErrorKind.INVALID_SDK_PACKAGE


class ApkError(ApkLaunchError):
    """APK metadata could not be read."""

    kind = ErrorKind.APK
