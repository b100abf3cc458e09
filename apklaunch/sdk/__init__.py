"""Android SDK collaborators: SDK locations, packages, AVDs and APK metadata."""

from .apk import ApkInspector
from .avd import list_avds
from .packages import SDKPackage, SDKPackageResolver
from .sdk import SDK, get_sdk

__all__ = [
    "ApkInspector",
    "SDK",
    "SDKPackage",
    "SDKPackageResolver",
    "get_sdk",
    "list_avds",
]
