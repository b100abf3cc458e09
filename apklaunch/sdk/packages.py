"""SDK package discovery from ``package.xml`` manifests.

Resolved packages are memoized per resolver instance, keyed by package
location. Concurrent requests for one location share a single parse.
"""

from __future__ import annotations

import asyncio
import os
import re
import shutil
import sys
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Iterable, Optional

from ..core.errors import InvalidSDKPackageError, SDKPackageNotFoundError
from ..core.logger import log
from .sdk import SDK

SKIPPED_DIRECTORIES = {
    "bin",
    "bin64",
    "lib",
    "lib64",
    "include",
    "clang-include",
    "skins",
    "data",
    "examples",
    "resources",
    "systrace",
    "extras",
}

_SOURCES_RE = re.compile(r"^sources/android-\d+/.+/.+")


@dataclass(frozen=True)
class SDKPackage:
    path: str
    location: str
    version: str
    name: str
    api_level: Optional[str] = None


@dataclass(frozen=True)
class APILevel:
    level: str
    packages: list[SDKPackage]


def read_package_xml(path: str) -> ET.ElementTree:
    return ET.parse(path)


def get_path_from_package_xml(package_xml: ET.ElementTree) -> str:
    local_package = package_xml.find("./localPackage")
    if local_package is None:
        raise InvalidSDKPackageError("Invalid SDK package.")

    path = local_package.get("path")
    if not path:
        raise InvalidSDKPackageError("Invalid SDK package path.")

    return path


def get_api_level_from_package_xml(package_xml: ET.ElementTree) -> Optional[str]:
    api_level = package_xml.find("./localPackage/type-details/api-level")
    return api_level.text.strip() if api_level is not None and api_level.text else None


def get_name_from_package_xml(package_xml: ET.ElementTree) -> str:
    name = package_xml.find("./localPackage/display-name")
    if name is None or not name.text:
        raise InvalidSDKPackageError("Invalid SDK package name.")
    return name.text.strip()


def get_version_from_package_xml(package_xml: ET.ElementTree) -> str:
    versions: list[str] = []
    for part in ("major", "minor", "micro"):
        element = package_xml.find(f"./localPackage/revision/{part}")
        if element is None or not element.text:
            break
        versions.append(element.text.strip())

    if not versions:
        raise InvalidSDKPackageError("Invalid SDK package version.")

    return ".".join(versions)


def parse_sdk_package(location: str) -> SDKPackage:
    package_xml_path = os.path.join(location, "package.xml")
    log.debug(f"Parsing {package_xml_path}")

    try:
        package_xml = read_package_xml(package_xml_path)
    except FileNotFoundError:
        raise SDKPackageNotFoundError(f"SDK package not found by location: {location}.") from None
    except ET.ParseError as e:
        raise InvalidSDKPackageError(f"Invalid SDK package at {location}: {e}") from e

    return SDKPackage(
        path=get_path_from_package_xml(package_xml),
        location=location,
        version=get_version_from_package_xml(package_xml),
        name=get_name_from_package_xml(package_xml),
        api_level=get_api_level_from_package_xml(package_xml),
    )


def _version_key(version: str) -> tuple:
    return tuple(int(p) if p.isdigit() else 0 for p in re.split(r"[.\-]", version))


def api_levels(packages: Iterable[SDKPackage]) -> list[APILevel]:
    """Group packages by API level, newest level first."""
    packages = list(packages)
    levels = sorted(
        {pkg.api_level for pkg in packages if pkg.api_level is not None},
        key=_version_key,
        reverse=True,
    )
    log.debug(f"Discovered installed API Levels: {levels}")
    return [APILevel(level, [p for p in packages if p.api_level == level]) for level in levels]


class SDKPackageResolver:
    """Memoizing resolver for SDK packages.

    The cache lives as long as the resolver; create one per process (or per
    test) rather than sharing module state.
    """

    def __init__(self) -> None:
        self._packages: dict[str, asyncio.Task] = {}
        self._sdk_packages: dict[str, list[SDKPackage]] = {}

    async def get_package(self, location: str) -> SDKPackage:
        task = self._packages.get(location)
        if task is None:
            task = asyncio.ensure_future(asyncio.to_thread(parse_sdk_package, location))
            self._packages[location] = task

        try:
            return await asyncio.shield(task)
        except Exception:
            # Only successful parses stay cached.
            if self._packages.get(location) is task:
                del self._packages[location]
            raise

    async def find_all(self, sdk: SDK) -> list[SDKPackage]:
        cached = self._sdk_packages.get(sdk.root)
        if cached is not None:
            return cached

        log.debug(f"Walking {sdk.root} to discover SDK packages")
        locations = await asyncio.to_thread(self._walk, sdk.root)
        found = await asyncio.gather(*(self._get_package_or_none(p) for p in locations))
        packages = [p for p in found if p is not None]
        packages.sort(key=lambda p: p.name)

        self._sdk_packages[sdk.root] = packages
        return packages

    async def _get_package_or_none(self, location: str) -> Optional[SDKPackage]:
        try:
            return await self.get_package(location)
        except (SDKPackageNotFoundError, InvalidSDKPackageError) as e:
            log.debug(f"Skipping SDK package at {location}: {e}")
            return None

    async def find_package(self, sdk: SDK, path: str) -> SDKPackage:
        for package in await self.find_all(sdk):
            if package.path == path:
                return package
        raise SDKPackageNotFoundError(f"{path} package not found.")

    @staticmethod
    def _walk(root: str) -> list[str]:
        locations: list[str] = []
        for dirpath, dirnames, filenames in os.walk(root):
            rel = os.path.relpath(dirpath, root).replace(os.sep, "/")
            dirnames[:] = [
                d for d in sorted(dirnames)
                if d not in SKIPPED_DIRECTORIES
                and not _SOURCES_RE.match(f"{rel}/{d}" if rel != "." else d)
            ]
            if "package.xml" in filenames:
                locations.append(dirpath)
        return locations

    # ------------------------------------------------------------------
    # Tool lookup
    # ------------------------------------------------------------------
    async def find_tool(self, sdk: SDK, package_path: str, binary: str) -> str:
        """Locate ``binary`` inside an SDK package, falling back to ``PATH``."""
        location = os.path.join(sdk.root, *package_path.split(";"))
        try:
            package = await self.get_package(location)
        except (SDKPackageNotFoundError, InvalidSDKPackageError) as e:
            log.debug(f"{package_path} unusable in {sdk.root} ({e}), looking up {binary} on PATH")
        else:
            candidate = os.path.join(package.location, _executable(binary))
            if os.path.isfile(candidate):
                return candidate
        return shutil.which(binary) or binary

    async def find_adb(self, sdk: SDK) -> str:
        return await self.find_tool(sdk, "platform-tools", "adb")

    async def find_emulator(self, sdk: SDK) -> str:
        return await self.find_tool(sdk, "emulator", "emulator")

    async def find_aapt(self, sdk: SDK) -> str:
        build_tools = [p for p in await self.find_all(sdk) if p.path.startswith("build-tools;")]
        build_tools.sort(key=lambda p: _version_key(p.version), reverse=True)
        for package in build_tools:
            candidate = os.path.join(package.location, _executable("aapt"))
            if os.path.isfile(candidate):
                return candidate
        return shutil.which("aapt") or "aapt"


def _executable(name: str) -> str:
    return f"{name}.exe" if sys.platform == "win32" else name
