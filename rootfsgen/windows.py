"""Helpers for repacking Windows installation media with extra drivers."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

SUPPORTED_VERSIONS = ("w11", "w10", "2k19", "2k12", "2k16", "2k22")
SUPPORTED_ARCHITECTURES = ("amd64", "ARM64")

_VERSION_ALIASES: dict[str, tuple[str, ...]] = {
    "w11": ("w11", "win11", "windows.?11"),
    "w10": ("w10", "win10", "windows.?10"),
    "2k19": ("2k19", "w2k19", "win2k19", "windows.?server.?2019"),
    "2k12": ("2k12", "w2k12", "win2k12", "windows.?server.?2012"),
    "2k16": ("2k16", "w2k16", "win2k16", "windows.?server.?2016"),
    "2k22": ("2k22", "w2k22", "win2k22", "windows.?server.?2022"),
}

_ARCHITECTURE_ALIASES: dict[str, tuple[str, ...]] = {
    "amd64": ("amd64", "x64"),
    "ARM64": ("arm64",),
}

_CLASS_GUID = re.compile(r"^ClassGuid[ ]*=[ ]*(.+)$", re.IGNORECASE)


@dataclass(frozen=True)
class WindowsDirectories:
    """Directories inside a mounted Windows image that drivers are injected into."""

    inf: str
    config: str
    drivers: str
    filerepository: str


def _detect(file_name: str, aliases: dict[str, tuple[str, ...]]) -> str:
    for key, patterns in aliases.items():
        if any(re.search(pattern, file_name, re.IGNORECASE) for pattern in patterns):
            return key
    return ""


def detect_windows_version(file_name: str) -> str:
    """Guess the Windows version from a file name; empty if unknown."""
    return _detect(file_name, _VERSION_ALIASES)


def detect_windows_architecture(file_name: str) -> str:
    """Guess the Windows architecture from a file name; empty if unknown."""
    return _detect(file_name, _ARCHITECTURE_ALIASES)


def _format_list(values: tuple[str, ...]) -> str:
    return "[" + " ".join(values) + "]"


def resolve_version(file_name: str, version: str = "") -> str:
    """Return the given version after validation, or detect it from the ISO name."""
    if not version:
        detected = detect_windows_version(os.path.basename(file_name))
        if not detected:
            raise ValueError(
                "Failed to detect Windows version. "
                "Please provide the version using the --windows-version flag"
            )
        return detected

    if version not in SUPPORTED_VERSIONS:
        raise ValueError(f"Version must be one of {_format_list(SUPPORTED_VERSIONS)}")
    return version


def resolve_architecture(file_name: str, architecture: str = "") -> str:
    """Return the given architecture after validation, or detect it from the ISO name."""
    if not architecture:
        detected = detect_windows_architecture(os.path.basename(file_name))
        if not detected:
            raise ValueError(
                "Failed to detect Windows architecture. "
                "Please provide the architecture using the --windows-arch flag"
            )
        return detected

    if architecture not in SUPPORTED_ARCHITECTURES:
        raise ValueError(f"Architecture must be one of {_format_list(SUPPORTED_ARCHITECTURES)}")
    return architecture


def to_hex(value: object) -> str:
    """Encode a value as the UTF-16LE style hex list used in registry files."""
    return ",".join(f"{byte:02x},00" for byte in str(value).encode("utf-8"))


def parse_wim_indexes(text: str) -> list[int]:
    """Extract the image indexes from ``wimlib-imagex info`` output."""
    indexes = []
    for line in text.splitlines():
        if line.startswith("Index"):
            field = line.split(" ")[-1]
            try:
                indexes.append(int(field))
            except ValueError as exc:
                raise ValueError(f"Failed to determine wim file indexes: {field!r}") from exc
    return indexes


def _entries(path: str) -> list[os.DirEntry[str]]:
    with os.scandir(path) as it:
        return sorted(it, key=lambda entry: entry.name)


def find_wim_files(root: str) -> tuple[str, str]:
    """Locate ``sources/boot.wim`` and ``sources/install.wim``, ignoring case."""
    sources_dir = next(
        (os.path.join(root, e.name) for e in _entries(root) if e.name.lower() == "sources"),
        None,
    )
    if sources_dir is None:
        raise FileNotFoundError(f"Failed to find sources directory in {root!r}")

    boot_wim = ""
    install_wim = ""
    for entry in _entries(sources_dir):
        if boot_wim and install_wim:
            break
        lowered = entry.name.lower()
        if lowered == "boot.wim":
            boot_wim = os.path.join(sources_dir, entry.name)
        elif lowered == "install.wim":
            install_wim = os.path.join(sources_dir, entry.name)

    if not boot_wim:
        raise FileNotFoundError("Unable to find boot.wim")
    if not install_wim:
        raise FileNotFoundError("Unable to find install.wim")
    return boot_wim, install_wim


def _subdirs(path: str, what: str) -> list[os.DirEntry[str]]:
    if not path:
        raise FileNotFoundError(f"Failed to determine {what} path")
    return [entry for entry in _entries(path) if entry.is_dir(follow_symlinks=False)]


def find_windows_directories(wim_path: str) -> WindowsDirectories:
    """Find the driver-related directories of a mounted Windows image, ignoring case."""
    found: dict[str, str] = {}

    windows_path = ""
    for entry in _subdirs(wim_path, "image root"):
        if entry.name.lower() == "windows":
            windows_path = os.path.join(wim_path, entry.name)
            break

    system32_path = ""
    for entry in _subdirs(windows_path, "windows"):
        if "inf" in found and system32_path:
            break
        lowered = entry.name.lower()
        if lowered == "inf":
            found["inf"] = os.path.join(windows_path, entry.name)
        elif lowered == "system32":
            system32_path = os.path.join(windows_path, entry.name)

    driverstore_path = ""
    for entry in _subdirs(system32_path, "windows/system32"):
        if "config" in found and "drivers" in found and driverstore_path:
            break
        lowered = entry.name.lower()
        if lowered in ("config", "drivers"):
            found[lowered] = os.path.join(system32_path, entry.name)
        elif lowered == "driverstore":
            driverstore_path = os.path.join(system32_path, entry.name)

    for entry in _subdirs(driverstore_path, "windows/system32/driverstore"):
        if entry.name.lower() == "filerepository":
            found["filerepository"] = os.path.join(driverstore_path, entry.name)
            break

    for key, label in (
        ("filerepository", "windows/system32/driverstore/filerepository"),
        ("inf", "windows/inf"),
        ("config", "windows/system32/config"),
        ("drivers", "windows/system32/drivers"),
    ):
        if key not in found:
            raise FileNotFoundError(f"Failed to determine {label} path")

    return WindowsDirectories(**found)


def read_class_guid(path: str | os.PathLike[str]) -> str | None:
    """Return the last ``ClassGuid`` value of an INF file, or None if it has none."""
    guid = None
    with open(path, encoding="utf-8", errors="replace") as handle:
        for line in handle.read().splitlines():
            match = _CLASS_GUID.match(line)
            if match:
                guid = match.group(1).strip()
    return guid