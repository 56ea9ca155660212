"""Server versions and their parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = ["Version", "parse_version", "SRV_VER_550", "SRV_VER_650", "SRV_VER_720"]

_INTEGER = re.compile(r"[+-]?\d+")


@dataclass(frozen=True, order=True)
class Version:
    """A server version: major.minor.patch-build."""

    major: int = 0
    minor: int = 0
    patch: int = 0
    build: int = 0

    def higher(self, other: Version) -> bool:
        """Whether this version is strictly newer than ``other``."""
        return self > other

    def lower(self, other: Version) -> bool:
        """Whether this version is strictly older than ``other``."""
        return self < other


SRV_VER_550 = Version(5, 5, 0, 0)
SRV_VER_650 = Version(6, 5, 0, 0)
SRV_VER_720 = Version(7, 2, 0, 0)


def _to_int(text: str) -> int | None:
    if _INTEGER.fullmatch(text) is None:
        return None
    return int(text)


def parse_version(text: str) -> Version:
    """Parse a version string such as ``"7.6.3-1234-enterprise"``.

    A build part that is not a number is ignored.
    """
    parts = text.split(".")

    major = _to_int(parts[0])
    if major is None:
        raise ValueError("major version is not a valid integer")
    if len(parts) == 1:
        return Version(major)

    minor = _to_int(parts[1])
    if minor is None:
        raise ValueError("minor version is not a valid integer")
    if len(parts) == 2:
        return Version(major, minor)

    patch_and_build = parts[2].split("-")
    patch = _to_int(patch_and_build[0])
    if patch is None:
        raise ValueError("patch version is not a valid integer")
    if len(patch_and_build) == 1:
        return Version(major, minor, patch)

    build = _to_int(patch_and_build[1])
    if build is None:
        return Version(major, minor, patch)
    return Version(major, minor, patch, build)