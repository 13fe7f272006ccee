"""Version parsing and bumping utilities.

Versions are semver.Version objects with a couple of release-specific
helpers (bump levels, Java style snapshot suffixes) and pydantic support so
they can be used directly as model fields.
"""

from __future__ import annotations

import re
from enum import IntEnum
from typing import Any

import semver
from pydantic_core import core_schema

SNAPSHOT_SUFFIX = "SNAPSHOT"

_CORE_RE = re.compile(r"^(?P<core>\d+(?:\.\d+){0,2})(?P<rest>[-+].*)?$")


class BumpType(IntEnum):
    """How far a set of commits moves a version. Larger values win."""

    PATCH = 1
    MINOR = 2
    MAJOR = 3


class Version(semver.Version):
    """An immutable semantic version.

    Ordering follows semver precedence, so "1.2.3-alpha" < "1.2.3" < "2.2.0".
    """

    __slots__ = ()

    def bump(self, level: BumpType) -> Version:
        """Return the next version at the given level, dropping any prerelease."""
        if level is BumpType.MAJOR:
            return self.bump_major()
        if level is BumpType.MINOR:
            return self.bump_minor()
        return type(self)(self.major, self.minor, self.patch + 1)

    @property
    def is_snapshot(self) -> bool:
        return bool(self.prerelease) and str(self.prerelease).endswith(SNAPSHOT_SUFFIX)

    def release_core(self) -> Version:
        """The version with prerelease and build metadata removed."""
        return type(self)(self.major, self.minor, self.patch)

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            _validate_version,
            serialization=core_schema.to_string_ser_schema(),
        )


def _validate_version(value: Any) -> Version:
    if isinstance(value, Version):
        return value
    if isinstance(value, semver.Version):
        return Version(value.major, value.minor, value.patch, value.prerelease, value.build)
    if isinstance(value, str):
        return parse_version(value)
    raise ValueError(f"not a version: {value!r}")


def parse_version(version_str: str) -> Version:
    """Parse a version string into a Version.

    Accepts a leading "v" and pads incomplete cores with zeros:
    - "1" → "1.0.0"
    - "v1.2" → "1.2.0"
    - "1.2.3-beta.1+abc" → "1.2.3-beta.1+abc"

    Raises:
        ValueError: If the string is not a semantic version.
    """
    text = version_str.strip()
    if text.startswith("v"):
        text = text[1:]
    match = _CORE_RE.match(text)
    if not match:
        raise ValueError(f"{version_str!r} is not valid SemVer string")
    parts = match["core"].split(".")
    # Pad with zeros to ensure we have 3 parts
    while len(parts) < 3:
        parts.append("0")
    return Version.parse(".".join(parts) + (match["rest"] or ""))


def try_parse_version(version_str: str) -> Version | None:
    """Like parse_version(), but returns None for unparseable input."""
    try:
        return parse_version(version_str)
    except ValueError:
        return None
