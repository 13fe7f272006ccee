"""Versioning strategies: how a list of commits moves a version.

Every strategy answers one question, ``next_version(current, commits)``,
and returns None when none of the commits warrants a release. An explicit
``Release-As`` footer always wins; when several are present the highest
version is used.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence

from .commits import ConventionalCommit
from .models import DEFAULT_CHANGELOG_SECTIONS
from .versions import SNAPSHOT_SUFFIX, BumpType, Version, try_parse_version

DEFAULT_RELEASABLE_TYPES = frozenset(s.type for s in DEFAULT_CHANGELOG_SECTIONS if not s.hidden)

_DEPENDENCY_UPDATE_RE = re.compile(
    r"^update dependency (?P<name>\S+) to v?(?P<version>\d+\.\d+\.\d+\S*)", re.IGNORECASE
)
_SERVICE_PACK_RE = re.compile(r"^sp\.(?P<number>\d+)$")


def release_as_version(commits: Iterable[ConventionalCommit]) -> Version | None:
    """The highest version requested through Release-As footers, if any."""
    requested = [try_parse_version(c.release_as) for c in commits if c.release_as]
    valid = [v for v in requested if v is not None]
    return max(valid) if valid else None


class VersioningStrategy(ABC):
    """Computes the next version for a component."""

    def __init__(
        self,
        *,
        bump_minor_pre_major: bool = False,
        bump_patch_for_minor_pre_major: bool = False,
        releasable_types: Iterable[str] = DEFAULT_RELEASABLE_TYPES,
    ):
        self.bump_minor_pre_major = bump_minor_pre_major
        self.bump_patch_for_minor_pre_major = bump_patch_for_minor_pre_major
        self.releasable_types = frozenset(releasable_types)

    def is_releasable(self, commit: ConventionalCommit) -> bool:
        return commit.breaking or commit.type in self.releasable_types

    def bump_level(self, commits: Sequence[ConventionalCommit]) -> BumpType | None:
        """The raw bump level implied by the commits, before pre-major rules."""
        level: BumpType | None = None
        for commit in commits:
            if commit.breaking:
                return BumpType.MAJOR
            if not self.is_releasable(commit):
                continue
            found = BumpType.MINOR if commit.type == "feat" else BumpType.PATCH
            level = found if level is None else max(level, found)
        return level

    def adjust_pre_major(self, current: Version, level: BumpType) -> BumpType:
        """Apply the pre-1.0 rules.

        Below 1.0.0 a feature only moves the minor when bump_minor_pre_major
        is set and bump_patch_for_minor_pre_major is not. A breaking change
        moves the minor instead of the major when bump_minor_pre_major is set.
        """
        if current.major != 0:
            return level
        if level is BumpType.MAJOR and self.bump_minor_pre_major:
            return BumpType.MINOR
        if level is BumpType.MINOR and (
            not self.bump_minor_pre_major or self.bump_patch_for_minor_pre_major
        ):
            return BumpType.PATCH
        return level

    def next_version(self, current: Version, commits: Sequence[ConventionalCommit]) -> Version | None:
        explicit = release_as_version(commits)
        if explicit is not None:
            return explicit
        return self.bump(current, commits)

    @abstractmethod
    def bump(self, current: Version, commits: Sequence[ConventionalCommit]) -> Version | None:
        """Compute the next version from commit content alone."""


class DefaultVersioningStrategy(VersioningStrategy):
    """Breaking → major, feat → minor, any other releasable type → patch."""

    def bump(self, current: Version, commits: Sequence[ConventionalCommit]) -> Version | None:
        level = self.bump_level(commits)
        if level is None:
            return None
        return current.bump(self.adjust_pre_major(current, level))


class FixedLevelVersioningStrategy(VersioningStrategy):
    """Applies one level regardless of commit content."""

    level = BumpType.PATCH

    def bump(self, current: Version, commits: Sequence[ConventionalCommit]) -> Version | None:
        if not any(self.is_releasable(c) for c in commits):
            return None
        return current.bump(self.level)


class AlwaysBumpPatch(FixedLevelVersioningStrategy):
    level = BumpType.PATCH


class AlwaysBumpMinor(FixedLevelVersioningStrategy):
    level = BumpType.MINOR


class AlwaysBumpMajor(FixedLevelVersioningStrategy):
    level = BumpType.MAJOR


class ServicePackVersioningStrategy(VersioningStrategy):
    """Only ever patches, by counting Java service packs.

    Examples:
        1.2.3 → 1.2.3-sp.1
        1.2.3-sp.1 → 1.2.3-sp.2
    """

    def bump(self, current: Version, commits: Sequence[ConventionalCommit]) -> Version | None:
        if not any(self.is_releasable(c) for c in commits):
            return None
        match = _SERVICE_PACK_RE.match(str(current.prerelease or ""))
        number = int(match["number"]) + 1 if match else 1
        return Version(current.major, current.minor, current.patch, f"sp.{number}")


class DependencyManifestVersioningStrategy(DefaultVersioningStrategy):
    """Also weighs dependency update commits by the shape of the new version.

    A dependency moving to X.0.0 counts as major, to X.Y.0 as minor, anything
    else as patch. The largest level among commits and dependencies wins.
    """

    def dependency_updates(self, commits: Iterable[ConventionalCommit]) -> dict[str, Version]:
        updates: dict[str, Version] = {}
        for commit in commits:
            if commit.type != "deps" and commit.scope != "deps":
                continue
            match = _DEPENDENCY_UPDATE_RE.match(commit.bare_message)
            if not match:
                continue
            version = try_parse_version(match["version"])
            if version is not None:
                updates[match["name"]] = version
        return updates

    def bump_level(self, commits: Sequence[ConventionalCommit]) -> BumpType | None:
        level = super().bump_level(commits)
        for version in self.dependency_updates(commits).values():
            if version.minor == 0 and version.patch == 0:
                found = BumpType.MAJOR
            elif version.patch == 0:
                found = BumpType.MINOR
            else:
                found = BumpType.PATCH
            level = found if level is None else max(level, found)
        return level


class SnapshotVersioningStrategy(VersioningStrategy):
    """Wraps another strategy with Java style ``-SNAPSHOT`` versions.

    ``snapshot()`` opens a development cycle after a real release. The next
    real release resolves it: a patch just drops the suffix, larger levels
    are applied to the stripped version.
    """

    def __init__(self, inner: VersioningStrategy):
        super().__init__(
            bump_minor_pre_major=inner.bump_minor_pre_major,
            bump_patch_for_minor_pre_major=inner.bump_patch_for_minor_pre_major,
            releasable_types=inner.releasable_types,
        )
        self.inner = inner

    def snapshot(self, current: Version) -> Version:
        return Version(current.major, current.minor, current.patch + 1, SNAPSHOT_SUFFIX)

    def bump(self, current: Version, commits: Sequence[ConventionalCommit]) -> Version | None:
        if not current.is_snapshot:
            return self.inner.bump(current, commits)
        level = self.inner.bump_level(commits)
        if level is None:
            return None
        level = self.inner.adjust_pre_major(current, level)
        stripped = current.release_core()
        if level is BumpType.PATCH:
            return stripped
        if level is BumpType.MINOR and stripped.patch == 0:
            return stripped
        if level is BumpType.MAJOR and stripped.minor == 0 and stripped.patch == 0:
            return stripped
        return stripped.bump(level)
