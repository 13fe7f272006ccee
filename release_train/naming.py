"""Naming schemes for tags, release branches and release pull request titles.

Every name here is both produced and parsed back: tags are matched against
components when looking for previous releases, branch names identify the
pull request a run owns, and titles recover a version when a body lacks one.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

from .versions import Version, try_parse_version

BRANCH_PREFIX = "release-train"
DEFAULT_PR_TITLE_PATTERN = "chore${scope}: release${component} ${version}"
DEFAULT_GROUP_PR_TITLE_PATTERN = "chore: release ${branch}"

_TAG_RE = re.compile(
    r"^(?:(?P<component>.*)(?P<separator>[^a-zA-Z0-9]))?(?P<v>v)?(?P<version>\d+\.\d+\.\d+.*)$"
)
_BRANCH_RE = re.compile(rf"^{BRANCH_PREFIX}--branches--(?P<branch>.+?)(?:--components--(?P<component>.+))?$")
_LEGACY_BRANCH_RE = re.compile(r"^release-(?:(?P<component>.+)-)?v(?P<version>\d+\.\d+\.\d+.*)$")


class TagName(BaseModel):
    """A git tag for a release, e.g. ``storage-v1.2.3`` or ``v1.2.3``."""

    model_config = ConfigDict(frozen=True)

    version: Version
    component: str | None = None
    separator: str = "-"
    include_v: bool = True

    def __str__(self) -> str:
        version = f"v{self.version}" if self.include_v else str(self.version)
        if self.component:
            return f"{self.component}{self.separator}{version}"
        return version

    @classmethod
    def parse(cls, tag: str) -> TagName | None:
        """Parse a tag name, returning None if it does not end in a version."""
        match = _TAG_RE.match(tag)
        if not match:
            return None
        version = try_parse_version(match["version"])
        if version is None:
            return None
        return cls(
            version=version,
            component=match["component"] or None,
            separator=match["separator"] or "-",
            include_v=bool(match["v"]),
        )


class BranchName(BaseModel):
    """The head branch of a release pull request.

    The current scheme encodes the target branch and optional component:
    ``release-train--branches--main--components--storage``. The legacy
    ``release-storage-v1.2.3`` scheme encodes a component and version.
    """

    model_config = ConfigDict(frozen=True)

    target_branch: str | None = None
    component: str | None = None
    version: Version | None = None

    @classmethod
    def of_target_branch(cls, target_branch: str) -> BranchName:
        return cls(target_branch=target_branch)

    @classmethod
    def of_component_target_branch(cls, component: str, target_branch: str) -> BranchName:
        return cls(target_branch=target_branch, component=component)

    def __str__(self) -> str:
        if self.target_branch is None and self.version is not None:
            if self.component:
                return f"release-{self.component}-v{self.version}"
            return f"release-v{self.version}"
        name = f"{BRANCH_PREFIX}--branches--{self.target_branch}"
        if self.component:
            name += f"--components--{self.component}"
        return name

    @classmethod
    def parse(cls, branch: str) -> BranchName | None:
        """Parse a release branch name, returning None for foreign branches."""
        match = _BRANCH_RE.match(branch)
        if match:
            return cls(target_branch=match["branch"], component=match["component"])
        match = _LEGACY_BRANCH_RE.match(branch)
        if match:
            version = try_parse_version(match["version"])
            if version is not None:
                return cls(component=match["component"], version=version)
        return None


def _to_regex(pattern: str) -> re.Pattern[str]:
    escaped = re.escape(pattern)
    escaped = escaped.replace(re.escape("${scope}"), r"(?:\((?P<branch>[\w\-./]+)\))?")
    escaped = escaped.replace(re.escape("${component}"), r" ?(?P<component>@?[\w\-./]*)?")
    escaped = escaped.replace(re.escape("${version}"), r"v?(?P<version>\d+\.\d+\.\d+\S*)")
    escaped = escaped.replace(re.escape("${branch}"), r"(?P<target>[\w\-./]+)?")
    return re.compile(f"^{escaped}$")


class PullRequestTitle(BaseModel):
    """The title of a release pull request, rendered from a pattern.

    Placeholders: ``${scope}`` renders as ``(<branch>)``, ``${component}``
    as `` <component>`` (or nothing), ``${version}`` and ``${branch}``.
    """

    model_config = ConfigDict(frozen=True)

    target_branch: str | None = None
    component: str | None = None
    version: Version | None = None
    pattern: str = DEFAULT_PR_TITLE_PATTERN

    @classmethod
    def of_target_branch(cls, target_branch: str, pattern: str | None = None) -> PullRequestTitle:
        return cls(target_branch=target_branch, pattern=pattern or DEFAULT_GROUP_PR_TITLE_PATTERN)

    @classmethod
    def of_component_target_branch_version(
        cls,
        component: str | None,
        target_branch: str | None,
        version: Version | None,
        pattern: str | None = None,
    ) -> PullRequestTitle:
        return cls(
            target_branch=target_branch,
            component=component,
            version=version,
            pattern=pattern or DEFAULT_PR_TITLE_PATTERN,
        )

    def __str__(self) -> str:
        scope = f"({self.target_branch})" if self.target_branch else ""
        component = f" {self.component}" if self.component else ""
        return (
            self.pattern.replace("${scope}", scope)
            .replace("${component}", component)
            .replace("${version}", str(self.version) if self.version else "")
            .replace("${branch}", self.target_branch or "")
            .strip()
        )

    @classmethod
    def parse(cls, title: str, pattern: str | None = None) -> PullRequestTitle | None:
        pattern = pattern or DEFAULT_PR_TITLE_PATTERN
        match = _to_regex(pattern).match(title)
        if not match:
            return None
        groups = match.groupdict()
        version = try_parse_version(groups["version"]) if groups.get("version") else None
        return cls(
            target_branch=groups.get("branch") or groups.get("target"),
            component=groups.get("component") or None,
            version=version,
            pattern=pattern,
        )
