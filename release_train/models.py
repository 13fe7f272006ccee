"""Data models for release-train.

These Pydantic models represent the configuration documents and the data
passed between pipeline phases. Configuration models are frozen: once a run
has loaded them they never change, and plugins that need a different config
produce a modified copy.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .body import PullRequestBody
from .naming import TagName
from .updaters import Update
from .versions import Version

ROOT_PROJECT_PATH = "."
DEFAULT_CONFIG_FILE = "release-train-config.json"
DEFAULT_MANIFEST_FILE = ".release-train-manifest.json"

DEFAULT_LABELS = ["autorelease: pending"]
DEFAULT_RELEASE_LABELS = ["autorelease: tagged"]
DEFAULT_SNAPSHOT_LABELS = ["autorelease: snapshot"]
SNOOZE_LABEL = "autorelease: snooze"


def kebab(name: str) -> str:
    return name.replace("_", "-")


class ChangelogSection(BaseModel):
    """Maps a commit type to a changelog heading.

    Hidden sections are left out of the changelog, and commits of a hidden
    type are not releasable on their own.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str
    section: str
    hidden: bool = False


DEFAULT_CHANGELOG_SECTIONS = [
    ChangelogSection(type="feat", section="Features"),
    ChangelogSection(type="fix", section="Bug Fixes"),
    ChangelogSection(type="perf", section="Performance Improvements"),
    ChangelogSection(type="revert", section="Reverts"),
    ChangelogSection(type="deps", section="Dependencies"),
    ChangelogSection(type="docs", section="Documentation", hidden=True),
    ChangelogSection(type="style", section="Styles", hidden=True),
    ChangelogSection(type="chore", section="Miscellaneous Chores", hidden=True),
    ChangelogSection(type="refactor", section="Code Refactoring", hidden=True),
    ChangelogSection(type="test", section="Tests", hidden=True),
    ChangelogSection(type="build", section="Build System", hidden=True),
    ChangelogSection(type="ci", section="Continuous Integration", hidden=True),
]


class ReleaserConfig(BaseModel):
    """Release settings for one monitored path.

    Field names map to kebab-case keys in the config document
    (``release_type`` ↔ ``"release-type"``).
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=kebab,
    )

    release_type: str = "simple"
    versioning: str = "default"
    component: str | None = None
    package_name: str | None = None
    include_component_in_tag: bool = True
    include_v_in_tag: bool = True
    tag_separator: str = "-"
    bump_minor_pre_major: bool = False
    bump_patch_for_minor_pre_major: bool = False
    draft: bool = False
    prerelease: bool = False
    draft_pull_request: bool = False
    extra_files: list[str] = Field(default_factory=list)
    changelog_path: str = "CHANGELOG.md"
    changelog_sections: list[ChangelogSection] | None = None
    skip_changelog: bool = False
    release_as: str | None = None
    skip_github_release: bool = False
    separate_pull_requests: bool = False
    pull_request_title_pattern: str | None = None
    pull_request_header: str | None = None
    pull_request_footer: str | None = None
    exclude_paths: list[str] = Field(default_factory=list)
    version_file: str | None = None
    skip_snapshot: bool = False

    @property
    def sections(self) -> list[ChangelogSection]:
        return self.changelog_sections or DEFAULT_CHANGELOG_SECTIONS

    @property
    def releasable_types(self) -> set[str]:
        """Commit types that produce a release on their own."""
        return {s.type for s in self.sections if not s.hidden}


class ManifestOptions(BaseModel):
    """Repository-wide options from the top level of the config document."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=kebab,
    )

    labels: list[str] = Field(default_factory=lambda: list(DEFAULT_LABELS))
    release_labels: list[str] = Field(default_factory=lambda: list(DEFAULT_RELEASE_LABELS))
    snapshot_labels: list[str] = Field(default_factory=lambda: list(DEFAULT_SNAPSHOT_LABELS))
    skip_labeling: bool = False
    draft_pull_request: bool = False
    # Defaults to true when only one path is configured
    separate_pull_requests: bool | None = None
    group_pull_request_title_pattern: str | None = None
    release_search_depth: int = Field(default=400, gt=0)
    commit_search_depth: int = Field(default=500, gt=0)
    bootstrap_sha: str | None = None
    last_release_sha: str | None = None
    plugins: list[str | dict[str, Any]] = Field(default_factory=list)
    max_body_size: int = Field(default=65536, gt=0)


class PullRequest(BaseModel):
    """A pull request as read back from the hosting service."""

    number: int
    title: str
    body: str = ""
    head_branch_name: str
    base_branch_name: str
    labels: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)
    sha: str | None = None


class ReleasePullRequest(BaseModel):
    """A release pull request the pipeline wants to exist."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str
    body: PullRequestBody
    updates: list[Update] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    head_ref_name: str
    draft: bool = False
    version: Version | None = None
    group: str | None = None


class CandidateReleasePullRequest(BaseModel):
    """A release pull request tied to the path and config that produced it."""

    path: str
    pull_request: ReleasePullRequest
    config: ReleaserConfig


class Release(BaseModel):
    """A release to publish, derived from a merged release pull request."""

    tag: TagName
    sha: str
    notes: str
    name: str | None = None
    path: str = ROOT_PROJECT_PATH
    draft: bool = False
    prerelease: bool = False
    pull_request: PullRequest | None = None

    @property
    def version(self) -> Version:
        return self.tag.version


class CreatedRelease(BaseModel):
    """A release that now exists on the hosting service."""

    id: int
    tag_name: str
    sha: str
    notes: str
    url: str
    name: str | None = None
    path: str = ROOT_PROJECT_PATH
    version: str
    draft: bool = False
    prerelease: bool = False


class WorkspacePackage(BaseModel):
    """A package found in a workspace, as seen by a workspace plugin.

    Attributes:
        name: Package name used in dependency declarations.
        path: Directory relative to the repository root.
        version: Version string from the package manifest, if any.
        deps: Names of the workspace packages this one depends on.
    """

    name: str
    path: str
    version: str | None = None
    deps: list[str] = Field(default_factory=list)
