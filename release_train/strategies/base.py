"""Base release strategy.

A strategy owns one monitored path. From the commits that touched that
path it proposes a release pull request (next version, changelog entry,
file updates), and from a merged release pull request it derives the
release to publish.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..body import PullRequestBody, ReleaseData
from ..changelog import DefaultChangelogNotes
from ..commits import ConventionalCommit, touches_path
from ..errors import ConfigurationError, MissingRequiredFileError, PathValidationError
from ..models import ROOT_PROJECT_PATH, PullRequest, Release, ReleasePullRequest, ReleaserConfig
from ..naming import BranchName, PullRequestTitle, TagName
from ..shell import info, warn
from ..updaters import Changelog, GenericMarker, Update, merge_updates
from ..versioning import DefaultVersioningStrategy, VersioningStrategy, release_as_version
from ..versions import Version, try_parse_version

DEFAULT_INITIAL_VERSION = Version(1, 0, 0)


def validate_extra_file(file: str) -> str:
    """Reject paths that could escape the repository.

    Returns:
        The path with a leading "/" (repository-root relative) preserved.

    Raises:
        PathValidationError: For ``..`` segments, a leading ``~``, ``//``
            prefixes or drive letters.
    """
    if not file or file.startswith("~") or file.startswith("//") or "\\" in file:
        raise PathValidationError(file)
    if len(file) >= 2 and file[1] == ":":
        raise PathValidationError(file)
    if ".." in file.split("/"):
        raise PathValidationError(file)
    return file


class BaseStrategy:
    """Common release pull request logic shared by every release type.

    Subclasses override ``build_updates`` to add the files their ecosystem
    keeps versions in, and ``get_default_component`` to read a package name.

    Args:
        github: Hosting collaborator used to read files at ``target_branch``.
        target_branch: Branch releases are cut from.
        path: Monitored path, "." for the repository root.
        config: Release settings for this path.
        versioning_strategy: Defaults to DefaultVersioningStrategy.
        snapshot_labels: Labels for snapshot pull requests.
    """

    release_type = "base"

    def __init__(
        self,
        *,
        github: Any,
        target_branch: str,
        config: ReleaserConfig,
        path: str = ROOT_PROJECT_PATH,
        versioning_strategy: VersioningStrategy | None = None,
        snapshot_labels: Sequence[str] = (),
    ):
        self.github = github
        self.target_branch = target_branch
        self.path = path
        self.config = config
        self.versioning_strategy = versioning_strategy or DefaultVersioningStrategy(
            bump_minor_pre_major=config.bump_minor_pre_major,
            bump_patch_for_minor_pre_major=config.bump_patch_for_minor_pre_major,
            releasable_types=config.releasable_types,
        )
        self.snapshot_labels = list(snapshot_labels)
        self.changelog_notes = DefaultChangelogNotes(config.sections)
        self._component: str | None = None
        self._component_loaded = False
        self._files: dict[str, str | None] = {}

    # -- repository access -------------------------------------------------

    def add_path(self, file: str) -> str:
        """Resolve a file relative to this strategy's path."""
        if file.startswith("/"):
            return file.lstrip("/")
        if self.path == ROOT_PROJECT_PATH:
            return file
        return f"{self.path.strip('/')}/{file}"

    def read_file(self, file: str) -> str | None:
        """Read a file under this path at the target branch, None if absent."""
        full = self.add_path(file)
        if full not in self._files:
            try:
                self._files[full] = self.github.get_file_contents(full, self.target_branch)
            except FileNotFoundError:
                self._files[full] = None
        return self._files[full]

    def require_file(self, file: str) -> str:
        content = self.read_file(file)
        if content is None:
            raise MissingRequiredFileError(self.add_path(file), self.release_type, self.path)
        return content

    # -- naming ------------------------------------------------------------

    def get_default_component(self) -> str | None:
        return normalize_component(self.config.package_name)

    def get_component(self) -> str | None:
        """The component name used in tags, titles and release notes."""
        if not self._component_loaded:
            self._component = self.config.component or self.get_default_component()
            self._component_loaded = True
        return self._component

    def get_branch_component(self) -> str | None:
        return self.get_component()

    def tag_for(self, version: Version) -> TagName:
        component = self.get_component() if self.config.include_component_in_tag else None
        return TagName(
            version=version,
            component=component,
            separator=self.config.tag_separator,
            include_v=self.config.include_v_in_tag,
        )

    # -- versions ----------------------------------------------------------

    def initial_version(self) -> Version:
        return DEFAULT_INITIAL_VERSION

    def current_version(self, latest_release: Release | None) -> Version | None:
        return latest_release.tag.version if latest_release else None

    def next_version(self, commits: Sequence[ConventionalCommit], current: Version | None) -> Version | None:
        if self.config.release_as:
            forced = try_parse_version(self.config.release_as)
            if forced is None:
                raise ConfigurationError(
                    f"invalid release-as version {self.config.release_as!r}", self.release_type, self.path
                )
            return forced
        if current is None:
            return release_as_version(commits) or self.initial_version()
        return self.versioning_strategy.next_version(current, commits)

    # -- pull requests -----------------------------------------------------

    def filter_commits(self, commits: Sequence[ConventionalCommit]) -> list[ConventionalCommit]:
        """Commits touching this path and outside its excluded paths."""
        if self.path == ROOT_PROJECT_PATH and not self.config.exclude_paths:
            return list(commits)
        return [c for c in commits if touches_path(c.files, self.path, self._exclude_paths())]

    def _exclude_paths(self) -> list[str]:
        return [self.add_path(p) for p in self.config.exclude_paths]

    def build_notes(
        self,
        commits: Sequence[ConventionalCommit],
        version: Version,
        latest_release: Release | None,
    ) -> str:
        return self.changelog_notes.build_notes(
            commits,
            version=str(version),
            current_tag=str(self.tag_for(version)),
            previous_tag=str(latest_release.tag) if latest_release else None,
            owner=getattr(self.github, "owner", ""),
            repository=getattr(self.github, "name", ""),
        )

    def build_updates(
        self,
        *,
        version: Version,
        changelog_entry: str,
        latest_version: Version | None,
    ) -> list[Update]:
        updates: list[Update] = []
        if not self.config.skip_changelog:
            updates.append(
                Update(
                    path=self.add_path(self.config.changelog_path),
                    create_if_missing=True,
                    updater=Changelog(changelog_entry),
                )
            )
        return updates

    def extra_file_updates(self, version: Version) -> list[Update]:
        return [
            Update(path=self.add_path(validate_extra_file(file)), updater=GenericMarker(version))
            for file in self.config.extra_files
        ]

    def build_release_pull_request(
        self,
        commits: Sequence[ConventionalCommit],
        latest_release: Release | None = None,
        *,
        draft: bool = False,
        labels: Sequence[str] = (),
    ) -> ReleasePullRequest | None:
        """Propose the release pull request for this path.

        Returns:
            None when no commit warrants a release and no release-as
            override is configured.
        """
        commits = self.filter_commits(commits)
        releasable = [
            c for c in commits if self.versioning_strategy.is_releasable(c) or c.release_as
        ]
        if not releasable and not self.config.release_as:
            info(f"{self.path}: no user facing commits found since last release")
            return None

        current = self.current_version(latest_release)
        version = self.next_version(commits, current)
        if version is None:
            info(f"{self.path}: commits do not warrant a release")
            return None
        info(f"{self.path}: {current or 'unreleased'} → {version}")

        notes = self.build_notes(releasable, version, latest_release)
        updates = self.build_updates(version=version, changelog_entry=notes, latest_version=current)
        updates += self.extra_file_updates(version)
        return self._pull_request(
            version=version,
            notes=notes,
            updates=updates,
            draft=draft,
            labels=labels,
        )

    def _pull_request(
        self,
        *,
        version: Version,
        notes: str,
        updates: list[Update],
        draft: bool,
        labels: Sequence[str],
        group: str | None = None,
    ) -> ReleasePullRequest:
        component = self.get_component()
        branch_component = self.get_branch_component()
        if branch_component:
            branch = BranchName.of_component_target_branch(branch_component, self.target_branch)
        else:
            branch = BranchName.of_target_branch(self.target_branch)
        title = PullRequestTitle.of_component_target_branch_version(
            component, self.target_branch, version, self.config.pull_request_title_pattern
        )
        body = PullRequestBody(
            [ReleaseData(component=component, version=version, notes=notes)],
            header=self.config.pull_request_header,
            footer=self.config.pull_request_footer,
        )
        return ReleasePullRequest(
            title=str(title),
            body=body,
            updates=merge_updates(updates),
            labels=list(labels),
            head_ref_name=str(branch),
            draft=draft or self.config.draft_pull_request,
            version=version,
            group=group,
        )

    # -- releases ----------------------------------------------------------

    def select_release_data(self, body: PullRequestBody) -> ReleaseData | None:
        component = self.get_component()
        for data in body.release_data:
            if data.component == component:
                return data
        if len(body.release_data) == 1 and body.release_data[0].component is None:
            return body.release_data[0]
        return None

    def build_release(self, merged_pull_request: PullRequest, body: PullRequestBody) -> Release | None:
        """Derive the release for this path from a merged release pull request."""
        if self.config.skip_github_release:
            info(f"{self.path}: skipping GitHub release")
            return None
        data = self.select_release_data(body)
        if data is None:
            return None
        version = data.version
        if version is None:
            title = PullRequestTitle.parse(merged_pull_request.title, self.config.pull_request_title_pattern)
            version = title.version if title else None
        if version is None:
            warn(f"{self.path}: no version found in pull request #{merged_pull_request.number}")
            return None
        if not merged_pull_request.sha:
            warn(f"{self.path}: pull request #{merged_pull_request.number} has no merge commit")
            return None

        tag = self.tag_for(version)
        component = self.get_component()
        if component and self.config.include_component_in_tag:
            name = f"{component}: {'v' if self.config.include_v_in_tag else ''}{version}"
        else:
            name = str(tag)
        return Release(
            tag=tag,
            sha=merged_pull_request.sha,
            notes=data.notes,
            name=name,
            path=self.path,
            draft=self.config.draft,
            prerelease=self.config.prerelease and bool(version.prerelease),
            pull_request=merged_pull_request,
        )


def normalize_component(name: str | None) -> str | None:
    """Strip an npm scope: "@acme/storage" → "storage"."""
    if not name:
        return None
    return name.split("/")[-1] if name.startswith("@") else name
