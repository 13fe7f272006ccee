"""Manifest-driven release orchestration.

A Manifest ties a repository's config document and version manifest to the
hosting service. It runs the two halves of a release:

1. ``create_pull_requests`` proposes (or refreshes) release pull requests
   from the commits since each path's last release.
2. ``create_releases`` turns merged release pull requests into tagged
   releases and relabels them.

Both halves have a side-effect free counterpart (``build_pull_requests``,
``build_releases``) used for dry runs.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .commits import Commit, ConventionalCommit, parse_conventional_commits, split_commits
from .errors import AggregateError, ConfigurationError, DuplicateReleaseError, GitHubAPIError
from .factory import PluginFactory, StrategyFactory, VersioningFactory, build_plugin, build_strategy
from .models import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_MANIFEST_FILE,
    ROOT_PROJECT_PATH,
    SNOOZE_LABEL,
    CandidateReleasePullRequest,
    CreatedRelease,
    ManifestOptions,
    PullRequest,
    Release,
    ReleasePullRequest,
    ReleaserConfig,
)
from .naming import BranchName, TagName
from .overflow import FilePullRequestOverflowHandler
from .plugins.base import ManifestPlugin
from .plugins.merge import Merge
from .shell import info, step, warn
from .strategies.base import BaseStrategy
from .strategies.maven import SNAPSHOT_GROUP
from .updaters import ReleaseManifest, Update, merge_updates
from .versions import Version

_VERSIONS = TypeAdapter(dict[str, Version])


def normalize_path(path: str) -> str:
    path = path.strip().removeprefix("./").strip("/")
    return path or ROOT_PROJECT_PATH


def _field_keys(model: type[Any]) -> set[str]:
    return {field.alias or name for name, field in model.model_fields.items()} | set(model.model_fields)


def _load_json(github: Any, path: str, target_branch: str) -> Any:
    content = github.get_file_contents(path, target_branch)
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{path} is not valid JSON: {e}") from e


class Manifest:
    """Release orchestration for every configured path of a repository.

    Args:
        github: Hosting collaborator.
        target_branch: Branch releases are cut from.
        repository_config: Map of path → ReleaserConfig.
        released_versions: Map of path → last released version, as read from
            the version manifest file.
        options: Repository-wide options.
        manifest_file: Path of the version manifest file.
        plugins: Plugin instances. Built from ``options.plugins`` when None.
        strategy_factories: Extra release types, keyed by name.
        versioning_factories: Extra versioning schemes, keyed by name.
        plugin_factories: Extra plugin types, keyed by name.
    """

    def __init__(
        self,
        github: Any,
        target_branch: str,
        repository_config: dict[str, ReleaserConfig],
        released_versions: dict[str, Version] | None = None,
        *,
        options: ManifestOptions | None = None,
        manifest_file: str = DEFAULT_MANIFEST_FILE,
        plugins: list[ManifestPlugin] | None = None,
        strategy_factories: dict[str, StrategyFactory] | None = None,
        versioning_factories: dict[str, VersioningFactory] | None = None,
        plugin_factories: dict[str, PluginFactory] | None = None,
    ):
        self.github = github
        self.target_branch = target_branch
        self.repository_config = {normalize_path(p): c for p, c in repository_config.items()}
        self.released_versions = {normalize_path(p): v for p, v in (released_versions or {}).items()}
        self.options = options or ManifestOptions()
        self.manifest_file = manifest_file
        self.strategy_factories = strategy_factories
        self.versioning_factories = versioning_factories
        if self.options.separate_pull_requests is None:
            self.separate_pull_requests = len(self.repository_config) == 1
        else:
            self.separate_pull_requests = self.options.separate_pull_requests
        if plugins is None:
            plugins = [
                build_plugin(
                    entry,
                    github,
                    target_branch,
                    self.repository_config,
                    manifest_file,
                    factories=plugin_factories,
                    strategy_factories=strategy_factories,
                    versioning_factories=versioning_factories,
                )
                for entry in self.options.plugins
            ]
        self.plugins = plugins
        self.overflow = FilePullRequestOverflowHandler(github, self.options.max_body_size)
        self._strategies: dict[str, BaseStrategy] | None = None

    @classmethod
    def from_manifest(
        cls,
        github: Any,
        target_branch: str,
        config_file: str = DEFAULT_CONFIG_FILE,
        manifest_file: str = DEFAULT_MANIFEST_FILE,
        *,
        path: str | None = None,
        release_as: str | None = None,
        strategy_factories: dict[str, StrategyFactory] | None = None,
        versioning_factories: dict[str, VersioningFactory] | None = None,
        plugin_factories: dict[str, PluginFactory] | None = None,
    ) -> Manifest:
        """Load the config document and version manifest from the target branch.

        Top-level keys of the config document are repository-wide options
        (labels, plugins, search depths, ...) and defaults for every path.
        ``packages`` maps each path to its overrides.

        Args:
            path: Only release this path.
            release_as: Force this version for every selected path.

        Raises:
            ConfigurationError: If the config document is missing, is not
                valid JSON, or does not validate.
        """
        try:
            data = _load_json(github, config_file, target_branch)
        except FileNotFoundError as e:
            raise ConfigurationError(f"config file {config_file} not found on {target_branch}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"{config_file} must contain a JSON object")

        packages = data.pop("packages", None)
        data.pop("$schema", None)
        if not isinstance(packages, dict) or not packages:
            raise ConfigurationError(f"{config_file} does not configure any packages")

        option_keys = _field_keys(ManifestOptions)
        config_keys = _field_keys(ReleaserConfig)
        options_data = {k: v for k, v in data.items() if k in option_keys}
        # Unknown keys go to the defaults so validation names them
        defaults = {k: v for k, v in data.items() if k in config_keys or k not in option_keys}
        try:
            options = ManifestOptions.model_validate(options_data)
        except ValidationError as e:
            raise ConfigurationError(f"invalid options in {config_file}: {e}") from e

        configs: dict[str, ReleaserConfig] = {}
        for package_path, overrides in packages.items():
            package_path = normalize_path(package_path)
            try:
                configs[package_path] = ReleaserConfig.model_validate({**defaults, **(overrides or {})})
            except ValidationError as e:
                raise ConfigurationError(f"invalid config in {config_file}: {e}", path=package_path) from e

        if path is not None:
            path = normalize_path(path)
            if path not in configs:
                raise ConfigurationError(f"path {path} is not configured in {config_file}")
            configs = {path: configs[path]}
        if release_as:
            configs = {p: c.model_copy(update={"release_as": release_as}) for p, c in configs.items()}

        try:
            versions = _VERSIONS.validate_python(_load_json(github, manifest_file, target_branch))
        except FileNotFoundError:
            warn(f"{manifest_file} not found on {target_branch}, assuming nothing was released")
            versions = {}
        except ValidationError as e:
            raise ConfigurationError(f"invalid versions in {manifest_file}: {e}") from e

        return cls(
            github,
            target_branch,
            configs,
            versions,
            options=options,
            manifest_file=manifest_file,
            strategy_factories=strategy_factories,
            versioning_factories=versioning_factories,
            plugin_factories=plugin_factories,
        )

    # -- strategies --------------------------------------------------------

    def _build_strategy(self, path: str, config: ReleaserConfig) -> BaseStrategy:
        return build_strategy(
            self.github,
            self.target_branch,
            path,
            config,
            snapshot_labels=self.options.snapshot_labels,
            factories=self.strategy_factories,
            versioning_factories=self.versioning_factories,
        )

    def strategies(self) -> dict[str, BaseStrategy]:
        if self._strategies is None:
            self._strategies = {
                path: self._build_strategy(path, config) for path, config in self.repository_config.items()
            }
        return self._strategies

    def _tag_component(self, strategy: BaseStrategy) -> str | None:
        return strategy.get_component() if strategy.config.include_component_in_tag else None

    # -- latest releases ---------------------------------------------------

    def find_latest_releases(self) -> dict[str, Release]:
        """Find the release each path was last released at.

        Releases are matched to paths by the component in their tag. When
        the version manifest records a version for a path, only a release at
        that version counts. Paths still unmatched fall back to tags.
        """
        strategies = self.strategies()
        found: dict[str, Release] = {}
        releases = self.github.release_iterator(max_results=self.options.release_search_depth)
        tag_names: dict[str, str] = {}
        for github_release in releases:
            if len(found) == len(strategies):
                break
            tag = TagName.parse(github_release.tag_name)
            if tag is None:
                continue
            for path, strategy in strategies.items():
                if path in found or self._tag_component(strategy) != tag.component:
                    continue
                expected = self.released_versions.get(path)
                if expected is not None and expected != tag.version:
                    continue
                tag_names[path] = github_release.tag_name
                found[path] = Release(
                    tag=tag,
                    sha="",
                    notes=github_release.notes,
                    name=github_release.name,
                    path=path,
                )
                break

        # Releases do not carry their commit, tags do
        wanted = {name: path for path, name in tag_names.items()}
        for path, strategy in strategies.items():
            version = self.released_versions.get(path)
            if path not in found and version is not None:
                wanted[str(strategy.tag_for(version))] = path
        shas: dict[str, str] = {}
        if wanted:
            for tag in self.github.tag_iterator(max_results=self.options.release_search_depth):
                if tag.name in wanted:
                    shas[wanted[tag.name]] = tag.sha
                if len(shas) == len(wanted):
                    break

        for path, strategy in strategies.items():
            if path in found:
                found[path] = found[path].model_copy(update={"sha": shas.get(path, "")})
                continue
            version = self.released_versions.get(path)
            if version is None:
                continue
            if path not in shas:
                warn(f"{path}: no release or tag found for {version}")
            found[path] = Release(tag=strategy.tag_for(version), sha=shas.get(path, ""), notes="", path=path)
        for path, release in found.items():
            info(f"{path}: latest release {release.tag}{f' at {release.sha[:7]}' if release.sha else ''}")
        return found

    # -- commits -----------------------------------------------------------

    def collect_commits(self, latest_releases: dict[str, Release]) -> dict[str, list[Commit]]:
        """Commits since each path's last release, newest first."""
        paths = list(self.repository_config)
        boundaries: dict[str, str | None] = {}
        for path in paths:
            release = latest_releases.get(path)
            boundaries[path] = (
                self.options.last_release_sha or (release.sha if release and release.sha else None)
                or self.options.bootstrap_sha
            )

        collected: list[Commit] = []
        cutoffs: dict[str, int] = {}
        for commit in self.github.commit_iterator(self.target_branch, self.options.commit_search_depth):
            for path in paths:
                if path not in cutoffs and boundaries[path] == commit.sha:
                    cutoffs[path] = len(collected)
            if len(cutoffs) == len(paths):
                break
            collected.append(commit)
        info(f"found {len(collected)} commits since the last releases")

        split = split_commits(collected, paths)
        result: dict[str, list[Commit]] = {}
        for path in paths:
            allowed = {c.sha for c in collected[: cutoffs.get(path, len(collected))]}
            result[path] = [c for c in split[path] if c.sha in allowed]
        return result

    def _conventional_commits(self, commits_by_path: dict[str, list[Commit]]) -> dict[str, list[ConventionalCommit]]:
        parsed: dict[str, list[ConventionalCommit]] = {}
        for path, commits in commits_by_path.items():
            conventional = parse_conventional_commits(commits)
            for plugin in self.plugins:
                conventional = plugin.process_commits(conventional)
            parsed[path] = conventional
        return parsed

    # -- pull requests -----------------------------------------------------

    def build_pull_requests(self) -> list[ReleasePullRequest]:
        """Compute the release pull requests that should exist."""
        step("Finding latest releases")
        latest_releases = self.find_latest_releases()

        step("Collecting commits")
        commits_by_path = self._conventional_commits(self.collect_commits(latest_releases))

        configs = dict(self.repository_config)
        released_versions = {path: release.version for path, release in latest_releases.items()}
        for plugin in self.plugins:
            configs, released_versions = plugin.preconfigure(configs, released_versions, commits_by_path)

        step("Building release pull requests")
        labels = [] if self.options.skip_labeling else self.options.labels
        candidates: list[CandidateReleasePullRequest] = []
        for path, config in configs.items():
            strategy = self._build_strategy(path, config)
            latest = latest_releases.get(path)
            if latest is not None and latest.version != released_versions.get(path, latest.version):
                latest = latest.model_copy(
                    update={"tag": latest.tag.model_copy(update={"version": released_versions[path]})}
                )
            pull_request = strategy.build_release_pull_request(
                commits_by_path.get(path, []),
                latest,
                draft=self.options.draft_pull_request,
                labels=labels,
            )
            if pull_request is None:
                continue
            if pull_request.group != SNAPSHOT_GROUP and pull_request.version is not None:
                manifest_update = Update(
                    path=self.manifest_file,
                    create_if_missing=True,
                    updater=ReleaseManifest({path: pull_request.version}),
                )
                pull_request = pull_request.model_copy(
                    update={"updates": merge_updates([*pull_request.updates, manifest_update])}
                )
            candidates.append(CandidateReleasePullRequest(path=path, pull_request=pull_request, config=config))

        for plugin in self.plugins:
            candidates = plugin.run(candidates)

        if not self.separate_pull_requests:
            mergeable = [
                c for c in candidates if not c.config.separate_pull_requests and c.pull_request.group is None
            ]
            if mergeable:
                rest = [c for c in candidates if c not in mergeable]
                merged = Merge(
                    self.github,
                    self.target_branch,
                    self.repository_config,
                    self.manifest_file,
                    pull_request_title_pattern=self.options.group_pull_request_title_pattern,
                ).run(mergeable)
                candidates = merged + rest
        return [c.pull_request for c in candidates]

    def build_changes(self, pull_request: ReleasePullRequest) -> dict[str, str]:
        """Apply a pull request's updaters to the files on the target branch."""
        changes: dict[str, str] = {}
        for update in pull_request.updates:
            try:
                content: str | None = self.github.get_file_contents(update.path, self.target_branch)
            except FileNotFoundError:
                if not update.create_if_missing:
                    info(f"{update.path} does not exist, skipping")
                    continue
                content = None
            try:
                changes[update.path] = update.updater.update_content(content)
            except FileNotFoundError:
                info(f"{update.path} cannot be created, skipping")
        return changes

    def _is_release_pull_request(self, pull_request: PullRequest, labels: list[str]) -> bool:
        if BranchName.parse(pull_request.head_branch_name) is None:
            return False
        return self.options.skip_labeling or any(label in pull_request.labels for label in labels)

    def _unchanged(self, existing: PullRequest, pull_request: ReleasePullRequest) -> bool:
        return existing.title == pull_request.title and self.overflow.parse_overflow(existing) == pull_request.body

    def create_pull_requests(self) -> list[PullRequest]:
        """Create, update or reopen release pull requests.

        Every pull request is attempted. Failures are raised together once
        all were tried.

        Returns:
            The pull requests that were created or changed.

        Raises:
            AggregateError: If any pull request could not be written.
        """
        if not self.options.skip_labeling:
            for merged in self.github.pull_request_iterator(
                self.target_branch, "MERGED", max_results=self.options.release_search_depth
            ):
                if self._is_release_pull_request(merged, self.options.labels):
                    warn(
                        f"pull request #{merged.number} was merged but not released yet, "
                        "run github-release before opening new release pull requests"
                    )
                    return []

        pull_requests = self.build_pull_requests()
        if not pull_requests:
            info("nothing to release")
            return []

        step("Writing release pull requests")
        tracked = [*self.options.labels, *self.options.snapshot_labels]
        open_by_branch = {
            pr.head_branch_name: pr
            for pr in self.github.pull_request_iterator(self.target_branch, "OPEN")
            if self._is_release_pull_request(pr, tracked)
        }
        snoozed_by_branch = {
            pr.head_branch_name: pr
            for pr in self.github.pull_request_iterator(
                self.target_branch, "CLOSED", max_results=self.options.release_search_depth
            )
            if SNOOZE_LABEL in pr.labels
        }

        written: list[PullRequest] = []
        errors: list[Exception] = []
        for pull_request in pull_requests:
            try:
                result = self._write_pull_request(pull_request, open_by_branch, snoozed_by_branch)
            except GitHubAPIError as e:
                warn(f"failed to write {pull_request.head_ref_name}: {e}")
                errors.append(e)
                continue
            if result is not None:
                written.append(result)
        if errors:
            raise AggregateError(errors)
        return written

    def _write_pull_request(
        self,
        pull_request: ReleasePullRequest,
        open_by_branch: dict[str, PullRequest],
        snoozed_by_branch: dict[str, PullRequest],
    ) -> PullRequest | None:
        if self.options.skip_labeling:
            pull_request = pull_request.model_copy(update={"labels": []})

        existing = open_by_branch.get(pull_request.head_ref_name)
        if existing is not None:
            if self._unchanged(existing, pull_request):
                info(f"#{existing.number} is up to date")
                return None
            info(f"updating #{existing.number} {pull_request.title}")
            body = self.overflow.handle_overflow(pull_request, self.target_branch)
            return self.github.update_pull_request(
                existing.number, pull_request, self.target_branch, body, self.build_changes(pull_request)
            )

        snoozed = snoozed_by_branch.get(pull_request.head_ref_name)
        if snoozed is not None:
            if self._unchanged(snoozed, pull_request):
                info(f"#{snoozed.number} is snoozed and unchanged")
                return None
            info(f"reopening snoozed #{snoozed.number} {pull_request.title}")
            body = self.overflow.handle_overflow(pull_request, self.target_branch)
            updated = self.github.update_pull_request(
                snoozed.number, pull_request, self.target_branch, body, self.build_changes(pull_request)
            )
            self.github.remove_issue_labels([SNOOZE_LABEL], snoozed.number)
            return updated

        info(f"opening {pull_request.title}")
        body = self.overflow.handle_overflow(pull_request, self.target_branch)
        return self.github.create_pull_request(
            pull_request, self.target_branch, body, self.build_changes(pull_request)
        )

    # -- releases ----------------------------------------------------------

    def _candidate_paths(self, branch: BranchName, data_components: list[str | None]) -> list[str]:
        strategies = self.strategies()
        if data_components == [None]:
            if ROOT_PROJECT_PATH in strategies:
                return [ROOT_PROJECT_PATH]
            return list(strategies) if len(strategies) == 1 else []
        if branch.component:
            matching = [p for p, s in strategies.items() if s.get_branch_component() == branch.component]
            # Grouped branches (linked versions) name the group, not a component
            if matching:
                return matching
        return list(strategies)

    def releases_by_pull_request(self) -> list[tuple[PullRequest, list[Release]]]:
        """Merged pending release pull requests with the releases each implies."""
        result: list[tuple[PullRequest, list[Release]]] = []
        for merged in self.github.pull_request_iterator(
            self.target_branch, "MERGED", max_results=self.options.release_search_depth
        ):
            if not self._is_release_pull_request(merged, self.options.labels):
                continue
            if any(label in merged.labels for label in self.options.snapshot_labels):
                continue
            branch = BranchName.parse(merged.head_branch_name)
            body = self.overflow.parse_overflow(merged)
            if branch is None or body is None:
                warn(f"#{merged.number} does not look like a release pull request, skipping")
                continue
            paths = self._candidate_paths(branch, [d.component for d in body.release_data])
            if not paths:
                warn(f"#{merged.number} has notes without a component and no root package, skipping")
                continue
            releases: list[Release] = []
            for path in paths:
                release = self.strategies()[path].build_release(merged, body)
                if release is not None:
                    releases.append(release)
            result.append((merged, releases))
        return result

    def build_releases(self) -> list[Release]:
        """Releases implied by merged release pull requests."""
        return [release for _, releases in self.releases_by_pull_request() for release in releases]

    def create_releases(self) -> list[CreatedRelease]:
        """Tag and publish every pending release, then relabel its pull request.

        Releases are attempted independently. A pull request is relabeled
        from pending to tagged unless one of its releases failed for a reason
        other than already existing. Failed comments and relabels are
        collected as well and never stop the remaining releases.

        Raises:
            AggregateError: If any release, comment or relabel failed for a
                reason other than the release already existing.
            DuplicateReleaseError: If every attempted release already existed.
        """
        step("Creating releases")
        created: list[CreatedRelease] = []
        errors: list[Exception] = []
        duplicates: list[DuplicateReleaseError] = []
        attempted = 0
        for pull_request, releases in self.releases_by_pull_request():
            failed = False
            for release in releases:
                attempted += 1
                try:
                    result = self.github.create_release(release, draft=release.draft, prerelease=release.prerelease)
                except DuplicateReleaseError as e:
                    warn(f"{release.tag} already exists, skipping")
                    duplicates.append(e)
                    continue
                except GitHubAPIError as e:
                    warn(f"failed to release {release.tag}: {e}")
                    errors.append(e)
                    failed = True
                    continue
                info(f"released {result.tag_name} {result.url}")
                created.append(result)
                try:
                    self.github.comment_on_issue(
                        f":robot: Release is at {result.url} :sunflower:", pull_request.number
                    )
                except GitHubAPIError as e:
                    # The release exists, so the pull request is still relabeled
                    warn(f"failed to comment on #{pull_request.number}: {e}")
                    errors.append(e)
            if not failed and not self.options.skip_labeling:
                try:
                    self.github.remove_issue_labels(self.options.labels, pull_request.number)
                    self.github.add_issue_labels(self.options.release_labels, pull_request.number)
                except GitHubAPIError as e:
                    warn(f"failed to relabel #{pull_request.number}: {e}")
                    errors.append(e)

        if errors:
            raise AggregateError(errors)
        if duplicates and len(duplicates) == attempted:
            raise duplicates[0]
        return created
