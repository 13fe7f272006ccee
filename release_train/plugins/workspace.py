"""Dependency propagation across workspace packages.

When a package in a workspace is released, every package that depends on
it (directly or transitively) must be released too so it pins the new
version. Packages reached this way that had no release of their own get a
synthetic patch release whose notes list the moved dependencies.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from ..body import PullRequestBody, ReleaseData
from ..errors import ConfigurationError
from ..graph import topo_sort, walk_dependents
from ..models import CandidateReleasePullRequest, ReleasePullRequest, ReleaserConfig, WorkspacePackage
from ..naming import BranchName, PullRequestTitle
from ..shell import info, warn
from ..updaters import Changelog, ReleaseManifest, Update, Updater, merge_updates
from ..versions import BumpType, Version, try_parse_version
from .base import ManifestPlugin, PluginOptions
from .merge import Merge


class WorkspaceOptions(PluginOptions):
    merge: bool = True
    update_all_packages: bool = False


def _normalize_path(path: str) -> str:
    path = path.strip().removeprefix("./").strip("/")
    return path or "."


def _join(path: str, file: str) -> str:
    return file if path == "." else f"{path}/{file}"


class WorkspacePlugin(ManifestPlugin, ABC):
    """Base for workspace plugins.

    Subclasses say where workspace members live, how to read a member's
    manifest, and how to rewrite it.

    Args:
        merge: Merge all in-scope candidates into one pull request.
        update_all_packages: Treat every member as changed.
    """

    release_types: tuple[str, ...] = ()
    manifest_file = ""

    def __init__(
        self,
        github: Any,
        target_branch: str,
        repository_config: dict[str, ReleaserConfig],
        manifest_path: str,
        *,
        merge: bool = True,
        update_all_packages: bool = False,
    ):
        super().__init__(github, target_branch, repository_config, manifest_path)
        self.merge = merge
        self.update_all_packages = update_all_packages

    @abstractmethod
    def member_paths(self) -> list[str]:
        """Directories of the workspace members."""

    @abstractmethod
    def parse_package(self, path: str, content: str) -> WorkspacePackage:
        """Read a member manifest. ``deps`` may list non-workspace names."""

    @abstractmethod
    def updater_for(
        self,
        package: WorkspacePackage,
        version: Version,
        dependency_versions: dict[str, Version],
    ) -> Updater:
        """An updater that sets the member's version and dependency pins."""

    def component_for(self, package: WorkspacePackage) -> str:
        config = self.repository_config.get(package.path)
        return (config.component if config else None) or package.name

    def configured_paths(self) -> list[str]:
        return [
            _normalize_path(path)
            for path, config in self.repository_config.items()
            if config.release_type in self.release_types
        ]

    def expand_members(self, patterns: list[str]) -> list[str]:
        """Resolve member globs to directories holding a manifest file."""
        paths: list[str] = []
        for pattern in patterns:
            pattern = _normalize_path(pattern)
            if any(ch in pattern for ch in "*?["):
                found = self.github.find_files_by_glob(_join(pattern, self.manifest_file), self.target_branch)
                matches = sorted(f.rsplit("/", 1)[0] for f in found if "/" in f)
            else:
                matches = [pattern]
            paths.extend(p for p in matches if p not in paths)
        return paths

    def load_packages(self) -> dict[str, WorkspacePackage]:
        packages: dict[str, WorkspacePackage] = {}
        for path in self.member_paths():
            file = _join(path, self.manifest_file)
            try:
                content = self.github.get_file_contents(file, self.target_branch)
            except FileNotFoundError:
                warn(f"workspace member {path} has no {self.manifest_file}, skipping")
                continue
            package = self.parse_package(path, content)
            packages[package.name] = package
        names = set(packages)
        return {
            name: pkg.model_copy(update={"deps": [d for d in pkg.deps if d in names and d != name]})
            for name, pkg in packages.items()
        }

    def current_version(self, package: WorkspacePackage) -> Version:
        if not package.version:
            raise ConfigurationError(f"workspace package {package.name} has no version", path=package.path)
        version = try_parse_version(package.version)
        if version is None:
            raise ConfigurationError(
                f"workspace package {package.name} has non-numeric version {package.version!r}",
                path=package.path,
            )
        return version

    def dependency_notes(self, packages: dict[str, WorkspacePackage], moved: dict[str, Version]) -> str:
        lines = ["### Dependencies", "", "* The following workspace dependencies were updated"]
        for name, version in moved.items():
            lines.append(f"  * {name} bumped from {packages[name].version} to {version}")
        return "\n".join(lines)

    def run(self, candidates: list[CandidateReleasePullRequest]) -> list[CandidateReleasePullRequest]:
        in_scope = [c for c in candidates if c.config.release_type in self.release_types]
        out_of_scope = [c for c in candidates if c.config.release_type not in self.release_types]
        if not in_scope and not self.update_all_packages:
            return candidates

        packages = self.load_packages()
        name_by_path = {pkg.path: name for name, pkg in packages.items()}
        existing: dict[str, CandidateReleasePullRequest] = {}
        untracked: list[CandidateReleasePullRequest] = []
        for candidate in in_scope:
            name = name_by_path.get(_normalize_path(candidate.path))
            if name is None or candidate.pull_request.version is None:
                untracked.append(candidate)
            else:
                existing[name] = candidate

        roots = sorted(packages) if self.update_all_packages else list(existing)
        affected = walk_dependents(packages, roots)
        try:
            order = topo_sort({name: packages[name] for name in affected})
        except RuntimeError as e:
            raise ConfigurationError(f"cannot order workspace releases: {e}", self.release_types[0]) from e

        new_versions: dict[str, Version] = {
            name: candidate.pull_request.version for name, candidate in existing.items()
        }
        labels = in_scope[0].pull_request.labels if in_scope else []
        updated: dict[str, CandidateReleasePullRequest] = {}
        for name in order:
            package = packages[name]
            moved = {dep: new_versions[dep] for dep in package.deps if dep in new_versions}
            if name in existing:
                updated[name] = self.update_candidate(existing[name], packages, package, moved)
                continue
            current = self.current_version(package)
            version = current.bump(BumpType.PATCH)
            new_versions[name] = version
            info(f"{name}: {current} → {version} (dependency update)")
            updated[name] = self.new_candidate(packages, package, version, moved, labels)

        results = untracked + [updated[name] for name in existing] + [
            updated[name] for name in order if name not in existing
        ]
        results = self.finalize(results)
        if self.merge and results:
            results = Merge(
                self.github, self.target_branch, self.repository_config, self.manifest_path
            ).run(results)
        return out_of_scope + results

    def finalize(self, candidates: list[CandidateReleasePullRequest]) -> list[CandidateReleasePullRequest]:
        """Adjust the in-scope candidates before they are merged."""
        return candidates

    def update_candidate(
        self,
        candidate: CandidateReleasePullRequest,
        packages: dict[str, WorkspacePackage],
        package: WorkspacePackage,
        moved: dict[str, Version],
    ) -> CandidateReleasePullRequest:
        if not moved:
            return candidate
        pull_request = candidate.pull_request
        version = pull_request.version
        notes = self.dependency_notes(packages, moved)
        release_data = [
            data.model_copy(update={"notes": f"{data.notes.rstrip()}\n\n{notes}"})
            for data in pull_request.body.release_data
        ]
        body = PullRequestBody(
            release_data,
            header=pull_request.body.header,
            footer=pull_request.body.footer,
            use_components=pull_request.body.use_components,
        )
        updates = pull_request.updates + [
            Update(path=_join(package.path, self.manifest_file), updater=self.updater_for(package, version, moved))
        ]
        return candidate.model_copy(
            update={
                "pull_request": pull_request.model_copy(update={"body": body, "updates": merge_updates(updates)})
            }
        )

    def new_candidate(
        self,
        packages: dict[str, WorkspacePackage],
        package: WorkspacePackage,
        version: Version,
        moved: dict[str, Version],
        labels: list[str],
    ) -> CandidateReleasePullRequest:
        config = self.repository_config.get(package.path) or ReleaserConfig(
            release_type=self.release_types[0], component=package.name
        )
        component = self.component_for(package)
        day = datetime.now(timezone.utc).date().isoformat()
        notes = f"## {version} ({day})\n\n{self.dependency_notes(packages, moved)}"
        updates = [
            Update(
                path=_join(package.path, self.manifest_file),
                updater=self.updater_for(package, version, moved),
            ),
            Update(path=self.manifest_path, create_if_missing=True, updater=ReleaseManifest({package.path: version})),
        ]
        if not config.skip_changelog:
            updates.append(
                Update(
                    path=_join(package.path, config.changelog_path),
                    create_if_missing=True,
                    updater=Changelog(notes),
                )
            )
        pull_request = ReleasePullRequest(
            title=str(
                PullRequestTitle.of_component_target_branch_version(
                    component, self.target_branch, version, config.pull_request_title_pattern
                )
            ),
            body=PullRequestBody([ReleaseData(component=component, version=version, notes=notes)]),
            updates=updates,
            labels=list(labels),
            head_ref_name=str(BranchName.of_component_target_branch(component, self.target_branch)),
            version=version,
        )
        return CandidateReleasePullRequest(path=package.path, pull_request=pull_request, config=config)
