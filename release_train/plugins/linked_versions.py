"""Release a group of components together, always at the same version."""

from __future__ import annotations

from typing import Any

from ..commits import ConventionalCommit
from ..models import CandidateReleasePullRequest, ReleaserConfig
from ..naming import BranchName
from ..shell import info, warn
from ..versions import Version
from .base import ManifestPlugin, PluginOptions
from .merge import Merge

LINKED_TITLE_PATTERN = "chore${scope}: release {group} libraries"


class LinkedVersionsOptions(PluginOptions):
    type: str = "linked-versions"
    group_name: str
    components: list[str]
    merge: bool = True


class LinkedVersions(ManifestPlugin):
    """Forces every component of a group to the group's highest next version.

    Each member's next version is computed from its own commits. The largest
    one is written into every member's ``release_as``, so members without
    changes of their own are released too.

    Args:
        group_name: Name used in the merged pull request's title and branch.
        components: Components that belong to the group.
        merge: Combine the group's candidates into one pull request.
    """

    def __init__(
        self,
        github: Any,
        target_branch: str,
        repository_config: dict[str, ReleaserConfig],
        manifest_path: str,
        *,
        group_name: str,
        components: list[str],
        merge: bool = True,
        factories: dict[str, Any] | None = None,
        versioning_factories: dict[str, Any] | None = None,
    ):
        super().__init__(github, target_branch, repository_config, manifest_path)
        self.group_name = group_name
        self.components = set(components)
        self.merge = merge
        self.factories = factories
        self.versioning_factories = versioning_factories
        self.member_paths: set[str] = set()

    def preconfigure(
        self,
        configs: dict[str, ReleaserConfig],
        released_versions: dict[str, Version],
        commits_by_path: dict[str, list[ConventionalCommit]],
    ) -> tuple[dict[str, ReleaserConfig], dict[str, Version]]:
        # factory imports this module
        from ..factory import build_strategy

        next_versions: dict[str, Version | None] = {}
        for path, config in configs.items():
            strategy = build_strategy(
                self.github,
                self.target_branch,
                path,
                config,
                factories=self.factories,
                versioning_factories=self.versioning_factories,
            )
            if strategy.get_component() not in self.components:
                continue
            self.member_paths.add(path)
            commits = strategy.filter_commits(commits_by_path.get(path, []))
            releasable = [c for c in commits if strategy.versioning_strategy.is_releasable(c) or c.release_as]
            current = released_versions.get(path)
            if releasable or config.release_as:
                next_versions[path] = strategy.next_version(commits, current)
            else:
                next_versions[path] = None

        proposed = [v for v in next_versions.values() if v is not None]
        if not proposed:
            return configs, released_versions
        group_version = max(proposed)
        info(f"{self.group_name}: linking {len(self.member_paths)} components at {group_version}")

        updated = dict(configs)
        for path in sorted(self.member_paths):
            current = released_versions.get(path)
            if current is not None and current >= group_version:
                warn(f"{path}: already at {current}, not moving to linked version {group_version}")
                continue
            updated[path] = configs[path].model_copy(update={"release_as": str(group_version)})
        return updated, released_versions

    def run(self, candidates: list[CandidateReleasePullRequest]) -> list[CandidateReleasePullRequest]:
        if not self.merge:
            return candidates
        group = [c for c in candidates if c.path in self.member_paths]
        if not group:
            return candidates
        others = [c for c in candidates if c.path not in self.member_paths]
        merged = Merge(
            self.github,
            self.target_branch,
            self.repository_config,
            self.manifest_path,
            pull_request_title_pattern=LINKED_TITLE_PATTERN.replace("{group}", self.group_name),
            head_branch_name=str(BranchName.of_component_target_branch(self.group_name, self.target_branch)),
        ).run(group)
        # The group's pull request stays separate from the repository-wide merge
        linked = [
            c.model_copy(update={"pull_request": c.pull_request.model_copy(update={"group": self.group_name})})
            for c in merged
        ]
        return others + linked
