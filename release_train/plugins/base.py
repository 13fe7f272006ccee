"""Manifest plugin hooks.

Plugins run in configured order around candidate construction:

1. ``preconfigure`` may rewrite per-path configs and released versions
   before strategies are built.
2. ``process_commits`` transforms each path's parsed commits before
   versions are computed. It must keep ``sha`` and ``files`` intact.
3. ``run`` transforms the list of candidate release pull requests.

Every hook defaults to a pass-through.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from ..commits import ConventionalCommit
from ..models import CandidateReleasePullRequest, ReleaserConfig, kebab
from ..versions import Version


class PluginOptions(BaseModel):
    """Options shared by every plugin entry in the config document."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True, alias_generator=kebab)

    type: str


class ManifestPlugin:
    """Base class for manifest plugins.

    Args:
        github: Hosting collaborator.
        target_branch: Branch releases are cut from.
        repository_config: Map of path → ReleaserConfig.
        manifest_path: Path of the released-versions manifest file.
    """

    def __init__(
        self,
        github: Any,
        target_branch: str,
        repository_config: dict[str, ReleaserConfig],
        manifest_path: str,
    ):
        self.github = github
        self.target_branch = target_branch
        self.repository_config = repository_config
        self.manifest_path = manifest_path

    def preconfigure(
        self,
        configs: dict[str, ReleaserConfig],
        released_versions: dict[str, Version],
        commits_by_path: dict[str, list[ConventionalCommit]],
    ) -> tuple[dict[str, ReleaserConfig], dict[str, Version]]:
        return configs, released_versions

    def process_commits(self, commits: list[ConventionalCommit]) -> list[ConventionalCommit]:
        return commits

    def run(self, candidates: list[CandidateReleasePullRequest]) -> list[CandidateReleasePullRequest]:
        return candidates
