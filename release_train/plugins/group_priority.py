"""Keep only the candidates of the most important pull request group."""

from __future__ import annotations

from typing import Any

from ..models import CandidateReleasePullRequest, ReleaserConfig
from ..shell import info
from .base import ManifestPlugin, PluginOptions


class GroupPriorityOptions(PluginOptions):
    type: str = "group-priority"
    groups: list[str]


class GroupPriority(ManifestPlugin):
    """Filters candidates by group, highest priority first.

    When candidates of a listed group exist, only that group's candidates are
    kept. Groups are checked in the listed order. With no match every
    candidate is kept.

    Example:
        groups=["snapshot"] holds back release pull requests while a
        snapshot pull request is pending.
    """

    def __init__(
        self,
        github: Any,
        target_branch: str,
        repository_config: dict[str, ReleaserConfig],
        manifest_path: str,
        *,
        groups: list[str],
    ):
        super().__init__(github, target_branch, repository_config, manifest_path)
        self.groups = list(groups)

    def run(self, candidates: list[CandidateReleasePullRequest]) -> list[CandidateReleasePullRequest]:
        for group in self.groups:
            selected = [c for c in candidates if c.pull_request.group == group]
            if selected:
                info(f"group {group!r} takes priority, keeping {len(selected)} of {len(candidates)} candidates")
                return selected
        return candidates
