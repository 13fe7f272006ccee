"""Combine several candidate release pull requests into one."""

from __future__ import annotations

from typing import Any

from ..body import PullRequestBody, ReleaseData
from ..models import ROOT_PROJECT_PATH, CandidateReleasePullRequest, ReleasePullRequest, ReleaserConfig
from ..naming import BranchName, PullRequestTitle
from ..updaters import Update, merge_updates
from .base import ManifestPlugin, PluginOptions


class MergeOptions(PluginOptions):
    type: str = "merge"
    pull_request_title_pattern: str | None = None
    pull_request_header: str | None = None
    pull_request_footer: str | None = None
    head_branch_name: str | None = None


class Merge(ManifestPlugin):
    """Merges all candidates into a single release pull request.

    Release notes are concatenated in input order, labels are unioned in
    first-seen order, updates to the same file become one composite update,
    and the result is a draft if any input was.

    Args:
        pull_request_title_pattern: Title pattern for the merged pull request.
        head_branch_name: Head branch. Defaults to the target branch scheme.
    """

    def __init__(
        self,
        github: Any,
        target_branch: str,
        repository_config: dict[str, ReleaserConfig],
        manifest_path: str,
        *,
        pull_request_title_pattern: str | None = None,
        pull_request_header: str | None = None,
        pull_request_footer: str | None = None,
        head_branch_name: str | None = None,
    ):
        super().__init__(github, target_branch, repository_config, manifest_path)
        self.pull_request_title_pattern = pull_request_title_pattern
        self.pull_request_header = pull_request_header
        self.pull_request_footer = pull_request_footer
        self.head_branch_name = head_branch_name

    def run(self, candidates: list[CandidateReleasePullRequest]) -> list[CandidateReleasePullRequest]:
        if not candidates:
            return candidates

        release_data: list[ReleaseData] = []
        updates: list[Update] = []
        labels: list[str] = []
        draft = False
        for candidate in candidates:
            pull_request = candidate.pull_request
            release_data.extend(pull_request.body.release_data)
            updates.extend(pull_request.updates)
            for label in pull_request.labels:
                if label not in labels:
                    labels.append(label)
            draft = draft or pull_request.draft

        root = self.repository_config.get(ROOT_PROJECT_PATH)
        config = root or ReleaserConfig(release_type="simple")
        title = PullRequestTitle.of_target_branch(self.target_branch, self.pull_request_title_pattern)
        body = PullRequestBody(
            release_data,
            header=self.pull_request_header or config.pull_request_header,
            footer=self.pull_request_footer or config.pull_request_footer,
            use_components=True,
        )
        merged = ReleasePullRequest(
            title=str(title),
            body=body,
            updates=merge_updates(updates),
            labels=labels,
            head_ref_name=self.head_branch_name or str(BranchName.of_target_branch(self.target_branch)),
            draft=draft,
        )
        return [CandidateReleasePullRequest(path=ROOT_PROJECT_PATH, pull_request=merged, config=config)]
