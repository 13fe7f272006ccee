"""Shared test fixtures."""

from __future__ import annotations

from typing import Any

import pytest
import tomlkit

from release_train.commits import Commit
from release_train.errors import DuplicateReleaseError
from release_train.github import GitHubRelease, Paginator, Tag, _glob_to_regex
from release_train.models import CreatedRelease, PullRequest, Release, ReleasePullRequest

PAGE_SIZE = 2


def _paginate(items: list[Any], max_results: int | None) -> Paginator[Any]:
    def fetch(page: int) -> tuple[list[Any], bool]:
        start = (page - 1) * PAGE_SIZE
        return items[start : start + PAGE_SIZE], start + PAGE_SIZE < len(items)

    return Paginator(fetch, max_results=max_results)


class FakeGitHub:
    """An in-memory stand-in for release_train.github.GitHub.

    Files live per branch, listings are served through real Paginators with
    a tiny page size, and every mutation is recorded for assertions.
    """

    def __init__(self, files: dict[str, str] | None = None, *, repository: str = "acme/widgets"):
        self.repository = repository
        self.owner, self.name = repository.split("/")
        self.branches: dict[str, dict[str, str]] = {"main": dict(files or {})}
        self.commits: list[Commit] = []
        self.open_pull_requests: list[PullRequest] = []
        self.merged_pull_requests: list[PullRequest] = []
        self.closed_pull_requests: list[PullRequest] = []
        self.releases: list[GitHubRelease] = []
        self.tags: list[Tag] = []
        self.release_failures: dict[str, Exception] = {}

        self.created_pull_requests: list[tuple[ReleasePullRequest, str, dict[str, str]]] = []
        self.updated_pull_requests: list[tuple[int, ReleasePullRequest, str, dict[str, str]]] = []
        self.created_releases: list[Release] = []
        self.labels_added: list[tuple[int, list[str]]] = []
        self.labels_removed: list[tuple[int, list[str]]] = []
        self.comments: list[tuple[int, str]] = []
        self._next_number = 100

    # -- reads -------------------------------------------------------------

    def get_file_contents(self, path: str, ref: str) -> str:
        try:
            return self.branches[ref][path]
        except KeyError:
            raise FileNotFoundError(path) from None

    def find_files_by_glob(self, pattern: str, ref: str, prefix: str | None = None) -> list[str]:
        regex = _glob_to_regex(pattern)
        return sorted(p for p in self.branches.get(ref, {}) if regex.match(p))

    def find_files_by_filename(self, filename: str, ref: str, prefix: str | None = None) -> list[str]:
        return self.find_files_by_glob(f"**/{filename}", ref, prefix)

    def commit_iterator(self, branch: str, max_results: int | None = None) -> Paginator[Commit]:
        return _paginate(self.commits, max_results)

    def pull_request_iterator(
        self, branch: str, state: str = "MERGED", max_results: int | None = None
    ) -> Paginator[PullRequest]:
        items = {
            "OPEN": self.open_pull_requests,
            "MERGED": self.merged_pull_requests,
            "CLOSED": self.closed_pull_requests,
        }[state]
        return _paginate(items, max_results)

    def tag_iterator(self, max_results: int | None = None) -> Paginator[Tag]:
        return _paginate(self.tags, max_results)

    def release_iterator(self, max_results: int | None = None) -> Paginator[GitHubRelease]:
        return _paginate(self.releases, max_results)

    # -- writes ------------------------------------------------------------

    def _number(self) -> int:
        self._next_number += 1
        return self._next_number

    def create_pull_request(
        self,
        pull_request: ReleasePullRequest,
        target_branch: str,
        body: str,
        changes: dict[str, str],
    ) -> PullRequest:
        self.created_pull_requests.append((pull_request, body, changes))
        created = PullRequest(
            number=self._number(),
            title=pull_request.title,
            body=body,
            head_branch_name=pull_request.head_ref_name,
            base_branch_name=target_branch,
            labels=list(pull_request.labels),
        )
        self.open_pull_requests.append(created)
        return created

    def update_pull_request(
        self,
        number: int,
        pull_request: ReleasePullRequest,
        target_branch: str,
        body: str,
        changes: dict[str, str],
    ) -> PullRequest:
        self.updated_pull_requests.append((number, pull_request, body, changes))
        return PullRequest(
            number=number,
            title=pull_request.title,
            body=body,
            head_branch_name=pull_request.head_ref_name,
            base_branch_name=target_branch,
        )

    def create_file_on_new_branch(self, path: str, content: str, new_branch: str, base_branch: str) -> str:
        self.branches[new_branch] = {**self.branches.get(base_branch, {}), path: content}
        return f"https://github.com/{self.repository}/blob/{new_branch}/{path}"

    def create_release(self, release: Release, *, draft: bool = False, prerelease: bool = False) -> CreatedRelease:
        tag = str(release.tag)
        if tag in self.release_failures:
            raise self.release_failures[tag]
        if any(r.tag_name == tag for r in self.releases):
            raise DuplicateReleaseError(tag)
        self.created_releases.append(release)
        number = len(self.releases) + 1
        url = f"https://github.com/{self.repository}/releases/tag/{tag}"
        self.releases.insert(0, GitHubRelease(id=number, tag_name=tag, name=release.name, notes=release.notes, url=url))
        self.tags.insert(0, Tag(name=tag, sha=release.sha))
        return CreatedRelease(
            id=number,
            tag_name=tag,
            sha=release.sha,
            notes=release.notes,
            url=url,
            name=release.name,
            path=release.path,
            version=str(release.version),
            draft=draft,
            prerelease=prerelease,
        )

    def add_issue_labels(self, labels: list[str], number: int) -> None:
        self.labels_added.append((number, list(labels)))

    def remove_issue_labels(self, labels: list[str], number: int) -> None:
        self.labels_removed.append((number, list(labels)))

    def comment_on_issue(self, comment: str, number: int) -> None:
        self.comments.append((number, comment))

    # -- setup helpers -----------------------------------------------------

    def add_commit(self, sha: str, message: str, files: list[str] | None = None) -> Commit:
        """Add a commit on top of the branch (commits iterate newest first)."""
        commit = Commit(sha=sha, message=message, files=list(files or []))
        self.commits.insert(0, commit)
        return commit

    def add_release(self, tag: str, sha: str) -> None:
        self.releases.insert(0, GitHubRelease(id=len(self.releases) + 1, tag_name=tag))
        self.tags.insert(0, Tag(name=tag, sha=sha))


@pytest.fixture
def github() -> FakeGitHub:
    """An empty in-memory repository."""
    return FakeGitHub()


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "my-package"
version = "2.0.0"
dependencies = ["click>=8.0", "pydantic>=2.0"]

[project.optional-dependencies]
dev = ["pytest>=8.0"]
docs = ["sphinx>=7.0"]

[dependency-groups]
test = ["hypothesis>=6.0"]

[tool.uv.workspace]
members = ["packages/*", "libs/*"]
"""
    return tomlkit.parse(content)


@pytest.fixture
def pyproject_content() -> str:
    """A pyproject.toml with internal deps in every location."""
    return """\
[project]
name = "test-package"
version = "1.0.0"
dependencies = [
    "requests>=2.0",
    "internal-dep>=1.0",
]

[project.optional-dependencies]
dev = ["pytest>=8.0", "another-internal>=0.5"]

[dependency-groups]
test = ["pytest>=8.0", "group-internal>=0.1"]
"""
