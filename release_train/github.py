"""GitHub access through the ``gh`` CLI.

Every remote read and write the pipeline performs goes through the GitHub
class below. Calls are retried on transient failures (HTTP 5xx and 429,
timeouts, dropped connections) with exponential backoff. Listings are
exposed as Paginator cursors bounded by a maximum result count, so callers
that stop early never fetch pages they do not need.
"""

from __future__ import annotations

import base64
import json
import re
import subprocess
from collections.abc import Callable, Iterator
from time import sleep
from typing import Any, Generic, Literal, TypeVar
from urllib.parse import quote

from pydantic import BaseModel

from .commits import Commit
from .errors import DuplicateReleaseError, GitHubAPIError
from .models import CreatedRelease, PullRequest, Release, ReleasePullRequest
from .shell import gh_api, warn

T = TypeVar("T")

PullRequestState = Literal["OPEN", "MERGED", "CLOSED"]

DEFAULT_RETRIES = 5
DEFAULT_BACKOFF_SECONDS = 1.0
PER_PAGE = 100

_STATUS_RE = re.compile(r"HTTP (\d{3})")
_SQUASH_PR_RE = re.compile(r"\(#(\d+)\)\s*$")
_NETWORK_MARKERS = (
    "timed out",
    "timeout",
    "connection reset",
    "connection refused",
    "temporarily unavailable",
    "network is unreachable",
    "tls handshake",
)


class Tag(BaseModel):
    name: str
    sha: str


class GitHubRelease(BaseModel):
    """A release as listed by the releases API."""

    id: int
    tag_name: str
    name: str | None = None
    notes: str = ""
    url: str = ""
    draft: bool = False
    prerelease: bool = False


class Paginator(Generic[T]):
    """A cursor over a paginated listing.

    Args:
        fetch_page: Called with a 1-based page number. Returns the items of
            that page and whether more pages follow.
        max_results: Stop after yielding this many items.

    Example:
        pages = Paginator(fetch, max_results=250)
        while pages.has_more:
            batch = pages.next()
    """

    def __init__(
        self,
        fetch_page: Callable[[int], tuple[list[T], bool]],
        *,
        max_results: int | None = None,
    ):
        self._fetch_page = fetch_page
        self._max_results = max_results
        self._page = 0
        self._yielded = 0
        self._exhausted = False

    @property
    def has_more(self) -> bool:
        if self._exhausted:
            return False
        return self._max_results is None or self._yielded < self._max_results

    def next(self) -> list[T]:
        """Fetch the next batch. Returns an empty list once exhausted."""
        if not self.has_more:
            return []
        self._page += 1
        items, more = self._fetch_page(self._page)
        if self._max_results is not None:
            items = items[: self._max_results - self._yielded]
        self._yielded += len(items)
        if not more:
            self._exhausted = True
        return items

    def __iter__(self) -> Iterator[T]:
        while self.has_more:
            yield from self.next()


def _glob_to_regex(pattern: str) -> re.Pattern[str]:
    out = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append(r"(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(r".*")
            i += 2
        elif pattern[i] == "*":
            out.append(r"[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append(r"[^/]")
            i += 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return re.compile("^" + "".join(out) + "$")


class GitHub:
    """A GitHub repository accessed through ``gh api``.

    Args:
        repository: "owner/name".
        runner: Executes one ``gh api`` call. Defaults to shell.gh_api.
        retries: Attempts per call before a transient error is surfaced.
        backoff: Delay before the first retry, doubled for each further one.
    """

    def __init__(
        self,
        repository: str,
        *,
        runner: Callable[..., subprocess.CompletedProcess[str]] = gh_api,
        retries: int = DEFAULT_RETRIES,
        backoff: float = DEFAULT_BACKOFF_SECONDS,
    ):
        if repository.count("/") != 1:
            raise ValueError(f"repository must look like owner/name, got {repository!r}")
        self.repository = repository
        self.owner, self.name = repository.split("/")
        self._runner = runner
        self._retries = max(1, retries)
        self._backoff = backoff
        self._trees: dict[str, list[str]] = {}

    # -- transport ---------------------------------------------------------

    def _call(self, endpoint: str, method: str, payload: Any | None) -> Any:
        body = json.dumps(payload) if payload is not None else None
        try:
            result = self._runner(endpoint, method=method, payload=body)
        except subprocess.TimeoutExpired as e:
            raise GitHubAPIError(f"{method} {endpoint} timed out", network=True) from e
        if result.returncode != 0:
            text = f"{result.stderr}\n{result.stdout}"
            status = _STATUS_RE.search(text)
            network = status is None and any(m in text.lower() for m in _NETWORK_MARKERS)
            raise GitHubAPIError(
                f"{method} {endpoint} failed: {text.strip()}",
                status=int(status.group(1)) if status else None,
                network=network,
            )
        return json.loads(result.stdout) if result.stdout.strip() else None

    def request(self, endpoint: str, *, method: str = "GET", payload: Any | None = None) -> Any:
        """Perform one API call, retrying transient failures with backoff.

        Raises:
            GitHubAPIError: The call failed for good. For transient failures,
                this is the last error after the retry budget was spent.
        """
        for attempt in range(self._retries):
            try:
                return self._call(endpoint, method, payload)
            except GitHubAPIError as e:
                if not e.transient or attempt == self._retries - 1:
                    raise
                delay = self._backoff * 2**attempt
                warn(f"{e} (retrying in {delay:g}s)")
                sleep(delay)
        raise AssertionError("unreachable")

    def _repo(self, path: str) -> str:
        return f"repos/{self.repository}/{path}"

    # -- files -------------------------------------------------------------

    def get_file_contents(self, path: str, ref: str) -> str:
        """Read a file at a branch or sha.

        Raises:
            FileNotFoundError: If the file does not exist at ``ref``.
        """
        try:
            data = self.request(self._repo(f"contents/{quote(path)}?ref={quote(ref, safe='')}"))
        except GitHubAPIError as e:
            if e.status == 404:
                raise FileNotFoundError(path) from e
            raise
        if not isinstance(data, dict) or data.get("type") != "file":
            raise FileNotFoundError(path)
        return base64.b64decode(data.get("content", "")).decode("utf-8")

    def _tree(self, ref: str) -> list[str]:
        if ref not in self._trees:
            data = self.request(self._repo(f"git/trees/{quote(ref, safe='')}?recursive=1"))
            self._trees[ref] = [e["path"] for e in data.get("tree", []) if e.get("type") == "blob"]
        return self._trees[ref]

    def find_files_by_glob(self, pattern: str, ref: str, prefix: str | None = None) -> list[str]:
        """Paths matching a glob, relative to ``prefix`` when one is given."""
        regex = _glob_to_regex(pattern)
        base = f"{prefix.strip('/')}/" if prefix else ""
        return [p[len(base):] for p in self._tree(ref) if p.startswith(base) and regex.match(p[len(base):])]

    def find_files_by_filename(self, filename: str, ref: str, prefix: str | None = None) -> list[str]:
        return self.find_files_by_glob(f"**/{filename}", ref, prefix)

    # -- listings ----------------------------------------------------------

    def commit_iterator(self, branch: str, max_results: int | None = None) -> Paginator[Commit]:
        """Commits on ``branch``, newest first, with their touched files."""

        def fetch(page: int) -> tuple[list[Commit], bool]:
            data = self.request(
                self._repo(f"commits?sha={quote(branch, safe='')}&per_page={PER_PAGE}&page={page}")
            )
            return [self._commit(item) for item in data], len(data) == PER_PAGE

        return Paginator(fetch, max_results=max_results)

    def _commit(self, item: dict[str, Any]) -> Commit:
        sha = item["sha"]
        message = item["commit"]["message"]
        detail = self.request(self._repo(f"commits/{sha}"))
        files = [f["filename"] for f in detail.get("files", [])]
        pull_request = None
        squash = _SQUASH_PR_RE.search(message.split("\n", 1)[0])
        if squash:
            pull_request = self._pull_request(self.request(self._repo(f"pulls/{squash.group(1)}")))
        return Commit(sha=sha, message=message, files=files, pull_request=pull_request)

    @staticmethod
    def _pull_request(item: dict[str, Any]) -> PullRequest:
        return PullRequest(
            number=item["number"],
            title=item["title"],
            body=item.get("body") or "",
            head_branch_name=item["head"]["ref"],
            base_branch_name=item["base"]["ref"],
            labels=[label["name"] for label in item.get("labels", [])],
            sha=item.get("merge_commit_sha"),
        )

    def pull_request_iterator(
        self,
        branch: str,
        state: PullRequestState = "MERGED",
        max_results: int | None = None,
    ) -> Paginator[PullRequest]:
        """Pull requests targeting ``branch``, most recently updated first."""
        api_state = "open" if state == "OPEN" else "closed"

        def fetch(page: int) -> tuple[list[PullRequest], bool]:
            data = self.request(
                self._repo(
                    f"pulls?state={api_state}&base={quote(branch, safe='')}"
                    f"&sort=updated&direction=desc&per_page={PER_PAGE}&page={page}"
                )
            )
            items = data
            if state == "MERGED":
                items = [i for i in data if i.get("merged_at")]
            elif state == "CLOSED":
                items = [i for i in data if not i.get("merged_at")]
            return [self._pull_request(i) for i in items], len(data) == PER_PAGE

        return Paginator(fetch, max_results=max_results)

    def tag_iterator(self, max_results: int | None = None) -> Paginator[Tag]:
        def fetch(page: int) -> tuple[list[Tag], bool]:
            data = self.request(self._repo(f"tags?per_page={PER_PAGE}&page={page}"))
            return [Tag(name=t["name"], sha=t["commit"]["sha"]) for t in data], len(data) == PER_PAGE

        return Paginator(fetch, max_results=max_results)

    def release_iterator(self, max_results: int | None = None) -> Paginator[GitHubRelease]:
        def fetch(page: int) -> tuple[list[GitHubRelease], bool]:
            data = self.request(self._repo(f"releases?per_page={PER_PAGE}&page={page}"))
            releases = [
                GitHubRelease(
                    id=r["id"],
                    tag_name=r["tag_name"],
                    name=r.get("name"),
                    notes=r.get("body") or "",
                    url=r.get("html_url", ""),
                    draft=r.get("draft", False),
                    prerelease=r.get("prerelease", False),
                )
                for r in data
            ]
            return releases, len(data) == PER_PAGE

        return Paginator(fetch, max_results=max_results)

    # -- mutations ---------------------------------------------------------

    def _commit_changes(self, branch: str, base_branch: str, changes: dict[str, str], message: str) -> str:
        """Point ``branch`` at a single new commit on top of ``base_branch``."""
        base_sha = self.request(self._repo(f"git/ref/heads/{quote(base_branch, safe='')}"))["object"]["sha"]
        tree = self.request(
            self._repo("git/trees"),
            method="POST",
            payload={
                "base_tree": base_sha,
                "tree": [
                    {"path": path, "mode": "100644", "type": "blob", "content": content}
                    for path, content in changes.items()
                ],
            },
        )
        commit = self.request(
            self._repo("git/commits"),
            method="POST",
            payload={"message": message, "tree": tree["sha"], "parents": [base_sha]},
        )
        try:
            self.request(
                self._repo(f"git/refs/heads/{quote(branch, safe='')}"),
                method="PATCH",
                payload={"sha": commit["sha"], "force": True},
            )
        except GitHubAPIError as e:
            if e.status not in (404, 422):
                raise
            self.request(
                self._repo("git/refs"),
                method="POST",
                payload={"ref": f"refs/heads/{branch}", "sha": commit["sha"]},
            )
        return commit["sha"]

    def create_pull_request(
        self,
        pull_request: ReleasePullRequest,
        target_branch: str,
        body: str,
        changes: dict[str, str],
    ) -> PullRequest:
        self._commit_changes(pull_request.head_ref_name, target_branch, changes, pull_request.title)
        data = self.request(
            self._repo("pulls"),
            method="POST",
            payload={
                "title": pull_request.title,
                "body": body,
                "head": pull_request.head_ref_name,
                "base": target_branch,
                "draft": pull_request.draft,
            },
        )
        created = self._pull_request(data)
        if pull_request.labels:
            self.add_issue_labels(pull_request.labels, created.number)
        return created.model_copy(update={"labels": list(pull_request.labels)})

    def update_pull_request(
        self,
        number: int,
        pull_request: ReleasePullRequest,
        target_branch: str,
        body: str,
        changes: dict[str, str],
    ) -> PullRequest:
        self._commit_changes(pull_request.head_ref_name, target_branch, changes, pull_request.title)
        data = self.request(
            self._repo(f"pulls/{number}"),
            method="PATCH",
            payload={"title": pull_request.title, "body": body, "state": "open"},
        )
        return self._pull_request(data)

    def create_file_on_new_branch(self, path: str, content: str, new_branch: str, base_branch: str) -> str:
        """Commit one file to ``new_branch`` and return its blob URL."""
        self._commit_changes(new_branch, base_branch, {path: content}, f"chore: add {path}")
        return f"https://github.com/{self.repository}/blob/{new_branch}/{path}"

    def create_release(self, release: Release, *, draft: bool = False, prerelease: bool = False) -> CreatedRelease:
        """Create a tag and release at the release's sha.

        Raises:
            DuplicateReleaseError: A release with this tag already exists.
        """
        tag = str(release.tag)
        try:
            data = self.request(
                self._repo("releases"),
                method="POST",
                payload={
                    "tag_name": tag,
                    "target_commitish": release.sha,
                    "name": release.name or tag,
                    "body": release.notes,
                    "draft": draft,
                    "prerelease": prerelease,
                },
            )
        except GitHubAPIError as e:
            if e.status == 422 and "already_exists" in str(e):
                raise DuplicateReleaseError(tag) from e
            raise
        return CreatedRelease(
            id=data["id"],
            tag_name=data["tag_name"],
            sha=release.sha,
            notes=data.get("body") or "",
            url=data.get("html_url", ""),
            name=data.get("name"),
            path=release.path,
            version=str(release.version),
            draft=data.get("draft", draft),
            prerelease=data.get("prerelease", prerelease),
        )

    def add_issue_labels(self, labels: list[str], number: int) -> None:
        if labels:
            self.request(self._repo(f"issues/{number}/labels"), method="POST", payload={"labels": labels})

    def remove_issue_labels(self, labels: list[str], number: int) -> None:
        for label in labels:
            try:
                self.request(self._repo(f"issues/{number}/labels/{quote(label, safe='')}"), method="DELETE")
            except GitHubAPIError as e:
                # Already absent
                if e.status != 404:
                    raise

    def comment_on_issue(self, comment: str, number: int) -> None:
        self.request(self._repo(f"issues/{number}/comments"), method="POST", payload={"body": comment})
