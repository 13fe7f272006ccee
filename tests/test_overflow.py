"""Tests for release_train.overflow."""

from __future__ import annotations

from conftest import FakeGitHub

from release_train.body import PullRequestBody, ReleaseData
from release_train.models import PullRequest, ReleasePullRequest
from release_train.overflow import (
    OVERFLOW_MESSAGE,
    RELEASE_NOTES_FILENAME,
    FilePullRequestOverflowHandler,
)
from release_train.versions import Version

HEAD = "release-train--branches--main"


def release_pull_request(notes: str) -> ReleasePullRequest:
    body = PullRequestBody([ReleaseData(component="core", version=Version(1, 0, 0), notes=notes)])
    return ReleasePullRequest(title="chore(main): release core 1.0.0", body=body, head_ref_name=HEAD)


class TestHandleOverflow:
    def test_small_body_is_kept(self, github: FakeGitHub) -> None:
        pull_request = release_pull_request("## 1.0.0\n\n* fix")
        handler = FilePullRequestOverflowHandler(github, max_body_size=10_000)

        assert handler.handle_overflow(pull_request, "main") == str(pull_request.body)
        assert list(github.branches) == ["main"]

    def test_body_at_limit_is_kept(self, github: FakeGitHub) -> None:
        pull_request = release_pull_request("## 1.0.0\n\n* fix")
        handler = FilePullRequestOverflowHandler(github, max_body_size=len(str(pull_request.body)))

        assert handler.handle_overflow(pull_request, "main") == str(pull_request.body)

    def test_large_body_moves_to_file(self, github: FakeGitHub) -> None:
        """Past the limit, notes go to a side branch and the body links to them."""
        pull_request = release_pull_request("## 1.0.0\n\n" + "* change\n" * 50)
        handler = FilePullRequestOverflowHandler(github, max_body_size=200)

        body = handler.handle_overflow(pull_request, "main")

        branch = f"{HEAD}--release-notes"
        assert github.branches[branch][RELEASE_NOTES_FILENAME] == str(pull_request.body)
        assert OVERFLOW_MESSAGE in body
        assert f"/blob/{branch}/{RELEASE_NOTES_FILENAME}" in body
        assert len(body) < len(str(pull_request.body))


class TestParseOverflow:
    def test_follows_link(self, github: FakeGitHub) -> None:
        pull_request = release_pull_request("## 1.0.0\n\n" + "* change\n" * 50)
        handler = FilePullRequestOverflowHandler(github, max_body_size=200)
        body = handler.handle_overflow(pull_request, "main")
        merged = PullRequest(number=1, title="t", body=body, head_branch_name=HEAD, base_branch_name="main")

        parsed = handler.parse_overflow(merged)

        assert parsed == pull_request.body

    def test_plain_body(self, github: FakeGitHub) -> None:
        pull_request = release_pull_request("## 1.0.0\n\n* fix")
        merged = PullRequest(
            number=1, title="t", body=str(pull_request.body), head_branch_name=HEAD, base_branch_name="main"
        )

        parsed = FilePullRequestOverflowHandler(github).parse_overflow(merged)

        assert parsed == pull_request.body
