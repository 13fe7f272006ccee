"""Release notes that do not fit in a pull request body.

GitHub caps pull request bodies. When the rendered body is too large it is
written to ``release-notes.md`` on a side branch, and the pull request gets
a short placeholder that links to it. Parsing a body follows the link back.
"""

from __future__ import annotations

import re

from .body import NOTES_DELIMITER, PullRequestBody
from .github import GitHub
from .models import PullRequest, ReleasePullRequest
from .shell import info

RELEASE_NOTES_FILENAME = "release-notes.md"
DEFAULT_MAX_BODY_SIZE = 65536
OVERFLOW_MESSAGE = (
    "This release is too large to preview in the pull request body. View the full release notes here:"
)

_OVERFLOW_RE = re.compile(re.escape(OVERFLOW_MESSAGE) + r" (?P<url>\S+)")
_BLOB_URL_RE = re.compile(r"/blob/(?P<branch>.+)/" + re.escape(RELEASE_NOTES_FILENAME) + "$")


def notes_branch_name(head_ref_name: str) -> str:
    return f"{head_ref_name}--release-notes"


class FilePullRequestOverflowHandler:
    """Moves oversized pull request bodies into a file on a side branch."""

    def __init__(self, github: GitHub, max_body_size: int = DEFAULT_MAX_BODY_SIZE):
        self.github = github
        self.max_body_size = max_body_size

    def handle_overflow(self, pull_request: ReleasePullRequest, base_branch: str) -> str:
        """Return the body text to send, writing the notes file when needed.

        Args:
            pull_request: The release pull request being created or updated.
            base_branch: Branch the notes branch is created from.
        """
        body = str(pull_request.body)
        if len(body) <= self.max_body_size:
            return body
        branch = notes_branch_name(pull_request.head_ref_name)
        info(f"body is {len(body)} characters, moving notes to {branch}")
        url = self.github.create_file_on_new_branch(RELEASE_NOTES_FILENAME, body, branch, base_branch)
        return (
            f"{pull_request.body.header}\n{NOTES_DELIMITER}\n\n"
            f"{OVERFLOW_MESSAGE} {url}\n\n{NOTES_DELIMITER}\n{pull_request.body.footer}"
        )

    def parse_overflow(self, pull_request: PullRequest) -> PullRequestBody | None:
        """Parse a pull request body, fetching overflowed notes if linked."""
        match = _OVERFLOW_RE.search(pull_request.body)
        if match:
            branch = _BLOB_URL_RE.search(match["url"])
            if branch:
                content = self.github.get_file_contents(RELEASE_NOTES_FILENAME, branch["branch"])
                return PullRequestBody.parse(content)
        return PullRequestBody.parse(pull_request.body)
