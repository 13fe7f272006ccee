"""Conventional commit parsing and per-path commit assignment.

Raw commits come from the hosting service. Parsing turns each message into
one or more ConventionalCommit objects: a commit can carry nested messages,
and a linked pull request can override its message entirely. Messages that
do not follow the ``type(scope)!: subject`` grammar are dropped.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from .models import ROOT_PROJECT_PATH, PullRequest

BREAKING_CHANGE_NOTE = "BREAKING CHANGE"
RELEASE_AS_NOTE = "RELEASE AS"

_HEADER_RE = re.compile(
    r"^(?P<type>[\w-]+)(?:\((?P<scope>[^()\r\n]*)\))?(?P<breaking>!)?: (?P<subject>.+)$"
)
_BREAKING_RE = re.compile(r"^BREAKING[ -]CHANGE: ?(?P<text>.*)$")
_RELEASE_AS_RE = re.compile(r"^Release-As: ?(?P<version>\S+)\s*$", re.IGNORECASE)
_REFERENCE_RE = re.compile(
    r"\b(?P<action>close[sd]?|fix(?:e[sd])?|resolve[sd]?|refs?)\b:? (?P<prefix>[\w\-./]*#)(?P<issue>\d+)",
    re.IGNORECASE,
)
_NESTED_RE = re.compile(r"^BEGIN_NESTED_COMMIT\n(?P<message>.*?)\nEND_NESTED_COMMIT$", re.MULTILINE | re.DOTALL)
_OVERRIDE_RE = re.compile(r"BEGIN_COMMIT_OVERRIDE\n(?P<message>.*?)\nEND_COMMIT_OVERRIDE", re.DOTALL)


class Commit(BaseModel):
    """A commit on the target branch, newest first when iterated."""

    sha: str
    message: str
    files: list[str] = Field(default_factory=list)
    pull_request: PullRequest | None = None


class CommitNote(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    text: str


class CommitReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: str
    prefix: str
    issue: str


class ConventionalCommit(BaseModel):
    """A commit message parsed according to the conventional commits grammar.

    ``breaking`` is true when the header carries ``!`` or a BREAKING CHANGE
    note is present.
    """

    model_config = ConfigDict(frozen=True)

    sha: str
    message: str
    files: list[str] = Field(default_factory=list)
    type: str
    scope: str | None = None
    bare_message: str
    breaking: bool = False
    notes: list[CommitNote] = Field(default_factory=list)
    references: list[CommitReference] = Field(default_factory=list)
    pull_request: PullRequest | None = None

    @property
    def release_as(self) -> str | None:
        for note in self.notes:
            if note.title == RELEASE_AS_NOTE:
                return note.text
        return None


def _split_messages(message: str) -> list[str]:
    """Split a commit message into its main message and any nested ones."""
    nested = [m["message"].strip() for m in _NESTED_RE.finditer(message)]
    main = _NESTED_RE.sub("", message).strip()
    return [main, *nested] if main else nested


def _parse_notes(lines: list[str]) -> list[CommitNote]:
    notes: list[CommitNote] = []
    index = 0
    while index < len(lines):
        line = lines[index]
        breaking = _BREAKING_RE.match(line)
        release_as = _RELEASE_AS_RE.match(line)
        if breaking:
            # The note continues until the next blank line
            text = [breaking["text"]]
            index += 1
            while index < len(lines) and lines[index].strip():
                text.append(lines[index])
                index += 1
            notes.append(CommitNote(title=BREAKING_CHANGE_NOTE, text="\n".join(text).strip()))
            continue
        if release_as:
            notes.append(CommitNote(title=RELEASE_AS_NOTE, text=release_as["version"]))
        index += 1
    return notes


def parse_message(sha: str, message: str, files: list[str] | None = None) -> ConventionalCommit | None:
    """Parse a single conventional commit message.

    Returns:
        The parsed commit, or None if the header is not conventional.

    Example:
        parse_message("abc", "fix(api)!: drop v1 endpoints")
        → type "fix", scope "api", breaking, with a BREAKING CHANGE note
          whose text is "drop v1 endpoints".
    """
    lines = message.strip().splitlines()
    if not lines:
        return None
    header = _HEADER_RE.match(lines[0].strip())
    if not header:
        return None

    body = lines[1:]
    notes = _parse_notes(body)
    if header["breaking"] and not any(n.title == BREAKING_CHANGE_NOTE for n in notes):
        notes.insert(0, CommitNote(title=BREAKING_CHANGE_NOTE, text=header["subject"].strip()))

    references = [
        CommitReference(action=m["action"], prefix=m["prefix"], issue=m["issue"])
        for m in _REFERENCE_RE.finditer("\n".join(body))
    ]
    return ConventionalCommit(
        sha=sha,
        message=message,
        files=list(files or []),
        type=header["type"].lower(),
        scope=header["scope"] or None,
        bare_message=header["subject"].strip(),
        breaking=any(n.title == BREAKING_CHANGE_NOTE for n in notes),
        notes=notes,
        references=references,
    )


def parse_conventional_commits(commits: Iterable[Commit]) -> list[ConventionalCommit]:
    """Parse raw commits, expanding overrides and nested messages.

    A ``BEGIN_COMMIT_OVERRIDE`` block in the linked pull request body replaces
    the commit message. Each nested message becomes its own entry that shares
    the commit's sha and files.
    """
    parsed: list[ConventionalCommit] = []
    for commit in commits:
        message = commit.message
        if commit.pull_request is not None:
            override = _OVERRIDE_RE.search(commit.pull_request.body or "")
            if override:
                message = override["message"].strip()
        for part in _split_messages(message):
            for paragraph in _override_paragraphs(part, overridden=message != commit.message):
                result = parse_message(commit.sha, paragraph, commit.files)
                if result is not None:
                    parsed.append(result.model_copy(update={"pull_request": commit.pull_request}))
    return parsed


def _override_paragraphs(message: str, *, overridden: bool) -> list[str]:
    # An override block may hold several messages separated by blank lines
    if not overridden:
        return [message]
    return [p.strip() for p in re.split(r"\n\s*\n", message) if p.strip()]


def _normalize(path: str) -> str:
    path = path.strip("/")
    return path or ROOT_PROJECT_PATH


def touches_path(files: Iterable[str], path: str, exclude_paths: Iterable[str] = ()) -> bool:
    """Whether any file lies under ``path`` and outside every excluded path."""
    path = _normalize(path)
    excluded = [_normalize(p) for p in exclude_paths]
    for file in files:
        if any(file.startswith(f"{ex}/") for ex in excluded):
            continue
        if path == ROOT_PROJECT_PATH or file.startswith(f"{path}/"):
            return True
    return False


def split_commits(commits: Iterable[Commit], paths: Iterable[str]) -> dict[str, list[Commit]]:
    """Assign commits to the package paths whose files they touch.

    A file counts only towards the most specific path that contains it, so a
    change in ``core/sub/x.py`` belongs to ``core/sub`` and not ``core``. The
    root path receives every commit.

    Returns:
        Map of path → commits, in input order. Every requested path is present.
    """
    normalized = {p: _normalize(p) for p in paths}
    # Longest first so nested packages claim their files before parents
    ordered = sorted(
        (p for p in normalized if normalized[p] != ROOT_PROJECT_PATH),
        key=lambda p: len(normalized[p]),
        reverse=True,
    )
    result: dict[str, list[Commit]] = {p: [] for p in normalized}
    for commit in commits:
        owners: set[str] = set()
        for file in commit.files:
            for path in ordered:
                if file.startswith(f"{normalized[path]}/"):
                    owners.add(path)
                    break
        for path in normalized:
            if normalized[path] == ROOT_PROJECT_PATH or path in owners:
                result[path].append(commit)
    return result
