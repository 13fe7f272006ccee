"""Release notes generation from conventional commits."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, timezone

from .commits import BREAKING_CHANGE_NOTE, ConventionalCommit
from .models import DEFAULT_CHANGELOG_SECTIONS, ChangelogSection

DEFAULT_HOST = "https://github.com"


class DefaultChangelogNotes:
    """Renders a markdown changelog entry.

    The entry starts with a version heading (linked to a compare view when a
    previous tag is known), lists breaking changes first, then one section
    per visible commit type in configured order.
    """

    def __init__(self, sections: Sequence[ChangelogSection] | None = None):
        self.sections = list(sections or DEFAULT_CHANGELOG_SECTIONS)

    def build_notes(
        self,
        commits: Sequence[ConventionalCommit],
        *,
        version: str,
        current_tag: str,
        previous_tag: str | None = None,
        owner: str = "",
        repository: str = "",
        host: str = DEFAULT_HOST,
        today: date | None = None,
    ) -> str:
        day = (today or datetime.now(timezone.utc).date()).isoformat()
        repo_url = f"{host}/{owner}/{repository}" if owner and repository else ""
        if previous_tag and repo_url:
            heading = f"## [{version}]({repo_url}/compare/{previous_tag}...{current_tag}) ({day})"
        else:
            heading = f"## {version} ({day})"
        lines = [heading]

        breaking = [
            (commit, note.text)
            for commit in commits
            for note in commit.notes
            if note.title == BREAKING_CHANGE_NOTE
        ]
        if breaking:
            lines += ["", "### ⚠ BREAKING CHANGES", ""]
            lines += [self._bullet(commit, text, repo_url) for commit, text in breaking]

        for section in self._visible_sections():
            entries = [c for c in commits if c.type in section.types]
            if not entries:
                continue
            lines += ["", f"### {section.title}", ""]
            lines += [self._bullet(c, c.bare_message, repo_url) for c in entries]
        return "\n".join(lines)

    def _visible_sections(self) -> list[_Section]:
        # Several types may share one heading (e.g. feat and feature)
        merged: dict[str, _Section] = {}
        for section in self.sections:
            if section.hidden:
                continue
            merged.setdefault(section.section, _Section(section.section)).types.add(section.type)
        return list(merged.values())

    @staticmethod
    def _bullet(commit: ConventionalCommit, text: str, repo_url: str) -> str:
        scope = f"**{commit.scope}:** " if commit.scope else ""
        sha = commit.sha[:7]
        link = f"([{sha}]({repo_url}/commit/{commit.sha}))" if repo_url else f"({sha})"
        refs = ""
        if commit.references and repo_url:
            refs = ", closes " + ", ".join(
                f"[#{r.issue}]({repo_url}/issues/{r.issue})" for r in commit.references
            )
        return f"* {scope}{text} {link}{refs}"


class _Section:
    def __init__(self, title: str):
        self.title = title
        self.types: set[str] = set()
