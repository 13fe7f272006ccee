"""Capitalize commit subjects before they reach the changelog."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from ..commits import ConventionalCommit
from ..models import ReleaserConfig
from .base import ManifestPlugin, PluginOptions


class SentenceCaseOptions(PluginOptions):
    type: str = "sentence-case"
    special_words: list[str] = Field(default_factory=list)


class SentenceCase(ManifestPlugin):
    """Uppercases the first letter of each commit subject.

    Args:
        special_words: Words kept exactly as written when they start a
            subject, e.g. "iOS" or "npm".
    """

    def __init__(
        self,
        github: Any,
        target_branch: str,
        repository_config: dict[str, ReleaserConfig],
        manifest_path: str,
        *,
        special_words: list[str] | None = None,
    ):
        super().__init__(github, target_branch, repository_config, manifest_path)
        self.special_words = set(special_words or [])

    def to_sentence_case(self, text: str) -> str:
        first, sep, rest = text.partition(" ")
        if not first or first in self.special_words:
            return text
        return f"{first[0].upper()}{first[1:]}{sep}{rest}"

    def process_commits(self, commits: list[ConventionalCommit]) -> list[ConventionalCommit]:
        return [c.model_copy(update={"bare_message": self.to_sentence_case(c.bare_message)}) for c in commits]
