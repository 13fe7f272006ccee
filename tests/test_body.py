"""Tests for release_train.body and release_train.changelog."""

from __future__ import annotations

from datetime import date

from release_train.body import DEFAULT_FOOTER, DEFAULT_HEADER, PullRequestBody, ReleaseData
from release_train.changelog import DefaultChangelogNotes
from release_train.commits import parse_message
from release_train.models import ChangelogSection
from release_train.versions import Version

NOTES = "## 1.2.3 (2024-05-01)\n\n### Bug Fixes\n\n* handle empty input (abc1234)"


class TestPullRequestBody:
    """Rendering and parsing of release pull request bodies."""

    def test_single_entry_renders_bare(self) -> None:
        """A lone entry whose heading carries its version needs no block."""
        body = PullRequestBody([ReleaseData(version=Version(1, 2, 3), notes=NOTES)])
        assert str(body) == f"{DEFAULT_HEADER}\n---\n{NOTES}\n\n---\n{DEFAULT_FOOTER}"

    def test_single_entry_round_trip(self) -> None:
        body = PullRequestBody([ReleaseData(version=Version(1, 2, 3), notes=NOTES)])
        parsed = PullRequestBody.parse(str(body))
        assert parsed == body
        assert parsed is not None
        assert parsed.release_data == body.release_data

    def test_components_round_trip(self) -> None:
        body = PullRequestBody(
            [
                ReleaseData(component="storage", version=Version(1, 2, 3), notes="## 1.2.3\n\n* a"),
                ReleaseData(component="auth", version=Version(0, 4, 0), notes="## 0.4.0\n\n* b"),
            ]
        )
        rendered = str(body)
        assert "<details><summary>storage: 1.2.3</summary>" in rendered
        assert "<details><summary>auth: 0.4.0</summary>" in rendered
        parsed = PullRequestBody.parse(rendered)
        assert parsed is not None
        assert parsed.release_data == body.release_data
        assert str(parsed) == rendered

    def test_single_component_keeps_block(self) -> None:
        body = PullRequestBody([ReleaseData(component="storage", version=Version(1, 0, 0), notes=NOTES)])
        parsed = PullRequestBody.parse(str(body))
        assert parsed is not None
        assert parsed.release_data[0].component == "storage"
        assert str(parsed) == str(body)

    def test_version_not_in_heading_uses_block(self) -> None:
        body = PullRequestBody([ReleaseData(version=Version(2, 0, 0), notes="* only bullets")])
        assert "<summary>2.0.0</summary>" in str(body)
        parsed = PullRequestBody.parse(str(body))
        assert parsed is not None
        assert parsed.release_data == body.release_data

    def test_empty_notes_round_trip(self) -> None:
        """An entry with no notes still survives a round trip."""
        body = PullRequestBody([ReleaseData(notes="")])
        assert "<details>" in str(body)
        parsed = PullRequestBody.parse(str(body))
        assert parsed is not None
        assert parsed.release_data == [ReleaseData(notes="")]
        assert parsed == body

    def test_empty_notes_with_version_round_trip(self) -> None:
        body = PullRequestBody([ReleaseData(version=Version(1, 0, 0), notes="")])
        parsed = PullRequestBody.parse(str(body))
        assert parsed is not None
        assert parsed.release_data == body.release_data

    def test_custom_header_and_footer(self) -> None:
        body = PullRequestBody(
            [ReleaseData(version=Version(1, 2, 3), notes=NOTES)], header="Release time", footer="Bye"
        )
        parsed = PullRequestBody.parse(str(body))
        assert parsed is not None
        assert parsed.header == "Release time"
        assert parsed.footer == "Bye"

    def test_parse_unrelated_text(self) -> None:
        assert PullRequestBody.parse("Just a description of a feature.") is None


class TestDefaultChangelogNotes:
    """Markdown release notes built from commits."""

    def test_sections_and_breaking_changes(self) -> None:
        commits = [
            parse_message("aaaaaaa1", "feat(api): add search"),
            parse_message("bbbbbbb2", "fix: handle empty input\n\nCloses #12"),
            parse_message("ccccccc3", "feat!: drop python 3.8"),
            parse_message("ddddddd4", "chore: tidy"),
        ]
        notes = DefaultChangelogNotes().build_notes(
            [c for c in commits if c is not None],
            version="2.0.0",
            current_tag="v2.0.0",
            previous_tag="v1.4.0",
            owner="acme",
            repository="widgets",
            today=date(2024, 5, 1),
        )
        lines = notes.split("\n")
        assert lines[0] == "## [2.0.0](https://github.com/acme/widgets/compare/v1.4.0...v2.0.0) (2024-05-01)"
        assert notes.index("### ⚠ BREAKING CHANGES") < notes.index("### Features") < notes.index("### Bug Fixes")
        assert "* **api:** add search ([aaaaaaa](https://github.com/acme/widgets/commit/aaaaaaa1))" in lines
        assert "closes [#12](https://github.com/acme/widgets/issues/12)" in notes
        assert "tidy" not in notes

    def test_plain_heading_without_previous_tag(self) -> None:
        commit = parse_message("aaaaaaa1", "fix: x")
        assert commit is not None
        notes = DefaultChangelogNotes().build_notes(
            [commit], version="1.0.0", current_tag="v1.0.0", today=date(2024, 5, 1)
        )
        assert notes == "## 1.0.0 (2024-05-01)\n\n### Bug Fixes\n\n* x (aaaaaaa)"

    def test_custom_sections(self) -> None:
        sections = [ChangelogSection(type="chore", section="Chores")]
        commit = parse_message("aaaaaaa1", "chore: bump tooling")
        assert commit is not None
        notes = DefaultChangelogNotes(sections).build_notes(
            [commit], version="1.0.1", current_tag="v1.0.1", today=date(2024, 5, 1)
        )
        assert "### Chores" in notes
