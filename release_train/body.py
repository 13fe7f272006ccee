"""Release pull request bodies.

The body is the handoff between the two halves of a release: the pull
request run writes it, and once the pull request is merged the release run
parses it back to learn which components to release at which versions and
with which notes. Rendering is deterministic and ``parse(str(body))``
reproduces the release data, header and footer.

Layout::

    <header>
    ---
    <details><summary>storage: 1.2.3</summary>

    <notes>
    </details>

    ---
    <footer>
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

from .versions import Version, try_parse_version

DEFAULT_HEADER = ":robot: I have created a release *beep* *boop*"
DEFAULT_FOOTER = "This PR was generated with release-train."
NOTES_DELIMITER = "---"

_DETAILS_RE = re.compile(
    r"<details(?: open)?><summary>(?P<summary>.*?)</summary>(?P<notes>.*?)</details>",
    re.DOTALL,
)
_SUMMARY_RE = re.compile(r"^(?:(?P<component>.*[^:]):? )?v?(?P<version>\d+\.\d+\.\d+\S*)$")
_HEADING_VERSION_RE = re.compile(r"^#{2,} \[?v?(?P<version>\d+\.\d+\.\d+[^\]\s]*)\]?", re.MULTILINE)


class ReleaseData(BaseModel):
    """Release notes for one component inside a pull request body."""

    model_config = ConfigDict(frozen=True)

    component: str | None = None
    version: Version | None = None
    notes: str


def _version_from_notes(notes: str) -> Version | None:
    match = _HEADING_VERSION_RE.search(notes)
    return try_parse_version(match["version"]) if match else None


class PullRequestBody:
    """An ordered list of ReleaseData with a header and footer."""

    def __init__(
        self,
        release_data: list[ReleaseData],
        *,
        header: str | None = None,
        footer: str | None = None,
        use_components: bool | None = None,
    ):
        self.release_data = list(release_data)
        self.header = header or DEFAULT_HEADER
        self.footer = footer or DEFAULT_FOOTER
        self.use_components = use_components

    def _render_blocks(self) -> bool:
        if self.use_components is not None:
            return self.use_components
        if len(self.release_data) != 1:
            return True
        # A lone entry is rendered bare only when nothing would be lost
        data = self.release_data[0]
        if data.component or not data.notes.strip():
            return True
        return _version_from_notes(data.notes) != data.version

    def notes(self) -> str:
        if not self._render_blocks():
            return "\n\n".join(d.notes.strip() for d in self.release_data)
        blocks = []
        for data in self.release_data:
            summary = " ".join(
                part
                for part in (f"{data.component}:" if data.component else "", str(data.version or ""))
                if part
            )
            blocks.append(f"<details><summary>{summary}</summary>\n\n{data.notes.strip()}\n</details>")
        return "\n\n".join(blocks)

    def __str__(self) -> str:
        return f"{self.header}\n{NOTES_DELIMITER}\n{self.notes()}\n\n{NOTES_DELIMITER}\n{self.footer}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PullRequestBody):
            return NotImplemented
        return str(self) == str(other)

    def __repr__(self) -> str:
        return f"PullRequestBody(release_data={self.release_data!r})"

    @classmethod
    def parse(cls, body: str) -> PullRequestBody | None:
        """Parse a rendered body.

        Returns:
            The parsed body, or None when the text does not contain
            delimited release notes.
        """
        lines = body.replace("\r\n", "\n").split("\n")
        delimiters = [i for i, line in enumerate(lines) if line.strip() == NOTES_DELIMITER]
        if len(delimiters) < 2:
            return None
        first, last = delimiters[0], delimiters[-1]
        header = "\n".join(lines[:first]).strip()
        footer = "\n".join(lines[last + 1 :]).strip()
        content = "\n".join(lines[first + 1 : last])

        data = _extract_components(content)
        use_components: bool | None = None
        if data:
            use_components = True if len(data) == 1 else None
        else:
            single = _extract_single(content)
            data = [single] if single else []
        return cls(data, header=header, footer=footer, use_components=use_components)


def _extract_components(content: str) -> list[ReleaseData]:
    data = []
    for match in _DETAILS_RE.finditer(content):
        summary = match["summary"].strip()
        parsed = _SUMMARY_RE.match(summary)
        if parsed:
            component = parsed["component"]
            version = try_parse_version(parsed["version"])
        else:
            component, version = summary.rstrip(":") or None, None
        data.append(ReleaseData(component=component or None, version=version, notes=match["notes"].strip()))
    return data


def _extract_single(content: str) -> ReleaseData | None:
    notes = content.strip()
    if not notes:
        return None
    return ReleaseData(version=_version_from_notes(notes), notes=notes)
