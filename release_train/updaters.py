"""File updaters: pure functions from old file content to new file content.

A release pull request carries a list of Update objects. Each names a file
path and the updater that rewrites it. Several updates for one path are
merged into a single CompositeUpdater, a flat list applied in order.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Any, cast

from pydantic import BaseModel, ConfigDict

from .deps import pin_dep_list
from .toml import cargo_dependency_tables, parse_toml
from .versions import Version

MARKER = "x-release-train-version"
BLOCK_START = "x-release-train-start-version"
BLOCK_END = "x-release-train-end"
CHANGELOG_HEADER = "# Changelog"

_VERSION_RE = re.compile(r"\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?")
_RANGE_PREFIX_RE = re.compile(r"^(?P<prefix>[\^~>=<]*)")
_CHANGELOG_ENTRY_RE = re.compile(r"^#{1,3} ?\[?v?\d", re.MULTILINE)
_PY_VERSION_RE = re.compile(r"^(?P<lhs>__version__\s*=\s*)(?P<quote>['\"])[^'\"]*(?P=quote)", re.MULTILINE)


class Updater(ABC):
    """Rewrites the content of one file."""

    @abstractmethod
    def update_content(self, content: str | None) -> str:
        """Return the new content. ``content`` is None for a new file."""


class Update(BaseModel):
    """A file to rewrite as part of a release pull request."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: str
    create_if_missing: bool = False
    updater: Updater


class VersionUpdater(Updater):
    """Base for updaters that write a version and internal dependency versions.

    Args:
        version: The new version of the package that owns the file.
        dependency_versions: Map of workspace package name → new version.
    """

    def __init__(self, version: Version, dependency_versions: dict[str, Version] | None = None):
        self.version = version
        self.dependency_versions = dict(dependency_versions or {})

    def _require(self, content: str | None) -> str:
        if content is None:
            raise FileNotFoundError(f"{type(self).__name__} cannot create a new file")
        return content


class CompositeUpdater(Updater):
    """Applies updaters in sequence. Nested composites are flattened."""

    def __init__(self, updaters: list[Updater]):
        self.updaters: list[Updater] = []
        for updater in updaters:
            if isinstance(updater, CompositeUpdater):
                self.updaters.extend(updater.updaters)
            else:
                self.updaters.append(updater)

    def update_content(self, content: str | None) -> str:
        result = content
        for updater in self.updaters:
            result = updater.update_content(result)
        return result or ""


def merge_updates(updates: list[Update]) -> list[Update]:
    """Combine updates that target the same path, keeping first-seen order."""
    by_path: dict[str, list[Update]] = {}
    for update in updates:
        by_path.setdefault(update.path, []).append(update)
    merged: list[Update] = []
    for path, group in by_path.items():
        if len(group) == 1:
            merged.append(group[0])
            continue
        merged.append(
            Update(
                path=path,
                create_if_missing=any(u.create_if_missing for u in group),
                updater=CompositeUpdater([u.updater for u in group]),
            )
        )
    return merged


class Changelog(Updater):
    """Prepends a release entry, newest first, below the changelog title."""

    def __init__(self, changelog_entry: str, header: str = CHANGELOG_HEADER):
        self.changelog_entry = changelog_entry.strip()
        self.header = header

    def update_content(self, content: str | None) -> str:
        if not content or not content.strip():
            return f"{self.header}\n\n{self.changelog_entry}\n"
        match = _CHANGELOG_ENTRY_RE.search(content)
        if match:
            start = match.start()
            return f"{content[:start]}{self.changelog_entry}\n\n{content[start:]}"
        return f"{content.rstrip()}\n\n{self.changelog_entry}\n"


class VersionTxt(VersionUpdater):
    def update_content(self, content: str | None) -> str:
        return f"{self.version}\n"


class GenericMarker(VersionUpdater):
    """Replaces versions on marked lines of an arbitrary text file.

    A line is rewritten when it contains ``x-release-train-version`` or sits
    between ``x-release-train-start-version`` and ``x-release-train-end``.
    """

    def update_content(self, content: str | None) -> str:
        lines = self._require(content).split("\n")
        in_block = False
        for i, line in enumerate(lines):
            if BLOCK_START in line:
                in_block = True
                continue
            if BLOCK_END in line:
                in_block = False
                continue
            if in_block or MARKER in line:
                lines[i] = _VERSION_RE.sub(str(self.version), line)
        return "\n".join(lines)


def _json_indent(content: str) -> int:
    match = re.search(r"^( +)\S", content, re.MULTILINE)
    return len(match.group(1)) if match else 2


def _dump_json(data: Any, indent: int) -> str:
    return json.dumps(data, indent=indent, ensure_ascii=False) + "\n"


class PackageJson(VersionUpdater):
    """Sets ``version`` and internal dependency ranges in a package.json.

    Range prefixes are kept: ``^1.0.0`` becomes ``^1.1.0``. ``workspace:``
    ranges are left alone.
    """

    dependency_fields = ("dependencies", "devDependencies", "peerDependencies", "optionalDependencies")

    def update_content(self, content: str | None) -> str:
        text = self._require(content)
        data = json.loads(text)
        data["version"] = str(self.version)
        for field in self.dependency_fields:
            deps = data.get(field) or {}
            for name, new_version in self.dependency_versions.items():
                current = deps.get(name)
                if current is None or current.startswith("workspace:"):
                    continue
                prefix = _RANGE_PREFIX_RE.match(current)["prefix"]
                deps[name] = f"{prefix}{new_version}"
        return _dump_json(data, _json_indent(text))


class PackageLockJson(VersionUpdater):
    def update_content(self, content: str | None) -> str:
        text = self._require(content)
        data = json.loads(text)
        data["version"] = str(self.version)
        root = data.get("packages", {}).get("")
        if isinstance(root, dict):
            root["version"] = str(self.version)
        return _dump_json(data, _json_indent(text))


class CargoToml(VersionUpdater):
    """Sets [package].version and internal dependency versions in a Cargo.toml."""

    def update_content(self, content: str | None) -> str:
        doc = parse_toml(self._require(content), "Cargo.toml")
        package = doc.get("package")
        if package is not None and "version" in package:
            package["version"] = str(self.version)
        for table in cargo_dependency_tables(doc):
            for name, new_version in self.dependency_versions.items():
                spec = table.get(name)
                if isinstance(spec, str):
                    table[name] = str(new_version)
                elif spec is not None and "version" in spec:
                    spec["version"] = str(new_version)
        return doc.as_string()


class CargoLock(Updater):
    """Sets the locked versions of workspace crates in a Cargo.lock."""

    def __init__(self, versions: dict[str, Version]):
        self.versions = dict(versions)

    def update_content(self, content: str | None) -> str:
        if content is None:
            raise FileNotFoundError("Cargo.lock")
        doc = parse_toml(content, "Cargo.lock")
        for package in doc.get("package", []):
            name = package.get("name")
            # Registry crates share names with nothing in the workspace
            if name in self.versions and "source" not in package:
                package["version"] = str(self.versions[name])
        return doc.as_string()


class PyProjectToml(VersionUpdater):
    """Updates a package's version and pins its internal dependencies.

    Internal deps are pinned in all locations:
    - [project].dependencies
    - [project].optional-dependencies.*
    - [dependency-groups].*

    A version listed in [project].dynamic is left for the build backend.
    """

    def update_content(self, content: str | None) -> str:
        doc = parse_toml(self._require(content), "pyproject.toml")
        # Cast needed because tomlkit types are complex unions
        project = cast(dict[str, Any], doc.get("project", {}))
        if "version" not in project.get("dynamic", []):
            project["version"] = str(self.version)

        versions = {name: str(v) for name, v in self.dependency_versions.items()}
        if versions:
            deps = project.get("dependencies")
            if isinstance(deps, list):
                pin_dep_list(deps, versions)
            for group in (project.get("optional-dependencies") or {}).values():
                if isinstance(group, list):
                    pin_dep_list(group, versions)
            for group in (doc.get("dependency-groups") or {}).values():
                if isinstance(group, list):
                    pin_dep_list(group, versions)
        return doc.as_string()


class PythonVersionFile(VersionUpdater):
    """Rewrites ``__version__ = "..."`` assignments."""

    def update_content(self, content: str | None) -> str:
        return _PY_VERSION_RE.sub(
            lambda m: f"{m['lhs']}{m['quote']}{self.version}{m['quote']}", self._require(content)
        )


_POM_NESTED_SECTIONS = ("parent", "dependencies", "dependencyManagement", "build", "profiles", "plugins")


def _mask(text: str, tag: str) -> str:
    """Blank out every <tag>...</tag> region, keeping offsets intact."""
    pattern = re.compile(rf"<{tag}>.*?</{tag}>", re.DOTALL)
    return pattern.sub(lambda m: " " * len(m.group(0)), text)


def _project_level(text: str) -> str:
    for tag in _POM_NESTED_SECTIONS:
        text = _mask(text, tag)
    return text


def parse_pom(content: str) -> dict[str, Any]:
    """Read project coordinates and dependency artifact ids from a pom.xml.

    Returns:
        {"group_id", "artifact_id", "version", "dependencies"}; missing
        project-level values are None.
    """
    project = _project_level(content)

    def field(name: str) -> str | None:
        match = re.search(rf"<{name}>\s*([^<]*?)\s*</{name}>", project)
        return match.group(1) if match else None

    dependencies = re.findall(
        r"<dependency>.*?<artifactId>\s*([^<]*?)\s*</artifactId>.*?</dependency>", content, re.DOTALL
    )
    return {
        "group_id": field("groupId"),
        "artifact_id": field("artifactId"),
        "version": field("version"),
        "dependencies": dependencies,
    }


class PomXml(VersionUpdater):
    """Sets the project version and internal dependency versions in a pom.xml."""

    def update_content(self, content: str | None) -> str:
        text = self._require(content)
        match = re.search(r"<version>[^<]*</version>", _project_level(text))
        if match:
            text = f"{text[:match.start()]}<version>{self.version}</version>{text[match.end():]}"
        for artifact, new_version in self.dependency_versions.items():
            text = re.sub(
                rf"(<(?:dependency|parent)>(?:(?!</(?:dependency|parent)>).)*?"
                rf"<artifactId>{re.escape(artifact)}</artifactId>(?:(?!</(?:dependency|parent)>).)*?<version>)"
                r"[^<]*(</version>)",
                lambda m: f"{m.group(1)}{new_version}{m.group(2)}",
                text,
                flags=re.DOTALL,
            )
        return text


class ReleaseManifest(Updater):
    """Records released versions in the path → version manifest file."""

    def __init__(self, versions: dict[str, Version]):
        self.versions = dict(versions)

    def update_content(self, content: str | None) -> str:
        data = json.loads(content) if content else {}
        for path, version in self.versions.items():
            data[path] = str(version)
        return _dump_json(data, 2)
