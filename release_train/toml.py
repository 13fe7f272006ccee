"""TOML reading utilities.

Uses tomlkit to preserve formatting and comments when modifying Cargo.toml
and pyproject.toml content. Files are read from the hosting service, so
everything here works on strings rather than paths.
"""

from __future__ import annotations

from typing import Any

import tomlkit
from packaging.utils import canonicalize_name
from tomlkit.exceptions import ParseError

from .errors import ConfigurationError


def parse_toml(content: str, path: str = "") -> tomlkit.TOMLDocument:
    """Parse TOML content into a format-preserving document.

    Raises:
        ConfigurationError: If the content is not valid TOML.
    """
    try:
        return tomlkit.parse(content)
    except ParseError as e:
        raise ConfigurationError(f"invalid TOML in {path or 'document'}: {e}") from e


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """Extract the canonical package name from [project].name.

    Names are normalized per PEP 503 (lowercase, hyphens instead of
    underscores) for consistent comparison.
    """
    return canonicalize_name(doc.get("project", {}).get("name", fallback))


def get_project_version(doc: tomlkit.TOMLDocument) -> str | None:
    """Extract version from [project].version, if present."""
    return doc.get("project", {}).get("version")


def get_all_dependency_strings(doc: tomlkit.TOMLDocument) -> list[str]:
    """Collect all dependency strings from a pyproject.toml.

    Gathers dependencies from three locations:
    - [project].dependencies (main runtime deps)
    - [project].optional-dependencies.* (extras like [dev], [test])
    - [dependency-groups].* (PEP 735 dependency groups)
    """
    project = doc.get("project", {})
    deps: list[str] = list(project.get("dependencies", []))
    for group_deps in project.get("optional-dependencies", {}).values():
        deps.extend(group_deps)
    for group_deps in doc.get("dependency-groups", {}).values():
        deps.extend(group_deps)
    return deps


def get_uv_workspace_members(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract workspace member glob patterns from [tool.uv.workspace].

    Raises:
        ConfigurationError: If no workspace members are defined.
    """
    members = doc.get("tool", {}).get("uv", {}).get("workspace", {}).get("members")
    if not members:
        raise ConfigurationError("no [tool.uv.workspace] members defined in root pyproject.toml")
    return list(members)


def get_cargo_workspace_members(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract member glob patterns from a root Cargo.toml [workspace] table.

    Raises:
        ConfigurationError: If the document has no workspace members.
    """
    members = doc.get("workspace", {}).get("members")
    if not members:
        raise ConfigurationError("no [workspace] members defined in root Cargo.toml")
    return list(members)


def cargo_dependency_tables(doc: tomlkit.TOMLDocument) -> list[Any]:
    """All dependency tables of a Cargo manifest, including target-specific ones."""
    kinds = ("dependencies", "dev-dependencies", "build-dependencies")
    tables = [doc[kind] for kind in kinds if kind in doc]
    for target in doc.get("target", {}).values():
        tables.extend(target[kind] for kind in kinds if kind in target)
    return tables
