"""uv workspaces: members come from [tool.uv.workspace] in the root pyproject.toml."""

from __future__ import annotations

from packaging.requirements import InvalidRequirement

from ..deps import dep_canonical_name
from ..models import WorkspacePackage
from ..toml import (
    get_all_dependency_strings,
    get_project_name,
    get_project_version,
    get_uv_workspace_members,
    parse_toml,
)
from ..updaters import PyProjectToml, Updater
from ..versions import Version
from .workspace import WorkspacePlugin


class PythonWorkspace(WorkspacePlugin):
    release_types = ("python",)
    manifest_file = "pyproject.toml"

    def member_paths(self) -> list[str]:
        root = self.github.get_file_contents("pyproject.toml", self.target_branch)
        return self.expand_members(get_uv_workspace_members(parse_toml(root, "pyproject.toml")))

    def parse_package(self, path: str, content: str) -> WorkspacePackage:
        doc = parse_toml(content, f"{path}/pyproject.toml")
        deps: list[str] = []
        for dep_str in get_all_dependency_strings(doc):
            try:
                name = dep_canonical_name(dep_str)
            except InvalidRequirement:
                continue
            if name not in deps:
                deps.append(name)
        return WorkspacePackage(
            name=get_project_name(doc, fallback=path.rsplit("/", 1)[-1]),
            path=path,
            version=get_project_version(doc),
            deps=deps,
        )

    def updater_for(
        self,
        package: WorkspacePackage,
        version: Version,
        dependency_versions: dict[str, Version],
    ) -> Updater:
        return PyProjectToml(version, dependency_versions)
