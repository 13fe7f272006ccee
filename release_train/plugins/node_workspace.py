"""npm workspaces: members are the configured node paths."""

from __future__ import annotations

import json

from ..errors import ConfigurationError
from ..models import WorkspacePackage
from ..strategies.base import normalize_component
from ..updaters import PackageJson, Updater
from ..versions import Version
from .workspace import WorkspacePlugin

DEPENDENCY_FIELDS = ("dependencies", "devDependencies", "peerDependencies", "optionalDependencies")


class NodeWorkspace(WorkspacePlugin):
    release_types = ("node",)
    manifest_file = "package.json"

    def member_paths(self) -> list[str]:
        return self.configured_paths()

    def parse_package(self, path: str, content: str) -> WorkspacePackage:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"invalid package.json: {e}", "node", path) from e
        if not data.get("name"):
            raise ConfigurationError("package.json has no name", "node", path)
        deps: list[str] = []
        for field in DEPENDENCY_FIELDS:
            deps.extend(name for name in (data.get(field) or {}) if name not in deps)
        return WorkspacePackage(
            name=data["name"],
            path=path,
            version=data.get("version"),
            deps=deps,
        )

    def component_for(self, package: WorkspacePackage) -> str:
        config = self.repository_config.get(package.path)
        return (config.component if config else None) or normalize_component(package.name)

    def updater_for(
        self,
        package: WorkspacePackage,
        version: Version,
        dependency_versions: dict[str, Version],
    ) -> Updater:
        return PackageJson(version, dependency_versions)
