"""Maven multi-module builds: members are the configured maven paths."""

from __future__ import annotations

from ..models import WorkspacePackage
from ..updaters import PomXml, Updater, parse_pom
from ..versions import Version
from .workspace import WorkspacePlugin


class MavenWorkspace(WorkspacePlugin):
    release_types = ("maven", "java")
    manifest_file = "pom.xml"

    def member_paths(self) -> list[str]:
        return self.configured_paths()

    def parse_package(self, path: str, content: str) -> WorkspacePackage:
        pom = parse_pom(content)
        return WorkspacePackage(
            name=pom["artifact_id"] or path.rsplit("/", 1)[-1],
            path=path,
            version=pom["version"],
            deps=pom["dependencies"],
        )

    def updater_for(
        self,
        package: WorkspacePackage,
        version: Version,
        dependency_versions: dict[str, Version],
    ) -> Updater:
        return PomXml(version, dependency_versions)
