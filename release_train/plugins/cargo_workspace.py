"""Cargo workspaces: members come from the root Cargo.toml."""

from __future__ import annotations

from ..models import CandidateReleasePullRequest, WorkspacePackage
from ..toml import cargo_dependency_tables, get_cargo_workspace_members, parse_toml
from ..updaters import CargoLock, CargoToml, Update, Updater, merge_updates
from ..versions import Version
from .workspace import WorkspacePlugin


class CargoWorkspace(WorkspacePlugin):
    """Propagates crate releases through a Cargo workspace.

    Besides each member's Cargo.toml, the root Cargo.lock is updated with
    every released crate's new version.
    """

    release_types = ("rust",)
    manifest_file = "Cargo.toml"

    def member_paths(self) -> list[str]:
        root = self.github.get_file_contents("Cargo.toml", self.target_branch)
        return self.expand_members(get_cargo_workspace_members(parse_toml(root, "Cargo.toml")))

    def parse_package(self, path: str, content: str) -> WorkspacePackage:
        doc = parse_toml(content, f"{path}/Cargo.toml")
        package = doc.get("package", {})
        version = package.get("version")
        deps: list[str] = []
        for table in cargo_dependency_tables(doc):
            deps.extend(name for name in table if name not in deps)
        return WorkspacePackage(
            name=package.get("name", path.rsplit("/", 1)[-1]),
            path=path,
            # `version.workspace = true` yields a table and fails validation later
            version=str(version) if version is not None else None,
            deps=deps,
        )

    def updater_for(
        self,
        package: WorkspacePackage,
        version: Version,
        dependency_versions: dict[str, Version],
    ) -> Updater:
        return CargoToml(version, dependency_versions)

    def finalize(self, candidates: list[CandidateReleasePullRequest]) -> list[CandidateReleasePullRequest]:
        results = list(candidates)
        versions: dict[str, Version] = {}
        for candidate in results:
            for data in candidate.pull_request.body.release_data:
                if data.component and data.version:
                    versions[data.component] = data.version
        if not versions:
            return results
        lock = Update(path="Cargo.lock", updater=CargoLock(versions))
        # The lockfile is shared, so it rides on the last candidate
        last = results[-1]
        pull_request = last.pull_request
        results[-1] = last.model_copy(
            update={
                "pull_request": pull_request.model_copy(
                    update={"updates": merge_updates([*pull_request.updates, lock])}
                )
            }
        )
        return results
