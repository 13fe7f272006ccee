"""Python packages described by a PEP 621 pyproject.toml."""

from __future__ import annotations

from ..toml import get_project_name, parse_toml
from ..updaters import PyProjectToml, PythonVersionFile, Update
from ..versions import Version
from .base import BaseStrategy


class PythonStrategy(BaseStrategy):
    release_type = "python"

    def package_name(self) -> str:
        if self.config.package_name:
            return self.config.package_name
        doc = parse_toml(self.require_file("pyproject.toml"), self.add_path("pyproject.toml"))
        return get_project_name(doc, fallback=self.path.rsplit("/", 1)[-1])

    def get_default_component(self) -> str | None:
        return self.package_name()

    def build_updates(
        self,
        *,
        version: Version,
        changelog_entry: str,
        latest_version: Version | None,
    ) -> list[Update]:
        updates = super().build_updates(
            version=version, changelog_entry=changelog_entry, latest_version=latest_version
        )
        updates.append(Update(path=self.add_path("pyproject.toml"), updater=PyProjectToml(version)))
        module = self.package_name().replace("-", "_")
        for file in (f"src/{module}/__init__.py", f"{module}/__init__.py", f"{module}/version.py"):
            updates.append(Update(path=self.add_path(file), updater=PythonVersionFile(version)))
        return updates
