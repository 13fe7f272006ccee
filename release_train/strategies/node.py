"""npm packages: version in package.json, mirrored in the lockfile."""

from __future__ import annotations

import json

from ..errors import ConfigurationError
from ..updaters import PackageJson, PackageLockJson, Update
from ..versions import Version
from .base import BaseStrategy, normalize_component


class NodeStrategy(BaseStrategy):
    release_type = "node"

    def package_name(self) -> str:
        if self.config.package_name:
            return self.config.package_name
        content = self.require_file("package.json")
        try:
            name = json.loads(content).get("name")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"invalid package.json: {e}", self.release_type, self.path) from e
        if not name:
            raise ConfigurationError("package.json has no name", self.release_type, self.path)
        return name

    def get_default_component(self) -> str | None:
        return normalize_component(self.package_name())

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
        updates.append(Update(path=self.add_path("package.json"), updater=PackageJson(version)))
        # Absent lockfiles are skipped when the pull request is written
        for lockfile in ("package-lock.json", "npm-shrinkwrap.json"):
            updates.append(Update(path=self.add_path(lockfile), updater=PackageLockJson(version)))
        return updates
