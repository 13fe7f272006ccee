"""Rust crates: version in Cargo.toml."""

from __future__ import annotations

from ..toml import parse_toml
from ..updaters import CargoToml, Update
from ..versions import Version
from .base import BaseStrategy, normalize_component


class RustStrategy(BaseStrategy):
    release_type = "rust"

    def get_default_component(self) -> str | None:
        if self.config.package_name:
            return normalize_component(self.config.package_name)
        doc = parse_toml(self.require_file("Cargo.toml"), self.add_path("Cargo.toml"))
        # A virtual workspace manifest has no [package] table
        return doc.get("package", {}).get("name")

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
        updates.append(Update(path=self.add_path("Cargo.toml"), updater=CargoToml(version)))
        return updates
