"""Plain repositories that keep their version in a text file."""

from __future__ import annotations

from ..updaters import Update, VersionTxt
from ..versions import Version
from .base import BaseStrategy

DEFAULT_VERSION_FILE = "version.txt"


class SimpleStrategy(BaseStrategy):
    release_type = "simple"

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
        updates.append(
            Update(
                path=self.add_path(self.config.version_file or DEFAULT_VERSION_FILE),
                create_if_missing=True,
                updater=VersionTxt(version),
            )
        )
        return updates
