"""Maven projects with a SNAPSHOT development cycle.

After every real release the strategy proposes a snapshot pull request that
moves pom.xml to the next ``-SNAPSHOT`` version. The next release pull
request then resolves the snapshot into a real version. Snapshot pull
requests carry the snapshot labels and never produce a GitHub release.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..commits import ConventionalCommit
from ..models import Release, ReleasePullRequest
from ..shell import info
from ..updaters import PomXml, Update, parse_pom
from ..versioning import SnapshotVersioningStrategy, VersioningStrategy
from ..versions import Version, try_parse_version
from .base import BaseStrategy

SNAPSHOT_GROUP = "snapshot"
SNAPSHOT_NOTES = "### Updating meta-information for bleeding-edge SNAPSHOT release."


class MavenStrategy(BaseStrategy):
    release_type = "maven"

    def __init__(self, *, versioning_strategy: VersioningStrategy | None = None, **kwargs: Any):
        super().__init__(versioning_strategy=versioning_strategy, **kwargs)
        if not isinstance(self.versioning_strategy, SnapshotVersioningStrategy):
            self.versioning_strategy = SnapshotVersioningStrategy(self.versioning_strategy)
        self.snapshot_versioning: SnapshotVersioningStrategy = self.versioning_strategy

    def pom(self) -> dict[str, Any]:
        return parse_pom(self.require_file("pom.xml"))

    def get_default_component(self) -> str | None:
        if self.config.package_name:
            return self.config.package_name
        return self.pom()["artifact_id"]

    def current_version(self, latest_release: Release | None) -> Version | None:
        pom_version = try_parse_version(self.pom()["version"] or "")
        if pom_version is not None and pom_version.is_snapshot:
            return pom_version
        return super().current_version(latest_release)

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
        updates.append(Update(path=self.add_path("pom.xml"), updater=PomXml(version)))
        return updates

    def needs_snapshot(self, latest_release: Release | None) -> bool:
        if self.config.skip_snapshot or latest_release is None:
            return False
        current = self.current_version(latest_release)
        return current is not None and not current.is_snapshot

    def build_release_pull_request(
        self,
        commits: Sequence[ConventionalCommit],
        latest_release: Release | None = None,
        *,
        draft: bool = False,
        labels: Sequence[str] = (),
    ) -> ReleasePullRequest | None:
        if not self.needs_snapshot(latest_release):
            return super().build_release_pull_request(
                commits, latest_release, draft=draft, labels=labels
            )
        current = self.current_version(latest_release)
        version = self.snapshot_versioning.snapshot(current)
        info(f"{self.path}: opening snapshot cycle {version}")
        updates = [Update(path=self.add_path("pom.xml"), updater=PomXml(version))]
        updates += self.extra_file_updates(version)
        return self._pull_request(
            version=version,
            notes=SNAPSHOT_NOTES,
            updates=updates,
            draft=False,
            labels=self.snapshot_labels or labels,
            group=SNAPSHOT_GROUP,
        )
