"""Tests for the manifest plugins."""

from __future__ import annotations

import json

import pytest
import tomlkit
from conftest import FakeGitHub

from release_train.body import PullRequestBody, ReleaseData
from release_train.commits import ConventionalCommit, parse_message
from release_train.errors import ConfigurationError
from release_train.models import CandidateReleasePullRequest, Release, ReleasePullRequest, ReleaserConfig
from release_train.naming import TagName
from release_train.plugins.cargo_workspace import CargoWorkspace
from release_train.plugins.group_priority import GroupPriority
from release_train.plugins.linked_versions import LinkedVersions
from release_train.plugins.merge import Merge
from release_train.plugins.node_workspace import NodeWorkspace
from release_train.plugins.python_workspace import PythonWorkspace
from release_train.plugins.sentence_case import SentenceCase
from release_train.strategies.base import BaseStrategy
from release_train.strategies.node import NodeStrategy
from release_train.strategies.python import PythonStrategy
from release_train.strategies.rust import RustStrategy
from release_train.updaters import CompositeUpdater
from release_train.versions import Version

MANIFEST = ".release-train-manifest.json"
LABELS = ["autorelease: pending"]


def commit(sha: str, message: str, *files: str) -> ConventionalCommit:
    parsed = parse_message(sha, message, list(files))
    assert parsed is not None
    return parsed


def latest(tag: str) -> Release:
    parsed = TagName.parse(tag)
    assert parsed is not None
    return Release(tag=parsed, sha="0000000", notes="")


def candidate_from(strategy: BaseStrategy, commits: list[ConventionalCommit], tag: str) -> CandidateReleasePullRequest:
    pull_request = strategy.build_release_pull_request(commits, latest(tag), labels=LABELS)
    assert pull_request is not None
    return CandidateReleasePullRequest(path=strategy.path, pull_request=pull_request, config=strategy.config)


def simple_candidate(
    path: str, component: str, version: Version, group: str | None = None
) -> CandidateReleasePullRequest:
    pull_request = ReleasePullRequest(
        title=f"chore(main): release {component} {version}",
        body=PullRequestBody([ReleaseData(component=component, version=version, notes=f"## {version}\n\n* x")]),
        head_ref_name=f"release-train--branches--main--components--{component}",
        labels=LABELS,
        version=version,
        group=group,
    )
    return CandidateReleasePullRequest(path=path, pull_request=pull_request, config=ReleaserConfig(component=component))


def apply(github: FakeGitHub, candidate: CandidateReleasePullRequest, path: str) -> str:
    update = next(u for u in candidate.pull_request.updates if u.path == path)
    return update.updater.update_content(github.get_file_contents(path, "main"))


class TestNodeWorkspace:
    """Releasing a package releases everything that depends on it."""

    def workspace(self) -> tuple[FakeGitHub, dict[str, ReleaserConfig]]:
        github = FakeGitHub(
            {
                "packages/a/package.json": json.dumps({"name": "a", "version": "1.0.0"}),
                "packages/b/package.json": json.dumps(
                    {"name": "b", "version": "2.0.0", "dependencies": {"a": "^1.0.0"}}
                ),
                "packages/c/package.json": json.dumps(
                    {"name": "c", "version": "3.0.0", "dependencies": {"b": "^2.0.0", "left-pad": "^1.0.0"}}
                ),
                "packages/d/package.json": json.dumps({"name": "d", "version": "0.1.0"}),
            }
        )
        config = ReleaserConfig(release_type="node")
        return github, {f"packages/{n}": config for n in "abcd"}

    def candidate_a(self, github: FakeGitHub, config: dict[str, ReleaserConfig]) -> CandidateReleasePullRequest:
        strategy = NodeStrategy(github=github, target_branch="main", path="packages/a", config=config["packages/a"])
        return candidate_from(strategy, [commit("s1", "feat: add x", "packages/a/index.js")], "a-v1.0.0")

    def test_transitive_dependents(self) -> None:
        github, config = self.workspace()
        plugin = NodeWorkspace(github, "main", config, MANIFEST, merge=False)

        results = plugin.run([self.candidate_a(github, config)])

        assert [c.path for c in results] == ["packages/a", "packages/b", "packages/c"]
        b, c = results[1].pull_request, results[2].pull_request
        assert b.version == Version(2, 0, 1)
        assert c.version == Version(3, 0, 1)
        assert c.title == "chore(main): release c 3.0.1"
        assert c.head_ref_name == "release-train--branches--main--components--c"
        assert c.labels == LABELS
        assert "b bumped from 2.0.0 to 2.0.1" in c.body.release_data[0].notes

        b_json = json.loads(apply(github, results[1], "packages/b/package.json"))
        assert b_json["version"] == "2.0.1"
        assert b_json["dependencies"] == {"a": "^1.1.0"}
        c_json = json.loads(apply(github, results[2], "packages/c/package.json"))
        assert c_json["dependencies"] == {"b": "^2.0.1", "left-pad": "^1.0.0"}
        assert MANIFEST in [u.path for u in b.updates]

    def test_merged(self) -> None:
        github, config = self.workspace()
        plugin = NodeWorkspace(github, "main", config, MANIFEST)

        results = plugin.run([self.candidate_a(github, config)])

        assert len(results) == 1
        merged = results[0].pull_request
        assert merged.title == "chore: release main"
        assert [d.component for d in merged.body.release_data] == ["a", "b", "c"]

    def test_out_of_scope_candidates_pass_through(self) -> None:
        github, config = self.workspace()
        other = simple_candidate("docs", "docs", Version(1, 0, 0))

        results = NodeWorkspace(github, "main", config, MANIFEST).run([other])

        assert results == [other]

    def test_dependent_without_version(self) -> None:
        github, config = self.workspace()
        github.branches["main"]["packages/b/package.json"] = json.dumps({"name": "b", "dependencies": {"a": "^1.0.0"}})
        plugin = NodeWorkspace(github, "main", config, MANIFEST, merge=False)

        with pytest.raises(ConfigurationError, match="workspace package b has no version"):
            plugin.run([self.candidate_a(github, config)])

    def test_dependent_with_non_numeric_version(self) -> None:
        github, config = self.workspace()
        github.branches["main"]["packages/b/package.json"] = json.dumps(
            {"name": "b", "version": "next", "dependencies": {"a": "^1.0.0"}}
        )
        plugin = NodeWorkspace(github, "main", config, MANIFEST, merge=False)

        with pytest.raises(ConfigurationError, match="non-numeric version 'next'"):
            plugin.run([self.candidate_a(github, config)])

    def test_dependency_cycle(self) -> None:
        github, config = self.workspace()
        github.branches["main"]["packages/a/package.json"] = json.dumps(
            {"name": "a", "version": "1.0.0", "dependencies": {"b": "^2.0.0"}}
        )
        plugin = NodeWorkspace(github, "main", config, MANIFEST, merge=False)

        with pytest.raises(ConfigurationError, match="cycle") as exc:
            plugin.run([self.candidate_a(github, config)])

        assert isinstance(exc.value.__cause__, RuntimeError)


class TestCargoWorkspace:
    def test_lockfile_update(self) -> None:
        github = FakeGitHub(
            {
                "Cargo.toml": '[workspace]\nmembers = ["crates/*"]\n',
                "Cargo.lock": (
                    '[[package]]\nname = "cli"\nversion = "0.1.0"\n\n'
                    '[[package]]\nname = "core"\nversion = "0.1.0"\n'
                ),
                "crates/core/Cargo.toml": '[package]\nname = "core"\nversion = "0.1.0"\n',
                "crates/cli/Cargo.toml": (
                    '[package]\nname = "cli"\nversion = "0.1.0"\n\n'
                    '[dependencies]\ncore = { path = "../core", version = "0.1.0" }\n'
                ),
            }
        )
        config = ReleaserConfig(release_type="rust")
        repository_config = {"crates/core": config, "crates/cli": config}
        strategy = RustStrategy(github=github, target_branch="main", path="crates/core", config=config)
        core = candidate_from(strategy, [commit("s1", "fix: x", "crates/core/src/lib.rs")], "core-v0.1.0")

        results = CargoWorkspace(github, "main", repository_config, MANIFEST, merge=False).run([core])

        assert [c.path for c in results] == ["crates/core", "crates/cli"]
        cli_toml = tomlkit.parse(apply(github, results[1], "crates/cli/Cargo.toml"))
        assert cli_toml["package"]["version"] == "0.1.1"
        assert cli_toml["dependencies"]["core"]["version"] == "0.1.1"
        lock = tomlkit.parse(apply(github, results[1], "Cargo.lock"))
        assert [p["version"] for p in lock["package"]] == ["0.1.1", "0.1.1"]
        assert "Cargo.lock" not in [u.path for u in results[0].pull_request.updates]


class TestPythonWorkspace:
    def test_pins_dependents(self) -> None:
        github = FakeGitHub(
            {
                "pyproject.toml": '[tool.uv.workspace]\nmembers = ["packages/*"]\n',
                "packages/core/pyproject.toml": '[project]\nname = "core"\nversion = "1.0.0"\n',
                "packages/app/pyproject.toml": (
                    '[project]\nname = "app"\nversion = "0.4.0"\ndependencies = ["core>=1.0", "click>=8"]\n'
                ),
            }
        )
        config = ReleaserConfig(release_type="python")
        repository_config = {"packages/core": config, "packages/app": config}
        strategy = PythonStrategy(github=github, target_branch="main", path="packages/core", config=config)
        core = candidate_from(strategy, [commit("s1", "feat: x", "packages/core/a.py")], "core-v1.0.0")

        results = PythonWorkspace(github, "main", repository_config, MANIFEST, merge=False).run([core])

        app = results[1]
        assert app.pull_request.version == Version(0, 4, 1)
        content = apply(github, app, "packages/app/pyproject.toml")
        assert '"core==1.1.0"' in content
        assert '"click>=8"' in content


class TestLinkedVersions:
    """Components of a group always share one version."""

    def configs(self) -> dict[str, ReleaserConfig]:
        return {n: ReleaserConfig(component=n) for n in ("a", "b", "c")}

    def test_preconfigure_forces_group_version(self, github: FakeGitHub) -> None:
        plugin = LinkedVersions(github, "main", self.configs(), MANIFEST, group_name="core", components=["a", "b"])
        released = {"a": Version(1, 0, 0), "b": Version(1, 0, 0), "c": Version(0, 5, 0)}
        commits = {"a": [commit("s1", "feat: x", "a/x.py")], "b": [], "c": [commit("s2", "fix: y", "c/y.py")]}

        configs, versions = plugin.preconfigure(self.configs(), released, commits)

        assert configs["a"].release_as == "1.1.0"
        assert configs["b"].release_as == "1.1.0"
        assert configs["c"].release_as is None
        assert versions == released
        assert plugin.member_paths == {"a", "b"}

    def test_member_ahead_is_left_alone(self, github: FakeGitHub) -> None:
        plugin = LinkedVersions(github, "main", self.configs(), MANIFEST, group_name="core", components=["a", "b"])
        released = {"a": Version(1, 0, 0), "b": Version(2, 0, 0)}
        commits = {"a": [commit("s1", "fix: x", "a/x.py")]}

        configs, _ = plugin.preconfigure(self.configs(), released, commits)

        assert configs["a"].release_as == "1.0.1"
        assert configs["b"].release_as is None

    def test_no_changes(self, github: FakeGitHub) -> None:
        plugin = LinkedVersions(github, "main", self.configs(), MANIFEST, group_name="core", components=["a", "b"])
        configs, _ = plugin.preconfigure(self.configs(), {}, {})
        assert configs == self.configs()

    def test_run_merges_group(self, github: FakeGitHub) -> None:
        plugin = LinkedVersions(github, "main", self.configs(), MANIFEST, group_name="core", components=["a", "b"])
        plugin.member_paths = {"a", "b"}
        candidates = [
            simple_candidate("a", "a", Version(1, 1, 0)),
            simple_candidate("c", "c", Version(0, 5, 1)),
            simple_candidate("b", "b", Version(1, 1, 0)),
        ]

        results = plugin.run(candidates)

        assert [c.path for c in results] == ["c", "."]
        linked = results[1].pull_request
        assert linked.title == "chore(main): release core libraries"
        assert linked.head_ref_name == "release-train--branches--main--components--core"
        assert linked.group == "core"
        assert [d.component for d in linked.body.release_data] == ["a", "b"]


class TestGroupPriority:
    def test_keeps_priority_group(self, github: FakeGitHub) -> None:
        snapshot = simple_candidate("a", "a", Version(1, 0, 1, "SNAPSHOT"), group="snapshot")
        regular = simple_candidate("b", "b", Version(2, 0, 0))

        results = GroupPriority(github, "main", {}, MANIFEST, groups=["snapshot"]).run([regular, snapshot])

        assert results == [snapshot]

    def test_no_matching_group(self, github: FakeGitHub) -> None:
        candidates = [simple_candidate("b", "b", Version(2, 0, 0))]
        assert GroupPriority(github, "main", {}, MANIFEST, groups=["snapshot"]).run(candidates) == candidates


class TestSentenceCase:
    def test_capitalizes_subjects(self, github: FakeGitHub) -> None:
        plugin = SentenceCase(github, "main", {}, MANIFEST, special_words=["gRPC"])
        commits = [commit("s1", "feat: add search", "a.py"), commit("s2", "fix: gRPC timeouts"), commit("s3", "fix: Already")]

        results = plugin.process_commits(commits)

        assert [c.bare_message for c in results] == ["Add search", "gRPC timeouts", "Already"]
        assert results[0].sha == "s1"
        assert results[0].files == ["a.py"]


class TestMerge:
    def test_combines_candidates(self, github: FakeGitHub) -> None:
        first = simple_candidate("a", "a", Version(1, 1, 0))
        second = simple_candidate("b", "b", Version(2, 0, 0))
        second = second.model_copy(
            update={"pull_request": second.pull_request.model_copy(update={"draft": True, "labels": [*LABELS, "extra"]})}
        )

        results = Merge(github, "main", {}, MANIFEST, pull_request_title_pattern="chore: release all").run(
            [first, second]
        )

        assert len(results) == 1
        merged = results[0]
        assert merged.path == "."
        assert merged.pull_request.title == "chore: release all"
        assert merged.pull_request.head_ref_name == "release-train--branches--main"
        assert merged.pull_request.labels == [*LABELS, "extra"]
        assert merged.pull_request.draft
        assert merged.pull_request.body.use_components

    def test_same_file_updates_compose(self, github: FakeGitHub) -> None:
        strategy_config = ReleaserConfig(release_type="node")
        github.branches["main"].update(
            {
                "a/package.json": json.dumps({"name": "a", "version": "1.0.0"}),
                "b/package.json": json.dumps({"name": "b", "version": "1.0.0"}),
            }
        )
        candidates = [
            candidate_from(
                NodeStrategy(github=github, target_branch="main", path=p, config=strategy_config),
                [commit("s1", "fix: x", f"{p}/i.js")],
                f"{p}-v1.0.0",
            )
            for p in ("a", "b")
        ]
        for candidate in candidates:
            candidate.pull_request.updates.append(candidate.pull_request.updates[0].model_copy(update={"path": "SHARED.md"}))

        merged = Merge(github, "main", {}, MANIFEST).run(candidates)[0].pull_request

        shared = [u for u in merged.updates if u.path == "SHARED.md"]
        assert len(shared) == 1
        assert isinstance(shared[0].updater, CompositeUpdater)
