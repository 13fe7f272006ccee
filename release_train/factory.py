"""Build strategies and plugins from configuration.

Release types, versioning schemes and plugin types are resolved through the
static tables below. Callers that need types of their own pass extra
factories, which take precedence over the built-in entries.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from pydantic import ValidationError

from .errors import ConfigurationError
from .models import ReleaserConfig
from .plugins.base import ManifestPlugin, PluginOptions
from .plugins.cargo_workspace import CargoWorkspace
from .plugins.group_priority import GroupPriority, GroupPriorityOptions
from .plugins.linked_versions import LinkedVersions, LinkedVersionsOptions
from .plugins.maven_workspace import MavenWorkspace
from .plugins.merge import Merge, MergeOptions
from .plugins.node_workspace import NodeWorkspace
from .plugins.python_workspace import PythonWorkspace
from .plugins.sentence_case import SentenceCase, SentenceCaseOptions
from .plugins.workspace import WorkspaceOptions
from .strategies.base import BaseStrategy
from .strategies.maven import MavenStrategy
from .strategies.node import NodeStrategy
from .strategies.python import PythonStrategy
from .strategies.rust import RustStrategy
from .strategies.simple import SimpleStrategy
from .versioning import (
    AlwaysBumpMajor,
    AlwaysBumpMinor,
    AlwaysBumpPatch,
    DefaultVersioningStrategy,
    DependencyManifestVersioningStrategy,
    ServicePackVersioningStrategy,
    VersioningStrategy,
)

StrategyFactory = Callable[..., BaseStrategy]
VersioningFactory = Callable[..., VersioningStrategy]
PluginFactory = tuple[Callable[..., ManifestPlugin], type[PluginOptions]]

STRATEGIES: dict[str, StrategyFactory] = {
    "simple": SimpleStrategy,
    "node": NodeStrategy,
    "python": PythonStrategy,
    "rust": RustStrategy,
    "maven": MavenStrategy,
    "java": MavenStrategy,
}

VERSIONING_STRATEGIES: dict[str, VersioningFactory] = {
    "default": DefaultVersioningStrategy,
    "always-bump-patch": AlwaysBumpPatch,
    "always-bump-minor": AlwaysBumpMinor,
    "always-bump-major": AlwaysBumpMajor,
    "service-pack": ServicePackVersioningStrategy,
    "dependency-manifest": DependencyManifestVersioningStrategy,
}

PLUGINS: dict[str, PluginFactory] = {
    "node-workspace": (NodeWorkspace, WorkspaceOptions),
    "cargo-workspace": (CargoWorkspace, WorkspaceOptions),
    "maven-workspace": (MavenWorkspace, WorkspaceOptions),
    "python-workspace": (PythonWorkspace, WorkspaceOptions),
    "linked-versions": (LinkedVersions, LinkedVersionsOptions),
    "group-priority": (GroupPriority, GroupPriorityOptions),
    "sentence-case": (SentenceCase, SentenceCaseOptions),
    "merge": (Merge, MergeOptions),
}


def release_types(factories: dict[str, StrategyFactory] | None = None) -> list[str]:
    return sorted({**STRATEGIES, **(factories or {})})


def build_versioning_strategy(
    config: ReleaserConfig,
    factories: dict[str, VersioningFactory] | None = None,
) -> VersioningStrategy:
    table = {**VERSIONING_STRATEGIES, **(factories or {})}
    factory = table.get(config.versioning)
    if factory is None:
        raise ConfigurationError(f"unknown versioning strategy {config.versioning!r}", config.release_type)
    return factory(
        bump_minor_pre_major=config.bump_minor_pre_major,
        bump_patch_for_minor_pre_major=config.bump_patch_for_minor_pre_major,
        releasable_types=config.releasable_types,
    )


def build_strategy(
    github: Any,
    target_branch: str,
    path: str,
    config: ReleaserConfig,
    *,
    snapshot_labels: Sequence[str] = (),
    factories: dict[str, StrategyFactory] | None = None,
    versioning_factories: dict[str, VersioningFactory] | None = None,
) -> BaseStrategy:
    """Instantiate the strategy for one path.

    Raises:
        ConfigurationError: If the release type or versioning scheme is
            unknown.
    """
    table = {**STRATEGIES, **(factories or {})}
    factory = table.get(config.release_type)
    if factory is None:
        raise ConfigurationError(
            f"unknown release type, expected one of {', '.join(release_types(factories))}",
            config.release_type,
            path,
        )
    return factory(
        github=github,
        target_branch=target_branch,
        path=path,
        config=config,
        versioning_strategy=build_versioning_strategy(config, versioning_factories),
        snapshot_labels=snapshot_labels,
    )


def build_plugin(
    entry: str | dict[str, Any],
    github: Any,
    target_branch: str,
    repository_config: dict[str, ReleaserConfig],
    manifest_path: str,
    *,
    factories: dict[str, PluginFactory] | None = None,
    strategy_factories: dict[str, StrategyFactory] | None = None,
    versioning_factories: dict[str, VersioningFactory] | None = None,
) -> ManifestPlugin:
    """Instantiate a plugin from its config entry.

    Args:
        entry: A plugin type name, or an object with ``type`` and options.

    Raises:
        ConfigurationError: For an unknown type or invalid options.
    """
    if isinstance(entry, str):
        entry = {"type": entry}
    type_name = entry.get("type")
    table = {**PLUGINS, **(factories or {})}
    if type_name not in table:
        raise ConfigurationError(f"unknown plugin type {type_name!r}, expected one of {', '.join(sorted(table))}")
    plugin_cls, options_cls = table[type_name]
    try:
        options = options_cls.model_validate(entry)
    except ValidationError as e:
        raise ConfigurationError(f"invalid options for plugin {type_name}: {e}") from e

    kwargs = options.model_dump(exclude={"type"})
    if plugin_cls is LinkedVersions:
        kwargs["factories"] = strategy_factories
        kwargs["versioning_factories"] = versioning_factories
    return plugin_cls(github, target_branch, repository_config, manifest_path, **kwargs)
