"""Dependency graph utilities for workspace packages.

Workspace plugins need two answers from the graph: which packages are
affected when some packages move (everything that transitively depends on
them), and in which order to update them (dependencies first, so each
dependent sees the final versions of what it depends on).
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable

from .models import WorkspacePackage


def reverse_deps(packages: dict[str, WorkspacePackage]) -> dict[str, list[str]]:
    """Map each package name to the sorted names of the packages depending on it."""
    dependents: dict[str, list[str]] = {n: [] for n in packages}
    for name, info in packages.items():
        for dep in dict.fromkeys(info.deps):
            if dep in packages and dep != name:
                dependents[dep].append(name)
    return {n: sorted(d) for n, d in dependents.items()}


def walk_dependents(packages: dict[str, WorkspacePackage], roots: Iterable[str]) -> list[str]:
    """Breadth-first walk from ``roots`` through their dependents.

    Returns:
        The roots plus every package that transitively depends on one, in
        visiting order.
    """
    dependents = reverse_deps(packages)
    queue = deque(r for r in roots if r in packages)
    seen: list[str] = list(dict.fromkeys(queue))
    while queue:
        node = queue.popleft()
        for dependent in dependents[node]:
            if dependent not in seen:
                seen.append(dependent)
                queue.append(dependent)
    return seen


def topo_sort(packages: dict[str, WorkspacePackage]) -> list[str]:
    """Topologically sort packages by their internal dependencies.

    Uses Kahn's algorithm to produce an order where dependencies come
    before dependents. Ties are broken alphabetically for deterministic
    output.

    Raises:
        RuntimeError: If a dependency cycle is detected.

    Example:
        web depends on api, api depends on core:
        topo_sort({web, api, core}) → [core, api, web]
    """
    # In-degree: number of workspace dependencies still to place
    in_degree = {
        name: len({d for d in info.deps if d in packages and d != name}) for name, info in packages.items()
    }
    dependents = reverse_deps(packages)

    queue = sorted(n for n, d in in_degree.items() if d == 0)
    order: list[str] = []
    while queue:
        node = queue.pop(0)
        order.append(node)
        for dependent in dependents[node]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    # Anything left over sits on a cycle
    if len(order) != len(packages):
        remaining = sorted(set(packages) - set(order))
        raise RuntimeError(f"Dependency cycle detected involving: {remaining}")
    return order
