"""PEP 508 helpers for pinning workspace dependencies.

When a workspace member is released, the members that depend on it get an
exact pin on the new version in every dependency list of their
pyproject.toml.
"""

from __future__ import annotations

from collections.abc import MutableSequence

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name


def dep_canonical_name(dep_str: str) -> str:
    """The PEP 503 normalized name of a requirement.

    "Core_Lib[cli]>=1.0" → "core-lib"
    """
    return canonicalize_name(Requirement(dep_str).name)


def pin_dep(dep_str: str, version: str) -> str:
    """Replace a requirement's specifier with ``==version``.

    Extras are kept (sorted) and so is the environment marker:
    'core[b,a]~=1.0; python_version >= "3.10"' pinned to 1.5.0 becomes
    'core[a,b]==1.5.0; python_version >= "3.10"'.
    """
    req = Requirement(dep_str)
    extras = f"[{','.join(sorted(req.extras))}]" if req.extras else ""
    marker = f"; {req.marker}" if req.marker else ""
    return f"{req.name}{extras}=={version}{marker}"


def pin_dep_list(deps: MutableSequence[str], versions: dict[str, str]) -> None:
    """Pin every entry of ``deps`` whose canonical name is in ``versions``.

    Works on plain lists and tomlkit arrays alike. Entries that are not
    valid requirements (local paths, URLs without a name) are left as is.
    """
    for i, dep_str in enumerate(deps):
        try:
            name = dep_canonical_name(str(dep_str))
        except InvalidRequirement:
            continue
        if name in versions:
            deps[i] = pin_dep(str(dep_str), versions[name])
