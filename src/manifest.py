"""Manifest (``Project.toml``) construction for generated packages."""
from __future__ import annotations

import logging
from typing import Any, Dict, Sequence

import semantic_version
import tomli_w

from constants import Constants
from errors import BuildDependencyError
from identity import jll_uuid
from versioning.models import AbstractDependency, Dependency, exactly_this_version, getname

logger = logging.getLogger(__name__)


def stdlib_uuid(name: str) -> str:
    """Identifier of a host standard library package.

    Raises:
        KeyError: If ``name`` is not a known standard library.
    """
    try:
        return Constants.HOST_STDLIBS[name]
    except KeyError:
        raise KeyError(f"{name} is not a known standard library") from None


def check_dependencies(dependencies: Sequence[AbstractDependency]) -> None:
    """Reject build-only dependencies before anything is generated."""
    for dep in dependencies:
        if not isinstance(dep, Dependency):
            raise BuildDependencyError(
                f"{type(dep).__name__}({getname(dep)!r}) cannot be part of a package manifest; "
                "only runtime Dependency objects are accepted"
            )


def build_project_dict(
    name: str,
    version: semantic_version.Version,
    dependencies: Sequence[Dependency],
) -> Dict[str, Any]:
    """Build the manifest of ``<name>_jll``.

    Raises:
        BuildDependencyError: If any element of ``dependencies`` is not a
            runtime :class:`Dependency`.
    """
    check_dependencies(dependencies)

    host_name, host_version = Constants.HOST_COMPAT
    project: Dict[str, Any] = {
        "name": f"{name}{Constants.JLL_SUFFIX}",
        "uuid": str(jll_uuid(f"{name}{Constants.JLL_SUFFIX}")),
        "version": str(version),
        "deps": {},
        "compat": {host_name: host_version},
    }
    for dep in dependencies:
        depname = getname(dep)
        project["deps"][depname] = str(jll_uuid(depname))
        if dep.has_compat_info():
            project["compat"][depname] = str(exactly_this_version(dep.version))

    # Every generated package loads libraries and resolves artifacts
    for stdlib in Constants.RUNTIME_STDLIBS:
        project["deps"][stdlib] = stdlib_uuid(stdlib)

    logger.debug("Built manifest for %s with %d dependencies", project["name"], len(project["deps"]))
    return project


def write_project_toml(path: str, project: Dict[str, Any]) -> None:
    with open(path, "wb") as fh:
        tomli_w.dump(project, fh)
