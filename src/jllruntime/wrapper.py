"""Load-time support for generated wrapper packages.

Each generated package owns one :class:`JLLPackage`, which carries the
search-path lists that dependents merge into their own, the resolved
artifact directory, and the handles of libraries opened during
initialization. Wrapper modules receive it as the argument of ``init()``.
"""
from __future__ import annotations

import ctypes
import importlib.util
import logging
import os
import sys
import sysconfig
from contextlib import contextmanager
from types import ModuleType
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from . import artifacts
from .platforms import Platform

logger = logging.getLogger(__name__)

DEFAULT_DLOPEN_FLAGS = ("RTLD_LAZY", "RTLD_DEEPBIND")


class JLLPackage:
    """Per-package load-time configuration.

    Args:
        name: Artifact name bound in the package's ``Artifacts.toml``.
        package_dir: Directory holding the generated dispatch module.
    """

    def __init__(self, name: str, package_dir: str):
        self.name = name
        self.package_dir = package_dir
        self.code_dir = os.path.dirname(os.path.dirname(package_dir))
        self.artifacts_toml = os.path.join(self.code_dir, "Artifacts.toml")
        self.override_dir = os.path.join(self.code_dir, "override")
        self.platform: Optional[Platform] = None
        self.artifact_dir: Optional[str] = None
        self.PATH_list: List[str] = []
        self.LIBPATH_list: List[str] = []
        self.PATH = ""
        self.LIBPATH = ""
        self.handles: Dict[str, ctypes.CDLL] = {}

    def is_overridden(self) -> bool:
        """A developer-provided ``override`` directory replaces the artifact."""
        return os.path.isdir(self.override_dir)

    def calculate_artifact_dir(self) -> str:
        """Resolve (and install if necessary) the artifact for ``self.platform``."""
        if self.is_overridden():
            self.artifact_dir = self.override_dir
            return self.artifact_dir
        entries = artifacts.artifact_entries(artifacts.load_artifacts_toml(self.artifacts_toml), self.name)
        chosen = None
        for entry in entries:
            if self.platform is None or artifacts.unpack_platform(entry) == self.platform:
                chosen = entry
                break
        if chosen is None:
            raise artifacts.ArtifactError(
                f"No artifact named {self.name} bound for {self.platform} in {self.artifacts_toml}"
            )
        self.artifact_dir = artifacts.ensure_artifact(chosen)
        return self.artifact_dir

    def merge_dependencies(self, deps: Iterable[ModuleType]) -> None:
        """Append the search paths of already-initialized dependencies."""
        for dep in deps:
            self.PATH_list.extend(dep.PATH_list)
            self.LIBPATH_list.extend(dep.LIBPATH_list)

    def dlopen(self, path: str, flags: Sequence[str] = DEFAULT_DLOPEN_FLAGS) -> ctypes.CDLL:
        """Open ``path`` now so later lookups by soname resolve to it."""
        mode = 0
        for flag in flags:
            mode |= getattr(os, flag, 0)
        handle = ctypes.CDLL(path, mode=mode or ctypes.DEFAULT_MODE)
        self.handles[path] = handle
        return handle

    def finalize(self, pathsep: str, extra_libpath: Sequence[str] = ()) -> None:
        """Dedup and drop empty entries, then join the search paths."""
        self.PATH_list[:] = _unique(p for p in self.PATH_list if p)
        self.LIBPATH_list[:] = _unique(p for p in self.LIBPATH_list if p)
        self.PATH = pathsep.join(self.PATH_list)
        self.LIBPATH = pathsep.join(list(self.LIBPATH_list) + list(extra_libpath))


def _unique(items: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def host_libdirs(include_bindir: bool = False) -> List[str]:
    """Library directories of the running interpreter.

    On Windows DLLs are found next to the executable, so its directory is
    listed first.
    """
    dirs = []
    if include_bindir:
        dirs.append(os.path.dirname(sys.executable))
    libdir = sysconfig.get_config_var("LIBDIR")
    if libdir:
        dirs.append(libdir)
    return dirs


@contextmanager
def withenv(env_mapping: Dict[str, str]) -> Iterator[None]:
    """Temporarily set environment variables, restoring them on exit."""
    saved = {key: os.environ.get(key) for key in env_mapping}
    os.environ.update(env_mapping)
    try:
        yield
    finally:
        for key, value in saved.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value


def load_wrapper(package_name: str, path: str) -> ModuleType:
    """Execute a generated wrapper file as a submodule of ``package_name``."""
    stem = os.path.splitext(os.path.basename(path))[0]
    module_name = f"{package_name}.wrappers.{stem.replace('-', '_').replace('.', '_')}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    spec.loader.exec_module(module)
    logger.debug("Loaded wrapper %s for %s", stem, package_name)
    return module
