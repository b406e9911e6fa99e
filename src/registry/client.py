"""Package registry client: locate registered packages and their published versions.

A registry root is either an HTTP(S) base URL serving the registry tree or
a local checkout of it. The layout is::

    Registry.toml            [packages] <uuid> = { name = ..., path = ... }
    <path>/Package.toml
    <path>/Versions.toml     ["1.2.11+0"] git-tree-sha1 = ...
"""
from __future__ import annotations

import logging
import os
import subprocess
import tomllib
from typing import Any, Dict, List, Optional
from uuid import UUID

from constants import Constants
from common.http_client import safe_get
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from errors import RegistryError

logger = logging.getLogger(__name__)


def _is_remote(root: str) -> bool:
    return root.startswith(("http://", "https://"))


def default_registry_roots() -> List[str]:
    """Registry roots from ``JLLGEN_REGISTRIES`` (os.pathsep separated) or Constants."""
    env = os.environ.get(Constants.ENV_REGISTRIES)
    if env:
        return [r for r in env.split(os.pathsep) if r.strip()]
    return list(Constants.REGISTRY_URLS)


class RegistryClient:
    """Read-only view over one or more package registries."""

    def __init__(self, roots: Optional[List[str]] = None):
        self.roots = roots if roots is not None else default_registry_roots()
        self._indexes: Dict[str, Dict[str, Any]] = {}

    def update(self) -> None:
        """Refresh every registry so recent publishes become visible.

        Local checkouts that are git repositories are fast-forwarded; remote
        roots simply have their cached index dropped.

        Raises:
            RegistryError: If a local checkout cannot be updated.
        """
        self._indexes.clear()
        for root in self.roots:
            if _is_remote(root) or not os.path.isdir(os.path.join(root, ".git")):
                continue
            logger.info("Updating registry at %s", root)
            try:
                subprocess.run(
                    ["git", "-C", root, "pull", "--ff-only", "--quiet"],
                    check=True,
                    capture_output=True,
                    text=True,
                )
            except (OSError, subprocess.CalledProcessError) as exc:
                detail = getattr(exc, "stderr", None) or str(exc)
                raise RegistryError(f"Unable to update registry {root}: {detail.strip()}") from exc

    def _read(self, root: str, relpath: str) -> Optional[str]:
        """Return file contents, or None when the file does not exist."""
        if _is_remote(root):
            url = f"{root.rstrip('/')}/{relpath}"
            res = safe_get(url, context="registry", error_cls=RegistryError)
            if res.status_code == 404:
                return None
            if res.status_code != 200:
                raise RegistryError(
                    f"Registry request to {safe_url(url)} failed with HTTP {res.status_code}"
                )
            return res.text
        path = os.path.join(root, *relpath.split("/"))
        if not os.path.isfile(path):
            return None
        with open(path, encoding="utf-8") as fh:
            return fh.read()

    def _load_toml(self, root: str, relpath: str) -> Optional[Dict[str, Any]]:
        text = self._read(root, relpath)
        if text is None:
            return None
        try:
            return tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise RegistryError(f"Malformed {relpath} in registry {root}: {exc}") from exc

    def _index(self, root: str) -> Dict[str, Any]:
        if root not in self._indexes:
            data = self._load_toml(root, "Registry.toml")
            if data is None:
                raise RegistryError(f"No Registry.toml found in registry {root}")
            self._indexes[root] = data.get("packages", {})
        return self._indexes[root]

    def registered_paths(self, uuid: UUID) -> List[str]:
        """Return every registry location of ``uuid`` as a ``root/path`` string."""
        paths = []
        for root in self.roots:
            entry = self._index(root).get(str(uuid))
            if entry and entry.get("path"):
                paths.append(f"{root.rstrip('/')}/{entry['path']}")
        return paths

    def load_versions(self, package_path: str) -> List[str]:
        """Return every version key listed in ``<package_path>/Versions.toml``."""
        for root in self.roots:
            prefix = root.rstrip("/") + "/"
            if package_path.startswith(prefix):
                relpath = package_path[len(prefix):]
                if self._read(root, f"{relpath}/Package.toml") is None:
                    return []
                data = self._load_toml(root, f"{relpath}/Versions.toml") or {}
                return list(data.keys())
        raise RegistryError(f"{package_path} does not belong to a configured registry")

    def published_versions(self, uuid: UUID) -> List[str]:
        """All version strings published for ``uuid`` across registries."""
        versions: List[str] = []
        for path in self.registered_paths(uuid):
            found = self.load_versions(path)
            if is_debug_enabled(logger):
                logger.debug(
                    "Loaded published versions",
                    extra=extra_context(
                        event="registry_versions",
                        component="registry",
                        target=path,
                        count=len(found)
                    )
                )
            versions.extend(found)
        return versions
