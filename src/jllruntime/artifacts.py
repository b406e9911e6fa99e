"""Artifact registry files (``Artifacts.toml``) and the local artifact depot.

An artifact binding is either unconditional (one table) or a list of
platform-tagged tables::

    [[Name]]
    arch = "x86_64"
    git-tree-sha1 = "..."
    libc = "glibc"
    os = "linux"
    lazy = true

        [[Name.download]]
        sha256 = "..."
        url = "..."
"""
from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tarfile
import tempfile
import tomllib
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests
import tomli_w

from .platforms import AnyPlatform, Platform, platform_from_tags
from .treehash import tree_hash

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 60
ENV_DEPOT = "JLLGEN_DEPOT"
DEFAULT_DEPOT = "~/.jllgen"


class ArtifactError(Exception):
    """An artifact could not be found, downloaded or verified."""


def load_artifacts_toml(path: str) -> Dict[str, Any]:
    """Parse an artifact registry file; a missing file is an empty registry."""
    if not os.path.isfile(path):
        return {}
    with open(path, "rb") as fh:
        return tomllib.load(fh)


def _entries(value: Any) -> List[Dict[str, Any]]:
    return [value] if isinstance(value, dict) else list(value or [])


def unpack_platform(entry: Dict[str, Any]) -> Platform:
    """Platform key described by a single artifact entry."""
    return platform_from_tags({k: v for k, v in entry.items() if isinstance(v, str)})


def artifact_entries(artifacts: Dict[str, Any], name: str) -> List[Dict[str, Any]]:
    """All entries bound under ``name``."""
    return _entries(artifacts.get(name))


def bind_artifact(
    artifacts_toml: str,
    name: str,
    git_tree_sha1: str,
    *,
    platform: Optional[Platform] = None,
    download_info: Sequence[Tuple[str, str]] = (),
    lazy: bool = False,
) -> None:
    """Record ``name`` -> ``git_tree_sha1`` in ``artifacts_toml``.

    An existing binding for the same platform is overwritten; without a
    platform the binding becomes unconditional and replaces every entry.
    """
    artifacts = load_artifacts_toml(artifacts_toml)
    entry: Dict[str, Any] = {}
    if platform is not None and not isinstance(platform, AnyPlatform):
        entry.update(platform.tags())
    entry["git-tree-sha1"] = git_tree_sha1
    if lazy:
        entry["lazy"] = True
    if download_info:
        entry["download"] = [{"sha256": sha, "url": url} for url, sha in download_info]

    if platform is None or isinstance(platform, AnyPlatform):
        artifacts[name] = entry
    else:
        kept = [
            e for e in _entries(artifacts.get(name))
            if "os" in e and unpack_platform(e) != platform
        ]
        kept.append(entry)
        kept.sort(key=lambda e: unpack_platform(e).triplet())
        artifacts[name] = kept

    with open(artifacts_toml, "wb") as fh:
        tomli_w.dump(artifacts, fh)


def depot_path() -> str:
    return os.path.expanduser(os.environ.get(ENV_DEPOT, DEFAULT_DEPOT))


def artifact_path(git_tree_sha1: str) -> str:
    return os.path.join(depot_path(), "artifacts", git_tree_sha1)


def _download(url: str, sha256: str, dest: str) -> None:
    h = hashlib.sha256()
    try:
        with requests.get(url, stream=True, timeout=REQUEST_TIMEOUT) as res:
            res.raise_for_status()
            with open(dest, "wb") as fh:
                for chunk in res.iter_content(chunk_size=1 << 16):
                    h.update(chunk)
                    fh.write(chunk)
    except requests.RequestException as exc:
        raise ArtifactError(f"Unable to download {url}: {exc}") from exc
    if h.hexdigest() != sha256:
        raise ArtifactError(f"Hash mismatch for {url}: expected {sha256}, got {h.hexdigest()}")


def ensure_artifact(entry: Dict[str, Any]) -> str:
    """Return the installed directory of ``entry``, downloading it if needed.

    Raises:
        ArtifactError: If no download source yields the expected tree.
    """
    git_tree_sha1 = entry["git-tree-sha1"]
    dest = artifact_path(git_tree_sha1)
    if os.path.isdir(dest):
        return dest

    errors = []
    os.makedirs(os.path.dirname(dest), exist_ok=True)
    for download in entry.get("download", []):
        with tempfile.TemporaryDirectory(dir=os.path.dirname(dest)) as scratch:
            tarball = os.path.join(scratch, "download.tar.gz")
            unpacked = os.path.join(scratch, "unpacked")
            try:
                _download(download["url"], download["sha256"], tarball)
                with tarfile.open(tarball) as tar:
                    tar.extractall(unpacked, filter="data")
            except (ArtifactError, tarfile.TarError) as exc:
                errors.append(str(exc))
                continue
            actual = tree_hash(unpacked)
            if actual != git_tree_sha1:
                errors.append(f"tree hash mismatch: expected {git_tree_sha1}, got {actual}")
                continue
            try:
                os.rename(unpacked, dest)
            except OSError:
                # another process installed it first
                if not os.path.isdir(dest):
                    raise
                shutil.rmtree(unpacked, ignore_errors=True)
            logger.info("Installed artifact %s", git_tree_sha1)
            return dest
    raise ArtifactError(f"Unable to install artifact {git_tree_sha1}: {'; '.join(errors) or 'no download sources'}")
