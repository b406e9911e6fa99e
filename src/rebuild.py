"""Regenerate a wrapper package from tarballs that were already built."""
from __future__ import annotations

import hashlib
import logging
import os
import tarfile
import tempfile
from typing import Dict, Optional, Sequence

import semantic_version

from assembler import BuildOutput, build_jll_package
from auditor import get_soname
from errors import IncompleteReleaseError
from jllruntime.platforms import Platform, sort_platforms
from jllruntime.treehash import tree_hash
from locate import locate_product
from products import Product, ProductInfo, is_library
from sources import Source
from versioning.models import Dependency

logger = logging.getLogger(__name__)


def file_sha256(path: str) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(1 << 16), b""):
            digest.update(chunk)
    return digest.hexdigest()


def find_tarball(download_dir: str, platform: Platform) -> str:
    """Path of the tarball built for ``platform`` in ``download_dir``.

    Raises:
        IncompleteReleaseError: If no file carries the platform's triplet.
    """
    marker = f".{platform.triplet()}."
    candidates = sorted(name for name in os.listdir(download_dir) if marker in name)
    if not candidates:
        raise IncompleteReleaseError(f"Incomplete JLL release! Could not find tarball for {platform.triplet()}")
    if len(candidates) > 1:
        logger.warning("Several tarballs match %s, using %s", platform.triplet(), candidates[0])
    return os.path.join(download_dir, candidates[0])


def inspect_tarball(
    tarball_path: str,
    platform: Platform,
    products: Sequence[Product],
) -> BuildOutput:
    """Hash ``tarball_path`` and find every product inside it.

    Raises:
        IncompleteReleaseError: If a product is missing from the tarball.
    """
    tarball_hash = file_sha256(tarball_path)
    products_info: Dict[Product, ProductInfo] = {}
    with tempfile.TemporaryDirectory() as prefix:
        with tarfile.open(tarball_path) as tar:
            tar.extractall(prefix, filter="data")
        git_hash = tree_hash(prefix)
        for p in products:
            product_path = locate_product(p, prefix, platform)
            if product_path is None:
                raise IncompleteReleaseError(
                    f"Unable to locate {p.variable_name} within {os.path.basename(tarball_path)}"
                )
            soname = None
            if is_library(p):
                soname = get_soname(product_path, platform) or os.path.basename(product_path)
            products_info[p] = ProductInfo(path=os.path.relpath(product_path, prefix), soname=soname)
    return BuildOutput(
        tarball_name=os.path.basename(tarball_path),
        tarball_hash=tarball_hash,
        git_hash=git_hash,
        products_info=products_info,
    )


def rebuild_jll_package(
    name: str,
    build_version: semantic_version.Version,
    sources: Sequence[Source],
    platforms: Sequence[Platform],
    products: Sequence[Product],
    dependencies: Sequence[Dependency],
    download_dir: str,
    upload_prefix: str,
    *,
    code_dir: Optional[str] = None,
    verbose: bool = False,
    lazy_artifacts: bool = False,
    init_block: str = "",
    from_scratch: bool = True,
) -> None:
    """Rebuild ``<name>_jll`` from the tarballs in ``download_dir``.

    All platforms are inspected before anything is written, so a missing
    tarball or product leaves ``code_dir`` untouched.
    """
    if code_dir is None:
        code_dir = os.path.join(os.getcwd(), f"{name}_jll")

    build_output_meta: Dict[Platform, BuildOutput] = {}
    for platform in sort_platforms(platforms):
        tarball_path = find_tarball(download_dir, platform)
        if verbose:
            logger.info("Inspecting %s", os.path.basename(tarball_path))
        build_output_meta[platform] = inspect_tarball(tarball_path, platform, products)

    build_jll_package(
        name,
        build_version,
        sources,
        code_dir,
        build_output_meta,
        dependencies,
        upload_prefix,
        verbose=verbose,
        lazy_artifacts=lazy_artifacts,
        init_block=init_block,
        from_scratch=from_scratch,
    )
