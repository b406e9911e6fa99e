"""Assemble a complete wrapper package from per-platform build outputs.

Layout of a generated package::

    Artifacts.toml
    LICENSE
    Project.toml
    README.md
    src/<Name>_jll/__init__.py              platform dispatch
    src/<Name>_jll/wrappers/<triplet>.py    one wrapper per platform
"""
from __future__ import annotations

import keyword
import logging
import os
import shutil
import textwrap
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence

import semantic_version

from codegen import generate_wrapper
from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, Timer
from errors import InvalidPackageNameError
from identity import jll_uuid
from jllruntime.artifacts import bind_artifact
from jllruntime.platforms import AnyPlatform, Platform, sort_platforms, wrapper_name
from manifest import build_project_dict, check_dependencies, write_project_toml
from package_docs import write_license, write_readme
from products import Product, ProductInfo
from sources import Source
from versioning.models import Dependency

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildOutput:
    """Everything known about one platform's build."""
    tarball_name: str
    tarball_hash: str
    git_hash: str
    products_info: Mapping[Product, ProductInfo]


BuildOutputMeta = Dict[Platform, BuildOutput]


_DISPATCH_HEADER = textwrap.dedent('''\
    """Autogenerated package {jll_name}: loads the wrapper matching the host platform."""
    import logging
    import os

    from jllruntime import artifacts, platforms
    from jllruntime.wrapper import JLLPackage, load_wrapper

    __version__ = {version}
    UUID = {uuid}

    _here = os.path.dirname(os.path.abspath(__file__))
    _wrappers_dir = os.path.join(_here, {wrappers_dir})

    # These inter-package values are always defined, even if no wrapper
    # matches the host platform.
    package = JLLPackage({src_name}, _here)
    PATH_list = package.PATH_list
    LIBPATH_list = package.LIBPATH_list
    ''')

_DISPATCH_ANY = textwrap.dedent('''\

    # We know directly the wrapper we want to load
    package.platform = platforms.AnyPlatform()
    _wrapper = load_wrapper(__name__, os.path.join(_wrappers_dir, "any.py"))
    _wrapper.init(package)
    globals().update({{name: getattr(_wrapper, name) for name in dir(_wrapper) if not name.startswith("_")
                      and name not in ("os", "init", "host_libdirs", "withenv")}})
    ''')

_DISPATCH_SELECT = textwrap.dedent('''\

    # Every platform recorded in Artifacts.toml that has a wrapper on disk
    _platforms = [
        p for p in (
            artifacts.unpack_platform(e)
            for e in artifacts.artifact_entries(artifacts.load_artifacts_toml(package.artifacts_toml), {src_name})
        )
        if os.path.isfile(os.path.join(_wrappers_dir, platforms.wrapper_name(p.triplet()) + ".py"))
    ]

    # From the available options, choose the best platform
    best_platform = platforms.select_platform({{p: p for p in _platforms}})

    if best_platform is None:
        # Unsupported platforms leave the package loaded but inert
        logging.getLogger(__name__).debug(
            "Unable to load %s; unsupported platform %s", {src_name}, platforms.host_platform().triplet()
        )
    else:
        package.platform = best_platform
        _wrapper = load_wrapper(
            __name__, os.path.join(_wrappers_dir, platforms.wrapper_name(best_platform.triplet()) + ".py")
        )
        _wrapper.init(package)
        globals().update({{name: getattr(_wrapper, name) for name in dir(_wrapper) if not name.startswith("_")
                          and name not in ("os", "init", "host_libdirs", "withenv")}})
    ''')


def generate_dispatch(src_name: str, build_version: semantic_version.Version, platforms: Sequence[Platform]) -> str:
    """Source of the package's ``__init__.py``."""
    jll_name = f"{src_name}{Constants.JLL_SUFFIX}"
    source = _DISPATCH_HEADER.format(
        jll_name=jll_name,
        version=repr(str(build_version)),
        uuid=repr(str(jll_uuid(jll_name))),
        wrappers_dir=repr(Constants.WRAPPERS_DIR),
        src_name=repr(src_name),
    )
    if set(platforms) == {AnyPlatform()}:
        source += _DISPATCH_ANY.format()
    else:
        source += _DISPATCH_SELECT.format(src_name=repr(src_name))
    return source


def validate_package_name(src_name: str) -> None:
    """Raise InvalidPackageNameError unless ``src_name`` is a usable identifier."""
    if not src_name.isidentifier() or keyword.iskeyword(src_name):
        raise InvalidPackageNameError(f'Package name "{src_name}" is not a valid identifier')


def clean_generated(code_dir: str) -> None:
    """Delete previously generated sources and artifact bindings."""
    shutil.rmtree(os.path.join(code_dir, "src"), ignore_errors=True)
    artifacts_toml = os.path.join(code_dir, Constants.ARTIFACTS_TOML)
    if os.path.exists(artifacts_toml):
        os.remove(artifacts_toml)


def build_jll_package(
    src_name: str,
    build_version: semantic_version.Version,
    sources: Sequence[Source],
    code_dir: str,
    build_output_meta: BuildOutputMeta,
    dependencies: Sequence[Dependency],
    bin_path: str,
    *,
    verbose: bool = False,
    lazy_artifacts: bool = False,
    init_block: str = "",
    from_scratch: bool = False,
) -> None:
    """Generate the package ``<src_name>_jll`` inside ``code_dir``.

    Args:
        src_name: Package name without the ``_jll`` suffix.
        build_version: Fully resolved version, including the build number.
        sources: Sources the binaries were built from (README only).
        code_dir: Root of the package tree; created if needed.
        build_output_meta: Build output per platform.
        dependencies: Runtime dependencies of the package.
        bin_path: Download location prefix of the tarballs.
        verbose: Log one line per generated platform.
        lazy_artifacts: Mark artifacts as lazily downloaded.
        init_block: Extra code run at the end of every wrapper's ``init``.
        from_scratch: Remove previously generated sources and artifact
            bindings first.

    Raises:
        InvalidPackageNameError: If ``src_name`` is not an identifier.
        BuildDependencyError: If a build-only dependency is passed.
    """
    validate_package_name(src_name)
    check_dependencies(dependencies)
    if from_scratch:
        clean_generated(code_dir)

    jll_name = f"{src_name}{Constants.JLL_SUFFIX}"
    package_dir = os.path.join(code_dir, "src", jll_name)
    wrappers_dir = os.path.join(package_dir, Constants.WRAPPERS_DIR)
    os.makedirs(wrappers_dir, exist_ok=True)
    artifacts_toml = os.path.join(code_dir, Constants.ARTIFACTS_TOML)

    platforms = sort_platforms(build_output_meta.keys())
    all_products: List[Product] = []
    with Timer() as t:
        for platform in platforms:
            if verbose:
                logger.info("Generating package for %s in %s", platform.triplet(), code_dir)

            # Each of these can be platform-specific, including the set of products
            output = build_output_meta[platform]
            download_info = [(f"{bin_path.rstrip('/')}/{os.path.basename(output.tarball_name)}", output.tarball_hash)]
            bind_artifact(
                artifacts_toml,
                src_name,
                output.git_hash,
                platform=None if isinstance(platform, AnyPlatform) else platform,
                download_info=download_info,
                lazy=lazy_artifacts,
            )

            wrapper_path = os.path.join(wrappers_dir, f"{wrapper_name(platform.triplet())}.py")
            with open(wrapper_path, "w", encoding="utf-8") as fh:
                fh.write(generate_wrapper(src_name, platform, output.products_info, dependencies, init_block))
            all_products.extend(output.products_info.keys())

    if is_debug_enabled(logger):
        logger.debug(
            "Generated wrappers",
            extra=extra_context(
                event="codegen",
                component="assembler",
                target=jll_name,
                count=len(platforms),
                duration_ms=t.duration_ms()
            )
        )

    with open(os.path.join(package_dir, "__init__.py"), "w", encoding="utf-8") as fh:
        fh.write(generate_dispatch(src_name, build_version, platforms))

    write_readme(
        os.path.join(code_dir, "README.md"),
        src_name,
        build_version,
        sources,
        platforms,
        dependencies,
        all_products,
    )
    write_license(code_dir, src_name)

    project = build_project_dict(src_name, build_version, dependencies)
    write_project_toml(os.path.join(code_dir, Constants.PROJECT_TOML), project)
    logger.info("Generated %s v%s in %s", jll_name, build_version, code_dir)
