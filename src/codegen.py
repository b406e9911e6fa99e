"""Per-platform wrapper source generation.

A wrapper module declares one block of globals per product and an
``init(package)`` function that the package's dispatch module calls once
the wrapper matching the host has been picked. Everything is emitted in
sorted order so identical inputs give byte-identical sources.
"""
from __future__ import annotations

import json
import os
import textwrap
from pathlib import PurePosixPath
from typing import Callable, Dict, List, Mapping, Sequence, Tuple

from constants import Constants
from jllruntime.platforms import MacOS, Platform, Windows
from products import (
    ExecutableProduct,
    FileProduct,
    FrameworkProduct,
    LibraryProduct,
    Product,
    ProductInfo,
    dispatch,
    sort_products,
)
from versioning.models import AbstractDependency, getname


def _lit(value: str) -> str:
    return json.dumps(value)


def _tuple_lit(items: Sequence[str]) -> str:
    if len(items) == 1:
        return f"({_lit(items[0])},)"
    return "(" + ", ".join(_lit(i) for i in items) + ")"


def splitpath(path: str) -> Tuple[str, ...]:
    """Path components of a tree-relative path, whatever separator it uses."""
    return tuple(part for part in PurePosixPath(path.replace("\\", "/")).parts if part not in ("", "."))


def libpath_settings(platform: Platform) -> Tuple[str, str, str]:
    """(library search variable, its default value, path separator) for ``platform``."""
    if isinstance(platform, Windows):
        return "PATH", "", ";"
    if isinstance(platform, MacOS):
        return "DYLD_FALLBACK_LIBRARY_PATH", "~/lib:/usr/local/lib:/lib:/usr/lib", ":"
    return "LD_LIBRARY_PATH", "", ":"


# ---------- global declarations ----------


def _declare_library(p: Product, info: ProductInfo, pathsep: str) -> str:
    vp = p.variable_name
    soname = info.soname or os.path.basename(info.path)
    return textwrap.dedent(f"""\
        # This will be filled out by init()
        {vp}_handle = None

        # Name other libraries use to link against this one
        {vp} = {_lit(soname)}
        """)


def _declare_executable(p: Product, info: ProductInfo, pathsep: str) -> str:
    vp = p.variable_name
    return textwrap.dedent(f'''\
        def {vp}(f, adjust_PATH=True, adjust_LIBPATH=True):
            """Call ``f`` with the path of `{vp}` under an adjusted PATH and library search path."""
            env_mapping = {{}}
            if adjust_PATH:
                if os.environ.get("PATH", ""):
                    env_mapping["PATH"] = PATH + {_lit(pathsep)} + os.environ["PATH"]
                else:
                    env_mapping["PATH"] = PATH
            if adjust_LIBPATH:
                LIBPATH_base = os.environ.get(LIBPATH_env, os.path.expanduser(LIBPATH_default))
                if LIBPATH_base:
                    env_mapping[LIBPATH_env] = LIBPATH + {_lit(pathsep)} + LIBPATH_base
                else:
                    env_mapping[LIBPATH_env] = LIBPATH
            with withenv(env_mapping):
                return f({vp}_path)
        ''')


def _declare_file(p: Product, info: ProductInfo, pathsep: str) -> str:
    return textwrap.dedent(f"""\
        # This will be filled out by init()
        {p.variable_name} = ""
        """)


_DECLARATIONS: Dict[type, Callable[[Product, ProductInfo, str], str]] = {
    LibraryProduct: _declare_library,
    FrameworkProduct: _declare_library,
    ExecutableProduct: _declare_executable,
    FileProduct: _declare_file,
}


# ---------- init() statements ----------


def _init_library(p: Product) -> Tuple[List[str], str]:
    vp = p.variable_name
    body = textwrap.dedent(f"""\
        # Open this right now so that later lookups by soname find this path immediately
        {vp}_handle = package.dlopen({vp}_path, {_tuple_lit(p.dlopen_flags)})
        package.LIBPATH_list.append(os.path.dirname({vp}_path))
        """)
    return [f"{vp}_handle"], body


def _init_executable(p: Product) -> Tuple[List[str], str]:
    return [], f"package.PATH_list.append(os.path.dirname({p.variable_name}_path))\n"


def _init_file(p: Product) -> Tuple[List[str], str]:
    vp = p.variable_name
    return [vp], f"{vp} = {vp}_path\n"


_INITIALIZERS: Dict[type, Callable[[Product], Tuple[List[str], str]]] = {
    LibraryProduct: _init_library,
    FrameworkProduct: _init_library,
    ExecutableProduct: _init_executable,
    FileProduct: _init_file,
}


def _indent(text: str) -> str:
    return textwrap.indent(text, "    ")


def generate_wrapper(
    src_name: str,
    platform: Platform,
    products_info: Mapping[Product, ProductInfo],
    dependencies: Sequence[AbstractDependency],
    init_block: str = "",
) -> str:
    """Return the wrapper module source for one platform."""
    libpath_env, libpath_default, pathsep = libpath_settings(platform)
    products = sort_products(products_info)
    dep_names = sorted(getname(dep) for dep in dependencies)

    out = [f"# Autogenerated wrapper script for {src_name}{Constants.JLL_SUFFIX} for {platform.triplet()}\n"]
    out.append("import os\n\n")
    out.append("from jllruntime.wrapper import host_libdirs, withenv\n")
    for dep_name in dep_names:
        out.append(f"import {dep_name}\n")
    out.append("\n")
    if products:
        names = ", ".join(_lit(p.variable_name) for p, _ in products)
        out.append(f"__all__ = [{names}]\n\n")

    out.append(textwrap.dedent(f"""\
        ## Global variables
        PATH = ""
        LIBPATH = ""
        LIBPATH_env = {_lit(libpath_env)}
        LIBPATH_default = {_lit(libpath_default)}

        """))

    for p, info in products:
        vp = p.variable_name
        declaration = dispatch(_DECLARATIONS, p)(p, info, pathsep)
        out.append(textwrap.dedent(f"""\
            # Relative path to `{vp}`
            {vp}_splitpath = {_tuple_lit(splitpath(info.path))}

            # This will be filled out by init() for all products, as it must be done at runtime
            {vp}_path = ""

            # {vp}-specific global declaration
            """))
        out.append(declaration)
        out.append("\n")

    body = [
        "# This either resolves the installed artifact, or returns the override directory\n"
        "artifact_dir = package.calculate_artifact_dir()\n"
    ]
    globals_lines = ["global PATH, LIBPATH\n"]
    if dep_names:
        deps_tuple = "(" + ", ".join(dep_names) + ("," if len(dep_names) == 1 else "") + ")"
        body.append(
            "# Our dependencies have been initialized already; append their PATH and LIBPATH lists to ours\n"
            f"package.merge_dependencies({deps_tuple})\n"
        )
    for p, _ in products:
        vp = p.variable_name
        assigned, statements = dispatch(_INITIALIZERS, p)(p)
        globals_lines.append("global " + ", ".join([f"{vp}_path"] + assigned) + "\n")
        body.append(
            f"{vp}_path = os.path.normpath(os.path.join(artifact_dir, *{vp}_splitpath))\n" + statements
        )

    include_bindir = "True" if isinstance(platform, Windows) else "False"
    body.append(
        "# Filter out duplicate and empty entries in our PATH and LIBPATH entries\n"
        f"package.finalize({_lit(pathsep)}, host_libdirs(include_bindir={include_bindir}))\n"
        "PATH = package.PATH\n"
        "LIBPATH = package.LIBPATH\n"
    )
    if init_block.strip():
        body.append(textwrap.dedent(init_block).strip("\n") + "\n")

    out.append("\ndef init(package):\n")
    out.append('    """Resolve the artifact, compute product paths and open all libraries."""\n')
    out.append(_indent("".join(globals_lines)))
    out.append(_indent("\n".join(body)))
    return "".join(out)
