"""README and LICENSE emission for generated packages."""
from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, TextIO

import semantic_version

from constants import Constants
from jllruntime.platforms import Platform, sort_platforms
from products import Product, product_kind, unique_products
from sources import ArchiveSource, DirectorySource, FileSource, GitSource, Source
from versioning.models import AbstractDependency, getname

logger = logging.getLogger(__name__)

MIT_LICENSE = """\
Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.
"""


def license_note(src_name: str) -> List[str]:
    """Scope notice placed ahead of the license text."""
    return f"""\
The Python source code within this repository (all files under `src/`) are
released under the terms of the MIT "Expat" License, the text of which is
included below.  This license does not apply to the binary package wrapped by
this Python package and automatically downloaded by the package runtime
upon installing this wrapper package.  The binary package's license is shipped
alongside the binary itself and can be found within the
`share/licenses/{src_name}` directory within its prefix.""".split("\n")


class CIEnvironment:
    """Provenance details of a recognized CI build, read from the environment."""

    def __init__(self, environ=None):
        environ = os.environ if environ is None else environ
        self.enabled = environ.get(Constants.ENV_CI_FLAG, "false") == "true"
        self.commit = environ.get(Constants.ENV_CI_COMMIT, "") if self.enabled else ""
        self.project = environ.get(Constants.ENV_CI_PROJECT, "") if self.enabled else ""


def _print_source(io: TextIO, s: Source, ci: CIEnvironment) -> None:
    if isinstance(s, ArchiveSource):
        print(f"* compressed archive: {s.url} (SHA256 checksum: `{s.hash}`)", file=io)
    elif isinstance(s, GitSource):
        print(f"* git repository: {s.url} (revision: `{s.hash}`)", file=io)
    elif isinstance(s, FileSource):
        print(f"* file: {s.url} (SHA256 checksum: `{s.hash}`)", file=io)
    elif isinstance(s, DirectorySource):
        prefix = "* files in directory, relative to originating build recipe: "
        if ci.enabled:
            link = f"{Constants.CI_TREE_URL}/tree/{ci.commit}/{ci.project}/{os.path.basename(s.path.rstrip('/'))}"
            print(f"{prefix}[`{s.path}`]({link})", file=io)
        else:
            print(f"{prefix}`{s.path}`", file=io)
    else:
        raise TypeError(f"Unsupported source type {type(s).__name__}")


def _print_dependency(io: TextIO, dep: AbstractDependency, ci: CIEnvironment) -> None:
    depname = getname(dep)
    if ci.enabled:
        print(f"* [`{depname}`]({Constants.WRAPPERS_ORG_URL}/{depname}.jl)", file=io)
    else:
        print(f"* `{depname}`", file=io)


def write_readme(
    path: str,
    src_name: str,
    build_version: semantic_version.Version,
    sources: Sequence[Source],
    platforms: Iterable[Platform],
    dependencies: Sequence[AbstractDependency],
    products: Iterable[Product],
    ci: Optional[CIEnvironment] = None,
) -> None:
    """Write README.md describing sources, platforms, dependencies and products."""
    ci = ci or CIEnvironment()
    jll_name = f"{src_name}{Constants.JLL_SUFFIX}"
    with open(path, "w", encoding="utf-8") as io:
        io.write(f"# `{jll_name}` (v{build_version})\n\n")
        io.write("This is an autogenerated package constructed using `jllgen`.")
        if ci.enabled:
            recipe = f"{Constants.CI_TREE_URL}/blob/{ci.commit}/{ci.project}/build_tarballs.jl"
            print(f" The originating [`build_tarballs.jl`]({recipe}) script can be found on "
                  f"[`Yggdrasil`]({Constants.CI_TREE_URL}/), the community build tree.", file=io)
            print(f"\n## Bug Reports\n\nIf you have any issue, please report it to the Yggdrasil "
                  f"[bug tracker]({Constants.CI_TREE_URL}/issues).", file=io)
        print("\n", file=io)
        if sources:
            print(f"## Sources\n\nThe tarballs for `{jll_name}` have been built from these sources:\n", file=io)
            for s in sources:
                _print_source(io, s, ci)
            print(file=io)
        print(f"## Platforms\n\n`{jll_name}` is available for the following platforms:\n", file=io)
        for p in sort_platforms(platforms):
            print(f"* `{p}` (`{p.triplet()}`)", file=io)
        if dependencies:
            print(f"\n## Dependencies\n\nThe following packages are required by `{jll_name}`:\n", file=io)
            for dep in sorted(dependencies, key=getname):
                _print_dependency(io, dep, ci)
        products = unique_products(products)
        if products:
            print("\n## Products\n\nThe code bindings within this package are autogenerated "
                  "from the following `Products`:\n", file=io)
            for p in products:
                print(f"* `{product_kind(p)}`: `{p.variable_name}`", file=io)


def write_license(code_dir: str, src_name: str) -> None:
    """Prepend the scope notice to LICENSE, once.

    An existing LICENSE is kept below the notice; otherwise an MIT license
    is generated. A leftover LICENSE.md from older layouts is removed.
    """
    license_path = os.path.join(code_dir, "LICENSE")
    if os.path.isfile(license_path):
        with open(license_path, encoding="utf-8") as fh:
            license_text = fh.read().strip()
    else:
        license_text = f"MIT License\n\nCopyright (c) {datetime.now().year}\n\n{MIT_LICENSE}".strip()

    note_lines = license_note(src_name)
    if not license_text.startswith(note_lines[0]):
        with open(license_path, "w", encoding="utf-8") as io:
            for line in note_lines:
                print(line, file=io)
            print(file=io)
            print(license_text, file=io)
    else:
        logger.debug("LICENSE for %s already carries the scope notice", src_name)

    legacy = os.path.join(code_dir, "LICENSE.md")
    if os.path.exists(legacy):
        os.remove(legacy)
