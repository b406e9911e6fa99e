"""Find products inside an unpacked binary tree."""
from __future__ import annotations

import logging
import os
import re
from typing import Callable, Dict, List, Optional

from jllruntime.platforms import MacOS, Platform, Windows
from products import ExecutableProduct, FileProduct, FrameworkProduct, LibraryProduct, Product, dispatch

logger = logging.getLogger(__name__)


def _library_pattern(libname: str, platform: Platform) -> re.Pattern:
    name = re.escape(libname)
    if isinstance(platform, Windows):
        return re.compile(rf"^{name}(-[\d.]+)?\.dll$", re.IGNORECASE)
    if isinstance(platform, MacOS):
        return re.compile(rf"^{name}(\.[\d]+)*\.dylib$")
    return re.compile(rf"^{name}\.so(\.[\d]+)*$")


def _default_libdirs(platform: Platform) -> List[str]:
    if isinstance(platform, Windows):
        return ["bin"]
    return ["lib", "lib64"]


def _locate_library(p: LibraryProduct, prefix: str, platform: Platform) -> Optional[str]:
    for dir_path in p.dir_paths or _default_libdirs(platform):
        directory = os.path.join(prefix, dir_path)
        if not os.path.isdir(directory):
            continue
        names = sorted(os.listdir(directory))
        for libname in p.libnames:
            pattern = _library_pattern(libname, platform)
            # Prefer the shortest match, which is usually the unversioned link
            matches = sorted((n for n in names if pattern.match(n)), key=lambda n: (len(n), n))
            for match in matches:
                path = os.path.join(directory, match)
                if os.path.isfile(path):
                    return path
    return None


def _locate_framework(p: FrameworkProduct, prefix: str, platform: Platform) -> Optional[str]:
    if isinstance(platform, MacOS):
        bundle = os.path.join(prefix, "lib", f"{p.framework_name}.framework")
        for candidate in (
            os.path.join(bundle, p.framework_name),
            os.path.join(bundle, "Versions", "Current", p.framework_name),
        ):
            if os.path.isfile(candidate):
                return candidate
        return None
    return _locate_library(p.libraryproduct, prefix, platform)


def _locate_executable(p: ExecutableProduct, prefix: str, platform: Platform) -> Optional[str]:
    directory = os.path.join(prefix, p.dir_path or "bin")
    for binname in p.binnames:
        filename = f"{binname}.exe" if isinstance(platform, Windows) and not binname.endswith(".exe") else binname
        path = os.path.join(directory, filename)
        if os.path.isfile(path):
            return path
    return None


def _locate_file(p: FileProduct, prefix: str, platform: Platform) -> Optional[str]:
    path = os.path.join(prefix, p.path)
    return path if os.path.exists(path) else None


_LOCATORS: Dict[type, Callable[[Product, str, Platform], Optional[str]]] = {
    LibraryProduct: _locate_library,
    FrameworkProduct: _locate_framework,
    ExecutableProduct: _locate_executable,
    FileProduct: _locate_file,
}


def locate_product(p: Product, prefix: str, platform: Platform) -> Optional[str]:
    """Absolute path of ``p`` within ``prefix``, or None if it is not there."""
    path = dispatch(_LOCATORS, p)(p, prefix, platform)
    if path is None:
        logger.debug("Could not locate %s under %s for %s", p.variable_name, prefix, platform.triplet())
    return path
