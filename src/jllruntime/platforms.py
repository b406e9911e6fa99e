"""Platform keys, triplets and host platform selection."""
from __future__ import annotations

import logging
import platform as _platform
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, TypeVar

from packaging import tags

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "x86_64": "x86_64",
    "i386": "i686",
    "i686": "i686",
    "x86": "i686",
    "arm64": "aarch64",
    "aarch64": "aarch64",
    "armv7l": "armv7l",
    "armv6l": "armv6l",
    "ppc64le": "powerpc64le",
    "powerpc64le": "powerpc64le",
}

_LIBC_SUFFIX = {"glibc": "gnu", "musl": "musl"}


class Platform(ABC):
    """Base class of platform keys; subclasses are frozen dataclasses."""

    os_name = ""

    @abstractmethod
    def triplet(self) -> str:
        """Canonical triplet, e.g. ``x86_64-linux-gnu``."""

    @abstractmethod
    def tags(self) -> Dict[str, str]:
        """Key/value description used in artifact registries."""

    def __str__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.tags().items() if k != "os")
        return f"{type(self).__name__}({fields})"


@dataclass(frozen=True)
class Linux(Platform):
    arch: str = "x86_64"
    libc: str = "glibc"
    call_abi: Optional[str] = None

    os_name = "linux"

    def triplet(self) -> str:
        return f"{self.arch}-linux-{_LIBC_SUFFIX[self.libc]}{self.call_abi or ''}"

    def tags(self) -> Dict[str, str]:
        result = {"os": self.os_name, "arch": self.arch, "libc": self.libc}
        if self.call_abi:
            result["call_abi"] = self.call_abi
        return result


@dataclass(frozen=True)
class MacOS(Platform):
    arch: str = "x86_64"

    os_name = "macos"

    def triplet(self) -> str:
        darwin = "darwin20" if self.arch == "aarch64" else "darwin14"
        return f"{self.arch}-apple-{darwin}"

    def tags(self) -> Dict[str, str]:
        return {"os": self.os_name, "arch": self.arch}


@dataclass(frozen=True)
class Windows(Platform):
    arch: str = "x86_64"

    os_name = "windows"

    def triplet(self) -> str:
        return f"{self.arch}-w64-mingw32"

    def tags(self) -> Dict[str, str]:
        return {"os": self.os_name, "arch": self.arch}


@dataclass(frozen=True)
class FreeBSD(Platform):
    arch: str = "x86_64"

    os_name = "freebsd"

    def triplet(self) -> str:
        return f"{self.arch}-unknown-freebsd11.1"

    def tags(self) -> Dict[str, str]:
        return {"os": self.os_name, "arch": self.arch}


@dataclass(frozen=True)
class AnyPlatform(Platform):
    """Sentinel for platform-independent artifacts."""

    os_name = "any"

    def triplet(self) -> str:
        return "any"

    def tags(self) -> Dict[str, str]:
        return {}


def triplet(p: Platform) -> str:
    return p.triplet()


def sort_platforms(platforms: Iterable[Platform]) -> List[Platform]:
    """Platforms ordered by triplet, the order used in all generated output."""
    return sorted(platforms, key=triplet)


def wrapper_name(trip: str) -> str:
    """Name of the wrapper source for a triplet.

    Older hosts spelled armv7l as ``arm-``; wrappers always use the newer
    spelling, both when they are written and when they are looked up.
    """
    return trip.replace("arm-", "armv7l-")


def parse_triplet(trip: str) -> Platform:
    """Parse a triplet produced by :meth:`Platform.triplet`.

    Raises:
        ValueError: If ``trip`` is not a recognized triplet.
    """
    if trip == "any":
        return AnyPlatform()
    trip = wrapper_name(trip)
    parts = trip.split("-")
    if len(parts) < 3:
        raise ValueError(f"Unrecognized platform triplet {trip!r}")
    arch = _ARCH_ALIASES.get(parts[0], parts[0])
    rest = "-".join(parts[1:])
    if rest.startswith("linux-"):
        abi = rest[len("linux-"):]
        libc = "musl" if abi.startswith("musl") else "glibc"
        call_abi = abi[len(_LIBC_SUFFIX[libc]):] or None
        return Linux(arch, libc=libc, call_abi=call_abi)
    if rest.startswith("apple-darwin"):
        return MacOS(arch)
    if rest.startswith("w64-mingw32"):
        return Windows(arch)
    if rest.startswith("unknown-freebsd"):
        return FreeBSD(arch)
    raise ValueError(f"Unrecognized platform triplet {trip!r}")


def platform_from_tags(values: Dict[str, str]) -> Platform:
    """Inverse of :meth:`Platform.tags`."""
    os_name = values.get("os")
    if os_name is None:
        return AnyPlatform()
    arch = values.get("arch", "x86_64")
    if os_name == "linux":
        return Linux(arch, libc=values.get("libc", "glibc"), call_abi=values.get("call_abi"))
    if os_name == "macos":
        return MacOS(arch)
    if os_name == "windows":
        return Windows(arch)
    if os_name == "freebsd":
        return FreeBSD(arch)
    raise ValueError(f"Unrecognized platform os {os_name!r}")


def _host_libc() -> str:
    for tag in tags.platform_tags():
        if tag.startswith("musllinux"):
            return "musl"
        if tag.startswith("manylinux"):
            return "glibc"
    return "glibc"


def host_platform() -> Platform:
    """Platform key of the running interpreter."""
    arch = _ARCH_ALIASES.get(_platform.machine().lower(), _platform.machine().lower())
    if sys.platform.startswith("linux"):
        call_abi = "eabihf" if arch in ("armv7l", "armv6l") else None
        return Linux(arch, libc=_host_libc(), call_abi=call_abi)
    if sys.platform == "darwin":
        return MacOS(arch)
    if sys.platform in ("win32", "cygwin"):
        return Windows(arch)
    if sys.platform.startswith("freebsd"):
        return FreeBSD(arch)
    return AnyPlatform()


def platforms_match(a: Platform, b: Platform) -> bool:
    """True if binaries built for ``a`` run on ``b``."""
    if isinstance(a, AnyPlatform) or isinstance(b, AnyPlatform):
        return True
    return a == b


def select_platform(download_info: Dict[Platform, T], platform: Optional[Platform] = None) -> Optional[T]:
    """Pick the value whose platform best matches ``platform`` (the host by default).

    Specific platforms win over ``AnyPlatform``; ties are broken by the
    last triplet in sort order. Returns None when nothing matches.
    """
    platform = platform or host_platform()
    candidates = [p for p in download_info if platforms_match(p, platform)]
    if not candidates:
        logger.debug("No platform matches host %s", platform.triplet())
        return None
    candidates.sort(key=lambda p: (not isinstance(p, AnyPlatform), triplet(p)))
    return download_info[candidates[-1]]
