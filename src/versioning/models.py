"""Data models for versions, version constraints and dependencies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

import semantic_version

# A bound is 0-3 numeric components; the empty bound means "unbounded".
Bound = Tuple[int, ...]


def _bound_str(bound: Bound) -> str:
    return ".".join(str(c) for c in bound) if bound else "*"


@dataclass(frozen=True)
class VersionRange:
    """Inclusive range between two (possibly partial) version bounds."""
    lower: Bound = ()
    upper: Bound = ()

    def is_full(self) -> bool:
        """True for the range accepting every version."""
        return not self.lower and not self.upper

    def __str__(self) -> str:
        if self.is_full():
            return "*"
        if self.lower == self.upper:
            return _bound_str(self.lower)
        return f"{_bound_str(self.lower)}-{_bound_str(self.upper)}"


@dataclass(frozen=True)
class VersionSpec:
    """Union of version ranges."""
    ranges: Tuple[VersionRange, ...] = (VersionRange(),)

    def is_any(self) -> bool:
        """True when the spec accepts every version."""
        return len(self.ranges) == 1 and self.ranges[0].is_full()

    def __str__(self) -> str:
        return ", ".join(str(r) for r in self.ranges)


# None means unconstrained.
VersionConstraint = Union[None, semantic_version.Version, VersionSpec, str]


@dataclass(frozen=True)
class AbstractDependency:
    """Anything a package can depend on, identified by its package name."""
    name: str


@dataclass(frozen=True)
class Dependency(AbstractDependency):
    """Runtime dependency; recorded in the generated manifest."""
    version: VersionConstraint = None

    def has_compat_info(self) -> bool:
        """True when the constraint narrows the acceptable versions."""
        v = self.version
        if v is None:
            return False
        if isinstance(v, semantic_version.Version):
            return True
        if isinstance(v, VersionSpec):
            return not v.is_any()
        return v.strip() not in ("", "*")


@dataclass(frozen=True)
class BuildDependency(AbstractDependency):
    """Build-only dependency; never part of a generated manifest."""


def getname(dep: AbstractDependency) -> str:
    """Return the package name of a dependency."""
    return dep.name


def exactly_this_version(v: VersionConstraint) -> Optional[str]:
    """Render a constraint the way manifests expect it.

    Exact versions drop prerelease/build detail; single-point specs are
    turned into equality constraints.
    """
    if isinstance(v, semantic_version.Version):
        return f"={v.major}.{v.minor}.{v.patch}"
    if isinstance(v, VersionSpec):
        if len(v.ranges) == 1 and v.ranges[0].lower == v.ranges[0].upper:
            return f"={v}"
        return str(v)
    return v
