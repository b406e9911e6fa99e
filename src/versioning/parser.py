"""Parsing utilities for versions and version constraints."""

import re
from typing import Optional

import semantic_version

from .models import Bound, VersionConstraint, VersionRange, VersionSpec

_BOUND_RE = re.compile(r"^\d+(\.\d+){0,2}$")


def parse_version(text: str) -> semantic_version.Version:
    """Parse a version string, accepting partial forms such as ``1.2``.

    Raises:
        ValueError: If ``text`` is not a version.
    """
    text = text.strip().lstrip("v")
    try:
        return semantic_version.Version(text)
    except ValueError:
        return semantic_version.Version.coerce(text)


def try_parse_version(text: str) -> Optional[semantic_version.Version]:
    """Strict parse; returns None for anything that is not full semver."""
    try:
        return semantic_version.Version(text.strip())
    except ValueError:
        return None


def _parse_bound(text: str) -> Bound:
    text = text.strip()
    if text in ("*", ""):
        return ()
    if not _BOUND_RE.match(text):
        raise ValueError(f"Invalid version bound: {text!r}")
    return tuple(int(c) for c in text.split("."))


def parse_version_range(text: str) -> VersionRange:
    """Parse ``1.2.3``, ``1.2-1.4`` or ``*`` into a range."""
    text = text.strip()
    if "-" in text:
        lo, hi = text.split("-", 1)
        return VersionRange(_parse_bound(lo), _parse_bound(hi))
    bound = _parse_bound(text)
    return VersionRange(bound, bound)


def parse_version_spec(text: str) -> VersionSpec:
    """Parse a comma-separated union of ranges."""
    parts = [p for p in text.split(",") if p.strip()]
    if not parts:
        return VersionSpec()
    return VersionSpec(tuple(parse_version_range(p) for p in parts))


def parse_constraint(text: Optional[str]) -> VersionConstraint:
    """Parse a user-supplied constraint.

    ``=X.Y.Z`` pins an exact version; range syntax yields a
    :class:`VersionSpec`; anything else is kept as a free-form string.
    """
    if text is None:
        return None
    text = str(text).strip()
    if text in ("", "*"):
        return None
    if text.startswith("="):
        return parse_version(text[1:])
    try:
        return parse_version_spec(text)
    except ValueError:
        return text
