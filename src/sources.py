"""Descriptions of the sources a binary was built from (listed in READMEs)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Union


@dataclass(frozen=True)
class ArchiveSource:
    url: str
    hash: str


@dataclass(frozen=True)
class GitSource:
    url: str
    hash: str


@dataclass(frozen=True)
class FileSource:
    url: str
    hash: str


@dataclass(frozen=True)
class DirectorySource:
    """Files next to the build recipe, referenced by relative path."""
    path: str


Source = Union[ArchiveSource, GitSource, FileSource, DirectorySource]


def source_from_dict(data: Mapping) -> Source:
    """Build a source from a mapping with a ``type`` key.

    Raises:
        ValueError: If ``type`` is missing or unknown.
    """
    fields = dict(data)
    kind = fields.pop("type", None)
    constructors = {
        "archive": ArchiveSource,
        "git": GitSource,
        "file": FileSource,
        "directory": DirectorySource,
    }
    if kind not in constructors:
        raise ValueError(f"Unknown source type {kind!r}")
    return constructors[kind](**fields)
