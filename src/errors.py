"""Exception taxonomy for package generation.

Input validation and data-completeness problems are fatal; they are raised
immediately and never retried. External collaborator failures (registry,
repository hosting, git) propagate to the caller unchanged in meaning.
"""
from __future__ import annotations


class JLLGenError(Exception):
    """Base class for all generation failures."""


class InvalidPackageNameError(JLLGenError, ValueError):
    """The package name is not a legal identifier."""


class BuildDependencyError(JLLGenError, TypeError):
    """A build-only dependency was passed where runtime dependencies are required."""


class RegistryError(JLLGenError):
    """The package registry could not be refreshed or read."""


class RepositoryError(JLLGenError):
    """Repository hosting or git operation failed."""


class IncompleteReleaseError(JLLGenError):
    """A release tarball or a declared product is missing."""
