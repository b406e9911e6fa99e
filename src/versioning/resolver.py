"""Build revision resolution for rebuilt versions."""
from __future__ import annotations

import logging
from typing import Optional

import semantic_version

from constants import Constants
from identity import jll_uuid
from registry.client import RegistryClient

from .parser import try_parse_version

logger = logging.getLogger(__name__)


def _build_number(v: semantic_version.Version) -> Optional[int]:
    """Return the build number of ``v`` if its build metadata is a single integer."""
    if len(v.build) == 1 and v.build[0].isdigit():
        return int(v.build[0])
    return None


def get_next_wrapper_version(
    src_name: str,
    src_version: semantic_version.Version,
    registry: Optional[RegistryClient] = None,
) -> semantic_version.Version:
    """Pin ``src_version`` to the next unused build number.

    Versions that already carry build metadata are returned unchanged.

    Raises:
        RegistryError: If the registry cannot be refreshed or read.
    """
    if src_version.build:
        return src_version

    registry = registry or RegistryClient()
    # Someone may have published a new version since our last look
    registry.update()

    uuid = jll_uuid(f"{src_name}{Constants.JLL_SUFFIX}")
    build_numbers = []
    for raw in registry.published_versions(uuid):
        v = try_parse_version(raw)
        if v is None:
            logger.debug("Ignoring unparseable registry version %r for %s", raw, src_name)
            continue
        if (v.major, v.minor, v.patch) != (src_version.major, src_version.minor, src_version.patch):
            continue
        number = _build_number(v)
        if number is None:
            logger.debug("Ignoring registry version %s with malformed build metadata", raw)
            continue
        build_numbers.append(number)

    build_number = max(build_numbers) + 1 if build_numbers else 0
    logger.info("Resolved %s v%s to build number %d", src_name, src_version, build_number)
    return semantic_version.Version(
        major=src_version.major,
        minor=src_version.minor,
        patch=src_version.patch,
        prerelease=src_version.prerelease,
        build=(str(build_number),),
    )
