"""Configuration files and build descriptions for the CLI.

Both are YAML (or JSON, which YAML accepts) mappings. Configuration keys
override the matching ``Constants`` attributes; build descriptions are
turned into the arguments of the build and rebuild operations.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import semantic_version
import yaml

from assembler import BuildOutput
from constants import Constants
from errors import JLLGenError
from jllruntime.platforms import Platform, parse_triplet
from products import Product, ProductInfo, product_from_dict
from sources import Source, source_from_dict
from versioning.models import Dependency
from versioning.parser import parse_constraint, parse_version

logger = logging.getLogger(__name__)


class ConfigError(JLLGenError):
    """Configuration or build description could not be used."""


def load_mapping(path: str) -> Dict[str, Any]:
    """Read a YAML/JSON file that must contain a mapping.

    Raises:
        ConfigError: If the file is unreadable, malformed or not a mapping.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"Unable to read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Malformed YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def apply_config(config: Mapping[str, Any]) -> None:
    """Override ``Constants`` attributes from a configuration mapping.

    Keys are matched case-insensitively; unknown keys are logged and ignored.
    """
    for key, value in config.items():
        attr = str(key).upper()
        if not hasattr(Constants, attr):
            logger.warning("Ignoring unknown configuration key %s", key)
            continue
        current = getattr(Constants, attr)
        if isinstance(current, int) and not isinstance(current, bool):
            value = int(value)
        elif isinstance(current, list) and isinstance(value, str):
            value = [value]
        setattr(Constants, attr, value)
        logger.debug("Configuration sets %s", attr)


def load_config(path: Optional[str]) -> None:
    """Apply the configuration file at ``path``, if any."""
    if not path:
        return
    if not os.path.isfile(path):
        raise ConfigError(f"Config file not found: {path}")
    apply_config(load_mapping(path))


@dataclass
class BuildDescription:
    """Everything a build or rebuild needs, as read from a description file."""
    name: str
    version: semantic_version.Version
    sources: List[Source] = field(default_factory=list)
    platforms: List[Platform] = field(default_factory=list)
    products: List[Product] = field(default_factory=list)
    dependencies: List[Dependency] = field(default_factory=list)
    outputs: Dict[Platform, BuildOutput] = field(default_factory=dict)
    init_block: str = ""
    lazy_artifacts: bool = False


def _version_text(value: Any, where: str) -> Optional[str]:
    """Reject non-string versions; YAML reads an unquoted ``1.10`` as the float 1.1."""
    if value is None or isinstance(value, str):
        return value
    raise ConfigError(f"{where}: version must be a quoted string, got {value!r}")


def _dependency_from(value: Any) -> Dependency:
    if isinstance(value, str):
        return Dependency(value)
    data = dict(value)
    return Dependency(data["name"], parse_constraint(_version_text(data.get("version"), data["name"])))


def _outputs_from(data: Mapping[str, Any], products: List[Product]) -> Dict[Platform, BuildOutput]:
    by_name = {p.variable_name: p for p in products}
    outputs: Dict[Platform, BuildOutput] = {}
    for trip, entry in data.items():
        products_info: Dict[Product, ProductInfo] = {}
        for var, info in (entry.get("products") or {}).items():
            if var not in by_name:
                raise ConfigError(f"Output for {trip} names unknown product {var}")
            if isinstance(info, str):
                info = {"path": info}
            products_info[by_name[var]] = ProductInfo(path=info["path"], soname=info.get("soname"))
        outputs[parse_triplet(trip)] = BuildOutput(
            tarball_name=entry["tarball_name"],
            tarball_hash=entry["tarball_hash"],
            git_hash=entry["git_hash"],
            products_info=products_info,
        )
    return outputs


def load_build_description(path: str) -> BuildDescription:
    """Parse a build description file.

    Example::

        name: LibFoo
        version: "1.3.5"
        sources:
          - {type: archive, url: https://example.org/libfoo-1.3.5.tar.gz, hash: "..."}
        platforms: [x86_64-linux-gnu, x86_64-apple-darwin14]
        products:
          - {type: library, libnames: [libfoo], variable_name: libfoo}
        dependencies:
          - Zlib_jll
          - {name: XZ_jll, version: "=5.2.5"}

    Raises:
        ConfigError: On missing or invalid fields.
    """
    data = load_mapping(path)
    _version_text(data.get("version"), path)
    try:
        products = [product_from_dict(p) for p in data.get("products") or []]
        return BuildDescription(
            name=str(data["name"]),
            version=parse_version(data["version"]),
            sources=[source_from_dict(s) for s in data.get("sources") or []],
            platforms=[parse_triplet(t) for t in data.get("platforms") or []],
            products=products,
            dependencies=[_dependency_from(d) for d in data.get("dependencies") or []],
            outputs=_outputs_from(data.get("outputs") or {}, products),
            init_block=data.get("init_block") or "",
            lazy_artifacts=bool(data.get("lazy_artifacts", False)),
        )
    except KeyError as exc:
        raise ConfigError(f"{path} is missing required field {exc}") from exc
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid build description {path}: {exc}") from exc
