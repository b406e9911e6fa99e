"""Deterministic package identifiers.

Identifiers are derived with a SHA-1 based, UUID5-like scheme whose byte
order and bit masks come from the legacy package namespace. Changing any of
it would break every previously published identifier.
"""
from __future__ import annotations

import hashlib
from uuid import UUID

from constants import Constants

UUID_PACKAGE = UUID(Constants.UUID_PACKAGE)

_MASK = 0xffffffffffff0fff3fffffffffffffff
_BITS = 0x00000000000050008000000000000000


def bb_specific_uuid5(namespace: UUID, key: str) -> UUID:
    """Hash ``key`` under ``namespace`` the way the legacy tooling did.

    The namespace's 128-bit value is serialised little-endian (not in RFC
    4122 byte order), and the first 16 digest bytes are read back
    little-endian before the version/variant bits are forced.
    """
    data = namespace.int.to_bytes(16, "little") + key.encode("utf-8")
    u = int.from_bytes(hashlib.sha1(data).digest()[:16], "little")
    u &= _MASK
    u |= _BITS
    return UUID(int=u)


def jll_uuid(name: str) -> UUID:
    """Identifier of the package called ``name``.

    An extra suffix is appended before hashing; published identifiers
    depend on it.
    """
    return bb_specific_uuid5(UUID_PACKAGE, f"{name}{Constants.JLL_SUFFIX}")
