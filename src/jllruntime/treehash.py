"""Content-addressed git tree hash of a directory."""
from __future__ import annotations

import hashlib
import os
import stat


def _object_hash(kind: str, payload: bytes) -> bytes:
    header = f"{kind} {len(payload)}\0".encode("ascii")
    return hashlib.sha1(header + payload).digest()


def _blob_hash(path: str) -> bytes:
    h = hashlib.sha1()
    size = os.path.getsize(path)
    h.update(f"blob {size}\0".encode("ascii"))
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(1 << 16), b""):
            h.update(chunk)
    return h.digest()


def _tree_hash(root: str):
    """Return the raw tree digest, or None for trees with no content."""
    entries = []
    with os.scandir(root) as it:
        for entry in it:
            name = entry.name
            if entry.is_symlink():
                target = os.readlink(entry.path).encode("utf-8")
                entries.append((name, b"120000", _object_hash("blob", target)))
            elif entry.is_dir():
                digest = _tree_hash(entry.path)
                # git cannot represent empty directories
                if digest is not None:
                    entries.append((name + "/", b"40000", digest))
            else:
                mode = os.stat(entry.path).st_mode
                filemode = b"100755" if mode & stat.S_IXUSR else b"100644"
                entries.append((name, filemode, _blob_hash(entry.path)))
    if not entries:
        return None
    # git sorts subtrees as if their names ended in "/"
    entries.sort(key=lambda e: e[0].encode("utf-8"))
    payload = b"".join(
        mode + b" " + name.rstrip("/").encode("utf-8") + b"\0" + digest
        for name, mode, digest in entries
    )
    return _object_hash("tree", payload)


def tree_hash(root: str) -> str:
    """Hex git tree hash of ``root``; an empty directory hashes as the empty tree."""
    digest = _tree_hash(root)
    if digest is None:
        digest = _object_hash("tree", b"")
    return digest.hex()
