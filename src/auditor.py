"""Inspect shared libraries with the platform's binutils."""
from __future__ import annotations

import logging
import os
import re
import subprocess
from typing import List, Optional

from jllruntime.platforms import MacOS, Platform, Windows

logger = logging.getLogger(__name__)

_SONAME_RE = re.compile(r"\(SONAME\)\s+Library soname: \[(?P<soname>[^\]]+)\]")


def _run(cmd: List[str]) -> Optional[str]:
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as exc:
        logger.debug("Unable to run %s: %s", cmd[0], exc)
        return None
    if result.returncode != 0:
        logger.debug("%s exited with %d: %s", cmd[0], result.returncode, result.stderr.strip())
        return None
    return result.stdout


def get_soname(path: str, platform: Platform) -> Optional[str]:
    """Soname (ELF) or install name (Mach-O) of a library, if it declares one."""
    if isinstance(platform, Windows):
        return None
    if isinstance(platform, MacOS):
        out = _run(["otool", "-D", path])
        if out is None:
            return None
        lines = [line.strip() for line in out.splitlines() if line.strip()]
        # First line echoes the file name
        return os.path.basename(lines[1]) if len(lines) > 1 else None
    out = _run(["readelf", "-d", path])
    if out is None:
        return None
    match = _SONAME_RE.search(out)
    return match.group("soname") if match else None
