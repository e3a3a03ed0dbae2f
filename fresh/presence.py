"""Check whether a command is already usable on the host."""

from __future__ import annotations

import os
import shutil
from collections.abc import Iterable
from pathlib import Path


def search_path(extra_dirs: Iterable[Path] = ()) -> str:
    """The current ``PATH`` with ``extra_dirs`` appended."""
    parts = [p for p in os.environ.get("PATH", os.defpath).split(os.pathsep) if p]
    for directory in extra_dirs:
        if str(directory) not in parts:
            parts.append(str(directory))
    return os.pathsep.join(parts)


def is_present(name: str, extra_dirs: Iterable[Path] = ()) -> bool:
    """Return True if an executable called ``name`` is on the search path.

    Only the command name is checked, not the package that provides it.
    """
    if not name or os.sep in name:
        return False
    return shutil.which(name, path=search_path(extra_dirs)) is not None
