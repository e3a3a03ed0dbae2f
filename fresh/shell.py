"""Append configuration snippets to shell profile files."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from .utils import log

if TYPE_CHECKING:
    from .config import ShellSnippet


def append_snippet(path: Path, marker: str, content: str) -> bool:
    """Append ``content`` under a ``# marker`` line unless the marker is already there.

    Returns True if the file was written.
    """
    header = f"# {marker}"
    existing = path.read_text() if path.exists() else ""
    if any(line.strip() == header for line in existing.splitlines()):
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a") as f:
        if existing and not existing.endswith("\n"):
            f.write("\n")
        f.write(f"\n{header}\n{content}\n")
    return True


def write_snippets(snippets: Iterable[ShellSnippet]) -> int:
    """Write every snippet that is not yet present; return how many were added."""
    added = 0
    for snippet in snippets:
        if append_snippet(snippet.path, snippet.marker, snippet.content):
            log(f"Added '{snippet.marker}' to {snippet.path}", "success")
            added += 1
        else:
            log(f"'{snippet.marker}' already in {snippet.path}", "default")
    return added
