"""Locate and extract a tool's executable from a release archive."""

from __future__ import annotations

import fnmatch
import tarfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .catalog import PackagingKind
from .errors import ExtractionError

Chooser = Callable[[str, bool, int], tuple[bool, bool]]


@dataclass
class ArchiveMember:
    """A file or directory inside an archive."""

    name: str
    is_dir: bool
    mode: int
    data: bytes = b""


def _is_definitely_not_exec(filename: str) -> bool:
    """Check if a file is definitely not executable."""
    return filename.endswith((".deb", ".1", ".txt", ".md"))


def is_exec(filename: str, mode: int) -> bool:
    """Determine if a file is executable based on name and permissions."""
    if _is_definitely_not_exec(filename):
        return False
    if mode & 0o111 != 0:
        return True
    return filename.endswith(".appimage") or "." not in Path(filename).name


# Chooser functions return (direct match, possible match)
def binary_chooser(tool: str) -> Chooser:
    """Choose the executable named after the tool."""

    def choose(name: str, is_dir: bool, mode: int) -> tuple[bool, bool]:  # noqa: FBT001
        if is_dir:
            return False, False
        basename = Path(name).name
        is_possible = is_exec(name, mode)
        is_match = basename in (tool, f"{tool}.appimage")
        return is_match and is_possible, is_possible

    return choose


def literal_file_chooser(filename: str) -> Chooser:
    """Choose the file at a known path inside the archive."""
    wanted = filename.removeprefix("./")

    def choose(name: str, is_dir: bool, mode: int) -> tuple[bool, bool]:  # noqa: ARG001, FBT001
        name = name.removeprefix("./")
        is_match = not is_dir and (name == wanted or name.endswith(f"/{wanted}"))
        return is_match, is_match

    return choose


def glob_chooser(pattern: str) -> Chooser:
    """Choose files whose path or basename matches a glob pattern."""

    def choose(name: str, is_dir: bool, mode: int) -> tuple[bool, bool]:  # noqa: ARG001, FBT001
        if is_dir:
            return False, False
        name = name.removeprefix("./")
        is_match = fnmatch.fnmatch(name, pattern) or fnmatch.fnmatch(Path(name).name, pattern)
        return is_match, is_match

    return choose


def _tar_members(archive: Path) -> list[ArchiveMember]:
    members = []
    try:
        with tarfile.open(archive, mode="r:*") as tar:
            for member in tar.getmembers():
                data = b""
                if member.isfile():
                    file_data = tar.extractfile(member)
                    if file_data:
                        data = file_data.read()
                elif not member.isdir():
                    # links and devices are never the executable we want
                    continue
                members.append(ArchiveMember(member.name, member.isdir(), member.mode, data))
    except (tarfile.TarError, EOFError, OSError) as e:
        msg = f"Failed to extract tar: {e}"
        raise ExtractionError(msg) from e
    return members


def _zip_members(archive: Path) -> list[ArchiveMember]:
    members = []
    try:
        with zipfile.ZipFile(archive) as zip_file:
            for info in zip_file.infolist():
                is_dir = info.filename.endswith("/")
                mode = 0o644
                if info.external_attr > 0:
                    mode = (info.external_attr >> 16) & 0o777
                data = b"" if is_dir else zip_file.read(info.filename)
                members.append(ArchiveMember(info.filename, is_dir, mode, data))
    except (zipfile.BadZipFile, OSError) as e:
        msg = f"Failed to extract zip: {e}"
        raise ExtractionError(msg) from e
    return members


def choose_member(members: list[ArchiveMember], chooser: Chooser) -> ArchiveMember:
    """Pick the single member the chooser points at."""
    direct: list[ArchiveMember] = []
    candidates: list[ArchiveMember] = []
    for member in members:
        is_direct, is_possible = chooser(member.name, member.is_dir, member.mode)
        if is_direct:
            direct.append(member)
        if is_direct or is_possible:
            candidates.append(member)

    if len(direct) == 1:
        return direct[0]
    if len(candidates) == 1:
        return candidates[0]
    if not candidates:
        msg = "Target not found in archive"
        raise ExtractionError(msg)
    msg = f"{len(candidates)} candidates found"
    raise ExtractionError(msg, [c.name for c in candidates])


def extract_executable(
    archive: Path,
    packaging: PackagingKind,
    destination: Path,
    binary_name: str,
    binary_path: str | None = None,
) -> Path:
    """Write the tool's executable from ``archive`` to ``destination``.

    The executable is found at ``binary_path`` (a relative path or glob) when
    given, otherwise by looking for an executable named ``binary_name``.
    """
    if packaging is PackagingKind.TARBALL:
        members = _tar_members(archive)
    elif packaging is PackagingKind.ZIP:
        members = _zip_members(archive)
    else:
        msg = f"{packaging.value} artifacts are not archives"
        raise ExtractionError(msg)

    if binary_path and any(c in binary_path for c in "*?["):
        chooser = glob_chooser(binary_path)
    elif binary_path:
        chooser = literal_file_chooser(binary_path)
    else:
        chooser = binary_chooser(binary_name)

    member = choose_member(members, chooser)
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(member.data)
    destination.chmod((member.mode & 0o777) | 0o755)
    return destination
