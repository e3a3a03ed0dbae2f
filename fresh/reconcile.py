"""Post-install fixups for distribution naming quirks and group membership."""

from __future__ import annotations

import getpass
import grp
import os
import pwd
import shutil
import subprocess
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from .catalog import Fixup, FixupKind
from .download import link_binary
from .errors import PrivilegeEscalationDenied
from .presence import is_present, search_path
from .utils import log, run_privileged

if TYPE_CHECKING:
    from .config import FreshConfig


@dataclass(frozen=True)
class ReconcileAction:
    """A fixup that was applied (or attempted) during a pass."""

    fixup: Fixup
    detail: str
    ok: bool = True


def current_user() -> str:
    """Name of the invoking user, as `usermod` expects it."""
    return os.environ.get("USER") or getpass.getuser()


def in_group(group: str, user: str) -> bool:
    """Check the group database, not this process's groups.

    The database reflects ``usermod`` immediately, before the user logs in again.
    """
    try:
        entry = grp.getgrnam(group)
    except KeyError:
        return False
    if user in entry.gr_mem:
        return True
    try:
        return pwd.getpwnam(user).pw_gid == entry.gr_gid
    except KeyError:
        return False


def _fix_symlink(fixup: Fixup, bin_dir: Path) -> ReconcileAction:
    actual = shutil.which(fixup.actual_name, path=search_path([bin_dir]))
    if actual is None:
        return ReconcileAction(fixup, f"{fixup.actual_name} not found on PATH", ok=False)
    try:
        link = link_binary(Path(actual), bin_dir, fixup.expected_name)
    except OSError as e:
        log(f"Could not link {fixup.expected_name} to {fixup.actual_name}: {e}", "warning")
        return ReconcileAction(fixup, str(e), ok=False)
    return ReconcileAction(fixup, f"linked {link} -> {actual}")


def _fix_group(fixup: Fixup, user: str) -> ReconcileAction:
    log(f"Adding {user} to {fixup.expected_name} group...", "info")
    try:
        run_privileged(["usermod", "-aG", fixup.expected_name, user])
    except PrivilegeEscalationDenied as e:
        log(f"Could not add {user} to {fixup.expected_name}: {e}", "warning")
        return ReconcileAction(fixup, str(e), ok=False)
    log(
        f"Log out and back in for the {fixup.expected_name} group change to take effect",
        "warning",
    )
    return ReconcileAction(fixup, f"added {user} to group {fixup.expected_name}")


def _fix_cargo(fixup: Fixup, bin_dir: Path) -> ReconcileAction | None:
    """Build ``expected_name`` from crates.io into ``bin_dir`` when cargo is available."""
    cargo = shutil.which("cargo")
    if cargo is None:
        log(f"cargo not found, not installing {fixup.expected_name}", "warning")
        return None
    log(f"Installing {fixup.expected_name} (replaces {fixup.actual_name}) with cargo...", "info")
    command = [cargo, "install", fixup.expected_name]
    if bin_dir.name == "bin":
        # cargo puts binaries in <root>/bin
        command += ["--root", str(bin_dir.parent)]
    result = subprocess.run(
        command,
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        lines = [line for line in result.stderr.splitlines() if line.strip()]
        detail = lines[-1] if lines else f"exit code {result.returncode}"
        log(f"cargo install {fixup.expected_name} failed: {detail}", "warning")
        return ReconcileAction(fixup, detail, ok=False)
    return ReconcileAction(fixup, f"installed {fixup.expected_name} with cargo")


def reconcile(
    config: FreshConfig,
    present: Callable[[str], bool] | None = None,
    user: str | None = None,
) -> list[ReconcileAction]:
    """Apply every fixup whose condition holds; a no-op once they are applied."""
    if present is None:
        present = partial(is_present, extra_dirs=[config.bin_dir])
    user = user or current_user()

    log("Running post-installation setup...", "info")
    actions = []
    for fixup in config.fixups:
        if not present(fixup.actual_name):
            continue
        if fixup.kind is FixupKind.GROUP:
            if in_group(fixup.expected_name, user):
                continue
            actions.append(_fix_group(fixup, user))
        elif present(fixup.expected_name):
            continue
        elif fixup.kind is FixupKind.CARGO:
            action = _fix_cargo(fixup, config.bin_dir)
            if action is not None:
                actions.append(action)
        else:
            actions.append(_fix_symlink(fixup, config.bin_dir))
    log("Post-installation setup completed", "success")
    return actions
