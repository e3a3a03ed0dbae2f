"""Host detection and preflight checks."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from .errors import EnvironmentUnsupported
from .package_manager import PackageManager

OS_RELEASE = Path("/etc/os-release")

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "armv8l": "aarch64",
}


def current_arch() -> str:
    """Detect the host architecture, normalised to the kernel's naming."""
    machine = os.uname().machine.lower()
    return _ARCH_ALIASES.get(machine, machine)


def read_os_release(path: Path = OS_RELEASE) -> dict[str, str]:
    """Parse ``KEY=value`` lines of an os-release file without sourcing it."""
    info: dict[str, str] = {}
    try:
        text = path.read_text()
    except OSError:
        return info
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        info[key] = value.strip().strip("\"'")
    return info


def system_info(os_release: Path = OS_RELEASE) -> dict[str, str]:
    """OS name and version, architecture and kernel release."""
    release = read_os_release(os_release)
    uname = os.uname()
    return {
        "OS": release.get("PRETTY_NAME", "Unknown"),
        "Version": release.get("VERSION_ID", "Unknown"),
        "Architecture": uname.machine,
        "Kernel": uname.release,
    }


def preflight(package_manager: PackageManager) -> None:
    """Refuse to run where fresh cannot work safely."""
    require_unprivileged()
    if shutil.which("sudo") is None:
        msg = "sudo is required but not installed"
        raise EnvironmentUnsupported(msg)
    if not package_manager.is_available():
        msg = f"fresh currently only supports {package_manager.name}-based systems"
        raise EnvironmentUnsupported(msg)


def require_unprivileged() -> None:
    """Refuse to run as root."""
    if os.geteuid() == 0:
        msg = "Don't run fresh as root. It will ask for sudo when needed."
        raise EnvironmentUnsupported(msg)
