"""Package manager abstraction and the apt implementation."""

from __future__ import annotations

import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from .utils import log

_UNAVAILABLE_MARKERS = (
    "unable to locate package",
    "has no installation candidate",
    "no packages found matching",
)


class PackageStatus(str, Enum):
    """Classified result of a single package install."""

    OK = "ok"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


@dataclass(frozen=True)
class PackageInstallResult:
    """What the package manager reported for one package."""

    status: PackageStatus
    detail: str = ""


class PackageManager(ABC):
    """The operations the installation engine needs from a package manager."""

    name = "package manager"

    @abstractmethod
    def is_available(self) -> bool:
        """Return True if the package manager can be used on this host."""

    @abstractmethod
    def refresh_index(self) -> bool:
        """Refresh the package index. Return False if the refresh failed."""

    @abstractmethod
    def install_package(self, package_id: str) -> PackageInstallResult:
        """Install a single package."""


class AptPackageManager(PackageManager):
    """Debian-family package manager driven through ``apt-get``."""

    name = "apt"

    def __init__(self, executable: str = "apt-get") -> None:
        """Initialize the apt package manager."""
        self.executable = executable

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        command = [self.executable, *args]
        if os.geteuid() != 0:
            command = ["sudo", *command]
        env = {**os.environ, "DEBIAN_FRONTEND": "noninteractive"}
        log(f"Running: {' '.join(command)}", "debug")
        return subprocess.run(command, capture_output=True, text=True, env=env, check=False)

    def is_available(self) -> bool:
        """Return True if apt-get is on PATH."""
        return shutil.which(self.executable) is not None

    def refresh_index(self) -> bool:
        """Run ``apt-get update``."""
        try:
            result = self._run("update")
        except OSError as e:
            log(f"Could not refresh package index: {e}", "warning")
            return False
        if result.returncode != 0:
            log(f"Package index refresh failed: {result.stderr.strip()}", "warning")
            return False
        return True

    def install_package(self, package_id: str) -> PackageInstallResult:
        """Run ``apt-get install -y`` for one package and classify the result."""
        try:
            result = self._run("install", "-y", package_id)
        except OSError as e:
            return PackageInstallResult(PackageStatus.FAILED, str(e))
        if result.returncode == 0:
            return PackageInstallResult(PackageStatus.OK)
        return classify_apt_failure(result.returncode, result.stderr)


def classify_apt_failure(returncode: int, stderr: str) -> PackageInstallResult:
    """Tell a missing package apart from any other installer failure."""
    lowered = (stderr or "").lower()
    lines = [line.strip() for line in (stderr or "").splitlines() if line.strip()]
    detail = lines[-1] if lines else f"exit code {returncode}"
    if any(marker in lowered for marker in _UNAVAILABLE_MARKERS):
        return PackageInstallResult(PackageStatus.UNAVAILABLE, detail)
    return PackageInstallResult(PackageStatus.FAILED, detail)
