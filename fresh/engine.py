"""Idempotent installation of catalog entries through the package manager."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .catalog import CatalogEntry
from .package_manager import PackageManager, PackageStatus
from .presence import is_present
from .tiers import dedupe_entries
from .utils import log

Confirm = Callable[[], bool]
PresenceCheck = Callable[[str], bool]

SKIPPED_BY_USER = "skipped by user"
NOT_FOUND = "not found in repository"
INSTALLER_FAILED = "installer reported failure"


class InstallStatus(str, Enum):
    """Outcome of one entry in one run."""

    ALREADY_PRESENT = "already present"
    INSTALLED = "installed"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


@dataclass(frozen=True)
class InstallOutcome:
    """Result for a single catalog entry or manual tool."""

    entry: Any
    status: InstallStatus
    detail: str = ""

    @property
    def name(self) -> str:
        """Logical name of the entry this outcome is about."""
        return getattr(self.entry, "logical_name", None) or getattr(self.entry, "name", "")


@dataclass
class InstallationRun:
    """All outcomes of one invocation."""

    outcomes: list[InstallOutcome] = field(default_factory=list)
    declined: bool = False

    def with_status(self, status: InstallStatus) -> list[InstallOutcome]:
        """Outcomes with the given status, in run order."""
        return [o for o in self.outcomes if o.status is status]

    @property
    def installed(self) -> list[InstallOutcome]:
        return self.with_status(InstallStatus.INSTALLED)

    @property
    def already_present(self) -> list[InstallOutcome]:
        return self.with_status(InstallStatus.ALREADY_PRESENT)

    @property
    def unavailable(self) -> list[InstallOutcome]:
        return self.with_status(InstallStatus.UNAVAILABLE)

    @property
    def failed(self) -> list[InstallOutcome]:
        return self.with_status(InstallStatus.FAILED)

    @property
    def failures(self) -> list[InstallOutcome]:
        """Failed and unavailable outcomes, excluding entries the user skipped."""
        return [
            o
            for o in self.outcomes
            if o.status is InstallStatus.FAILED
            or (o.status is InstallStatus.UNAVAILABLE and o.detail != SKIPPED_BY_USER)
        ]

    def counts(self) -> dict[str, int]:
        """Number of outcomes per status, every status included."""
        return {status.value: len(self.with_status(status)) for status in InstallStatus}

    def extend(self, other: InstallationRun) -> None:
        """Merge another run's outcomes into this one."""
        self.outcomes.extend(other.outcomes)
        self.declined = self.declined or other.declined


def partition(
    entries: Iterable[CatalogEntry],
    present: PresenceCheck = is_present,
) -> tuple[list[CatalogEntry], list[CatalogEntry]]:
    """Split entries into those already on the host and those missing."""
    found, missing = [], []
    for entry in entries:
        (found if present(entry.logical_name) else missing).append(entry)
    return found, missing


def run(
    entries: Sequence[CatalogEntry],
    confirm: Confirm,
    package_manager: PackageManager,
    present: PresenceCheck = is_present,
) -> InstallationRun:
    """Install whatever in ``entries`` is not already present.

    ``confirm`` is asked once, after the missing entries are listed, and
    nothing is installed when it declines. The index is refreshed once, then
    each missing entry is installed on its own so that one failure never
    stops the rest of the batch. Repeated logical names are dropped, keeping
    the first.
    """
    entries = dedupe_entries(entries)
    result = InstallationRun()
    found, missing = partition(entries, present)
    outcome_by_name: dict[str, InstallOutcome] = {}

    for entry in found:
        log(f"{entry.logical_name} already installed", "success")
        outcome_by_name[entry.logical_name] = InstallOutcome(entry, InstallStatus.ALREADY_PRESENT)

    if missing:
        log(f"{len(missing)} tool(s) to install: {', '.join(e.package_id for e in missing)}", "info")
        if not confirm():
            log("Skipping installation", "warning")
            result.declined = True
            for entry in missing:
                outcome_by_name[entry.logical_name] = InstallOutcome(
                    entry,
                    InstallStatus.UNAVAILABLE,
                    SKIPPED_BY_USER,
                )
        else:
            package_manager.refresh_index()
            for entry in missing:
                outcome_by_name[entry.logical_name] = _install_entry(entry, package_manager)
    else:
        log("All tools already installed", "success")

    result.outcomes = [outcome_by_name[entry.logical_name] for entry in entries]
    return result


def _install_entry(entry: CatalogEntry, package_manager: PackageManager) -> InstallOutcome:
    log(f"Installing {entry.package_id}...", "info")
    try:
        reported = package_manager.install_package(entry.package_id)
    except Exception as e:  # noqa: BLE001
        log(f"Error installing {entry.package_id}: {e}", "error")
        return InstallOutcome(entry, InstallStatus.FAILED, f"{INSTALLER_FAILED}: {e}")

    if reported.status is PackageStatus.OK:
        log(f"Installed {entry.package_id}", "success")
        return InstallOutcome(entry, InstallStatus.INSTALLED, reported.detail)
    if reported.status is PackageStatus.UNAVAILABLE:
        log(f"{entry.package_id} not found in repository", "warning")
        return InstallOutcome(entry, InstallStatus.UNAVAILABLE, _detail(NOT_FOUND, reported.detail))
    log(f"Failed to install {entry.package_id}: {reported.detail}", "error")
    return InstallOutcome(entry, InstallStatus.FAILED, _detail(INSTALLER_FAILED, reported.detail))


def _detail(reason: str, extra: str) -> str:
    return f"{reason}: {extra}" if extra else reason
