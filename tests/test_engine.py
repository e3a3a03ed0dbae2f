"""Tests for the installation engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable
from unittest.mock import MagicMock

from fresh.catalog import CatalogEntry
from fresh.engine import InstallStatus, SKIPPED_BY_USER, run
from fresh.package_manager import PackageInstallResult, PackageStatus

if TYPE_CHECKING:
    from conftest import FakePackageManager

MINIMAL = [CatalogEntry("git", "git"), CatalogEntry("curl", "curl")]


def _statuses(result) -> list[tuple[str, InstallStatus]]:  # noqa: ANN001
    return [(o.name, o.status) for o in result.outcomes]


def test_example_scenario(
    host: set[str],
    present: Callable[[str], bool],
    package_manager: FakePackageManager,
) -> None:
    """git present, curl missing, confirmation given."""
    host.add("git")
    result = run(MINIMAL, lambda: True, package_manager, present)
    assert _statuses(result) == [
        ("git", InstallStatus.ALREADY_PRESENT),
        ("curl", InstallStatus.INSTALLED),
    ]
    assert package_manager.installed == ["curl"]


def test_idempotent_second_run(
    present: Callable[[str], bool],
    package_manager: FakePackageManager,
) -> None:
    entries = [*MINIMAL, CatalogEntry("rg", "ripgrep")]
    package_manager.provides["ripgrep"] = "rg"
    first = run(entries, lambda: True, package_manager, present)
    assert len(first.installed) == 3

    confirm = MagicMock(return_value=True)
    second = run(entries, confirm, package_manager, present)
    assert second.installed == []
    assert [o.name for o in second.already_present] == ["git", "curl", "rg"]
    confirm.assert_not_called()
    assert package_manager.refresh_count == 1


def test_same_partition_on_unchanged_host(
    host: set[str],
    present: Callable[[str], bool],
    package_manager: FakePackageManager,
) -> None:
    host.add("git")
    first = run(MINIMAL, lambda: False, package_manager, present)
    second = run(MINIMAL, lambda: False, package_manager, present)
    assert _statuses(first) == _statuses(second)


def test_failure_isolation(
    present: Callable[[str], bool],
    package_manager: FakePackageManager,
) -> None:
    """One broken package never stops the others."""
    pm = package_manager
    pm.failing.add("curl")
    entries = [*MINIMAL, CatalogEntry("jq", "jq")]
    result = run(entries, lambda: True, pm, present)
    assert _statuses(result) == [
        ("git", InstallStatus.INSTALLED),
        ("curl", InstallStatus.FAILED),
        ("jq", InstallStatus.INSTALLED),
    ]
    assert [o.name for o in result.failures] == ["curl"]
    assert result.failed[0].detail.startswith("installer reported failure")


def test_unavailable_package(
    present: Callable[[str], bool],
    package_manager: FakePackageManager,
) -> None:
    pm = package_manager
    pm.unavailable.add("exa")
    result = run([CatalogEntry("exa", "exa"), CatalogEntry("jq", "jq")], lambda: True, pm, present)
    assert result.unavailable[0].name == "exa"
    assert result.unavailable[0].detail.startswith("not found in repository")
    assert [o.name for o in result.installed] == ["jq"]
    assert [o.name for o in result.failures] == ["exa"]


def test_exception_from_package_manager_is_contained(
    present: Callable[[str], bool],
) -> None:
    pm = MagicMock()
    pm.install_package.side_effect = [
        OSError("sudo: not found"),
        PackageInstallResult(PackageStatus.OK),
    ]
    result = run(MINIMAL, lambda: True, pm, present)
    assert _statuses(result) == [
        ("git", InstallStatus.FAILED),
        ("curl", InstallStatus.INSTALLED),
    ]


def test_decline_has_no_side_effects(
    present: Callable[[str], bool],
    host: set[str],
) -> None:
    pm = MagicMock()
    host.add("git")
    result = run(MINIMAL, lambda: False, pm, present)
    assert _statuses(result) == [
        ("git", InstallStatus.ALREADY_PRESENT),
        ("curl", InstallStatus.UNAVAILABLE),
    ]
    assert result.unavailable[0].detail == SKIPPED_BY_USER
    assert result.declined
    assert result.failures == []
    pm.refresh_index.assert_not_called()
    pm.install_package.assert_not_called()


def test_index_refreshed_once(
    present: Callable[[str], bool],
    package_manager: FakePackageManager,
) -> None:
    entries = [CatalogEntry(name, name) for name in ("a", "b", "c", "d")]
    run(entries, lambda: True, package_manager, present)
    assert package_manager.refresh_count == 1
    assert package_manager.installed == ["a", "b", "c", "d"]


def test_nothing_missing_skips_confirmation(
    host: set[str],
    present: Callable[[str], bool],
) -> None:
    host.update({"git", "curl"})
    pm = MagicMock()
    confirm = MagicMock()
    result = run(MINIMAL, confirm, pm, present)
    assert len(result.already_present) == 2
    confirm.assert_not_called()
    pm.refresh_index.assert_not_called()


def test_empty_entries(package_manager: FakePackageManager) -> None:
    confirm = MagicMock()
    result = run([], confirm, package_manager)
    assert result.outcomes == []
    assert result.counts() == {
        "already present": 0,
        "installed": 0,
        "unavailable": 0,
        "failed": 0,
    }
    confirm.assert_not_called()


def test_repeated_logical_name_installed_once(
    present: Callable[[str], bool],
    package_manager: FakePackageManager,
) -> None:
    entries = [*MINIMAL, CatalogEntry("git", "git-core")]
    result = run(entries, lambda: True, package_manager, present)
    assert _statuses(result) == [
        ("git", InstallStatus.INSTALLED),
        ("curl", InstallStatus.INSTALLED),
    ]
    assert package_manager.installed == ["git", "curl"]
