"""Configuration for pytest fixtures used in fresh tests."""

from __future__ import annotations

import io
import tarfile
import zipfile
from collections.abc import Generator
from pathlib import Path
from typing import Callable

import pytest

from fresh.catalog import Catalog, CatalogEntry, Fixup, FixupKind, Tier, catalog_from_dict
from fresh.config import FreshConfig
from fresh.package_manager import PackageInstallResult, PackageManager, PackageStatus
from fresh.utils import setup_logging


@pytest.fixture(autouse=True)
def _quiet_run_log() -> Generator[None, None, None]:
    """Keep tests from writing to a real run log."""
    setup_logging(verbose=False)
    yield
    setup_logging(verbose=False)


class FakePackageManager(PackageManager):
    """Package manager that "installs" by adding names to a host set."""

    name = "fake"

    def __init__(
        self,
        host: set[str],
        unavailable: set[str] | None = None,
        failing: set[str] | None = None,
        provides: dict[str, str] | None = None,
    ) -> None:
        self.host = host
        self.unavailable = unavailable or set()
        self.failing = failing or set()
        self.provides = provides or {}
        self.refresh_count = 0
        self.installed: list[str] = []

    def is_available(self) -> bool:
        return True

    def refresh_index(self) -> bool:
        self.refresh_count += 1
        return True

    def install_package(self, package_id: str) -> PackageInstallResult:
        self.installed.append(package_id)
        if package_id in self.unavailable:
            return PackageInstallResult(
                PackageStatus.UNAVAILABLE,
                f"E: Unable to locate package {package_id}",
            )
        if package_id in self.failing:
            return PackageInstallResult(PackageStatus.FAILED, "dpkg returned an error code (1)")
        self.host.add(self.provides.get(package_id, package_id))
        return PackageInstallResult(PackageStatus.OK)


@pytest.fixture
def host() -> set[str]:
    """Names of the commands present on the simulated host."""
    return set()


@pytest.fixture
def present(host: set[str]) -> Callable[[str], bool]:
    """Presence check against the simulated host."""
    return lambda name: name in host


@pytest.fixture
def package_manager(host: set[str]) -> FakePackageManager:
    return FakePackageManager(host)


@pytest.fixture
def tiers() -> dict[str, Tier]:
    """Small catalog mirroring the bundled tier chain."""
    return catalog_from_dict(
        {
            "tiers": {
                "minimal": {"tools": {"git": "git", "curl": "curl"}},
                "standard": {"extends": "minimal", "tools": {"rg": "ripgrep", "fzf": "fzf"}},
                "developer": {
                    "extends": "standard",
                    "tools": {"node": "nodejs", "git": "git-core", "cmake": "cmake"},
                },
            },
        },
    ).tiers


@pytest.fixture
def bin_dir(tmp_path: Path) -> Path:
    path = tmp_path / "bin"
    path.mkdir()
    return path


@pytest.fixture
def test_config(tmp_path: Path, bin_dir: Path) -> FreshConfig:
    """A configuration whose directories all live under tmp_path."""
    return FreshConfig(
        bin_dir=bin_dir,
        system_bin_dir=tmp_path / "system-bin",
        log_file=tmp_path / "fresh.log",
        network_timeout=5.0,
        catalog=Catalog(
            tiers={"minimal": Tier("minimal", (CatalogEntry("git", "git"),))},
            fixups=(
                Fixup("fd", "fdfind"),
                Fixup("docker", "docker", FixupKind.GROUP),
            ),
        ),
    )


@pytest.fixture
def create_dummy_archive() -> Callable:
    r"""Create an archive file with binary files for testing.

    Returns a function that creates archive files with specified binaries.

    Usage:
        archive_path = create_dummy_archive(
            dest_path=tmp_path / "test.tar.gz",
            binary_names=["mybinary", "otherbinary"],
            archive_type="tar.gz",
            binary_content="#!/bin/sh\necho test"
        )
    """

    def _create_archive(
        dest_path: Path,
        binary_names: str | list[str],
        archive_type: str = "tar.gz",
        binary_content: str = "#!/usr/bin/env echo\n",
        nested_dir: str | None = None,
    ) -> Path:
        if isinstance(binary_names, str):
            binary_names = [binary_names]
        prefix = f"{nested_dir}/" if nested_dir else ""
        data = binary_content.encode()

        if archive_type == "tar.gz":
            with tarfile.open(dest_path, "w:gz") as tar:
                for binary in binary_names:
                    info = tarfile.TarInfo(name=f"{prefix}{binary}")
                    info.size = len(data)
                    info.mode = 0o755
                    tar.addfile(info, io.BytesIO(data))
        elif archive_type == "zip":
            with zipfile.ZipFile(dest_path, "w") as zipf:
                for binary in binary_names:
                    zip_info = zipfile.ZipInfo(f"{prefix}{binary}")
                    zip_info.external_attr = 0o755 << 16
                    zipf.writestr(zip_info, data)
        else:  # pragma: no cover
            msg = f"Unsupported archive type: {archive_type}"
            raise ValueError(msg)

        return dest_path

    return _create_archive
