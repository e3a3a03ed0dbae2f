"""Tests for downloading and installing release artifacts."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Callable
from unittest.mock import MagicMock, patch

import pytest
import requests

from fresh.catalog import ManualTool, PackagingKind
from fresh.config import FreshConfig
from fresh.download import download_file, install_artifact
from fresh.engine import InstallStatus
from fresh.errors import DownloadError, PrivilegeEscalationDenied
from fresh.resolve import ArtifactSource, ResolvedArtifact


def _tool(packaging: PackagingKind, **kwargs) -> ManualTool:  # noqa: ANN003
    return ManualTool(
        name=kwargs.pop("name", "mytool"),
        pinned_version="1.2.3",
        url_pattern="https://example.com/mytool-{version}-{arch}",
        arch_map={"x86_64": "amd64"},
        packaging=packaging,
        **kwargs,
    )


def _artifact(filename: str) -> ResolvedArtifact:
    return ResolvedArtifact(f"https://example.com/{filename}", ArtifactSource.PINNED)


class _Downloads:
    """Stand-in for download_file that records where files were written."""

    def __init__(self, writer: Callable[[Path], None]) -> None:
        self.writer = writer
        self.destinations: list[Path] = []

    def __call__(self, url: str, destination: Path, timeout: float = 15.0) -> Path:  # noqa: ARG002
        self.destinations.append(destination)
        self.writer(destination)
        return destination


def test_raw_binary(test_config: FreshConfig) -> None:
    downloads = _Downloads(lambda dest: dest.write_text("#!/bin/sh\necho raw\n"))
    tool = _tool(PackagingKind.RAW_BINARY)
    with patch("fresh.download.download_file", side_effect=downloads):
        outcome = install_artifact(_artifact("mytool_linux_amd64"), tool, test_config)

    assert outcome.status is InstallStatus.INSTALLED
    binary = test_config.bin_dir / "mytool"
    assert binary.read_text() == "#!/bin/sh\necho raw\n"
    assert os.access(binary, os.X_OK)
    assert not downloads.destinations[0].exists(), "temporary download should be removed"


@pytest.mark.parametrize("archive_type", ["tar.gz", "zip"])
def test_archive(
    test_config: FreshConfig,
    create_dummy_archive: Callable,
    archive_type: str,
) -> None:
    packaging = PackagingKind.TARBALL if archive_type == "tar.gz" else PackagingKind.ZIP
    tool = _tool(packaging)
    downloads = _Downloads(
        lambda dest: create_dummy_archive(
            dest,
            ["mytool", "helper"],
            archive_type,
            nested_dir="mytool-1.2.3",
        ),
    )
    with patch("fresh.download.download_file", side_effect=downloads):
        outcome = install_artifact(_artifact(f"mytool.{archive_type}"), tool, test_config)

    assert outcome.status is InstallStatus.INSTALLED, outcome.detail
    assert (test_config.bin_dir / "mytool").exists()
    assert not (test_config.bin_dir / "helper").exists()
    assert os.access(test_config.bin_dir / "mytool", os.X_OK)


def test_archive_with_binary_path(test_config: FreshConfig, create_dummy_archive: Callable) -> None:
    tool = _tool(PackagingKind.TARBALL, binary_path="*/bin/mytool")
    downloads = _Downloads(
        lambda dest: create_dummy_archive(dest, "mytool", nested_dir="pkg/bin"),
    )
    with patch("fresh.download.download_file", side_effect=downloads):
        outcome = install_artifact(_artifact("mytool.tar.gz"), tool, test_config)
    assert outcome.status is InstallStatus.INSTALLED, outcome.detail


def test_canonical_name_symlink(test_config: FreshConfig, create_dummy_archive: Callable) -> None:
    """The canonical name links to the distributed binary."""
    tool = _tool(PackagingKind.TARBALL, name="bottom", binary_name="btm")
    downloads = _Downloads(lambda dest: create_dummy_archive(dest, "btm"))
    with patch("fresh.download.download_file", side_effect=downloads):
        outcome = install_artifact(_artifact("bottom.tar.gz"), tool, test_config)

    assert outcome.status is InstallStatus.INSTALLED
    link = test_config.bin_dir / "bottom"
    assert link.is_symlink()
    assert link.resolve() == (test_config.bin_dir / "btm").resolve()


def test_download_failure(test_config: FreshConfig) -> None:
    tool = _tool(PackagingKind.RAW_BINARY)
    with patch(
        "fresh.download.download_file",
        side_effect=DownloadError("Failed to download: 404 Not Found"),
    ):
        outcome = install_artifact(_artifact("mytool"), tool, test_config)
    assert outcome.status is InstallStatus.FAILED
    assert outcome.detail.startswith("download failed")
    assert not (test_config.bin_dir / "mytool").exists()


def test_bad_archive_cleans_up(test_config: FreshConfig) -> None:
    downloads = _Downloads(lambda dest: dest.write_bytes(b"not an archive"))
    tool = _tool(PackagingKind.TARBALL)
    with patch("fresh.download.download_file", side_effect=downloads):
        outcome = install_artifact(_artifact("mytool.tar.gz"), tool, test_config)
    assert outcome.status is InstallStatus.FAILED
    assert outcome.detail.startswith("unpack failed")
    assert not downloads.destinations[0].parent.exists()


def test_system_wide_link_failure_is_warning(test_config: FreshConfig) -> None:
    downloads = _Downloads(lambda dest: dest.write_text("binary"))
    tool = _tool(PackagingKind.RAW_BINARY, system_wide=True)
    with (
        patch("fresh.download.download_file", side_effect=downloads),
        patch(
            "fresh.download.run_privileged",
            side_effect=PrivilegeEscalationDenied("sudo: a password is required"),
        ),
    ):
        outcome = install_artifact(_artifact("mytool"), tool, test_config)
    assert outcome.status is InstallStatus.INSTALLED
    assert "warning: system-wide link not created" in outcome.detail


def test_system_wide_link(test_config: FreshConfig) -> None:
    downloads = _Downloads(lambda dest: dest.write_text("binary"))
    tool = _tool(PackagingKind.RAW_BINARY, system_wide=True)
    with (
        patch("fresh.download.download_file", side_effect=downloads),
        patch("fresh.download.run_privileged") as mock_privileged,
    ):
        outcome = install_artifact(_artifact("mytool"), tool, test_config)
    assert outcome.status is InstallStatus.INSTALLED
    mock_privileged.assert_called_once_with(
        [
            "ln",
            "-sf",
            str(test_config.bin_dir / "mytool"),
            str(test_config.system_bin_dir / "mytool"),
        ],
    )


def test_installer_script(test_config: FreshConfig, tmp_path: Path) -> None:
    installed = tmp_path / "home" / ".bun" / "bin" / "bun"
    tool = _tool(
        PackagingKind.INSTALLER_SCRIPT,
        name="bun",
        binary_path=str(installed),
        installer_args=("bun-v1.2.3",),
    )

    def fake_script(command: list[str], **_kwargs) -> subprocess.CompletedProcess:  # noqa: ANN003
        assert command[0] == "bash"
        assert command[2:] == ["bun-v1.2.3"]
        installed.parent.mkdir(parents=True)
        installed.write_text("bun")
        installed.chmod(0o755)
        return subprocess.CompletedProcess(command, 0, "", "")

    downloads = _Downloads(lambda dest: dest.write_text("#!/bin/bash\n"))
    with (
        patch("fresh.download.download_file", side_effect=downloads),
        patch("fresh.download.os.geteuid", return_value=1000),
        patch("fresh.download.subprocess.run", side_effect=fake_script),
    ):
        outcome = install_artifact(_artifact("install"), tool, test_config)

    assert outcome.status is InstallStatus.INSTALLED, outcome.detail
    link = test_config.bin_dir / "bun"
    assert link.is_symlink()
    assert link.resolve() == installed.resolve()


def test_installer_script_failure(test_config: FreshConfig) -> None:
    tool = _tool(PackagingKind.INSTALLER_SCRIPT, name="bun", binary_path="/nonexistent/bun")
    downloads = _Downloads(lambda dest: dest.write_text("#!/bin/bash\nexit 1\n"))
    with (
        patch("fresh.download.download_file", side_effect=downloads),
        patch("fresh.download.os.geteuid", return_value=1000),
        patch(
            "fresh.download.subprocess.run",
            return_value=subprocess.CompletedProcess([], 1, "", "error: unsupported glibc\n"),
        ),
    ):
        outcome = install_artifact(_artifact("install"), tool, test_config)
    assert outcome.status is InstallStatus.FAILED
    assert "unsupported glibc" in outcome.detail


def test_download_file_http_error(tmp_path: Path) -> None:
    response = MagicMock()
    response.raise_for_status.side_effect = requests.HTTPError("404 Not Found")
    with (
        patch("fresh.download.requests.get", return_value=response) as mock_get,
        pytest.raises(DownloadError, match="404"),
    ):
        download_file("https://example.com/missing", tmp_path / "missing", timeout=3)
    assert mock_get.call_args.kwargs["timeout"] == 3


def test_download_file_writes_chunks(tmp_path: Path) -> None:
    response = MagicMock()
    response.iter_content.return_value = [b"abc", b"def"]
    with patch("fresh.download.requests.get", return_value=response):
        path = download_file("https://example.com/file", tmp_path / "file")
    assert path.read_bytes() == b"abcdef"


def test_download_file_gives_up_on_slow_transfer(tmp_path: Path) -> None:
    response = MagicMock()
    response.iter_content.return_value = [b"a", b"b", b"c"]
    clock = [0.0, 1.0, 20.0]
    with (
        patch("fresh.download.requests.get", return_value=response),
        patch("fresh.download.time.monotonic", side_effect=lambda: clock.pop(0) if len(clock) > 1 else clock[0]),
        pytest.raises(DownloadError, match="longer than 10s"),
    ):
        download_file("https://example.com/slow", tmp_path / "slow", deadline=10)
    assert (tmp_path / "slow").read_bytes() == b"a"
