"""Download release artifacts and install the executables they contain."""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
import time
from pathlib import Path
from typing import TYPE_CHECKING

import requests

from .catalog import ManualTool, PackagingKind
from .engine import InstallOutcome, InstallStatus
from .errors import DownloadError, ExtractionError, PrivilegeEscalationDenied
from .extract import extract_executable
from .presence import search_path
from .utils import log, run_privileged

if TYPE_CHECKING:
    from .config import FreshConfig
    from .resolve import ResolvedArtifact

# Whole-transfer limit for one artifact, in seconds.
DOWNLOAD_DEADLINE = 600.0


def download_file(
    url: str,
    destination: Path,
    timeout: float = 15.0,
    deadline: float = DOWNLOAD_DEADLINE,
) -> Path:
    """Download a file from a URL to a destination path.

    ``timeout`` bounds each socket operation; ``deadline`` bounds the whole
    transfer, so a server trickling bytes cannot stall a tool indefinitely.
    """
    log(f"Downloading from {url}", "info")
    give_up_at = time.monotonic() + deadline
    try:
        response = requests.get(url, stream=True, timeout=timeout)
        response.raise_for_status()

        with open(destination, "wb") as f:
            for chunk in response.iter_content(chunk_size=8192):
                if time.monotonic() > give_up_at:
                    msg = f"Download of {url} took longer than {deadline:g}s"
                    raise DownloadError(msg)
                f.write(chunk)
    except requests.RequestException as e:
        msg = f"Failed to download {url}: {e}"
        raise DownloadError(msg) from e
    return destination


def _replace(path: Path) -> None:
    if path.is_symlink() or path.exists():
        path.unlink()


def copy_binary_to_destination(source: Path, bin_dir: Path, binary_name: str) -> Path:
    """Copy the binary into ``bin_dir`` and make it executable."""
    bin_dir.mkdir(parents=True, exist_ok=True)
    dest_path = bin_dir / binary_name
    _replace(dest_path)
    shutil.copy2(source, dest_path)
    dest_path.chmod(dest_path.stat().st_mode | 0o755)
    log(f"Copied binary to {dest_path}", "success")
    return dest_path


def link_binary(target: Path, bin_dir: Path, link_name: str) -> Path:
    """Create ``bin_dir/link_name`` pointing at ``target``."""
    bin_dir.mkdir(parents=True, exist_ok=True)
    link = bin_dir / link_name
    if link == target:
        return link
    _replace(link)
    link.symlink_to(target)
    log(f"Linked {link} -> {target}", "success")
    return link


def link_system_wide(target: Path, system_bin_dir: Path, name: str) -> str:
    """Try to symlink ``target`` into the system binary directory.

    Returns a note for the outcome; a refusal is a warning, not a failure.
    """
    link = system_bin_dir / name
    try:
        run_privileged(["ln", "-sf", str(target), str(link)])
    except PrivilegeEscalationDenied as e:
        log(f"Could not create system-wide link {link}: {e}", "warning")
        return f"warning: system-wide link not created ({e})"
    log(f"Linked {link} -> {target}", "success")
    return f"linked {link}"


def run_installer_script(script: Path, tool: ManualTool, bin_dir: Path) -> Path:
    """Run an upstream installer script as the invoking user.

    Returns the path of the executable the script installed.
    """
    if os.geteuid() == 0:
        msg = "Refusing to run an installer script as root"
        raise PrivilegeEscalationDenied(msg)
    log(f"Running installer script for {tool.name}", "info")
    result = subprocess.run(
        ["bash", str(script), *tool.installer_args],
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        lines = [line for line in result.stderr.splitlines() if line.strip()]
        detail = lines[-1] if lines else f"exit code {result.returncode}"
        msg = f"installer script failed: {detail}"
        raise ExtractionError(msg)

    if tool.binary_path:
        installed = Path(os.path.expanduser(tool.binary_path))
        if installed.exists():
            return installed
    else:
        found = shutil.which(tool.distributed_name, path=search_path([bin_dir]))
        if found:
            return Path(found)
    msg = f"installer script did not provide {tool.distributed_name}"
    raise ExtractionError(msg)


def install_artifact(
    artifact: ResolvedArtifact,
    tool: ManualTool,
    config: FreshConfig,
) -> InstallOutcome:
    """Download, unpack and place one manual tool.

    The temporary download directory is removed on every exit path.
    """
    bin_dir = config.bin_dir
    with tempfile.TemporaryDirectory(prefix=f"fresh-{tool.name}-") as tmp:
        temp_path = Path(tmp) / (artifact.filename or tool.name)
        try:
            download_file(artifact.url, temp_path, timeout=config.network_timeout)
        except DownloadError as e:
            log(f"Error downloading {tool.name}: {e}", "error")
            return InstallOutcome(tool, InstallStatus.FAILED, f"download failed: {e}")

        try:
            if tool.packaging is PackagingKind.INSTALLER_SCRIPT:
                installed = run_installer_script(temp_path, tool, bin_dir)
                binary = link_binary(installed, bin_dir, tool.distributed_name)
            elif tool.packaging is PackagingKind.RAW_BINARY:
                binary = copy_binary_to_destination(temp_path, bin_dir, tool.distributed_name)
            else:
                extracted = extract_executable(
                    temp_path,
                    tool.packaging,
                    Path(tmp) / "extracted" / tool.distributed_name,
                    tool.distributed_name,
                    tool.binary_path,
                )
                binary = copy_binary_to_destination(extracted, bin_dir, tool.distributed_name)
        except (ExtractionError, PrivilegeEscalationDenied) as e:
            log(f"Error unpacking {tool.name}: {e}", "error")
            return InstallOutcome(tool, InstallStatus.FAILED, f"unpack failed: {e}")
        except OSError as e:
            log(f"Error placing {tool.name} in {bin_dir}: {e}", "error")
            return InstallOutcome(tool, InstallStatus.FAILED, f"placement failed: {e}")

    notes = [f"{artifact.source.value} {artifact.url}"]
    try:
        if tool.name != tool.distributed_name:
            binary = link_binary(binary, bin_dir, tool.name)
    except OSError as e:
        log(f"Error linking {tool.name}: {e}", "error")
        return InstallOutcome(tool, InstallStatus.FAILED, f"placement failed: {e}")

    if tool.system_wide:
        notes.append(link_system_wide(binary, config.system_bin_dir, tool.name))

    log(f"Successfully installed {tool.name}", "success")
    return InstallOutcome(tool, InstallStatus.INSTALLED, "; ".join(notes))
