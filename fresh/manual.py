"""Install tools that are not packaged, straight from their upstream releases."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from .download import install_artifact
from .engine import Confirm, InstallationRun, InstallOutcome, InstallStatus, SKIPPED_BY_USER
from .presence import is_present
from .resolve import arch_token_for, resolve
from .utils import log

if TYPE_CHECKING:
    from .catalog import ManualTool
    from .config import FreshConfig


def install_manual_tools(
    tools: Sequence[ManualTool],
    config: FreshConfig,
    confirm: Confirm,
    arch: str | None = None,
) -> InstallationRun:
    """Install every tool in ``tools`` that is not already usable.

    Raises UnsupportedArchitecture before any download if a selected tool has
    no build for this host.
    """
    for tool in tools:
        arch_token_for(tool, arch)

    result = InstallationRun()
    missing = []
    for tool in tools:
        if is_present(tool.name, [config.bin_dir]):
            log(f"{tool.name} already installed", "success")
            result.outcomes.append(InstallOutcome(tool, InstallStatus.ALREADY_PRESENT))
        else:
            missing.append(tool)

    if not missing:
        log("All manual tools already installed", "success")
        return result

    log(f"Manual tools to install: {', '.join(t.name for t in missing)}", "info")
    if not confirm():
        log("Skipping manual tool installation", "warning")
        result.declined = True
        result.outcomes.extend(
            InstallOutcome(tool, InstallStatus.UNAVAILABLE, SKIPPED_BY_USER) for tool in missing
        )
        return result

    for tool in missing:
        result.outcomes.append(_install_one(tool, config, arch))
    return result


def _install_one(tool: ManualTool, config: FreshConfig, arch: str | None) -> InstallOutcome:
    log(f"Installing {tool.name}...", "info")
    try:
        artifact = resolve(tool, arch=arch, timeout=config.network_timeout)
        return install_artifact(artifact, tool, config)
    except Exception as e:  # noqa: BLE001
        log(f"Error installing {tool.name}: {e}", "error", print_exception=True)
        return InstallOutcome(tool, InstallStatus.FAILED, str(e))
