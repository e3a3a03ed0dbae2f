"""Command-line interface for fresh."""

from __future__ import annotations

import argparse
import dataclasses
import sys
from functools import partial
from pathlib import Path
from typing import Any

from rich import prompt

from . import __version__
from .config import FreshConfig
from .engine import Confirm, InstallationRun, InstallStatus, SKIPPED_BY_USER
from .engine import run as run_engine
from .environment import preflight, require_unprivileged, system_info
from .errors import FreshError
from .manual import install_manual_tools
from .package_manager import AptPackageManager
from .presence import is_present
from .reconcile import reconcile
from .shell import write_snippets
from .tiers import compose_tiers, resolve_tier, tier_lineage
from .utils import console, log, setup_logging, summarize_counts


def make_confirm(assume_yes: bool) -> Confirm:  # noqa: FBT001
    """Ask the operator, or always agree when running non-interactively."""
    if assume_yes:
        return lambda: True
    return lambda: prompt.Confirm.ask("Install these tools?", default=True, console=console)


def list_tools(args: Any, config: FreshConfig) -> int:
    """Preview what each tier installs."""
    names = [args.tier] if getattr(args, "tier", None) else list(config.tiers)
    for name in names:
        tier = config.tiers.get(name)
        if tier is None:
            log(f"Unknown tier: {name}", "error")
            return 1
        extends = f" (extends {', '.join(tier.extends)})" if tier.extends else ""
        console.print(f"\n🔧 [cyan]{name.upper()} TOOLS{extends}[/cyan]")
        if tier.description:
            console.print(f"   {tier.description}")
        for entry in sorted(tier.entries, key=lambda e: e.logical_name):
            pkg = f" [dim]({entry.package_id})[/dim]" if entry.package_id != entry.logical_name else ""
            console.print(f"  [green]{entry.logical_name}[/green]{pkg}")
    if not getattr(args, "tier", None) and config.manual_tools:
        console.print("\n📦 [cyan]MANUAL TOOLS[/cyan]")
        for tool in config.manual_tools.values():
            origin = tool.repo or tool.url_pattern
            console.print(f"  [green]{tool.name}[/green] {tool.pinned_version} (from {origin})")
    return 0


def show_info(_args: Any, _config: FreshConfig) -> int:
    """Print host information."""
    for key, value in system_info().items():
        console.print(f"[blue]{key}:[/blue] {value}")
    return 0


def _log_system() -> None:
    log("Detecting system information...", "info")
    for key, value in system_info().items():
        log(f"{key}: {value}")


def print_summary(run: InstallationRun) -> int:
    """Print outcome counts and failures; return the exit status."""
    console.print()
    log(f"Summary: {summarize_counts(run.counts())}", "info")
    for outcome in run.outcomes:
        if outcome.status is InstallStatus.FAILED:
            log(f"{outcome.name}: {outcome.detail}", "error")
        elif outcome.status is InstallStatus.UNAVAILABLE and outcome.detail != SKIPPED_BY_USER:
            log(f"{outcome.name}: {outcome.detail}", "warning")
    if run.failed:
        log(f"{len(run.failed)} tool(s) failed to install", "error")
        return 1
    if run.declined:
        log("Installation skipped by user", "warning")
        return 0
    log("fresh installation completed", "success")
    return 0


def _install_entries(entries: list, args: Any, config: FreshConfig) -> int:
    package_manager = AptPackageManager()
    preflight(package_manager)
    _log_system()
    present = partial(is_present, extra_dirs=[config.bin_dir])
    run = run_engine(entries, make_confirm(args.yes), package_manager, present)
    reconcile(config)
    return print_summary(run)


def install_tier(args: Any, config: FreshConfig) -> int:
    """Install a tier and every tier it extends."""
    lineage = tier_lineage(args.tier, config.tiers)
    console.print(f"[cyan]=== {args.tier.upper()} INSTALLATION ===[/cyan]")
    log(f"Installing tiers: {' + '.join(lineage)}", "info")
    return _install_entries(resolve_tier(args.tier, config.tiers), args, config)


def custom_install(args: Any, config: FreshConfig) -> int:
    """Install only the chosen tiers' own tools."""
    console.print("[cyan]=== CUSTOM INSTALLATION ===[/cyan]")
    entries = compose_tiers(args.tiers, config.tiers, include_parents=args.with_parents)
    return _install_entries(entries, args, config)


def install_manual(args: Any, config: FreshConfig) -> int:
    """Install tools straight from their upstream releases."""
    require_unprivileged()
    names = args.tools or list(config.manual_tools)
    unknown = [name for name in names if name not in config.manual_tools]
    if unknown:
        log(f"Unknown manual tool(s): {', '.join(unknown)}", "error")
        return 1
    tools = [config.manual_tools[name] for name in names]
    console.print("[cyan]=== MANUAL TOOL INSTALLATION ===[/cyan]")
    run = install_manual_tools(tools, config, make_confirm(args.yes))
    reconcile(config)
    return print_summary(run)


def run_reconcile(_args: Any, config: FreshConfig) -> int:
    """Apply post-install fixups."""
    require_unprivileged()
    actions = reconcile(config)
    for action in actions:
        log(f"{action.fixup.expected_name}: {action.detail}", "success" if action.ok else "warning")
    if not actions:
        log("Nothing to reconcile", "success")
    return 0 if all(action.ok for action in actions) else 1


def setup_shell(_args: Any, config: FreshConfig) -> int:
    """Append the enhanced shell configuration to the profile files."""
    console.print("[cyan]=== ENHANCED SHELL CONFIGURATION ===[/cyan]")
    added = write_snippets(config.shell_snippets)
    log(f"Enhanced shell configuration complete ({added} snippet(s) added)", "success")
    return 0


def show_version(_args: Any, _config: FreshConfig) -> int:
    """Print the fresh version."""
    console.print(f"[yellow]fresh[/] [bold]v{__version__}[/]")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="fresh - Bootstrap a Linux workstation with curated CLI tools",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--config-file",
        type=str,
        help="Path to catalog/configuration file",
    )
    parser.add_argument(
        "--bin-dir",
        type=str,
        help="User-local binary directory",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Run log file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # list command
    list_parser = subparsers.add_parser("list", help="Preview what each tier installs")
    list_parser.add_argument("tier", nargs="?", help="Only show this tier")
    list_parser.set_defaults(func=list_tools)

    # install command
    install_parser = subparsers.add_parser("install", help="Install a tier")
    install_parser.add_argument("tier", help="Tier to install (includes the tiers it extends)")
    install_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Do not ask for confirmation",
    )
    install_parser.set_defaults(func=install_tier)

    # custom command
    custom_parser = subparsers.add_parser("custom", help="Install selected tiers only")
    custom_parser.add_argument("tiers", nargs="+", help="Tiers to install")
    custom_parser.add_argument(
        "--with-parents",
        action="store_true",
        help="Also install the tiers each selected tier extends",
    )
    custom_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Do not ask for confirmation",
    )
    custom_parser.set_defaults(func=custom_install)

    # manual command
    manual_parser = subparsers.add_parser(
        "manual",
        help="Install tools from upstream releases",
    )
    manual_parser.add_argument(
        "tools",
        nargs="*",
        help="Manual tools to install (all if not specified)",
    )
    manual_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Do not ask for confirmation",
    )
    manual_parser.set_defaults(func=install_manual)

    reconcile_parser = subparsers.add_parser("reconcile", help="Apply post-install fixups")
    reconcile_parser.set_defaults(func=run_reconcile)

    shell_parser = subparsers.add_parser("shell", help="Install enhanced shell configuration")
    shell_parser.set_defaults(func=setup_shell)

    info_parser = subparsers.add_parser("info", help="Show system information")
    info_parser.set_defaults(func=show_info)

    version_parser = subparsers.add_parser("version", help="Print version information")
    version_parser.set_defaults(func=show_version)

    return parser


def load_config(args: argparse.Namespace) -> FreshConfig:
    """Load the configuration and apply command-line overrides."""
    config = FreshConfig.load_from_file(args.config_file)
    overrides = {}
    if args.bin_dir:
        overrides["bin_dir"] = Path(args.bin_dir).expanduser()
    if args.log_file:
        overrides["log_file"] = Path(args.log_file).expanduser()
    return dataclasses.replace(config, **overrides) if overrides else config


def main(argv: list[str] | None = None) -> None:
    """Main function to parse arguments and execute commands."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        setup_logging(args.verbose)
        config = load_config(args)
        setup_logging(args.verbose, config.log_file)
        status = args.func(args, config)
    except FreshError as e:
        log(f"Error: {e!s}", "error")
        sys.exit(1)
    except Exception as e:  # noqa: BLE001
        log(f"Error: {e!s}", "error", print_exception=True)
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\nGoodbye! 👋")
        sys.exit(130)

    sys.exit(status)


if __name__ == "__main__":
    main()
