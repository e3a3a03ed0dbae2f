"""fresh - Linux workstation bootstrapper.

Installs curated tiers of command-line tools through apt, and tools that are
not packaged straight from their upstream release pages, then applies the
small fixups distributions need (renamed executables, group memberships).
"""

from __future__ import annotations

__version__ = "2.0.0"

from . import catalog, cli, config, download, engine, extract, manual, reconcile, resolve, tiers
from .cli import main

# Re-export commonly used functions
from .config import FreshConfig
from .download import install_artifact
from .engine import InstallationRun, InstallOutcome, InstallStatus
from .manual import install_manual_tools
from .presence import is_present
from .reconcile import reconcile as run_reconcile
from .resolve import ArtifactSource, ResolvedArtifact
from .resolve import resolve as resolve_artifact
from .tiers import compose_tiers, resolve_tier

__all__ = [
    "ArtifactSource",
    "FreshConfig",
    "InstallOutcome",
    "InstallStatus",
    "InstallationRun",
    "ResolvedArtifact",
    "catalog",
    "cli",
    "compose_tiers",
    "config",
    "download",
    "engine",
    "extract",
    "install_artifact",
    "install_manual_tools",
    "is_present",
    "main",
    "manual",
    "reconcile",
    "resolve",
    "resolve_artifact",
    "resolve_tier",
    "run_reconcile",
    "tiers",
]
