"""Tool catalog records: tiers of packaged tools and manually installed tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import CatalogError


@dataclass(frozen=True)
class CatalogEntry:
    """A tool installed through the package manager.

    ``logical_name`` is the command expected on ``PATH``; ``package_id`` is
    what gets handed to the package manager.
    """

    logical_name: str
    package_id: str


@dataclass(frozen=True)
class Tier:
    """A named, ordered set of entries extending zero or more parent tiers."""

    name: str
    entries: tuple[CatalogEntry, ...] = ()
    extends: tuple[str, ...] = ()
    description: str = ""


class PackagingKind(str, Enum):
    """How a manual tool's release artifact is packaged."""

    RAW_BINARY = "raw"
    TARBALL = "tarball"
    ZIP = "zip"
    INSTALLER_SCRIPT = "script"


@dataclass(frozen=True)
class ManualTool:
    """A tool fetched from its upstream release page instead of the package manager."""

    name: str
    pinned_version: str
    url_pattern: str
    arch_map: dict[str, str]
    packaging: PackagingKind
    repo: str | None = None
    asset_pattern: str | None = None
    binary_name: str | None = None
    binary_path: str | None = None
    installer_args: tuple[str, ...] = ()
    system_wide: bool = False

    @property
    def distributed_name(self) -> str:
        """Name of the executable as shipped upstream."""
        return self.binary_name or self.name

    def arch_token(self, arch: str) -> str | None:
        """Map a host architecture to the token used in asset names."""
        return self.arch_map.get(arch)


class FixupKind(str, Enum):
    """Kinds of post-install fixups."""

    SYMLINK = "symlink"
    GROUP = "group"
    CARGO = "cargo"


@dataclass(frozen=True)
class Fixup:
    """Reconcile ``expected_name`` when only ``actual_name`` is present."""

    expected_name: str
    actual_name: str
    kind: FixupKind = FixupKind.SYMLINK


@dataclass(frozen=True)
class Catalog:
    """All static tool data, constructed once at startup."""

    tiers: dict[str, Tier] = field(default_factory=dict)
    manual_tools: dict[str, ManualTool] = field(default_factory=dict)
    fixups: tuple[Fixup, ...] = ()


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def _entries_from_dict(tier_name: str, raw: Any) -> tuple[CatalogEntry, ...]:
    """Parse tier entries given as ``{name: package}`` or a list of names/mappings."""
    pairs: list[tuple[str, str]] = []
    if isinstance(raw, dict):
        pairs = [(name, pkg or name) for name, pkg in raw.items()]
    elif isinstance(raw, list):
        for item in raw:
            if isinstance(item, str):
                pairs.append((item, item))
            elif isinstance(item, dict) and len(item) == 1:
                name, pkg = next(iter(item.items()))
                pairs.append((name, pkg or name))
            else:
                msg = f"Tier '{tier_name}' has an invalid entry: {item!r}"
                raise CatalogError(msg)
    elif raw is not None:
        msg = f"Tier '{tier_name}' tools must be a mapping or a list"
        raise CatalogError(msg)

    seen: set[str] = set()
    for name, _ in pairs:
        if name in seen:
            msg = f"Tier '{tier_name}' lists '{name}' more than once"
            raise CatalogError(msg)
        seen.add(name)
    return tuple(CatalogEntry(str(name), str(pkg)) for name, pkg in pairs)


def tier_from_dict(name: str, data: dict[str, Any]) -> Tier:
    """Build a Tier from its YAML representation."""
    return Tier(
        name=name,
        entries=_entries_from_dict(name, data.get("tools")),
        extends=_as_tuple(data.get("extends")),
        description=data.get("description", ""),
    )


def manual_tool_from_dict(name: str, data: dict[str, Any]) -> ManualTool:
    """Build a ManualTool from its YAML representation."""
    for required in ("version", "url", "arch_map", "packaging"):
        if required not in data:
            msg = f"Manual tool '{name}' is missing required field '{required}'"
            raise CatalogError(msg)
    try:
        packaging = PackagingKind(data["packaging"])
    except ValueError:
        msg = f"Manual tool '{name}' has unknown packaging '{data['packaging']}'"
        raise CatalogError(msg) from None
    arch_map = data["arch_map"]
    if not isinstance(arch_map, dict) or not arch_map:
        msg = f"Manual tool '{name}' needs a non-empty arch_map"
        raise CatalogError(msg)
    return ManualTool(
        name=name,
        pinned_version=str(data["version"]),
        url_pattern=data["url"],
        arch_map={str(k): str(v) for k, v in arch_map.items()},
        packaging=packaging,
        repo=data.get("repo"),
        asset_pattern=data.get("asset_pattern"),
        binary_name=data.get("binary_name"),
        binary_path=data.get("binary_path"),
        installer_args=_as_tuple(data.get("installer_args")),
        system_wide=bool(data.get("system_wide", False)),
    )


def fixup_from_dict(data: dict[str, Any]) -> Fixup:
    """Build a Fixup from its YAML representation."""
    try:
        return Fixup(
            expected_name=data["expected"],
            actual_name=data["actual"],
            kind=FixupKind(data.get("kind", "symlink")),
        )
    except (KeyError, ValueError) as e:
        msg = f"Invalid fixup {data!r}: {e}"
        raise CatalogError(msg) from e


def catalog_from_dict(data: dict[str, Any]) -> Catalog:
    """Build and validate a Catalog from parsed YAML."""
    tiers = {
        name: tier_from_dict(name, tier_data or {})
        for name, tier_data in (data.get("tiers") or {}).items()
    }
    manual_tools = {
        name: manual_tool_from_dict(name, tool_data or {})
        for name, tool_data in (data.get("manual_tools") or {}).items()
    }
    fixups = tuple(fixup_from_dict(item) for item in data.get("fixups") or [])
    catalog = Catalog(tiers=tiers, manual_tools=manual_tools, fixups=fixups)
    validate_tiers(catalog.tiers)
    return catalog


def validate_tiers(tiers: dict[str, Tier]) -> None:
    """Check that every parent exists and the inclusion graph has no cycle."""
    for tier in tiers.values():
        for parent in tier.extends:
            if parent not in tiers:
                msg = f"Tier '{tier.name}' extends unknown tier '{parent}'"
                raise CatalogError(msg)

    done: set[str] = set()

    def visit(name: str, path: tuple[str, ...]) -> None:
        if name in path:
            cycle = " -> ".join((*path, name))
            msg = f"Tier inclusion cycle: {cycle}"
            raise CatalogError(msg)
        if name in done:
            return
        for parent in tiers[name].extends:
            visit(parent, (*path, name))
        done.add(name)

    for name in tiers:
        visit(name, ())
