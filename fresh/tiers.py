"""Flatten tier inclusion into a single, deduplicated entry list."""

from __future__ import annotations

from collections.abc import Iterable

from .catalog import CatalogEntry, Tier
from .errors import CatalogError


def _get_tier(name: str, tiers: dict[str, Tier]) -> Tier:
    try:
        return tiers[name]
    except KeyError:
        known = ", ".join(tiers) or "none"
        msg = f"Unknown tier '{name}' (known tiers: {known})"
        raise CatalogError(msg) from None


def tier_lineage(name: str, tiers: dict[str, Tier]) -> list[str]:
    """Return tier names from the root of the inclusion chain down to ``name``.

    Parents are visited depth-first in declaration order and each tier
    appears once, so shared ancestors in a diamond are listed only the first
    time they are reached.
    """
    order: list[str] = []

    def visit(current: str, path: tuple[str, ...]) -> None:
        if current in path:
            msg = f"Tier inclusion cycle: {' -> '.join((*path, current))}"
            raise CatalogError(msg)
        if current in order:
            return
        for parent in _get_tier(current, tiers).extends:
            visit(parent, (*path, current))
        order.append(current)

    visit(name, ())
    return order


def dedupe_entries(entries: Iterable[CatalogEntry]) -> list[CatalogEntry]:
    """Drop repeated logical names, keeping the first occurrence."""
    seen: set[str] = set()
    result = []
    for entry in entries:
        if entry.logical_name in seen:
            continue
        seen.add(entry.logical_name)
        result.append(entry)
    return result


def resolve_tier(name: str, tiers: dict[str, Tier]) -> list[CatalogEntry]:
    """All entries of ``name`` and of every tier it extends, parents first."""
    return dedupe_entries(
        entry for tier_name in tier_lineage(name, tiers) for entry in tiers[tier_name].entries
    )


def compose_tiers(
    names: Iterable[str],
    tiers: dict[str, Tier],
    include_parents: bool = False,  # noqa: FBT001, FBT002
) -> list[CatalogEntry]:
    """Entries of several tiers in the order given, for a single install run."""
    entries: list[CatalogEntry] = []
    for name in names:
        if include_parents:
            entries.extend(resolve_tier(name, tiers))
        else:
            entries.extend(_get_tier(name, tiers).entries)
    return dedupe_entries(entries)
