"""Configuration management for fresh."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .catalog import Catalog, Fixup, ManualTool, Tier, catalog_from_dict
from .errors import CatalogError
from .utils import log

DEFAULT_CATALOG = Path(__file__).parent / "catalog.yaml"


def _expand(path: str | Path) -> Path:
    return Path(os.path.expanduser(str(path)))


@dataclass(frozen=True)
class ShellSnippet:
    """A block of shell configuration appended once to a profile file."""

    path: Path
    marker: str
    content: str


@dataclass(frozen=True)
class FreshConfig:
    """Configuration for fresh, built once and passed to every operation."""

    bin_dir: Path = field(default_factory=lambda: _expand("~/.local/bin"))
    system_bin_dir: Path = Path("/usr/local/bin")
    log_file: Path = field(default_factory=lambda: _expand("~/fresh-install.log"))
    network_timeout: float = 15.0
    catalog: Catalog = field(default_factory=Catalog)
    shell_snippets: tuple[ShellSnippet, ...] = ()

    @property
    def tiers(self) -> dict[str, Tier]:
        """Tiers by name, in catalog order."""
        return self.catalog.tiers

    @property
    def manual_tools(self) -> dict[str, ManualTool]:
        """Manual tools by name."""
        return self.catalog.manual_tools

    @property
    def fixups(self) -> tuple[Fixup, ...]:
        """Post-install fixups, applied in order."""
        return self.catalog.fixups

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FreshConfig:
        """Build a configuration from parsed YAML."""
        if not isinstance(data, dict):
            msg = "Configuration must be a mapping"
            raise CatalogError(msg)
        kwargs: dict[str, Any] = {"catalog": catalog_from_dict(data)}
        for key in ("bin_dir", "system_bin_dir", "log_file"):
            if data.get(key):
                kwargs[key] = _expand(data[key])
        if "network_timeout" in data:
            try:
                kwargs["network_timeout"] = float(data["network_timeout"])
            except (TypeError, ValueError):
                msg = f"network_timeout must be a number, got {data['network_timeout']!r}"
                raise CatalogError(msg) from None
        kwargs["shell_snippets"] = tuple(
            _snippet_from_dict(item) for item in data.get("shell_snippets") or []
        )
        return cls(**kwargs)

    @classmethod
    def load_from_file(cls, config_path: str | Path | None = None) -> FreshConfig:
        """Load configuration from a YAML file, or the bundled catalog."""
        path = _expand(config_path) if config_path else DEFAULT_CATALOG
        if not path.exists():
            log(f"Configuration file not found: {path}, using the bundled catalog", "warning")
            path = DEFAULT_CATALOG

        try:
            with open(path) as file:
                config_data = yaml.safe_load(file) or {}
        except yaml.YAMLError as e:
            msg = f"Invalid YAML in configuration file {path}: {e}"
            raise CatalogError(msg) from e

        return cls.from_dict(config_data)


def _snippet_from_dict(data: dict[str, Any]) -> ShellSnippet:
    try:
        return ShellSnippet(
            path=_expand(data["path"]),
            marker=data["marker"],
            content=data["content"].rstrip("\n"),
        )
    except (KeyError, TypeError, AttributeError) as e:
        msg = f"Invalid shell snippet {data!r}"
        raise CatalogError(msg) from e
