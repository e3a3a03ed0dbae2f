"""Resolve a manual tool to a concrete download URL for this host."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

import requests

from .catalog import ManualTool
from .environment import current_arch
from .errors import DownloadError, UnsupportedArchitecture
from .utils import github_token_header, log

GITHUB_API = "https://api.github.com"

_SIDECAR_SUFFIXES = (
    ".sha256",
    ".sha256sum",
    ".sha512",
    ".sha512sum",
    ".md5",
    ".sig",
    ".asc",
    ".pem",
    ".minisig",
    ".sbom",
    ".spdx",
    ".intoto.jsonl",
    ".json",
    ".txt",
)


class ArtifactSource(str, Enum):
    """Where a resolved URL came from."""

    DISCOVERED = "discovered"
    PINNED = "pinned"


@dataclass(frozen=True)
class ResolvedArtifact:
    """A download URL for one manual tool on this host."""

    url: str
    source: ArtifactSource

    @property
    def filename(self) -> str:
        """Last path component of the URL, without a query string."""
        return self.url.rstrip("/").split("/")[-1].split("?")[0]


def get_latest_release(repo: str, timeout: float = 10.0) -> dict:
    """Get the latest release information from GitHub."""
    url = f"{GITHUB_API}/repos/{repo}/releases/latest"
    log(f"Fetching latest release from {url}", "info")
    response = requests.get(url, headers=github_token_header(), timeout=timeout)
    if response.status_code in (403, 429) and response.headers.get("X-RateLimit-Remaining") == "0":
        msg = f"GitHub API rate limit reached while querying {repo}"
        raise DownloadError(msg)
    response.raise_for_status()
    return response.json()


def is_sidecar(name: str) -> bool:
    """Checksum, signature and metadata files published next to real assets."""
    lowered = name.lower()
    return lowered.endswith(_SIDECAR_SUFFIXES) or "checksum" in lowered


def asset_regex(pattern: str | None, arch_token: str) -> re.Pattern:
    """Turn an asset name pattern into a regex for the given arch token.

    ``{version}`` matches any version string and ``{arch}`` matches the token
    literally. Without a pattern, any linux asset mentioning the token matches.
    """
    if not pattern:
        token = re.escape(arch_token)
        return re.compile(rf".*(linux.*{token}|{token}.*linux).*", re.IGNORECASE)
    parts = re.split(r"(\{version\}|\{arch\})", pattern)
    regex = ""
    for part in parts:
        if part == "{version}":
            regex += r"v?[0-9][^/]*?"
        elif part == "{arch}":
            regex += re.escape(arch_token)
        else:
            regex += re.escape(part)
    return re.compile(regex)


def find_assets(assets: list[dict], regex: re.Pattern) -> list[dict]:
    """Assets whose names match ``regex``, ignoring sidecar files."""
    return [
        asset for asset in assets if not is_sidecar(asset["name"]) and regex.fullmatch(asset["name"])
    ]


def pinned_url(tool: ManualTool, arch_token: str) -> str:
    """The last-known-good URL for a tool on the given architecture."""
    return tool.url_pattern.format(version=tool.pinned_version, arch=arch_token)


def discover(tool: ManualTool, arch_token: str, timeout: float = 10.0) -> str:
    """Find the single matching asset in the tool's latest release."""
    if not tool.repo:
        msg = f"{tool.name} has no upstream repository to query"
        raise DownloadError(msg)
    release = get_latest_release(tool.repo, timeout=timeout)
    matches = find_assets(release.get("assets", []), asset_regex(tool.asset_pattern, arch_token))
    if len(matches) != 1:
        names = ", ".join(a["name"] for a in matches) or "none"
        msg = f"Expected exactly one asset for {tool.name}/{arch_token}, found {len(matches)} ({names})"
        raise DownloadError(msg)
    log(f"Found matching asset: {matches[0]['name']}", "success")
    return matches[0]["browser_download_url"]


def arch_token_for(tool: ManualTool, arch: str | None = None) -> str:
    """The tool's token for the host architecture, or UnsupportedArchitecture."""
    arch = arch or current_arch()
    token = tool.arch_token(arch)
    if token is None:
        raise UnsupportedArchitecture(tool.name, arch)
    return token


def resolve(
    tool: ManualTool,
    arch: str | None = None,
    timeout: float = 10.0,
) -> ResolvedArtifact:
    """Resolve the download URL for ``tool``, preferring the latest release.

    Discovery problems of any kind fall back to the pinned version.
    """
    token = arch_token_for(tool, arch)
    if tool.repo:
        try:
            url = discover(tool, token, timeout=timeout)
        except Exception as e:  # noqa: BLE001
            log(
                f"Release discovery for {tool.name} failed ({e}), using pinned {tool.pinned_version}",
                "warning",
            )
        else:
            return ResolvedArtifact(url, ArtifactSource.DISCOVERED)
    return ResolvedArtifact(pinned_url(tool, token), ArtifactSource.PINNED)
