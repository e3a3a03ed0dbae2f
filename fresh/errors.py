"""Exceptions raised by fresh."""

from __future__ import annotations


class FreshError(Exception):
    """Base class for all fresh errors."""


class EnvironmentUnsupported(FreshError):
    """The host cannot be bootstrapped (wrong user, no package manager, ...)."""


class UnsupportedArchitecture(EnvironmentUnsupported):
    """A manual tool has no build for the host architecture."""

    def __init__(self, tool: str, arch: str) -> None:
        """Initialize the UnsupportedArchitecture error."""
        self.tool = tool
        self.arch = arch
        super().__init__(f"{tool} has no release for architecture '{arch}'")


class CatalogError(FreshError):
    """The tool catalog or configuration file is invalid."""


class DownloadError(FreshError):
    """Fetching an artifact or release listing failed."""


class ExtractionError(FreshError):
    """Error during extraction process."""

    def __init__(
        self,
        message: str,
        candidates: list[str] | None = None,
    ) -> None:
        """Initialize the ExtractionError."""
        self.message = message
        self.candidates = candidates or []
        super().__init__(message)


class PrivilegeEscalationDenied(FreshError):
    """A command run through sudo was refused or failed."""
