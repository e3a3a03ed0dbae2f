"""Utility functions for fresh."""

from __future__ import annotations

import logging
import os
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Literal

from rich.console import Console
from rich.text import Text

from .errors import PrivilegeEscalationDenied

# Initialize rich console
console = Console()
logger = logging.getLogger("fresh")

_VERBOSE = False

LogLevel = Literal["default", "success", "info", "warning", "error", "debug"]

_STYLES = {
    "default": ("", ""),
    "success": ("✅ ", "green"),
    "info": ("🔍 ", "blue"),
    "warning": ("⚠️ ", "yellow"),
    "error": ("❌ ", "bold red"),
    "debug": ("🐞 ", "dim"),
}

_LOG_LEVELS = {
    "default": logging.INFO,
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "debug": logging.DEBUG,
}


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:  # noqa: FBT001, FBT002
    """Configure verbosity and the append-only run log."""
    global _VERBOSE
    _VERBOSE = verbose
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    if log_file is None:
        logger.addHandler(logging.NullHandler())
        return
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S"),
    )
    logger.addHandler(handler)
    logger.info("=== fresh run started %s ===", datetime.now().isoformat(timespec="seconds"))


def log(
    message: str,
    level: LogLevel = "default",
    print_exception: bool = False,  # noqa: FBT001, FBT002
) -> None:
    """Print a message to the console and record it in the run log."""
    logger.log(_LOG_LEVELS[level], Text.from_markup(message).plain)
    if level == "debug" and not _VERBOSE:
        return
    prefix, style = _STYLES[level]
    if style:
        console.print(f"{prefix}[{style}]{message}[/{style}]")
    else:
        console.print(message)
    if print_exception:
        console.print_exception()


def run_privileged(
    args: list[str],
    check: bool = True,  # noqa: FBT001, FBT002
) -> subprocess.CompletedProcess:
    """Run a command through sudo, prompting the operator when needed."""
    command = args if os.geteuid() == 0 else ["sudo", *args]
    log(f"Running: {' '.join(command)}", "debug")
    try:
        result = subprocess.run(command, capture_output=True, text=True, check=False)
    except FileNotFoundError as e:
        msg = f"Cannot run {command[0]}: {e}"
        raise PrivilegeEscalationDenied(msg) from e
    if check and result.returncode != 0:
        detail = (result.stderr or "").strip() or f"exit code {result.returncode}"
        msg = f"{' '.join(command)} failed: {detail}"
        raise PrivilegeEscalationDenied(msg)
    return result


def github_token_header(token: str | None = None) -> dict[str, str]:
    """Return an Authorization header if a GitHub token is available."""
    token = token or os.environ.get("GITHUB_TOKEN")
    if token:
        return {"Authorization": f"token {token}"}
    return {}


def summarize_counts(counts: dict[str, int]) -> str:
    """Format outcome counts as a single line."""
    return ", ".join(f"{count} {label}" for label, count in counts.items())
