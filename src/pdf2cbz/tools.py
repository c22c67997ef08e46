"""
External tool discovery and invocation.

The subprocess-based backends (pdftoppm, zip) go through these helpers so a
missing tool or a non-zero exit always turns into a clear UserError.
"""

from __future__ import annotations

import shutil
import subprocess
from typing import Callable, Iterable, List, Optional, Sequence

from .utils import MissingDependencyError, ToolError


INSTALL_HINTS = {
    "pdftoppm": "install poppler-utils (apt/dnf) or poppler (brew)",
    "zip": "install the 'zip' package",
}


def find_missing_tools(names: Iterable[str]) -> List[str]:
    """Return the tool names that cannot be found on PATH, in input order."""

    missing: List[str] = []
    for name in names:
        if name not in missing and shutil.which(name) is None:
            missing.append(name)
    return missing


def ensure_tools(names: Iterable[str]) -> None:
    """Fail fast, naming every missing tool at once."""

    missing = find_missing_tools(names)
    if not missing:
        return
    hints = "; ".join(
        f"{name}: {INSTALL_HINTS.get(name, 'install it and make sure it is on PATH')}"
        for name in missing
    )
    raise MissingDependencyError(
        f"Required tool(s) not found on PATH: {', '.join(missing)} ({hints})."
    )


def _stderr_excerpt(stderr: str, limit: int = 400) -> str:
    text = (stderr or "").strip()
    if len(text) > limit:
        text = text[:limit].rstrip() + "..."
    return text


def run_tool(
    argv: Sequence[str],
    label: str,
    log: Optional[Callable[..., None]] = None,
) -> subprocess.CompletedProcess:
    """
    Run an external command and raise ToolError on failure.

    Output is captured so tool chatter does not interleave with our own
    console messages; stderr is folded into the error message instead.
    """

    command = [str(part) for part in argv]
    if log is not None:
        log(f"Running: {subprocess.list2cmdline(command)}", level="debug")

    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise ToolError(f"{label} could not be started: {exc}") from exc

    if result.returncode != 0:
        detail = _stderr_excerpt(result.stderr)
        message = f"{label} exited with status {result.returncode}"
        if detail:
            message = f"{message}: {detail}"
        raise ToolError(message)
    return result
