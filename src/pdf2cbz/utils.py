"""
Shared utility helpers.

This module keeps the "sharp edges" (error types and validation) in one place
so the rest of the code can stay focused on rasterizing and archiving.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable


class UserError(Exception):
    """Raised for user-facing problems that should show a clear message."""


class MissingDependencyError(UserError):
    """A required external tool is not installed or not on PATH."""


class ToolError(UserError):
    """An external tool exited with a non-zero status."""


class ConversionError(UserError):
    """
    One PDF could not be converted.

    The pipeline catches these per file so the rest of the run continues.
    """


class TempDirError(ConversionError):
    """The per-file temporary directory could not be created."""


class RasterizeError(ConversionError):
    """Rendering PDF pages to images failed."""


class NoImagesError(ConversionError):
    """Rendering finished but produced no page images."""


class ArchiveError(ConversionError):
    """Packing images into the archive, or moving it into place, failed."""


class OutputCollisionError(ConversionError):
    """Two PDFs in one run map to the same archive path (e.g. a.pdf and a.PDF)."""


def normalize_path(value: str) -> Path:
    """
    Convert user input to a Path.

    We do not resolve() here because we want to preserve relative paths in
    manifests and error messages.
    """

    return Path(value).expanduser()


def ensure_dir_exists(path: Path, label: str) -> Path:
    """Validate that a path exists and is a directory."""

    if not path.exists():
        raise UserError(f"{label} not found: {path}")
    if not path.is_dir():
        raise UserError(f"{label} is not a directory: {path}")
    return path


def ensure_dir(path: Path, dry_run: bool) -> None:
    """Create a directory if needed, unless this is a dry-run."""

    if dry_run:
        return
    path.mkdir(parents=True, exist_ok=True)


def validate_positive_int(value: object, label: str) -> int:
    """Common validation for options like --dpi."""

    # bool is an int subclass; "dpi: true" in YAML is a mistake, not 1.
    if isinstance(value, bool) or not isinstance(value, int):
        raise UserError(f"{label} must be a positive integer.")
    if value <= 0:
        raise UserError(f"{label} must be a positive integer.")
    return value


def validate_choice(value: object, choices: Iterable[str], label: str) -> str:
    """Ensure a string option is one of the supported values."""

    allowed = list(choices)
    if not isinstance(value, str) or value.lower() not in allowed:
        raise UserError(f"{label} must be one of: {', '.join(allowed)}.")
    return value.lower()


def remove_quietly(path: Path) -> None:
    """Delete a file if it exists; used when unwinding a failed move."""

    try:
        path.unlink()
    except FileNotFoundError:
        pass
