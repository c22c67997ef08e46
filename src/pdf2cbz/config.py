"""
Configuration helpers for YAML-backed converter options.

Precedence is: built-in defaults < YAML config < explicit CLI flags.
"""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any

import yaml

from .utils import UserError


CONFIG_SECTION = "convert"

DEFAULT_CONVERT: dict[str, Any] = {
    "dpi": 300,
    "format": "jpeg",
    "rasterizer": "pdftoppm",
    "archiver": "zip",
    "glob": "*.pdf",
    "recursive": False,
    "temp_dir": None,
    "overwrite": False,
    "dry_run": False,
    "manifest": None,
}

BOOL_KEYS = ("recursive", "overwrite", "dry_run")


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file into a dictionary."""

    if not path.is_file():
        raise UserError(f"Config file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise UserError(f"Failed to parse YAML config {path}: {exc}") from exc
    except OSError as exc:
        raise UserError(f"Failed to read config {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise UserError(f"Config {path} must contain a YAML mapping/object at top level.")
    return loaded


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries where overlay values win."""

    merged = deepcopy(base)
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def validate_keys(cfg: dict[str, Any], allowed: set[str], ctx: str) -> None:
    """Fail fast on unknown entries."""

    unknown = sorted(str(key) for key in cfg.keys() if key not in allowed)
    if unknown:
        allowed_list = ", ".join(sorted(allowed))
        unknown_list = ", ".join(unknown)
        raise UserError(
            f"Unknown keys in {ctx}: {unknown_list}. Allowed keys: {allowed_list}."
        )


def extract_section(loaded: dict[str, Any]) -> dict[str, Any]:
    """Support either root config keys or a `convert:` wrapper."""

    allowed = set(DEFAULT_CONVERT.keys())
    if CONFIG_SECTION in loaded:
        section = loaded[CONFIG_SECTION]
        if section is None:
            section = {}
        if not isinstance(section, dict):
            raise UserError(f"config.{CONFIG_SECTION} must be a mapping/object.")
        validate_keys(loaded, {CONFIG_SECTION}, "config")
        validate_keys(section, allowed, f"config.{CONFIG_SECTION}")
        return section

    validate_keys(loaded, allowed, "config")
    return loaded


def require_bool(value: Any, key: str) -> bool:
    """Require a strict boolean value from config/CLI merge output."""

    if isinstance(value, bool):
        return value
    raise UserError(f"{key} must be true or false.")


def dump_default_yaml() -> str:
    """Serialize wrapped defaults as YAML."""

    return yaml.safe_dump({CONFIG_SECTION: DEFAULT_CONVERT}, sort_keys=False).rstrip()
