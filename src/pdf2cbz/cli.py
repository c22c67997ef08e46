"""
Command-line interface for pdf2cbz.

This file focuses on parsing arguments, resolving configuration and mapping
outcomes to exit codes. The conversion itself lives in convert.py.
"""

from __future__ import annotations

import argparse
from contextlib import contextmanager
import signal
import subprocess
import sys
import threading
from pathlib import Path
from typing import Any, Dict, Iterator

from . import __version__
from .archive import ARCHIVERS
from .config import (
    BOOL_KEYS,
    DEFAULT_CONVERT,
    deep_merge,
    dump_default_yaml,
    extract_section,
    load_yaml,
    require_bool,
)
from .convert import ConvertOptions, convert_directory
from .manifest import ManifestRecorder
from .render import FORMAT_ALIASES, IMAGE_FORMATS, RASTERIZERS
from .utils import MissingDependencyError, UserError, normalize_path


EXIT_OK = 0
EXIT_CONVERSION_FAILED = 1
EXIT_USAGE = 2
EXIT_MISSING_TOOL = 3
EXIT_INTERRUPTED = 130

EXAMPLES = """Examples:
  pdf2cbz "comics"
  pdf2cbz "comics" --dpi 150 --format png --overwrite
  pdf2cbz "comics" --dry-run --verbose
  pdf2cbz "comics" --rasterizer pymupdf --archiver zipfile
  pdf2cbz --dump-default-config > pdf2cbz.yaml
  pdf2cbz "comics" --config pdf2cbz.yaml --manifest "comics/manifest.json"

Exit codes:
  0  all files converted or skipped (or none found)
  1  at least one file failed to convert
  2  usage error
  3  a required external tool is missing
"""

CONFIG_KEYS = set(DEFAULT_CONVERT.keys())


def _build_effective_config(args: argparse.Namespace) -> tuple[Dict[str, Any], Path | None]:
    """Resolve defaults < YAML config < explicit CLI flags."""

    effective = deep_merge(DEFAULT_CONVERT, {})
    config_path: Path | None = None
    if hasattr(args, "config"):
        config_path = normalize_path(args.config)
        effective = deep_merge(effective, extract_section(load_yaml(config_path)))

    raw_args = vars(args)
    cli_overrides = {key: raw_args[key] for key in CONFIG_KEYS if key in raw_args}
    return deep_merge(effective, cli_overrides), config_path


def _options_from_config(cfg: Dict[str, Any]) -> ConvertOptions:
    for key in BOOL_KEYS:
        require_bool(cfg[key], f"config.{key}")

    temp_dir = cfg.get("temp_dir")
    manifest = cfg.get("manifest")
    return ConvertOptions(
        dpi=cfg["dpi"],
        image_format=str(cfg["format"]),
        overwrite=cfg["overwrite"],
        dry_run=cfg["dry_run"],
        rasterizer=str(cfg["rasterizer"]),
        archiver=str(cfg["archiver"]),
        pattern=str(cfg["glob"]),
        recursive=cfg["recursive"],
        temp_dir=normalize_path(str(temp_dir)) if temp_dir else None,
        manifest_path=normalize_path(str(manifest)) if manifest else None,
    )


def _verbosity_from_args(args: argparse.Namespace) -> str:
    if getattr(args, "quiet", False):
        return "quiet"
    if getattr(args, "verbose", False):
        return "verbose"
    return "normal"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pdf2cbz",
        description="Convert every PDF in a folder into a CBZ comic archive.",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "directory",
        nargs="?",
        help="Folder containing the PDFs; archives are written next to them.",
    )

    verbosity_group = parser.add_mutually_exclusive_group()
    verbosity_group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-error console logs.",
    )
    verbosity_group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug-level console logs (tool commands, temp folders).",
    )

    # SUPPRESS defaults: only flags the user typed override the YAML config.
    parser.add_argument(
        "-r",
        "--dpi",
        type=int,
        default=argparse.SUPPRESS,
        help="Render resolution (default: 300).",
    )
    parser.add_argument(
        "--format",
        choices=sorted([*IMAGE_FORMATS, *FORMAT_ALIASES]),
        type=str.lower,
        default=argparse.SUPPRESS,
        help="Page image format (default: jpeg).",
    )
    parser.add_argument(
        "-f",
        "--overwrite",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Replace archives that already exist.",
    )
    parser.add_argument(
        "-n",
        "--dry-run",
        dest="dry_run",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Show what would be converted without writing anything.",
    )
    parser.add_argument(
        "--rasterizer",
        choices=sorted(RASTERIZERS),
        default=argparse.SUPPRESS,
        help="pdftoppm (external, default) or pymupdf (in-process).",
    )
    parser.add_argument(
        "--archiver",
        choices=sorted(ARCHIVERS),
        default=argparse.SUPPRESS,
        help="zip (external, default) or zipfile (in-process).",
    )
    parser.add_argument(
        "--glob",
        default=argparse.SUPPRESS,
        help='Pattern for input files, case-insensitive (default: "*.pdf").',
    )
    parser.add_argument(
        "--recursive",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Also convert PDFs in subfolders.",
    )
    parser.add_argument(
        "--temp-dir",
        dest="temp_dir",
        default=argparse.SUPPRESS,
        help="Folder to create per-file working directories in (default: system temp).",
    )
    parser.add_argument(
        "--manifest",
        default=argparse.SUPPRESS,
        help="Write a JSON run manifest to this path.",
    )
    parser.add_argument(
        "--config",
        default=argparse.SUPPRESS,
        help="Optional YAML config file.",
    )
    parser.add_argument(
        "--dump-default-config",
        action="store_true",
        help="Print the default YAML config and exit.",
    )
    return parser


def _command_argv(argv: list[str] | None) -> list[str]:
    """Choose argv used to record the manifest command faithfully."""

    if argv is None:
        return list(sys.argv)
    return [sys.argv[0], *argv]


def _raise_interrupt(signum: int, frame: Any) -> None:
    raise KeyboardInterrupt


@contextmanager
def _sigterm_as_interrupt() -> Iterator[None]:
    """
    Treat SIGTERM like Ctrl+C for the duration of a run.

    KeyboardInterrupt unwinds through the per-file cleanup, so the temporary
    folder of the file in progress is still removed.
    """

    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.dump_default_config:
        print(dump_default_yaml())
        return EXIT_OK

    verbosity = _verbosity_from_args(args)
    try:
        if not args.directory:
            raise UserError("A directory is required. Use --help for usage.")

        directory = normalize_path(args.directory)
        effective, config_path = _build_effective_config(args)
        options = _options_from_config(effective)

        recorded_options: Dict[str, Any] = {
            key: (str(value) if isinstance(value, Path) else value)
            for key, value in effective.items()
        }
        recorded_options["version"] = __version__
        recorded_options["verbosity"] = verbosity
        if config_path is not None:
            recorded_options["config_path"] = str(config_path)

        recorder = ManifestRecorder(
            tool_name="pdf2cbz",
            tool_version=__version__,
            command=subprocess.list2cmdline(_command_argv(argv)),
            options=recorded_options,
            inputs={"directory": str(directory)},
            outputs={},
            dry_run=options.dry_run,
            verbosity=verbosity,
        )

        with _sigterm_as_interrupt():
            summary = convert_directory(directory, options, recorder)
    except MissingDependencyError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_MISSING_TOOL
    except UserError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_USAGE
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED

    return EXIT_OK if summary.ok else EXIT_CONVERSION_FAILED
