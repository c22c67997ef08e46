"""
Pack page images into a CBZ (zip) archive.

Both backends store images at the archive root, in the order given, with no
directory prefix so comic readers page through them by name.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple
import zipfile

from .tools import run_tool
from .utils import ArchiveError, ToolError, UserError


class ZipCommandArchiver:
    """Archive with `zip -q -j -X <archive> <files...>`."""

    name = "zip"
    required_tools: Tuple[str, ...] = ("zip",)

    def __init__(self, log: Optional[Callable[..., None]] = None) -> None:
        self.log = log

    def build_command(self, archive_path: Path, files: Sequence[Path]) -> List[str]:
        # -j junks directory names, -X drops extra file attributes.
        return ["zip", "-q", "-j", "-X", str(archive_path), *[str(path) for path in files]]

    def create(self, archive_path: Path, files: Sequence[Path]) -> None:
        if not files:
            raise ArchiveError(f"No files to archive for {archive_path.name}.")
        try:
            run_tool(self.build_command(archive_path, files), label="zip", log=self.log)
        except ToolError as exc:
            raise ArchiveError(f"Archiving {archive_path.name} failed: {exc}") from exc
        if not archive_path.is_file():
            raise ArchiveError(f"zip reported success but {archive_path} was not created.")


class ZipfileArchiver:
    """Archive in-process with the standard zipfile module."""

    name = "zipfile"
    required_tools: Tuple[str, ...] = ()

    def __init__(self, log: Optional[Callable[..., None]] = None) -> None:
        self.log = log

    def create(self, archive_path: Path, files: Sequence[Path]) -> None:
        if not files:
            raise ArchiveError(f"No files to archive for {archive_path.name}.")
        try:
            with zipfile.ZipFile(archive_path, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
                for path in files:
                    zf.write(path, arcname=path.name)
        except (OSError, zipfile.BadZipFile) as exc:
            raise ArchiveError(f"Archiving {archive_path.name} failed: {exc}") from exc
        if self.log is not None:
            self.log(f"Wrote {len(files)} image(s) to {archive_path.name}", level="debug")


ARCHIVERS = {
    ZipCommandArchiver.name: ZipCommandArchiver,
    ZipfileArchiver.name: ZipfileArchiver,
}


def make_archiver(name: str, log: Optional[Callable[..., None]] = None):
    try:
        factory = ARCHIVERS[name]
    except KeyError:
        raise UserError(
            f"Unknown archiver '{name}'. Use one of: {', '.join(ARCHIVERS)}."
        ) from None
    return factory(log=log)
