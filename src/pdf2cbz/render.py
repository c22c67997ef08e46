"""
Render PDF pages to page images.

Two backends share one small interface:
- PdftoppmRasterizer shells out to poppler's pdftoppm (the default).
- PyMuPDFRasterizer renders in-process and needs no external tool.

Both write one image per page into an empty output folder; the pipeline
collects whatever lands there, sorted by name.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import fitz  # PyMuPDF
from PIL import Image

from .tools import run_tool
from .utils import RasterizeError, ToolError, UserError


# Canonical format name -> file extension written by both backends.
IMAGE_FORMATS: Dict[str, str] = {
    "jpeg": ".jpg",
    "png": ".png",
}
FORMAT_ALIASES: Dict[str, str] = {"jpg": "jpeg"}

PAGE_PREFIX = "page"
JPEG_QUALITY = 90


def canonical_format(image_format: str) -> str:
    """Map user input like "JPG" to a supported format name."""

    lowered = image_format.strip().lower()
    lowered = FORMAT_ALIASES.get(lowered, lowered)
    if lowered not in IMAGE_FORMATS:
        supported = ", ".join(sorted([*IMAGE_FORMATS, *FORMAT_ALIASES]))
        raise UserError(f"Unsupported image format '{image_format}'. Use one of: {supported}.")
    return lowered


def image_extension(image_format: str) -> str:
    return IMAGE_FORMATS[canonical_format(image_format)]


def _compute_page_digits(page_count: int) -> int:
    """
    Decide how many zero-padding digits to use for page numbers.

    Why: we want stable, sortable filenames like page-0001, page-0002, etc.
    """

    if page_count <= 0:
        return 4
    return max(4, len(str(page_count)))


class PdftoppmRasterizer:
    """Rasterize with `pdftoppm -r <dpi> -jpeg|-png <pdf> <out_dir>/page`."""

    name = "pdftoppm"
    required_tools: Tuple[str, ...] = ("pdftoppm",)

    def __init__(self, log: Optional[Callable[..., None]] = None) -> None:
        self.log = log

    def build_command(self, pdf_path: Path, out_dir: Path, dpi: int, image_format: str) -> List[str]:
        fmt = canonical_format(image_format)
        return [
            "pdftoppm",
            "-r",
            str(dpi),
            f"-{fmt}",
            str(pdf_path),
            str(out_dir / PAGE_PREFIX),
        ]

    def rasterize(self, pdf_path: Path, out_dir: Path, dpi: int, image_format: str) -> None:
        command = self.build_command(pdf_path, out_dir, dpi, image_format)
        try:
            run_tool(command, label="pdftoppm", log=self.log)
        except ToolError as exc:
            raise RasterizeError(f"Rasterizing {pdf_path} failed: {exc}") from exc


class PyMuPDFRasterizer:
    """Render pages with PyMuPDF; JPEG output is encoded through Pillow."""

    name = "pymupdf"
    required_tools: Tuple[str, ...] = ()

    def __init__(self, log: Optional[Callable[..., None]] = None) -> None:
        self.log = log

    def rasterize(self, pdf_path: Path, out_dir: Path, dpi: int, image_format: str) -> None:
        fmt = canonical_format(image_format)
        extension = IMAGE_FORMATS[fmt]

        # DPI -> PDF "zoom" factor. PDFs are 72 DPI by default.
        zoom = dpi / 72.0
        matrix = fitz.Matrix(zoom, zoom)

        try:
            with fitz.open(pdf_path) as doc:
                if doc.needs_pass:
                    raise RasterizeError(f"PDF is password-protected: {pdf_path}")
                digits = _compute_page_digits(doc.page_count)
                for page_index in range(doc.page_count):
                    page_number = page_index + 1
                    output_path = out_dir / f"{PAGE_PREFIX}-{page_number:0{digits}d}{extension}"
                    pixmap = doc.load_page(page_index).get_pixmap(
                        matrix=matrix,
                        colorspace=fitz.csRGB,
                        alpha=False,
                    )
                    if fmt == "png":
                        pixmap.save(str(output_path))
                    else:
                        image = Image.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)
                        image.save(output_path, "JPEG", quality=JPEG_QUALITY)
                    if self.log is not None:
                        self.log(f"Rendered page {page_number}/{doc.page_count} -> {output_path.name}", level="debug")
        except RasterizeError:
            raise
        except Exception as exc:  # includes PyMuPDF open/parse errors and Pillow write errors
            raise RasterizeError(f"Rasterizing {pdf_path} failed: {exc}") from exc


RASTERIZERS = {
    PdftoppmRasterizer.name: PdftoppmRasterizer,
    PyMuPDFRasterizer.name: PyMuPDFRasterizer,
}


def make_rasterizer(name: str, log: Optional[Callable[..., None]] = None):
    try:
        factory = RASTERIZERS[name]
    except KeyError:
        raise UserError(
            f"Unknown rasterizer '{name}'. Use one of: {', '.join(RASTERIZERS)}."
        ) from None
    return factory(log=log)
