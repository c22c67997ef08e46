"""
Convert a folder of PDFs into CBZ archives.

Each PDF is handled on its own: render pages into a private temporary folder,
zip them, move the archive next to the PDF, then delete the temporary folder
whatever happened. A failure on one PDF is recorded and the run moves on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from fnmatch import fnmatch
import os
from pathlib import Path
import shutil
import tempfile
from typing import Any, Dict, List, Optional

from .archive import ARCHIVERS, make_archiver
from .manifest import ManifestRecorder
from .render import RASTERIZERS, canonical_format, image_extension, make_rasterizer
from .tools import ensure_tools
from .utils import (
    ArchiveError,
    ConversionError,
    NoImagesError,
    OutputCollisionError,
    TempDirError,
    UserError,
    ensure_dir_exists,
    remove_quietly,
    validate_choice,
    validate_positive_int,
)


CBZ_SUFFIX = ".cbz"
PARTIAL_SUFFIX = ".part"
WORK_DIR_PREFIX = "pdf2cbz-"

STATUS_PENDING = "pending"
STATUS_CONVERTED = "converted"
STATUS_SKIPPED = "skipped"
STATUS_DRY_RUN = "dry-run"
STATUS_FAILED = "failed"


@dataclass
class ConvertOptions:
    dpi: int = 300
    image_format: str = "jpeg"
    overwrite: bool = False
    dry_run: bool = False
    rasterizer: str = "pdftoppm"
    archiver: str = "zip"
    pattern: str = "*.pdf"
    recursive: bool = False
    temp_dir: Optional[Path] = None
    manifest_path: Optional[Path] = None

    def validate(self) -> "ConvertOptions":
        """Normalize and check values; raises UserError on bad input."""

        validate_positive_int(self.dpi, "--dpi")
        self.image_format = canonical_format(str(self.image_format))
        self.rasterizer = validate_choice(self.rasterizer, RASTERIZERS, "--rasterizer")
        self.archiver = validate_choice(self.archiver, ARCHIVERS, "--archiver")
        if not self.pattern or not str(self.pattern).strip():
            raise UserError("--glob must not be empty.")
        if self.temp_dir is not None:
            ensure_dir_exists(self.temp_dir, "Temporary directory root")
        return self


@dataclass
class ConversionJob:
    """One PDF and the archive it turns into."""

    pdf_path: Path
    output_path: Path
    status: str = STATUS_PENDING
    page_count: int = 0
    error: Optional[str] = None


@dataclass
class ConversionSummary:
    jobs: List[ConversionJob] = field(default_factory=list)

    def _count(self, status: str) -> int:
        return sum(1 for job in self.jobs if job.status == status)

    @property
    def converted(self) -> int:
        return self._count(STATUS_CONVERTED)

    @property
    def skipped(self) -> int:
        return self._count(STATUS_SKIPPED)

    @property
    def dry_run(self) -> int:
        return self._count(STATUS_DRY_RUN)

    @property
    def failed(self) -> int:
        return self._count(STATUS_FAILED)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "files_found": len(self.jobs),
            "converted": self.converted,
            "skipped": self.skipped,
            "dry_run": self.dry_run,
            "failed": self.failed,
            "status": "ok" if self.ok else "error",
            "failed_files": [str(job.pdf_path) for job in self.jobs if job.status == STATUS_FAILED],
        }


def output_path_for(pdf_path: Path) -> Path:
    """book.pdf -> book.cbz, in the same folder."""

    return pdf_path.with_suffix(CBZ_SUFFIX)


def find_pdfs(directory: Path, pattern: str = "*.pdf", recursive: bool = False) -> List[Path]:
    """
    Return regular files in `directory` whose name matches `pattern`.

    Matching ignores case so "*.pdf" also picks up "SCAN.PDF".
    """

    lowered = pattern.lower()
    candidates = directory.rglob("*") if recursive else directory.iterdir()
    return sorted(
        path for path in candidates if path.is_file() and fnmatch(path.name.lower(), lowered)
    )


def collect_page_images(pages_dir: Path, image_format: str) -> List[Path]:
    """Rendered images in page order (both backends zero-pad page numbers)."""

    extension = image_extension(image_format)
    return sorted(
        path
        for path in pages_dir.iterdir()
        if path.is_file() and path.suffix.lower() == extension
    )


def _make_work_dir(root: Optional[Path]) -> Path:
    try:
        return Path(tempfile.mkdtemp(prefix=WORK_DIR_PREFIX, dir=root))
    except OSError as exc:
        raise TempDirError(f"Could not create a temporary directory: {exc}") from exc


def _remove_work_dir(work_dir: Path, recorder: ManifestRecorder) -> None:
    shutil.rmtree(work_dir, ignore_errors=True)
    if work_dir.exists():
        recorder.log(f"Could not fully remove temporary directory {work_dir}", level="warning")
    else:
        recorder.log(f"Removed temporary directory {work_dir}", level="debug")


def _move_into_place(archive_path: Path, destination: Path) -> None:
    """
    Move the finished archive next to the PDF.

    The archive is first moved to a sibling ".part" file and then renamed, so
    the final name only ever points at a complete archive.
    """

    partial = destination.with_name(destination.name + PARTIAL_SUFFIX)
    try:
        shutil.move(str(archive_path), str(partial))
        os.replace(partial, destination)
    except OSError as exc:
        remove_quietly(partial)
        raise ArchiveError(f"Could not move archive to {destination}: {exc}") from exc
    except BaseException:
        remove_quietly(partial)
        raise


def convert_pdf(
    job: ConversionJob,
    options: ConvertOptions,
    rasterizer: Any,
    archiver: Any,
    recorder: ManifestRecorder,
) -> ConversionJob:
    """
    Convert a single PDF. Raises ConversionError subclasses on failure.

    The temporary directory is only created for real runs and is always
    removed before this function returns or raises.
    """

    exists = job.output_path.exists()
    if exists and not options.overwrite:
        recorder.log(f"Skipping {job.pdf_path.name}: {job.output_path.name} already exists.")
        job.status = STATUS_SKIPPED
        return job

    if options.dry_run:
        verb = "replace" if exists else "create"
        recorder.log(
            f"[dry-run] Would {verb} {job.output_path} from {job.pdf_path} "
            f"({options.image_format} @ {options.dpi} DPI)"
        )
        job.status = STATUS_DRY_RUN
        return job

    recorder.log(f"Converting {job.pdf_path} -> {job.output_path}")
    work_dir = _make_work_dir(options.temp_dir)
    recorder.log(f"Using temporary directory {work_dir}", level="debug")
    try:
        pages_dir = work_dir / "pages"
        try:
            pages_dir.mkdir()
        except OSError as exc:
            raise TempDirError(f"Could not prepare {pages_dir}: {exc}") from exc

        rasterizer.rasterize(job.pdf_path, pages_dir, options.dpi, options.image_format)

        images = collect_page_images(pages_dir, options.image_format)
        if not images:
            raise NoImagesError(f"Rasterizing {job.pdf_path} produced no images.")
        job.page_count = len(images)
        recorder.log(f"Rendered {len(images)} page(s) from {job.pdf_path.name}", level="debug")

        archive_path = work_dir / job.output_path.name
        archiver.create(archive_path, images)
        _move_into_place(archive_path, job.output_path)
    finally:
        _remove_work_dir(work_dir, recorder)

    job.status = STATUS_CONVERTED
    recorder.log(f"Created {job.output_path} ({job.page_count} page(s))")
    return job


def _report(summary: ConversionSummary, options: ConvertOptions, recorder: ManifestRecorder) -> None:
    for job in summary.jobs:
        if job.status == STATUS_FAILED:
            recorder.log(f"Failed: {job.pdf_path}", level="error")

    if options.dry_run:
        recorder.log(
            f"Dry-run: {summary.dry_run} would be converted, "
            f"{summary.skipped} skipped, {len(summary.jobs)} found."
        )
        return

    line = f"Done: {summary.converted} converted, {summary.skipped} skipped, {summary.failed} failed."
    recorder.log(line, level="info" if summary.ok else "error")


def convert_directory(
    directory: Path,
    options: ConvertOptions,
    recorder: ManifestRecorder,
    rasterizer: Any = None,
    archiver: Any = None,
) -> ConversionSummary:
    """
    Convert every matching PDF in `directory`, one at a time.

    Raises UserError for a bad directory or options and
    MissingDependencyError when a backend's tool is not installed; per-file
    problems are recorded in the returned summary instead.
    """

    ensure_dir_exists(directory, "Directory")
    options.validate()

    if rasterizer is None:
        rasterizer = make_rasterizer(options.rasterizer, log=recorder.log)
    if archiver is None:
        archiver = make_archiver(options.archiver, log=recorder.log)
    ensure_tools([*rasterizer.required_tools, *archiver.required_tools])

    summary = ConversionSummary()
    pdfs = find_pdfs(directory, options.pattern, options.recursive)
    recorder.inputs["directory"] = str(directory)
    recorder.inputs["files_found"] = len(pdfs)

    if not pdfs:
        recorder.log(f"No PDF files found in {directory}.")
    else:
        recorder.log(f"Found {len(pdfs)} PDF file(s) in {directory}.")

    # Archive path -> the PDF that owns it; "a.pdf" and "a.PDF" both map to "a.cbz".
    claimed: Dict[Path, Path] = {}

    for position, pdf_path in enumerate(pdfs, start=1):
        job = ConversionJob(pdf_path=pdf_path, output_path=output_path_for(pdf_path))
        summary.jobs.append(job)
        recorder.log(f"[{position}/{len(pdfs)}] {pdf_path.name}", level="debug")
        try:
            claimed_by = claimed.get(job.output_path)
            if claimed_by is not None:
                raise OutputCollisionError(
                    f"{pdf_path.name} would also be written to {job.output_path.name}, "
                    f"which belongs to {claimed_by.name} in this run; rename one of them."
                )
            claimed[job.output_path] = pdf_path
            convert_pdf(job, options, rasterizer, archiver, recorder)
        except ConversionError as exc:
            job.status = STATUS_FAILED
            job.error = str(exc)
            recorder.log(f"Error: {exc}", level="error")
        recorder.add_action(
            action="convert",
            status=job.status,
            pdf=str(job.pdf_path),
            cbz=str(job.output_path),
            pages=job.page_count,
            error=job.error,
        )

    if pdfs:
        _report(summary, options, recorder)

    if options.manifest_path is not None:
        recorder.outputs["manifest"] = str(options.manifest_path)
        recorder.write_manifest(options.manifest_path, summary.as_dict())

    return summary
