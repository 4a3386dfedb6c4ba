"""PDF rendering and inspection utilities."""

# Module responsibilities:
# - Convert office documents to PDF through a headless LibreOffice process.
# - Stamp and read PDF metadata and extract text with PyPDF2.
# - Surface conversion failures as PdfExportError with the tool's own output.

from __future__ import annotations

import io
import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from PyPDF2 import PdfReader, PdfWriter
from PyPDF2.errors import PdfReadError

from docmerge.core.errors import PdfExportError

from .utils.log import get_logger

logger = get_logger("pdf_export")

SOFFICE_ENV = "SOFFICE_BIN"
_SOFFICE_CANDIDATES = ("soffice", "libreoffice")
DEFAULT_TIMEOUT = 120


def find_soffice(explicit: Optional[str] = None) -> str:
    """Return the LibreOffice executable to use.

    Order: explicit argument, ``SOFFICE_BIN``, then ``soffice``/``libreoffice``
    on ``PATH``.
    """

    candidate = explicit or os.getenv(SOFFICE_ENV)
    if candidate:
        return candidate
    for name in _SOFFICE_CANDIDATES:
        found = shutil.which(name)
        if found:
            return found
    raise PdfExportError(
        f"LibreOffice not found; install it or set {SOFFICE_ENV} to the soffice binary"
    )


def convert_to_pdf(
    source: Path,
    out_dir: Optional[Path] = None,
    *,
    soffice_bin: Optional[str] = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> Path:
    """Convert ``source`` to PDF and return the produced file path."""

    if not source.exists():
        raise FileNotFoundError(f"Document not found: {source}")
    target_dir = out_dir or source.parent
    target_dir.mkdir(parents=True, exist_ok=True)
    cmd = [
        find_soffice(soffice_bin),
        "--headless",
        "--norestore",
        "--convert-to",
        "pdf",
        "--outdir",
        str(target_dir),
        str(source),
    ]
    logger.debug("Running %s", " ".join(cmd))
    try:
        completed = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise PdfExportError(f"PDF conversion failed for {source.name}: {exc}") from exc

    produced = target_dir / f"{source.stem}.pdf"
    if completed.returncode != 0 or not produced.exists():
        output = (completed.stderr or completed.stdout or "").strip()
        raise PdfExportError(
            f"PDF conversion failed for {source.name} (exit {completed.returncode}): {output}"
        )
    logger.info("Converted %s to PDF", source.name)
    return produced


def _reader(blob: bytes) -> PdfReader:
    try:
        reader = PdfReader(io.BytesIO(blob))
    except PdfReadError as exc:
        raise PdfExportError(f"Failed to open PDF: {exc}") from exc
    if reader.is_encrypted:
        raise PdfExportError("Encrypted PDFs are not supported")
    return reader


def set_metadata(blob: bytes, meta: Dict[str, str]) -> bytes:
    """Return a copy of ``blob`` with ``meta`` merged into its document info."""

    if not meta:
        raise ValueError("Metadata payload is empty")
    reader = _reader(blob)
    writer = PdfWriter()
    for page in reader.pages:
        writer.add_page(page)

    merged_meta = {key: str(value) for key, value in (reader.metadata or {}).items()}
    merged_meta.update({f"/{k}": str(v) for k, v in meta.items()})
    writer.add_metadata(merged_meta)

    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def read_metadata(blob: bytes) -> Dict[str, str]:
    reader = _reader(blob)
    return {k.lstrip("/"): str(v) for k, v in (reader.metadata or {}).items()}


def extract_text(blob: bytes) -> List[str]:
    """Extract the text of every page."""

    reader = _reader(blob)
    return [page.extract_text() or "" for page in reader.pages]
