"""Word (.docx) templates as merge documents."""

# Module responsibilities:
# - Copy a .docx template into a transient working file for one row.
# - Replace literal placeholder tokens across body, tables, headers, footers and
#   hyperlinked text.
# - Hand the saved working file to the PDF exporter and remove it afterwards.

from __future__ import annotations

import re
import shutil
from pathlib import Path
from typing import Iterable, Iterator, Optional

from docx import Document
from docx.document import Document as DocxDocument
from docx.table import Table as DocxTable
from docx.text.paragraph import Paragraph
from docx.text.run import Run

from docmerge.core.errors import TemplateError
from docmerge.services.merge.interfaces import DocumentHandle, DocumentTemplateStore

from .pdf_export import convert_to_pdf
from .utils.log import get_logger

logger = get_logger("docx_template")

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def _safe_stem(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name).strip() or "document"


def _table_paragraphs(table: DocxTable) -> Iterator[Paragraph]:
    for row in table.rows:
        for cell in row.cells:
            yield from cell.paragraphs
            for nested in cell.tables:
                yield from _table_paragraphs(nested)


def _container_paragraphs(paragraphs: Iterable[Paragraph], tables: Iterable[DocxTable]) -> Iterator[Paragraph]:
    yield from paragraphs
    for table in tables:
        yield from _table_paragraphs(table)


def iter_paragraphs(document: DocxDocument) -> Iterator[Paragraph]:
    """Yield every paragraph of the body, its tables, headers and footers."""

    yield from _container_paragraphs(document.paragraphs, document.tables)
    for section in document.sections:
        parts = (
            section.header,
            section.footer,
            section.first_page_header,
            section.first_page_footer,
            section.even_page_header,
            section.even_page_footer,
        )
        for part in parts:
            if part.is_linked_to_previous:
                continue
            yield from _container_paragraphs(part.paragraphs, part.tables)


def text_runs(paragraph: Paragraph) -> list[Run]:
    """Runs of ``paragraph`` in document order, hyperlink runs included."""

    runs: list[Run] = []
    for item in paragraph.iter_inner_content():
        if isinstance(item, Run):
            runs.append(item)
        else:
            runs.extend(item.runs)
    return runs


def replace_in_paragraph(paragraph: Paragraph, token: str, value: str) -> int:
    """Replace ``token`` in ``paragraph`` and return the number of hits.

    Tokens inside a single run keep that run's formatting. A token split
    across runs collapses the paragraph text into its first run, which may
    move text into or out of a hyperlink.
    """

    runs = text_runs(paragraph)
    joined = "".join(run.text for run in runs)
    hits = joined.count(token)
    if not hits:
        return 0

    if sum(run.text.count(token) for run in runs) == hits:
        for run in runs:
            if token in run.text:
                run.text = run.text.replace(token, value)
        return hits

    runs[0].text = joined.replace(token, value)
    for run in runs[1:]:
        run.text = ""
    return hits


class DocxDocumentHandle(DocumentHandle):
    """Transient working copy of a template on disk."""

    def __init__(self, path: Path, name: str, *, soffice_bin: Optional[str] = None) -> None:
        self.path = path
        self.name = name
        self._soffice_bin = soffice_bin
        try:
            self._document = Document(str(path))
        except Exception as exc:  # noqa: BLE001 - python-docx raises several types
            raise TemplateError(f"Not a valid .docx document: {path.name}: {exc}") from exc

    @property
    def document(self) -> DocxDocument:
        return self._document

    def text(self) -> str:
        return "\n".join(p.text for p in iter_paragraphs(self._document))

    def replace_all(self, token: str, value: str) -> None:
        if not token:
            return
        hits = sum(replace_in_paragraph(p, token, value) for p in iter_paragraphs(self._document))
        logger.debug("Replaced %s occurrence(s) of %s in %s", hits, token, self.name)

    def commit(self) -> None:
        self._document.save(str(self.path))

    def export_pdf(self) -> bytes:
        return convert_to_pdf(self.path, soffice_bin=self._soffice_bin).read_bytes()

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)
        self.path.with_suffix(".pdf").unlink(missing_ok=True)


class DocxTemplateStore(DocumentTemplateStore):
    """Resolve template references to .docx files and duplicate them.

    Relative references resolve against ``templates_dir``; working copies are
    written into ``work_dir``.
    """

    def __init__(
        self,
        work_dir: Path,
        templates_dir: Optional[Path] = None,
        *,
        soffice_bin: Optional[str] = None,
    ) -> None:
        self.work_dir = Path(work_dir)
        self.templates_dir = Path(templates_dir) if templates_dir else None
        self.soffice_bin = soffice_bin

    def resolve(self, template_ref: str) -> Path:
        path = Path(template_ref).expanduser()
        if not path.is_absolute() and self.templates_dir is not None:
            path = self.templates_dir / path
        if path.suffix.lower() != ".docx":
            raise TemplateError(f"Template must be a .docx file: {template_ref}")
        if not path.is_file():
            raise TemplateError(f"Template not found: {template_ref}")
        return path

    def duplicate(self, template_ref: str, transient_name: str) -> DocxDocumentHandle:
        source = self.resolve(template_ref)
        self.work_dir.mkdir(parents=True, exist_ok=True)
        target = self.work_dir / f"{_safe_stem(transient_name)}.docx"
        shutil.copyfile(source, target)
        logger.debug("Duplicated template %s to %s", source, target)
        return DocxDocumentHandle(target, transient_name, soffice_bin=self.soffice_bin)
