from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Mapping

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from docmerge.core.context import ExecutionContext, StaticIdentityProvider
from docmerge.core.errors import InvalidDestinationReference, TemplateError
from docmerge.core.logger import get_logger
from docmerge.services.merge.interfaces import (
    DocumentHandle,
    DocumentTemplateStore,
    FileStore,
    Folder,
    StoredFile,
    Table,
    TableStore,
)

# Bind console logging to the real stderr before any CliRunner swaps streams.
get_logger()


def build_pdf(text: str) -> bytes:
    """Return a one-page PDF showing ``text`` in Helvetica."""

    escaped = text.replace("\\", "\\\\").replace("(", r"\(").replace(")", r"\)")
    stream = f"BT\n/F1 14 Tf\n72 720 Td\n({escaped}) Tj\nET\n".encode("latin-1")
    obj1 = b"1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\nendobj\n"
    obj2 = b"2 0 obj\n<< /Type /Pages /Kids [3 0 R] /Count 1 >>\nendobj\n"
    obj3 = (
        b"3 0 obj\n"
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792]"
        b" /Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>\n"
        b"endobj\n"
    )
    obj4 = (
        f"4 0 obj\n<< /Length {len(stream)} >>\nstream\n".encode("utf-8")
        + stream
        + b"endstream\nendobj\n"
    )
    obj5 = b"5 0 obj\n<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>\nendobj\n"

    offsets = []
    data = bytearray(b"%PDF-1.4\n")
    for obj in (obj1, obj2, obj3, obj4, obj5):
        offsets.append(len(data))
        data.extend(obj)
    xref_offset = len(data)
    data.extend(b"xref\n0 6\n")
    data.extend(b"0000000000 65535 f \n")
    for offset in offsets:
        data.extend(f"{offset:010d} 00000 n \n".encode("utf-8"))
    data.extend(b"trailer\n<< /Size 6 /Root 1 0 R >>\n")
    data.extend(f"startxref\n{xref_offset}\n%%EOF\n".encode("utf-8"))
    return bytes(data)


class MemoryTable(Table):
    def __init__(self, name: str, rows: list[list[Any]]) -> None:
        self.name = name
        self.rows = [list(r) for r in rows]
        self.batches: list[tuple[int, dict[int, Any]]] = []

    def read_all_rows(self) -> list[list[Any]]:
        return [list(r) for r in self.rows]

    def read_row(self, row: int) -> list[Any]:
        return list(self.rows[row - 1])

    def write_cell(self, row: int, col: int, value: Any) -> None:
        self.write_cells(row, {col: value})

    def write_cells(self, row: int, values: Mapping[int, Any]) -> None:
        target = self.rows[row - 1]
        for col, value in values.items():
            while len(target) < col:
                target.append(None)
            target[col - 1] = value
        self.batches.append((row, dict(values)))

    def cell(self, row: int, col: int) -> Any:
        values = self.rows[row - 1]
        return values[col - 1] if col <= len(values) else None


class MemoryTableStore(TableStore):
    def __init__(self, *tables: MemoryTable) -> None:
        self.tables = {t.name: t for t in tables}

    def find_table(self, name: str) -> MemoryTable | None:
        return self.tables.get(name)


class MemoryDocument(DocumentHandle):
    def __init__(self, name: str, text: str) -> None:
        self.name = name
        self.text = text
        self.committed = False
        self.deleted = False

    def replace_all(self, token: str, value: str) -> None:
        self.text = self.text.replace(token, value)

    def commit(self) -> None:
        self.committed = True

    def export_pdf(self) -> bytes:
        if not self.committed:
            raise RuntimeError("export before commit")
        return build_pdf(self.text)

    def delete(self) -> None:
        self.deleted = True


class MemoryTemplateStore(DocumentTemplateStore):
    """Templates keyed by reference; ``fail_rows`` makes duplication fail for those rows."""

    def __init__(self, templates: Mapping[str, str], fail_rows: set[int] | None = None) -> None:
        self.templates = dict(templates)
        self.fail_rows = fail_rows or set()
        self.documents: list[MemoryDocument] = []

    def duplicate(self, template_ref: str, transient_name: str) -> MemoryDocument:
        if any(f"row {n} " in transient_name for n in self.fail_rows):
            raise TemplateError(f"Template not found: {template_ref}")
        if template_ref not in self.templates:
            raise TemplateError(f"Template not found: {template_ref}")
        doc = MemoryDocument(transient_name, self.templates[template_ref])
        self.documents.append(doc)
        return doc


@dataclass
class MemoryStoredFile(StoredFile):
    id: str
    url: str
    filename: str
    blob: bytes
    public: bool = False

    def set_public_viewable(self) -> None:
        self.public = True


@dataclass
class MemoryFolder(Folder):
    ref: str
    files: list[MemoryStoredFile] = field(default_factory=list)

    def store(self, blob: bytes, filename: str) -> MemoryStoredFile:
        file_id = f"file-{len(self.files) + 1}"
        stored = MemoryStoredFile(
            id=file_id,
            url=f"https://files.example.org/{self.ref}/{file_id}",
            filename=filename,
            blob=blob,
        )
        self.files.append(stored)
        return stored


class MemoryFileStore(FileStore):
    def __init__(self, *refs: str) -> None:
        self.folders = {ref: MemoryFolder(ref) for ref in refs}

    def resolve_folder(self, folder_ref: str) -> MemoryFolder:
        try:
            return self.folders[folder_ref]
        except KeyError:
            raise InvalidDestinationReference(f"Destination folder not found: {folder_ref}") from None


FIXED_NOW = datetime(2024, 5, 10, 8, 30, 0, tzinfo=timezone.utc)


@pytest.fixture()
def context() -> ExecutionContext:
    return ExecutionContext(
        identity=StaticIdentityProvider("clerk@example.org"),
        timezone="Europe/Madrid",
        formula_separator=";",
        success_message="Document generated",
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture()
def fakes() -> SimpleNamespace:
    return SimpleNamespace(
        Table=MemoryTable,
        TableStore=MemoryTableStore,
        TemplateStore=MemoryTemplateStore,
        FileStore=MemoryFileStore,
        build_pdf=build_pdf,
    )


def _fake_convert(source, out_dir=None, *, soffice_bin=None, timeout=120):
    """Stand-in for LibreOffice: renders the .docx paragraphs into a PDF."""

    from docx import Document

    from docmerge_io.docx_template import iter_paragraphs

    source = Path(source)
    text = " ".join(p.text for p in iter_paragraphs(Document(str(source))) if p.text)
    target = (out_dir or source.parent) / f"{source.stem}.pdf"
    target.write_bytes(build_pdf(text))
    return target


@pytest.fixture()
def workspace(tmp_path: Path, monkeypatch) -> SimpleNamespace:
    """A profiles.yaml, workbook, template and destination folder on disk.

    PDF conversion is stubbed and the work directory is redirected into
    ``tmp_path``.
    """

    from docx import Document
    from openpyxl import Workbook

    from docmerge_io import docx_template

    monkeypatch.setenv("DOCMERGE_ROOT", str(tmp_path / "root"))
    monkeypatch.setenv("DOCMERGE_USER_EMAIL", "clerk@example.org")
    monkeypatch.setattr(docx_template, "convert_to_pdf", _fake_convert)

    (tmp_path / "templates").mkdir()
    (tmp_path / "out" / "letters").mkdir(parents=True)
    template = Document()
    template.add_paragraph("Dear <<NAME>>, code <<CODE>>.")
    template.save(str(tmp_path / "templates" / "letter.docx"))

    wb = Workbook()
    config = wb.active
    config.title = "Config"
    config.append(["Dataset", "Template", "Mapping", "Destination"])
    config.append(["Students", "letter.docx", "{'2': '<<NAME>>', '3': '<<CODE>>'}", "letters"])
    config.append(["Broken", "letter.docx", '{"2": "<<NAME>>",}', "letters"])
    config.append(["Courses", "letter.docx", '{"2": "<<NAME>>"}', "letters"])
    data = wb.create_sheet("Students")
    data.append(["Name", "Student", "CODIGO", "AÑO", "Merged Document ID", "Merged Document URL", "Merged Document Link", "Merge Status"])
    data.append(["x", "Ana", "A1", 2024])
    data.append(["y", "Bea", "B2", 2024, "file-legacy", "u", "l", "s"])
    workbook = tmp_path / "book.xlsx"
    wb.save(workbook)

    profiles = tmp_path / "profiles.yaml"
    profiles.write_text(
        "profiles:\n"
        "  school:\n"
        "    workbook: book.xlsx\n"
        "    templates_dir: templates\n"
        "    destinations_dir: out\n"
        "    timezone: Europe/Madrid\n"
        "    formula_separator: ';'\n",
        encoding="utf-8",
    )
    return SimpleNamespace(
        root=tmp_path,
        profiles=profiles,
        workbook=workbook,
        destination=tmp_path / "out" / "letters",
    )
