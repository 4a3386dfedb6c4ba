"""`docmerge_io` exports the local adapters for workbooks, templates, PDFs and folders."""

# Module responsibilities:
# - Re-export concrete implementations of the merge collaborator interfaces.

from __future__ import annotations

from .docx_template import DocxDocumentHandle, DocxTemplateStore
from .excel_table import XlsxTable, XlsxTableStore
from .folder_store import LocalFolder, LocalFolderStore, LocalStoredFile
from .pdf_export import convert_to_pdf, extract_text, read_metadata, set_metadata

__all__ = [
    "DocxDocumentHandle",
    "DocxTemplateStore",
    "XlsxTable",
    "XlsxTableStore",
    "LocalFolder",
    "LocalFolderStore",
    "LocalStoredFile",
    "convert_to_pdf",
    "extract_text",
    "read_metadata",
    "set_metadata",
]

__version__ = "0.1.0"
