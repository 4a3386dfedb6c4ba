"""Render a single dataset row into a stored PDF."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from docmerge.core.context import DATE_PATTERN, YEAR_PATTERN, ExecutionContext
from docmerge.core.errors import RenderError

from .cells import EMPTY, CellValue, render, to_cell
from .interfaces import DocumentHandle, DocumentTemplateStore, Folder
from .mapping_parser import ColumnMapping

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RenderedDocument:
    """Reference to the stored PDF produced for one row."""

    file_id: str
    url: str
    filename: str


def _cell_at(row: Sequence[Any], column: Optional[int]) -> CellValue:
    if column is None or column < 1 or column > len(row):
        return EMPTY
    return to_cell(row[column - 1])


def build_filename(
    dataset_name: str,
    code: CellValue,
    year: CellValue,
    context: ExecutionContext,
) -> str:
    """Return ``"{dataset} - {code} - {year}"`` for a row."""

    code_text = render(code, context.format, DATE_PATTERN)
    year_text = render(year, context.format, YEAR_PATTERN)
    return f"{dataset_name} - {code_text} - {year_text}"


def substitutions(
    row: Sequence[Any], mapping: ColumnMapping, context: ExecutionContext
) -> list[tuple[str, str]]:
    """Return ``(placeholder, value)`` pairs for the in-range mapped columns."""

    pairs: list[tuple[str, str]] = []
    for column, placeholder in mapping.items():
        if column < 1 or column > len(row):
            continue
        pairs.append((placeholder, render(to_cell(row[column - 1]), context.format, DATE_PATTERN)))
    return pairs


def transient_name(dataset_name: str, row_number: int) -> str:
    return f"{dataset_name} - row {row_number} (transient)"


def process_row(
    row: Sequence[Any],
    *,
    row_number: int,
    mapping: ColumnMapping,
    template_ref: str,
    dataset_name: str,
    templates: DocumentTemplateStore,
    folder: Folder,
    context: ExecutionContext,
    code_column: Optional[int] = None,
    year_column: Optional[int] = None,
) -> RenderedDocument:
    """Merge ``row`` into the template and store the resulting PDF.

    Cell values are resolved before the template is duplicated. Once the PDF
    has been exported the transient working copy is always deleted, whether
    or not storing it succeeds; a failure before that point leaves it behind.
    Any failure is raised as ``RenderError`` with the underlying detail.
    """

    handle: DocumentHandle | None = None
    exported = False
    try:
        pairs = substitutions(row, mapping, context)
        filename = build_filename(
            dataset_name,
            _cell_at(row, code_column),
            _cell_at(row, year_column),
            context,
        )

        handle = templates.duplicate(template_ref, transient_name(dataset_name, row_number))
        for placeholder, value in pairs:
            handle.replace_all(placeholder, value)
        handle.commit()

        blob = handle.export_pdf()
        exported = True
        try:
            stored = folder.store(blob, filename)
            stored.set_public_viewable()
        finally:
            handle.delete()
    except RenderError:
        raise
    except Exception as exc:  # noqa: BLE001 - every failure is scoped to this row
        if handle is not None and not exported:
            LOGGER.warning("Transient document left behind for row %s: %s", row_number, handle.name)
        detail = str(exc) or exc.__class__.__name__
        raise RenderError(detail) from exc

    LOGGER.info("Row %s rendered as %s (%s)", row_number, filename, stored.id)
    return RenderedDocument(file_id=stored.id, url=stored.url, filename=filename)
