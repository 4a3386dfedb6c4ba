"""Collaborator interfaces required by the merge core.

The core never talks to a spreadsheet, a word processor or a file share
directly; it is handed implementations of these classes. ``docmerge_io``
provides local reference adapters, tests provide in-memory fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

Row = Sequence[Any]


@dataclass(frozen=True, slots=True)
class UncachedFormula:
    """Raw value of a formula cell whose last computed result is unknown.

    Tables return this instead of ``None`` so that an unavailable value is
    never mistaken for an empty cell.
    """

    formula: str


class Table(ABC):
    """A sheet of cells addressed by 1-based (row, column)."""

    name: str

    @abstractmethod
    def read_all_rows(self) -> list[list[Any]]:
        """Return every row, header included, as raw cell values."""

    @abstractmethod
    def read_row(self, row: int) -> list[Any]:
        """Return the raw cell values of a single 1-based row."""

    @abstractmethod
    def write_cell(self, row: int, col: int, value: Any) -> None:
        """Write and commit a single cell."""

    def write_cells(self, row: int, values: Mapping[int, Any]) -> None:
        """Write several cells of one row as a single committed batch."""

        for col, value in values.items():
            self.write_cell(row, col, value)


class TableStore(ABC):
    @abstractmethod
    def find_table(self, name: str) -> Table | None:
        """Return the named table or ``None`` when it does not exist."""


class DocumentHandle(ABC):
    """A transient working copy of a template."""

    name: str

    @abstractmethod
    def replace_all(self, token: str, value: str) -> None:
        """Replace every literal occurrence of ``token`` in the document."""

    @abstractmethod
    def commit(self) -> None:
        """Persist pending edits."""

    @abstractmethod
    def export_pdf(self) -> bytes:
        """Render the committed document to PDF bytes."""

    @abstractmethod
    def delete(self) -> None:
        """Dispose of the transient document."""


class DocumentTemplateStore(ABC):
    @abstractmethod
    def duplicate(self, template_ref: str, transient_name: str) -> DocumentHandle:
        """Copy ``template_ref`` into a new transient document."""


class StoredFile(ABC):
    id: str
    url: str

    @abstractmethod
    def set_public_viewable(self) -> None:
        """Let anyone holding the link view the file."""


class Folder(ABC):
    @abstractmethod
    def store(self, blob: bytes, filename: str) -> StoredFile:
        """Store ``blob`` under ``filename`` and return the stored file."""


class FileStore(ABC):
    @abstractmethod
    def resolve_folder(self, folder_ref: str) -> Folder:
        """Return the folder or raise ``InvalidDestinationReference``."""


__all__ = [
    "Row",
    "UncachedFormula",
    "Table",
    "TableStore",
    "DocumentHandle",
    "DocumentTemplateStore",
    "StoredFile",
    "Folder",
    "FileStore",
]
