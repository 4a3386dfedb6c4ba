"""
RESPONSIBILITIES
- Expose workbook sheets as merge tables backed by openpyxl.
- Commit every write batch to disk immediately with an atomic temp-file swap.
- Guard each save with a cooperative lock file next to the workbook.
PROCESS OVERVIEW
1. XlsxTableStore.find_table() opens the workbook and returns a sheet wrapper.
2. read_all_rows() returns cached cell values, trailing blank rows trimmed;
   formulas without a cached result come back as UncachedFormula.
3. write_cell()/write_cells() set values in memory, then save the workbook.
"""

from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from itertools import zip_longest
from pathlib import Path
from typing import Any, Iterator, Mapping

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import Cell
from openpyxl.worksheet.worksheet import Worksheet

from docmerge.core.errors import StorageError
from docmerge.services.merge.interfaces import Table, TableStore, UncachedFormula

from .utils.log import get_logger

logger = get_logger("excel_table")

_IN_PROCESS_LOCKS: dict[Path, threading.RLock] = {}
_LOCK_REGISTRY_GUARD = threading.Lock()


class WorkbookLockedError(StorageError):
    """Raised when a workbook is locked by another writer."""


def _acquire_inprocess_lock(path: Path) -> threading.RLock:
    with _LOCK_REGISTRY_GUARD:
        lock = _IN_PROCESS_LOCKS.get(path)
        if lock is None:
            lock = threading.RLock()
            _IN_PROCESS_LOCKS[path] = lock
        return lock


@contextmanager
def workbook_lock(path: Path) -> Iterator[None]:
    """Acquire a cooperative file lock guarding the given workbook."""

    path = path.resolve()
    inproc = _acquire_inprocess_lock(path)
    acquired = inproc.acquire(timeout=10)
    if not acquired:
        raise WorkbookLockedError(f"Timeout acquiring in-process lock for {path}")
    lock_path = path.with_suffix(path.suffix + ".lock")
    fd: int | None = None
    try:
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as exc:
            raise WorkbookLockedError(f"Workbook appears locked: {lock_path}") from exc
        os.write(fd, str(os.getpid()).encode("ascii"))
        yield
    finally:
        if fd is not None:
            os.close(fd)
            os.unlink(lock_path)
        inproc.release()


def _tmp_path(path: Path) -> Path:
    return path.with_name(path.name + ".tmp")


def _atomic_save(workbook: Workbook, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = _tmp_path(path)
    workbook.save(tmp_path)
    os.replace(tmp_path, path)


def _resolve(value: Any, source: Cell | None) -> Any:
    # openpyxl drops cached formula results on save, so formulas read back
    # after a write-back have no value until the workbook is recalculated.
    if value is None and source is not None and source.data_type == "f":
        return UncachedFormula(str(getattr(source.value, "text", source.value)))
    return value


def _merge_row(values: tuple[Any, ...], sources: tuple[Cell, ...]) -> list[Any]:
    return [_resolve(value, source) for value, source in zip_longest(values, sources)]


def _is_blank_row(values: tuple[Any, ...]) -> bool:
    return not any(cell is not None and str(cell).strip() for cell in values)


class XlsxTable(Table):
    """A worksheet inside an ``XlsxTableStore`` workbook."""

    def __init__(self, store: "XlsxTableStore", worksheet: Worksheet, values: Worksheet) -> None:
        self._store = store
        self._ws = worksheet
        self._values = values
        self.name = worksheet.title

    def read_all_rows(self) -> list[list[Any]]:
        rows = [
            _merge_row(values, sources)
            for values, sources in zip_longest(
                self._values.iter_rows(values_only=True), self._ws.iter_rows(), fillvalue=()
            )
        ]
        while rows and _is_blank_row(tuple(rows[-1])):
            rows.pop()
        width = max((len(r) for r in rows), default=0)
        return [r + [None] * (width - len(r)) for r in rows]

    def read_row(self, row: int) -> list[Any]:
        if row < 1:
            raise ValueError(f"row numbers start at 1, got {row}")
        values = next(self._values.iter_rows(min_row=row, max_row=row, values_only=True), ())
        sources = next(self._ws.iter_rows(min_row=row, max_row=row), ())
        return _merge_row(values, sources)

    def write_cell(self, row: int, col: int, value: Any) -> None:
        self.write_cells(row, {col: value})

    def write_cells(self, row: int, values: Mapping[int, Any]) -> None:
        for col, value in values.items():
            self._ws.cell(row=row, column=col, value=value)
            self._values.cell(row=row, column=col, value=value)
        self._store.save()
        logger.debug("Committed row %s of %s (%s cells)", row, self.name, len(values))


class XlsxTableStore(TableStore):
    """Workbook on disk whose sheets are the merge tables.

    The workbook is loaded twice: once with cached formula results for
    reading, once as is for writing so existing formulas survive a save.
    Every write batch rewrites the file.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()
        if not self.path.exists():
            raise FileNotFoundError(f"Workbook not found: {self.path}")
        logger.info("Opening workbook %s", self.path)
        self._workbook = load_workbook(self.path)
        self._cached = load_workbook(self.path, data_only=True)

    @property
    def sheet_names(self) -> list[str]:
        return list(self._workbook.sheetnames)

    def find_table(self, name: str) -> XlsxTable | None:
        if name not in self._workbook.sheetnames:
            return None
        return XlsxTable(self, self._workbook[name], self._cached[name])

    def save(self) -> None:
        try:
            with workbook_lock(self.path):
                _atomic_save(self._workbook, self.path)
        except OSError as exc:
            raise StorageError(f"Failed to save workbook {self.path}: {exc}") from exc

    def close(self) -> None:
        self._workbook.close()
        self._cached.close()
