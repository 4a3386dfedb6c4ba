"""Typed cell values read from a dataset row."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Callable, Union

from docmerge.core.errors import UnavailableValue

from .interfaces import UncachedFormula


@dataclass(frozen=True, slots=True)
class TextCell:
    value: str


@dataclass(frozen=True, slots=True)
class NumberCell:
    value: int | float | Decimal


@dataclass(frozen=True, slots=True)
class DateCell:
    value: date


@dataclass(frozen=True, slots=True)
class EmptyCell:
    pass


CellValue = Union[TextCell, NumberCell, DateCell, EmptyCell]
DateFormatter = Callable[[date, str], str]

EMPTY = EmptyCell()


def to_cell(raw: Any) -> CellValue:
    """Classify a raw cell value read from a table.

    Raises:
        UnavailableValue: ``raw`` is a formula without a computed result.
    """

    if raw is None:
        return EMPTY
    if isinstance(raw, UncachedFormula):
        raise UnavailableValue(
            f"Formula {raw.formula} has no computed value; "
            "recalculate and save the workbook in a spreadsheet application"
        )
    if isinstance(raw, bool):
        return TextCell("true" if raw else "false")
    if isinstance(raw, (datetime, date)):
        return DateCell(raw)
    if isinstance(raw, time):
        return TextCell(raw.isoformat())
    if isinstance(raw, (int, float, Decimal)):
        if isinstance(raw, float) and math.isnan(raw):
            return EMPTY
        return NumberCell(raw)
    return TextCell(str(raw))


def _number_text(value: int | float | Decimal) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Decimal) and value == value.to_integral_value():
        return str(value.quantize(Decimal(1)))
    return str(value)


def render(cell: CellValue, format_date: DateFormatter, date_pattern: str) -> str:
    """Return the text substituted into a document for ``cell``."""

    if isinstance(cell, EmptyCell):
        return ""
    if isinstance(cell, DateCell):
        return format_date(cell.value, date_pattern)
    if isinstance(cell, NumberCell):
        return _number_text(cell.value)
    return cell.value


def is_empty(raw: Any) -> bool:
    """True when a raw cell holds nothing (``None`` or an empty string)."""

    if isinstance(raw, UncachedFormula):
        return False
    cell = to_cell(raw)
    return isinstance(cell, EmptyCell) or cell == TextCell("")


__all__ = [
    "TextCell",
    "NumberCell",
    "DateCell",
    "EmptyCell",
    "CellValue",
    "to_cell",
    "render",
    "is_empty",
]
