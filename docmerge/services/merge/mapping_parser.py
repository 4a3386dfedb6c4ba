"""Tolerant parsing of column -> placeholder mappings.

Mapping text is typed by people into a spreadsheet cell, so it often arrives
with curly quotes or single-quoted literals. Parsing runs an ordered list of
strategies; the first one that yields a JSON value wins.

Known limitation: the single-quote strategy rewrites every ``'`` into ``"``,
which corrupts placeholder values containing an apostrophe.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from docmerge.core.errors import MappingParseError

LOGGER = logging.getLogger(__name__)

ColumnMapping = Dict[int, str]
ParseStrategy = Callable[[str], Optional[Any]]

_QUOTE_TRANSLATION = str.maketrans(
    {
        "“": '"',
        "”": '"',
        "„": '"',
        "‟": '"',
        "″": '"',
        "‘": "'",
        "’": "'",
        "‚": "'",
        "‛": "'",
        "′": "'",
    }
)


def normalize_quotes(raw: str) -> str:
    """Straighten typographic quotes and trim surrounding whitespace."""

    return raw.translate(_QUOTE_TRANSLATION).strip()


def strict_json(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except ValueError:
        return None


def single_quoted_json(text: str) -> Optional[Any]:
    if "'" not in text:
        return None
    return strict_json(text.replace("'", '"'))


DEFAULT_STRATEGIES: tuple[ParseStrategy, ...] = (strict_json, single_quoted_json)


def _column_number(key: Any) -> int | None:
    text = str(key).strip()
    if not (text.isascii() and text.isdecimal()):
        return None
    number = int(text)
    return number if number > 0 else None


def _to_mapping(payload: Any, raw: str) -> ColumnMapping:
    if not isinstance(payload, Mapping):
        raise MappingParseError(
            f"Column mapping must be a JSON object: {raw}", raw=raw
        )
    mapping: ColumnMapping = {}
    for key, placeholder in payload.items():
        column = _column_number(key)
        if column is None:
            raise MappingParseError(
                f"Invalid column number {key!r} in column mapping: {raw}", raw=raw
            )
        if placeholder is None:
            raise MappingParseError(
                f"Missing placeholder for column {column} in column mapping: {raw}",
                raw=raw,
            )
        mapping[column] = str(placeholder)
    return mapping


def parse_mapping(
    raw: str, strategies: Sequence[ParseStrategy] = DEFAULT_STRATEGIES
) -> ColumnMapping:
    """Parse ``raw`` into a mapping of 1-based column number to placeholder.

    Raises:
        MappingParseError: No strategy could decode the text, or the decoded
            value is not an object keyed by positive column numbers. The
            message always echoes the original text.
    """

    raw = "" if raw is None else str(raw)
    text = normalize_quotes(raw)
    if not text:
        raise MappingParseError("Column mapping is empty", raw=raw)

    for strategy in strategies:
        payload = strategy(text)
        if payload is None:
            continue
        if strategy is not strategies[0]:
            LOGGER.info("Column mapping parsed with fallback %s", strategy.__name__)
        return _to_mapping(payload, raw)

    raise MappingParseError(f"Could not parse column mapping: {raw}", raw=raw)
