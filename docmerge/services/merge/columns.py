"""Output and naming column resolution on a dataset header row."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from docmerge.core.errors import MissingOutputColumns

REQUIRED_OUTPUTS: tuple[str, ...] = ("document_id", "document_url", "document_link", "status")


class ColumnRules(BaseModel):
    """Header matching rules, usually read from a profile's ``columns`` block.

    Output columns match when the trimmed, lower-cased header contains the
    configured fragment. ``code`` and ``year`` must equal the header exactly
    apart from surrounding whitespace and letter case.
    """

    model_config = ConfigDict(extra="forbid")

    document_id: str = Field(default="document id", min_length=1)
    document_url: str = Field(default="document url", min_length=1)
    document_link: str = Field(default="document link", min_length=1)
    status: str = Field(default="merge status", min_length=1)
    code: str = "CODIGO"
    year: str = "AÑO"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "ColumnRules":
        return cls.model_validate(dict(data or {}))


@dataclass(frozen=True, slots=True)
class ColumnIndex:
    """1-based positions of the columns the merge reads or writes."""

    document_id: int
    document_url: int
    document_link: int
    status: int
    code: Optional[int] = None
    year: Optional[int] = None

    def outputs(self) -> tuple[int, int, int, int]:
        return (self.document_id, self.document_url, self.document_link, self.status)


def _normalize(label: Any) -> str:
    return "" if label is None else str(label).strip().casefold()


def _find_containing(headers: Sequence[str], fragment: str) -> Optional[int]:
    needle = fragment.strip().casefold()
    for idx, header in enumerate(headers, start=1):
        if needle in header:
            return idx
    return None


def _find_exact(headers: Sequence[str], name: str) -> Optional[int]:
    needle = name.strip().casefold()
    if not needle:
        return None
    for idx, header in enumerate(headers, start=1):
        if header == needle:
            return idx
    return None


def resolve_columns(header_row: Sequence[Any], rules: ColumnRules | None = None) -> ColumnIndex:
    """Locate output and naming columns in ``header_row``.

    Raises:
        MissingOutputColumns: Any of the four output columns is absent.
    """

    rules = rules or ColumnRules()
    headers = [_normalize(h) for h in header_row]

    found = {name: _find_containing(headers, getattr(rules, name)) for name in REQUIRED_OUTPUTS}
    missing = [name for name, idx in found.items() if idx is None]
    if missing:
        expected = ", ".join(f"'{getattr(rules, name)}'" for name in missing)
        raise MissingOutputColumns(
            f"Required output columns not found in header row: {expected}",
            missing=missing,
        )

    return ColumnIndex(
        document_id=found["document_id"],  # type: ignore[arg-type]
        document_url=found["document_url"],  # type: ignore[arg-type]
        document_link=found["document_link"],  # type: ignore[arg-type]
        status=found["status"],  # type: ignore[arg-type]
        code=_find_exact(headers, rules.code),
        year=_find_exact(headers, rules.year),
    )
