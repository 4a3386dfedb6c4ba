"""Merge every pending row of a dataset.

Per row: ``Pending -> Skipped`` when its document id cell already holds a
value, otherwise ``Pending -> Processing -> Completed | Failed``. A failed row
only gets its status cell written, so its id stays empty and the next run
picks it up again. Write-back happens right after each row, never batched
across rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from docmerge.core.context import TIMESTAMP_PATTERN, ExecutionContext
from docmerge.core.errors import MissingDataset, RenderError

from .cells import is_empty
from .columns import ColumnIndex, ColumnRules, resolve_columns
from .config_loader import DatasetConfig, load_dataset_config
from .interfaces import DocumentTemplateStore, FileStore, Folder, Table, TableStore
from .mapping_parser import ColumnMapping, parse_mapping
from .row_processor import RenderedDocument, process_row

LOGGER = logging.getLogger(__name__)


class RowState(str, Enum):
    SKIPPED = "skipped"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class RowOutcome:
    row_number: int
    state: RowState
    filename: Optional[str] = None
    file_id: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None


@dataclass(slots=True)
class MergeResult:
    dataset: str
    outcomes: list[RowOutcome] = field(default_factory=list)

    def count(self, state: RowState) -> int:
        return sum(1 for outcome in self.outcomes if outcome.state is state)

    @property
    def processed(self) -> int:
        return self.count(RowState.COMPLETED)

    @property
    def failed(self) -> int:
        return self.count(RowState.FAILED)

    @property
    def skipped(self) -> int:
        return self.count(RowState.SKIPPED)


@dataclass(frozen=True, slots=True)
class MergePlan:
    """Everything resolved before the first row is touched."""

    config: DatasetConfig
    mapping: ColumnMapping
    table: Table
    folder: Folder
    columns: ColumnIndex
    rows: list[list[Any]]


def hyperlink_formula(url: str, label: str, separator: str) -> str:
    def quote(text: str) -> str:
        return '"' + text.replace('"', '""') + '"'

    return f"=HYPERLINK({quote(url)}{separator}{quote(label)})"


def success_status(context: ExecutionContext) -> str:
    timestamp = context.format(context.now(), TIMESTAMP_PATTERN)
    return f"{context.success_message} by {context.user_email()} on {timestamp}"


def error_status(detail: str) -> str:
    return f"Error: {detail}"


def prepare_merge(
    dataset_name: str,
    *,
    config_table: Table,
    table_store: TableStore,
    files: FileStore,
    column_rules: ColumnRules | None = None,
) -> MergePlan:
    """Run every pre-flight check without writing anything.

    Raises:
        ConfigNotFound, ConfigIncomplete, MappingParseError,
        InvalidDestinationReference, MissingDataset, MissingOutputColumns
    """

    config = load_dataset_config(config_table, dataset_name)
    mapping = parse_mapping(config.mapping_raw)
    folder = files.resolve_folder(config.destination_ref)

    table = table_store.find_table(dataset_name)
    if table is None:
        raise MissingDataset(f"Dataset sheet '{dataset_name}' does not exist")
    rows = table.read_all_rows()
    if not rows:
        raise MissingDataset(f"Dataset sheet '{dataset_name}' has no header row")
    columns = resolve_columns(rows[0], column_rules)

    return MergePlan(
        config=config,
        mapping=mapping,
        table=table,
        folder=folder,
        columns=columns,
        rows=rows,
    )


def _write_success(plan: MergePlan, row_number: int, doc: RenderedDocument, context: ExecutionContext) -> None:
    cols = plan.columns
    plan.table.write_cells(
        row_number,
        {
            cols.document_id: doc.file_id,
            cols.document_url: doc.url,
            cols.document_link: hyperlink_formula(doc.url, doc.filename, context.formula_separator),
            cols.status: success_status(context),
        },
    )


def run_merge(
    dataset_name: str,
    *,
    config_table: Table,
    table_store: TableStore,
    templates: DocumentTemplateStore,
    files: FileStore,
    context: ExecutionContext,
    column_rules: ColumnRules | None = None,
) -> MergeResult:
    """Merge all pending rows of ``dataset_name``.

    Pre-flight failures propagate before any row is touched. Row failures are
    recorded on the row's status cell and never stop the loop.
    """

    plan = prepare_merge(
        dataset_name,
        config_table=config_table,
        table_store=table_store,
        files=files,
        column_rules=column_rules,
    )
    LOGGER.info(
        "Merging dataset %s: %s data rows, template %s",
        dataset_name,
        len(plan.rows) - 1,
        plan.config.template_ref,
    )

    result = MergeResult(dataset=dataset_name)
    id_idx = plan.columns.document_id - 1
    for row_number, row in enumerate(plan.rows[1:], start=2):
        current_id = row[id_idx] if id_idx < len(row) else None
        if not is_empty(current_id):
            result.outcomes.append(RowOutcome(row_number=row_number, state=RowState.SKIPPED))
            continue

        try:
            doc = process_row(
                row,
                row_number=row_number,
                mapping=plan.mapping,
                template_ref=plan.config.template_ref,
                dataset_name=dataset_name,
                templates=templates,
                folder=plan.folder,
                context=context,
                code_column=plan.columns.code,
                year_column=plan.columns.year,
            )
        except RenderError as exc:
            LOGGER.error("Row %s of %s failed: %s", row_number, dataset_name, exc.detail)
            plan.table.write_cell(row_number, plan.columns.status, error_status(exc.detail))
            result.outcomes.append(
                RowOutcome(row_number=row_number, state=RowState.FAILED, error=exc.detail)
            )
            continue

        _write_success(plan, row_number, doc, context)
        result.outcomes.append(
            RowOutcome(
                row_number=row_number,
                state=RowState.COMPLETED,
                filename=doc.filename,
                file_id=doc.file_id,
                url=doc.url,
            )
        )

    LOGGER.info(
        "Dataset %s done: %s processed, %s failed, %s skipped",
        dataset_name,
        result.processed,
        result.failed,
        result.skipped,
    )
    return result
