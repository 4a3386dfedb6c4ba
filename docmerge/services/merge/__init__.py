"""Spreadsheet-to-PDF merge service package."""

from .columns import ColumnIndex, ColumnRules, resolve_columns
from .config_loader import DatasetConfig, list_datasets, load_dataset_config
from .mapping_parser import ColumnMapping, parse_mapping
from .orchestrator import MergePlan, MergeResult, RowOutcome, RowState, prepare_merge, run_merge
from .report import write_run_report
from .row_processor import RenderedDocument, build_filename, process_row

__all__ = [
    "ColumnIndex",
    "ColumnRules",
    "resolve_columns",
    "DatasetConfig",
    "list_datasets",
    "load_dataset_config",
    "ColumnMapping",
    "parse_mapping",
    "MergePlan",
    "MergeResult",
    "RowOutcome",
    "RowState",
    "prepare_merge",
    "run_merge",
    "write_run_report",
    "RenderedDocument",
    "build_filename",
    "process_row",
]
