"""CSV run reports for merge results."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from pathlib import Path

import pandas as pd

from .orchestrator import MergeResult

_REPORT_COLUMNS = ("row_number", "state", "filename", "file_id", "url", "error")


def outcomes_frame(result: MergeResult) -> pd.DataFrame:
    records = []
    for outcome in result.outcomes:
        record = asdict(outcome)
        record["state"] = outcome.state.value
        records.append(record)
    return pd.DataFrame.from_records(records, columns=list(_REPORT_COLUMNS))


def write_run_report(result: MergeResult, output_dir: Path, *, stamp: datetime | None = None) -> Path:
    """Write one CSV line per row outcome and return the report path."""

    output_dir.mkdir(parents=True, exist_ok=True)
    stamp = stamp or datetime.now()
    safe_name = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in result.dataset)
    path = output_dir / f"merge_{safe_name}_{stamp.strftime('%Y%m%d_%H%M%S')}.csv"
    outcomes_frame(result).to_csv(path, index=False)
    return path
