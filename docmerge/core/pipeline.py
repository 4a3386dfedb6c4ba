from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from .context import ExecutionContext
from .errors import ConfigError, MissingDataset
from .logger import get_logger
from .profiles import Profile, ensure_work_dirs
from docmerge.services.merge import (
    ColumnRules,
    MergePlan,
    MergeResult,
    list_datasets,
    prepare_merge,
    run_merge,
    write_run_report,
)
from docmerge_io import DocxTemplateStore, LocalFolderStore, XlsxTableStore


ProgressCB = Callable[[str, str], None]


@dataclass
class PipelineResult:
    result: MergeResult
    report_path: Path | None


class Pipeline:
    """Wires a profile's workbook, templates and destinations into a merge run."""

    def __init__(
        self,
        profile: Profile,
        logger=None,
        context: ExecutionContext | None = None,
    ) -> None:
        self.profile = profile
        self.logger = logger or get_logger()
        self.context = context or ExecutionContext.from_profile(profile)
        try:
            self.column_rules = ColumnRules.from_mapping(profile.columns)
        except ValidationError as exc:
            raise ConfigError(f"profile {profile.name}: columns: {exc}") from exc
        self.work_dirs = ensure_work_dirs()

    def _open_workbook(self) -> XlsxTableStore:
        if not self.profile.workbook.is_file():
            raise ConfigError(f"Workbook not found for profile {self.profile.name}: {self.profile.workbook}")
        return XlsxTableStore(self.profile.workbook)

    def _config_table(self, store: XlsxTableStore):
        table = store.find_table(self.profile.config_sheet)
        if table is None:
            raise MissingDataset(
                f"Configuration sheet '{self.profile.config_sheet}' not found in {self.profile.workbook}"
            )
        return table

    def _file_store(self) -> LocalFolderStore:
        return LocalFolderStore(self.profile.destinations_dir)

    def datasets(self) -> list[str]:
        store = self._open_workbook()
        try:
            return list_datasets(self._config_table(store))
        finally:
            store.close()

    def check(self, dataset: str) -> MergePlan:
        """Run pre-flight checks only; nothing is written."""

        store = self._open_workbook()
        try:
            return prepare_merge(
                dataset,
                config_table=self._config_table(store),
                table_store=store,
                files=self._file_store(),
                column_rules=self.column_rules,
            )
        finally:
            store.close()

    def run(
        self,
        dataset: str,
        out_dir: Path | None = None,
        progress_cb: ProgressCB | None = None,
        write_report: bool = True,
    ) -> PipelineResult:
        def progress(stage: str, detail: str = ""):
            if progress_cb:
                progress_cb(stage, detail)
            self.logger.info("%s - %s", stage, detail)

        progress("1/3 open", str(self.profile.workbook))
        store = self._open_workbook()
        templates = DocxTemplateStore(
            self.work_dirs["tmp"],
            self.profile.templates_dir,
            soffice_bin=self.profile.soffice_bin,
        )
        try:
            progress("2/3 merge", dataset)
            result = run_merge(
                dataset,
                config_table=self._config_table(store),
                table_store=store,
                templates=templates,
                files=self._file_store(),
                context=self.context,
                column_rules=self.column_rules,
            )
        finally:
            store.close()

        report_path = None
        if write_report:
            report_path = write_run_report(result, out_dir or self.work_dirs["out"])
        progress(
            "3/3 done",
            f"{result.processed} processed, {result.failed} failed, {result.skipped} skipped",
        )
        return PipelineResult(result=result, report_path=report_path)
