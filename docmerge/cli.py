"""Typer based command line entry points for docmerge."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from docmerge.core.errors import ConfigError, DocMergeError, MappingParseError, PreflightError
from docmerge.core.logger import get_logger, set_level
from docmerge.core.pipeline import Pipeline
from docmerge.core.profiles import Profile, get_profile
from docmerge.services.merge import parse_mapping
from docmerge.services.merge.cells import is_empty

app = typer.Typer(help="Merge spreadsheet rows into PDF documents.")

PROFILE_OPTION = typer.Option(None, "--profile", "-p", help="Profile name from profiles.yaml (default: first).")
PROFILES_FILE_OPTION = typer.Option(
    None, "--profiles", exists=True, dir_okay=False, resolve_path=True, help="Alternative profiles.yaml."
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        help="Set global logging level (e.g. DEBUG/INFO/WARNING).",
    ),
) -> None:
    """Configure global CLI behaviour before executing commands."""

    try:
        set_level(log_level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc


def _load_profile(profile: Optional[str], profiles_file: Optional[Path]) -> Profile:
    logger = get_logger()
    try:
        return get_profile(profile, profiles_file)
    except ConfigError as exc:
        logger.error("cli config_error: %s", exc)
        typer.secho(f"Unable to load profile: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from exc


def _abort_preflight(command: str, exc: DocMergeError) -> None:
    get_logger().error("cli %s preflight_failed: %s", command, exc)
    typer.secho(f"{type(exc).__name__}: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=2) from exc


@app.command("run")
def cli_run(
    dataset: str = typer.Argument(..., help="Dataset (sheet) name to merge."),
    profile: Optional[str] = PROFILE_OPTION,
    profiles_file: Optional[Path] = PROFILES_FILE_OPTION,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Directory for the run report."),
    report: bool = typer.Option(True, "--report/--no-report", help="Write a CSV run report."),
) -> None:
    """Merge every pending row of DATASET and write results back to the sheet."""

    prof = _load_profile(profile, profiles_file)
    try:
        outcome = Pipeline(prof).run(dataset, out_dir=output, write_report=report)
    except (PreflightError, ConfigError) as exc:
        _abort_preflight("run", exc)
        return
    except DocMergeError as exc:
        get_logger().error("cli run aborted: %s", exc)
        typer.secho(f"Run aborted: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    result = outcome.result
    typer.echo(f"Dataset: {result.dataset}")
    typer.echo(f"Processed rows: {result.processed}")
    typer.echo(f"Failed rows: {result.failed}")
    typer.echo(f"Skipped rows: {result.skipped}")
    if outcome.report_path:
        typer.echo(f"Report: {outcome.report_path}")
    for item in result.outcomes:
        if item.error:
            typer.secho(f"  row {item.row_number}: {item.error}", fg=typer.colors.YELLOW)


@app.command("check")
def cli_check(
    dataset: str = typer.Argument(..., help="Dataset (sheet) name to validate."),
    profile: Optional[str] = PROFILE_OPTION,
    profiles_file: Optional[Path] = PROFILES_FILE_OPTION,
) -> None:
    """Run the pre-flight checks for DATASET without touching any row."""

    prof = _load_profile(profile, profiles_file)
    try:
        plan = Pipeline(prof).check(dataset)
    except (PreflightError, ConfigError) as exc:
        _abort_preflight("check", exc)
        return

    id_idx = plan.columns.document_id - 1
    pending = sum(1 for row in plan.rows[1:] if id_idx >= len(row) or is_empty(row[id_idx]))
    typer.echo(f"Dataset: {plan.config.dataset_name}")
    typer.echo(f"Template: {plan.config.template_ref}")
    typer.echo(f"Destination: {plan.config.destination_ref}")
    typer.echo(f"Mapping: {json.dumps(plan.mapping, ensure_ascii=False)}")
    typer.echo(f"Data rows: {len(plan.rows) - 1} ({pending} pending)")


@app.command("parse-mapping")
def cli_parse_mapping(raw: str = typer.Argument(..., help="Column mapping text as typed in the config sheet.")) -> None:
    """Show how a column mapping cell would be interpreted."""

    try:
        mapping = parse_mapping(raw)
    except MappingParseError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(mapping, ensure_ascii=False, indent=2))


@app.command("list-datasets")
def cli_list_datasets(
    profile: Optional[str] = PROFILE_OPTION,
    profiles_file: Optional[Path] = PROFILES_FILE_OPTION,
) -> None:
    """List the datasets configured in the profile's config sheet."""

    prof = _load_profile(profile, profiles_file)
    try:
        names = Pipeline(prof).datasets()
    except (PreflightError, ConfigError) as exc:
        _abort_preflight("list-datasets", exc)
        return
    for name in names:
        typer.echo(name)


if __name__ == "__main__":
    app()
