"""Dataset configuration lookup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from docmerge.core.errors import ConfigIncomplete, ConfigNotFound

from .interfaces import Table

LOGGER = logging.getLogger(__name__)

# Column order of the configuration table.
CONFIG_COLUMNS: tuple[str, ...] = ("dataset", "template", "mapping", "destination")


@dataclass(frozen=True, slots=True)
class DatasetConfig:
    """Settings for one dataset, read once per run."""

    dataset_name: str
    template_ref: str
    mapping_raw: str
    destination_ref: str


def _cell_text(row: Sequence[Any], idx: int) -> str:
    if idx >= len(row) or row[idx] is None:
        return ""
    return str(row[idx]).strip()


def list_datasets(table: Table) -> list[str]:
    """Return the dataset names configured in ``table`` in sheet order."""

    rows = table.read_all_rows()[1:]
    return [name for name in (_cell_text(row, 0) for row in rows) if name]


def load_dataset_config(table: Table, dataset_name: str) -> DatasetConfig:
    """Find the first configuration row for ``dataset_name``.

    The first row of ``table`` is a header. Dataset names are compared with
    exact string equality.

    Raises:
        ConfigNotFound: No row names the dataset.
        ConfigIncomplete: Template, mapping or destination is blank.
    """

    for row in table.read_all_rows()[1:]:
        if not row or row[0] is None or str(row[0]) != dataset_name:
            continue
        values = {name: _cell_text(row, idx) for idx, name in enumerate(CONFIG_COLUMNS)}
        missing = [name for name in CONFIG_COLUMNS[1:] if not values[name]]
        if missing:
            raise ConfigIncomplete(
                f"Configuration for dataset '{dataset_name}' is incomplete; "
                f"missing: {', '.join(missing)}"
            )
        LOGGER.debug("Loaded configuration for dataset %s", dataset_name)
        return DatasetConfig(
            dataset_name=dataset_name,
            template_ref=values["template"],
            mapping_raw=values["mapping"],
            destination_ref=values["destination"],
        )
    raise ConfigNotFound(
        f"No configuration found for dataset '{dataset_name}' in sheet '{table.name}'"
    )
