from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml
from dotenv import load_dotenv

from .errors import ConfigError


load_dotenv(override=False)


DEFAULT_TIMEZONE = "UTC"
DEFAULT_FORMULA_SEPARATOR = ";"
DEFAULT_SUCCESS_MESSAGE = "Document generated"


@dataclass
class Profile:
    """A named run configuration.

    Attributes:
        name: Profile key.
        workbook: Path of the workbook holding the config and dataset sheets.
        config_sheet: Name of the configuration sheet.
        templates_dir: Base directory for relative template references.
        destinations_dir: Base directory for relative destination references.
        timezone: IANA timezone used to format dates and timestamps.
        formula_separator: Argument separator used in the link formula.
        success_message: Fixed text leading the success status.
        user_email: Fallback identity written into the status cell.
        soffice_bin: LibreOffice binary used for PDF export.
        columns: Raw column matching rules (see ``ColumnRules``).
        meta: Arbitrary metadata.
    """

    name: str
    workbook: Path
    config_sheet: str = "Config"
    templates_dir: Path | None = None
    destinations_dir: Path | None = None
    timezone: str = DEFAULT_TIMEZONE
    formula_separator: str = DEFAULT_FORMULA_SEPARATOR
    success_message: str = DEFAULT_SUCCESS_MESSAGE
    user_email: str | None = None
    soffice_bin: str | None = None
    columns: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] | None = None

    def get(self, dotted: str, default: Any | None = None) -> Any:
        target: Any = self
        for part in dotted.split('.'):
            if isinstance(target, Profile):
                target = getattr(target, part, default)
            elif isinstance(target, dict):
                target = target.get(part, default)
            else:
                return default
        return target


def _project_root() -> Path:
    env = os.getenv("DOCMERGE_ROOT")
    if env:
        return Path(env)
    # In source layout, this file is under <root>/docmerge/core
    return Path(__file__).resolve().parents[2]


def _config_dir() -> Path:
    return _project_root() / "docmerge" / "config"


def _work_dir() -> Path:
    return _project_root() / "docmerge" / "work"


def ensure_work_dirs() -> dict[str, Path]:
    base = _work_dir()
    out = base / "out"
    tmp = base / "tmp"
    logs = base / "logs"
    for p in (out, tmp, logs):
        p.mkdir(parents=True, exist_ok=True)
    return {"out": out, "tmp": tmp, "logs": logs}


def _optional_path(value: Any, base: Path) -> Path | None:
    if not value:
        return None
    p = Path(str(value)).expanduser()
    return p if p.is_absolute() else base / p


def load_profiles(path: str | Path | None = None) -> dict[str, Profile]:
    """Load profiles from config/profiles.yaml.

    Relative paths inside a profile are resolved against the directory of the
    YAML file. Returns a dict of profile-key -> Profile.
    """
    cfg_path = Path(path) if path else _config_dir() / "profiles.yaml"
    if not cfg_path.exists():
        raise ConfigError(f"profiles.yaml not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{cfg_path} must contain a mapping")
    profiles_raw = data.get("profiles", {})
    if not profiles_raw:
        raise ConfigError(f"no profiles defined in {cfg_path}")
    base = cfg_path.resolve().parent
    profiles: dict[str, Profile] = {}
    for key, p in profiles_raw.items():
        p = p or {}
        if not p.get("workbook"):
            raise ConfigError(f"profile {key}: 'workbook' is required")
        try:
            prof = Profile(
                name=key,
                workbook=_optional_path(p["workbook"], base),  # type: ignore[arg-type]
                config_sheet=str(p.get("config_sheet", "Config")),
                templates_dir=_optional_path(p.get("templates_dir"), base),
                destinations_dir=_optional_path(p.get("destinations_dir"), base),
                timezone=str(p.get("timezone", DEFAULT_TIMEZONE)),
                formula_separator=str(p.get("formula_separator", DEFAULT_FORMULA_SEPARATOR)),
                success_message=str(p.get("success_message", DEFAULT_SUCCESS_MESSAGE)),
                user_email=p.get("user_email"),
                soffice_bin=p.get("soffice_bin"),
                columns=dict(p.get("columns") or {}),
                meta=p.get("meta", {}),
            )
        except Exception as e:  # noqa: BLE001
            raise ConfigError(f"profile {key}: {e}") from e
        profiles[key] = prof
    return profiles


def get_profile(name: str | None = None, path: str | Path | None = None) -> Profile:
    """Return a single profile, defaulting to the first one defined."""

    profiles = load_profiles(path)
    if name is None:
        return next(iter(profiles.values()))
    try:
        return profiles[name]
    except KeyError:
        raise ConfigError(
            f"unknown profile {name!r}; available: {', '.join(sorted(profiles))}"
        ) from None
