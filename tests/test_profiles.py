"""Profile loading tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from docmerge.core.errors import ConfigError
from docmerge.core.profiles import ensure_work_dirs, get_profile, load_profiles


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_relative_paths_resolve_against_yaml(tmp_path: Path) -> None:
    cfg = _write(
        tmp_path / "profiles.yaml",
        "profiles:\n"
        "  a:\n"
        "    workbook: data/book.xlsx\n"
        "    templates_dir: tpl\n"
        "    formula_separator: ','\n"
        "    columns:\n"
        "      code: CODE\n"
        "  b:\n"
        "    workbook: /srv/book.xlsx\n",
    )

    profiles = load_profiles(cfg)

    assert profiles["a"].workbook == tmp_path / "data" / "book.xlsx"
    assert profiles["a"].templates_dir == tmp_path / "tpl"
    assert profiles["a"].destinations_dir is None
    assert profiles["a"].formula_separator == ","
    assert profiles["a"].get("columns.code") == "CODE"
    assert profiles["b"].workbook == Path("/srv/book.xlsx")
    assert profiles["b"].timezone == "UTC"
    assert get_profile(path=cfg).name == "a"


@pytest.mark.parametrize(
    "text",
    ["", "profiles: {}\n", "profiles:\n  a:\n    timezone: UTC\n", "- just\n- a list\n"],
)
def test_invalid_profiles(tmp_path: Path, text: str) -> None:
    with pytest.raises(ConfigError):
        load_profiles(_write(tmp_path / "profiles.yaml", text))


def test_missing_file_and_unknown_name(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_profiles(tmp_path / "missing.yaml")

    cfg = _write(tmp_path / "profiles.yaml", "profiles:\n  a:\n    workbook: book.xlsx\n")
    with pytest.raises(ConfigError, match="unknown profile"):
        get_profile("z", cfg)


def test_bundled_profiles_load() -> None:
    profile = get_profile()

    assert profile.workbook.name == "docmerge.xlsx"
    assert profile.timezone == "Europe/Madrid"


def test_ensure_work_dirs_honours_root(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("DOCMERGE_ROOT", str(tmp_path))

    dirs = ensure_work_dirs()

    assert dirs["tmp"] == tmp_path / "docmerge" / "work" / "tmp"
    assert all(p.is_dir() for p in dirs.values())
