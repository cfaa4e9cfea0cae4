from __future__ import annotations

from io import StringIO
from pathlib import Path

import pytest
from django.core.management import CommandError, call_command

from charge_planner.services.energy_tags import (
    EnergyTagFileError,
    get_manual_energy_tags,
    load_manual_energy_tags,
)


@pytest.fixture
def tag_csv(tmp_path: Path) -> Path:
    csv_path = tmp_path / "energy_tags.csv"
    csv_path.write_text(
        "\n".join(
            [
                "station_id,energy_source",
                " 101, Solar ",
                "102,HYBRID",
                "103,wind",
                ",solar",
                "101,grid",
            ]
        ),
        encoding="utf-8",
    )
    return csv_path


def test_load_manual_energy_tags_normalizes_and_keeps_last_row(tag_csv: Path) -> None:
    assert load_manual_energy_tags(tag_csv) == {"101": "grid", "102": "hybrid"}


def test_missing_file_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(EnergyTagFileError, match="does not exist"):
        load_manual_energy_tags(tmp_path / "absent.csv")


def test_missing_columns_are_rejected(tmp_path: Path) -> None:
    csv_path = tmp_path / "tags.csv"
    csv_path.write_text("id,source\n1,solar\n", encoding="utf-8")

    with pytest.raises(EnergyTagFileError, match="energy_source"):
        load_manual_energy_tags(csv_path)


def test_configured_tags_are_loaded_once(settings, tag_csv: Path) -> None:
    settings.MANUAL_ENERGY_TAGS_PATH = str(tag_csv)

    first = get_manual_energy_tags()
    tag_csv.write_text("station_id,energy_source\n999,solar\n", encoding="utf-8")

    assert get_manual_energy_tags() is first
    assert first["102"] == "hybrid"


def test_unconfigured_tags_are_empty(settings) -> None:
    settings.MANUAL_ENERGY_TAGS_PATH = ""

    assert get_manual_energy_tags() == {}


def test_check_energy_tags_reports_counts(tag_csv: Path) -> None:
    stdout = StringIO()

    call_command("check_energy_tags", csv_path=str(tag_csv), stdout=stdout)

    output = stdout.getvalue()
    assert "2 stations tagged from 5 rows" in output
    assert "(solar=0, hybrid=1, grid=1)" in output
    assert "Skipped 3 rows" in output


def test_check_energy_tags_without_path(settings) -> None:
    settings.MANUAL_ENERGY_TAGS_PATH = ""

    with pytest.raises(CommandError, match="MANUAL_ENERGY_TAGS_PATH"):
        call_command("check_energy_tags", stdout=StringIO())


def test_check_energy_tags_with_missing_file(tmp_path: Path) -> None:
    with pytest.raises(CommandError, match="does not exist"):
        call_command(
            "check_energy_tags", csv_path=str(tmp_path / "absent.csv"), stdout=StringIO()
        )
