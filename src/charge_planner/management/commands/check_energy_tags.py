from __future__ import annotations

from pathlib import Path
from typing import Any

import polars as pl
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from charge_planner.services.energy_tags import EnergyTagFileError, read_energy_tag_frame


class Command(BaseCommand):
    help = "Validate the manual station energy-source CSV using Polars."

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument(
            "--csv-path",
            type=str,
            default=settings.MANUAL_ENERGY_TAGS_PATH,
            help="Path to the manual energy tag CSV (defaults to MANUAL_ENERGY_TAGS_PATH)",
        )

    def handle(self, *_: Any, **options: Any) -> None:
        if not options["csv_path"]:
            raise CommandError("No CSV path given and MANUAL_ENERGY_TAGS_PATH is not set")

        csv_path = Path(options["csv_path"])
        try:
            frame = read_energy_tag_frame(csv_path)
        except EnergyTagFileError as exc:
            raise CommandError(str(exc)) from exc

        total_rows = pl.read_csv(csv_path, infer_schema_length=0).height
        counts = {
            row["energy_source"]: row["len"]
            for row in frame.group_by("energy_source").len().to_dicts()
        }

        self.stdout.write(
            self.style.SUCCESS(
                f"Energy tags valid: {frame.height} stations tagged from {total_rows} rows "
                f"(solar={counts.get('solar', 0)}, hybrid={counts.get('hybrid', 0)}, "
                f"grid={counts.get('grid', 0)})"
            )
        )
        if frame.height < total_rows:
            self.stdout.write(
                self.style.WARNING(
                    f"Skipped {total_rows - frame.height} rows with a blank id, "
                    "an unknown energy source or a duplicate station id"
                )
            )
