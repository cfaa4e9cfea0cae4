from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

import polars as pl
from django.conf import settings

from charge_planner.services.types import ENERGY_SOURCES, EnergySource

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"station_id", "energy_source"}


class EnergyTagFileError(ValueError):
    """Raised when the manual energy tag CSV is missing or malformed."""


def read_energy_tag_frame(csv_path: Path) -> pl.DataFrame:
    """Load and normalize the manual tag CSV; the last row for a station wins."""
    if not csv_path.exists():
        raise EnergyTagFileError(f"Energy tag file does not exist: {csv_path}")

    frame = pl.read_csv(csv_path, infer_schema_length=0)
    missing_columns = REQUIRED_COLUMNS.difference(frame.columns)
    if missing_columns:
        raise EnergyTagFileError(f"Missing expected columns: {sorted(missing_columns)}")

    return (
        frame.select(
            pl.col("station_id").str.strip_chars().alias("station_id"),
            pl.col("energy_source")
            .str.strip_chars()
            .str.to_lowercase()
            .alias("energy_source"),
        )
        .filter(
            pl.col("station_id").is_not_null()
            & (pl.col("station_id").str.len_chars() > 0)
            & pl.col("energy_source").is_in(list(ENERGY_SOURCES))
        )
        .unique(subset=["station_id"], keep="last", maintain_order=True)
    )


def load_manual_energy_tags(csv_path: Path) -> dict[str, EnergySource]:
    frame = read_energy_tag_frame(csv_path)
    return {row["station_id"]: row["energy_source"] for row in frame.to_dicts()}


@lru_cache(maxsize=1)
def get_manual_energy_tags() -> dict[str, EnergySource]:
    path = settings.MANUAL_ENERGY_TAGS_PATH
    if not path:
        return {}

    tags = load_manual_energy_tags(Path(path))
    logger.info("Loaded %d manual energy tags from %s", len(tags), path)
    return tags
