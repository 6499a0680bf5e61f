"""Typed records shared by the refresh pipeline and the analysis layer."""

from models.movers import DIRECTIONS, MoversResult, PeriodResult, ValueMoverRecord
from models.player import (
    FIELD_DEFAULTS,
    MergedDataset,
    PartialRecord,
    PlayerRecord,
    PlayerStats,
    apply_stats,
    merge_listings,
)

__all__ = [
    "DIRECTIONS",
    "FIELD_DEFAULTS",
    "MergedDataset",
    "MoversResult",
    "PartialRecord",
    "PeriodResult",
    "PlayerRecord",
    "PlayerStats",
    "ValueMoverRecord",
    "apply_stats",
    "merge_listings",
]
