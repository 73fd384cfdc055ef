"""Domain models for the catalog."""

from .catalog import (
    CatalogEntry,
    ColumnStatistics,
    ColumnStatisticsDesc,
    ColumnStatisticsObj,
    EntryFilter,
    TargetCoordinates,
    TargetHandle,
)
from .naming import make_entry_name, normalize_identifier

__all__ = [
    "CatalogEntry",
    "ColumnStatistics",
    "ColumnStatisticsDesc",
    "ColumnStatisticsObj",
    "EntryFilter",
    "TargetCoordinates",
    "TargetHandle",
    "make_entry_name",
    "normalize_identifier",
]
