"""
Catalog domain model.

Catalog entries (one per partition of a table), column statistics, and the
coordinates used to address them. The ``from_item``/``to_item`` methods are
the data-mapping layer used by the indirect backend path.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from catalog_parity.comparison.result_value import record_type
from catalog_parity.domain.naming import make_entry_name, normalize_identifier


def _as_int(value: Any, default: int = 0) -> int:
    """DynamoDB hands numbers back as Decimal."""
    return default if value is None else int(value)


@dataclass(frozen=True)
class TargetCoordinates:
    """Catalog / database / table triple identifying a target table."""

    catalog_name: str
    database_name: str
    table_name: str

    @property
    def table_key(self) -> str:
        return f"{self.catalog_name}.{self.database_name}.{self.table_name}"

    def normalized(self) -> "TargetCoordinates":
        return TargetCoordinates(
            normalize_identifier(self.catalog_name),
            normalize_identifier(self.database_name),
            normalize_identifier(self.table_name),
        )


@dataclass(frozen=True)
class TargetHandle:
    """A resolved target: coordinates plus its partition key names."""

    coordinates: TargetCoordinates
    partition_keys: List[str]

    def entry_name(self, values: List[str]) -> str:
        return make_entry_name(self.partition_keys, values)


@dataclass(frozen=True)
class EntryFilter:
    """
    Predicate for filtered listings.

    Attributes:
        conditions: partition key -> required value (all must hold)
        max_entries: cap on returned entries; negative means unlimited
    """

    conditions: Dict[str, str] = field(default_factory=dict)
    max_entries: int = -1

    def matches(self, partition_keys: List[str], values: List[str]) -> bool:
        by_key = dict(zip(partition_keys, values))
        return all(by_key.get(key) == value for key, value in self.conditions.items())


@record_type
@dataclass
class CatalogEntry:
    """
    One catalog entry (a partition of a target table).

    Attributes:
        catalog_name / database_name / table_name: owning target
        values: partition-key values, in partition-key order
        location: storage location of the entry's data
        parameters: free-form entry parameters
        write_id: id of the write that last altered the entry (-1 if none)
        create_time: creation time, epoch seconds
    """

    catalog_name: str
    database_name: str
    table_name: str
    values: List[str]
    location: str = ""
    parameters: Dict[str, str] = field(default_factory=dict)
    write_id: int = -1
    create_time: int = 0

    @property
    def coordinates(self) -> TargetCoordinates:
        return TargetCoordinates(self.catalog_name, self.database_name, self.table_name)

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "CatalogEntry":
        """
        Create a CatalogEntry from a DynamoDB item.

        Args:
            item: Item with ``table_key`` ("cat.db.tbl") and entry attributes

        Returns:
            CatalogEntry instance
        """
        catalog_name, database_name, table_name = item["table_key"].split(".", 2)
        return cls(
            catalog_name=catalog_name,
            database_name=database_name,
            table_name=table_name,
            values=[str(v) for v in item.get("values", [])],
            location=item.get("location", ""),
            parameters={str(k): str(v) for k, v in item.get("parameters", {}).items()},
            write_id=_as_int(item.get("write_id"), -1),
            create_time=_as_int(item.get("create_time")),
        )

    def to_item(self, entry_name: str) -> Dict[str, Any]:
        """
        Convert to a DynamoDB item stored under ``entry_name``.

        Returns:
            Dictionary representation
        """
        return {
            "table_key": self.coordinates.table_key,
            "entry_name": entry_name,
            "values": list(self.values),
            "location": self.location,
            "parameters": dict(self.parameters),
            "write_id": self.write_id,
            "create_time": self.create_time,
        }


@record_type
@dataclass
class ColumnStatisticsObj:
    """Statistics for one column."""

    column_name: str
    column_type: str
    num_nulls: int = 0
    num_distinct: int = 0
    max_col_len: int = 0
    low_value: Optional[str] = None
    high_value: Optional[str] = None

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "ColumnStatisticsObj":
        return cls(
            column_name=item["column_name"],
            column_type=item.get("column_type", ""),
            num_nulls=_as_int(item.get("num_nulls")),
            num_distinct=_as_int(item.get("num_distinct")),
            max_col_len=_as_int(item.get("max_col_len")),
            low_value=item.get("low_value"),
            high_value=item.get("high_value"),
        )

    def to_item(self, stats_key: str, engine: str) -> Dict[str, Any]:
        item: Dict[str, Any] = {
            "stats_key": stats_key,
            "column_name": self.column_name,
            "column_type": self.column_type,
            "num_nulls": self.num_nulls,
            "num_distinct": self.num_distinct,
            "max_col_len": self.max_col_len,
            "engine": engine,
        }
        if self.low_value is not None:
            item["low_value"] = self.low_value
        if self.high_value is not None:
            item["high_value"] = self.high_value
        return item


@record_type
@dataclass
class ColumnStatisticsDesc:
    """Which target (table, or one entry of it) a statistics set describes."""

    is_table_level: bool
    catalog_name: str
    database_name: str
    table_name: str
    entry_name: Optional[str] = None


@record_type
@dataclass
class ColumnStatistics:
    """Column statistics for a table or an entry, for one engine."""

    desc: ColumnStatisticsDesc
    stats_objs: List[ColumnStatisticsObj] = field(default_factory=list)
    engine: str = "hive"


def stats_key(coordinates: TargetCoordinates, entry_name: Optional[str] = None) -> str:
    """Hash key under which statistics of a table (or one of its entries) are stored."""
    if entry_name is None:
        return coordinates.table_key
    return f"{coordinates.table_key}/{entry_name}"
