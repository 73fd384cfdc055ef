"""
Logical requests and the contract both catalog backends satisfy.

A backend receives the same LogicalRequest twice per verified operation:
once with ``use_direct`` set, once with ``use_indirect`` set.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, NamedTuple, Optional, Tuple

from catalog_parity.domain.catalog import CatalogEntry, EntryFilter, TargetCoordinates, TargetHandle


class OperationKind(Enum):
    POINT_LOOKUP = "point_lookup"
    LIST_BY_FILTER = "list_by_filter"
    LIST_BY_NAMES = "list_by_names"
    LIST_ALL = "list_all"
    GET_STATISTICS = "get_statistics"
    GET_ENTRY_STATISTICS = "get_entry_statistics"


@dataclass(frozen=True)
class LogicalRequest:
    """One read operation and its parameters; which fields apply depends on ``kind``."""

    kind: OperationKind
    target: TargetCoordinates
    entry_name: Optional[str] = None
    entry_filter: Optional[EntryFilter] = None
    names: Tuple[str, ...] = ()
    columns: Tuple[str, ...] = ()
    engine: str = "hive"
    max_entries: int = -1


class FilteredListing(NamedTuple):
    """Result of a LIST_BY_FILTER request."""

    items: List[CatalogEntry]
    truncated: bool


class CatalogBackend(ABC):
    """
    Backend-facing contract.

    Implementations carry both execution paths; the flags pick which one
    serves a call. Exactly one of ``use_direct``/``use_indirect`` is set.
    """

    @abstractmethod
    def resolve(self, request: LogicalRequest, use_direct: bool, use_indirect: bool) -> Any:
        """Execute a read request; LIST_BY_FILTER returns a FilteredListing."""

    @abstractmethod
    def apply_alterations(
        self,
        target_handle: TargetHandle,
        names: List[str],
        new_entries: List[CatalogEntry],
        write_id: int,
        use_direct: bool,
        use_indirect: bool,
    ) -> List[CatalogEntry]:
        """Write ``new_entries`` under ``names``; returns the applied entries."""

    @abstractmethod
    def resolve_target(self, target: TargetCoordinates) -> TargetHandle:
        """Resolve a target by qualified name; raises NotFoundError when absent."""

    @abstractmethod
    def begin_transaction(self) -> None:
        pass

    @abstractmethod
    def commit_transaction(self) -> bool:
        pass

    @abstractmethod
    def rollback_transaction(self) -> None:
        pass
