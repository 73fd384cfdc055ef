"""
Operation dispatcher for differential verification of catalog backends.

Every operation runs against the direct (authoritative) path and then the
indirect path with identical parameters. The direct result is returned only
when both results are structurally equivalent; any divergence is fatal.
"""

import copy
from contextlib import contextmanager
from dataclasses import replace
from typing import Iterator, List, Optional, Sequence, Tuple

from catalog_parity.comparison.diff_reporter import MAX_DIFFS, DiagnosticReporter
from catalog_parity.comparison.equivalence import EquivalenceChecker
from catalog_parity.database.exceptions import BackendOperationFailure, InvalidObjectError
from catalog_parity.database.transaction import TransactionCoordinator
from catalog_parity.domain.catalog import (
    CatalogEntry,
    ColumnStatistics,
    EntryFilter,
    TargetCoordinates,
)
from catalog_parity.monitoring.comparison import VerificationSummary
from catalog_parity.utils.logger import StructuredLogger, get_logger, log_operation, truncate_value
from catalog_parity.verification.exceptions import ConsistencyDivergence, MutationFailure
from catalog_parity.verification.requests import (
    CatalogBackend,
    FilteredListing,
    LogicalRequest,
    OperationKind,
)


class OperationDispatcher:
    """
    Verifying front for a CatalogBackend.

    Args:
        backend: backend carrying both the direct and the indirect path
        coordinator: transaction coordinator (default: one over ``backend``)
        sink: diagnostic sink receiving divergence dumps (default: module logger)
        max_diffs: item divergences kept per operation before truncating
        summary: optional run summary updated with each call's outcome
    """

    def __init__(
        self,
        backend: CatalogBackend,
        coordinator: Optional[TransactionCoordinator] = None,
        sink: Optional[StructuredLogger] = None,
        max_diffs: int = MAX_DIFFS,
        summary: Optional[VerificationSummary] = None,
    ):
        self.backend = backend
        self.sink = sink or get_logger(__name__)
        self.coordinator = coordinator or TransactionCoordinator(backend, self.sink)
        self.max_diffs = max_diffs
        self.summary = summary
        self.checker = EquivalenceChecker()
        self.sink.warning(f"{type(self).__name__} is being used - verification run")

    def _reporter(self, operation: str) -> DiagnosticReporter:
        return DiagnosticReporter(self.sink, operation, self.max_diffs, self.checker)

    @contextmanager
    def _tracked(self, operation: str) -> Iterator[None]:
        try:
            yield
        except ConsistencyDivergence:
            if self.summary is not None:
                self.summary.record_divergence(operation)
            raise
        except Exception:
            if self.summary is not None:
                self.summary.record_failure(operation)
            raise
        else:
            if self.summary is not None:
                self.summary.record_pass(operation)

    def _resolve_both(self, request: LogicalRequest):
        direct = self.backend.resolve(request, use_direct=True, use_indirect=False)
        indirect = self.backend.resolve(request, use_direct=False, use_indirect=True)
        return direct, indirect

    @log_operation("point_lookup")
    def point_lookup(self, target: TargetCoordinates, entry_name: str) -> CatalogEntry:
        """Fetch a single entry by exact name."""
        with self._tracked("point_lookup"):
            request = LogicalRequest(OperationKind.POINT_LOOKUP, target, entry_name=entry_name)
            direct, indirect = self._resolve_both(request)
            self._reporter("point_lookup").verify_objects(direct, indirect)
            return direct

    @log_operation("list_by_filter")
    def list_by_filter(
        self, target: TargetCoordinates, entry_filter: EntryFilter
    ) -> Tuple[List[CatalogEntry], bool]:
        """
        List entries matching ``entry_filter``.

        The truncation flags are compared before any entry: a flag mismatch
        means the backends disagree on predicate evaluation itself.

        Returns:
            (entries, truncated)
        """
        with self._tracked("list_by_filter"):
            request = LogicalRequest(
                OperationKind.LIST_BY_FILTER, target, entry_filter=entry_filter
            )
            direct: FilteredListing
            indirect: FilteredListing
            direct, indirect = self._resolve_both(request)
            reporter = self._reporter("list_by_filter")
            reporter.verify_flags(direct.truncated, indirect.truncated)
            reporter.verify_lists(direct.items, indirect.items)
            return direct.items, direct.truncated

    @log_operation("list_by_names")
    def list_by_names(self, target: TargetCoordinates, names: Sequence[str]) -> List[CatalogEntry]:
        """List entries by name; names without an entry are omitted."""
        with self._tracked("list_by_names"):
            request = LogicalRequest(OperationKind.LIST_BY_NAMES, target, names=tuple(names))
            direct, indirect = self._resolve_both(request)
            self._reporter("list_by_names").verify_lists(direct, indirect)
            return direct

    @log_operation("list_all")
    def list_all(self, target: TargetCoordinates, max_entries: int = -1) -> List[CatalogEntry]:
        """List every entry of ``target`` inside one transaction scope."""
        with self._tracked("list_all"):
            with self.coordinator.scope() as scope:
                request = LogicalRequest(OperationKind.LIST_ALL, target, max_entries=max_entries)
                direct, indirect = self._resolve_both(request)
                self._reporter("list_all").verify_lists(direct, indirect)
                scope.commit()
            return direct

    @log_operation("get_statistics")
    def get_statistics(
        self, target: TargetCoordinates, columns: Sequence[str], engine: str = "hive"
    ) -> ColumnStatistics:
        """Table-level column statistics for ``columns``."""
        with self._tracked("get_statistics"):
            request = LogicalRequest(
                OperationKind.GET_STATISTICS, target, columns=tuple(columns), engine=engine
            )
            direct, indirect = self._resolve_both(request)
            self._reporter("get_statistics").verify_objects(direct, indirect)
            return direct

    @log_operation("get_entry_statistics")
    def get_entry_statistics(
        self,
        target: TargetCoordinates,
        entry_names: Sequence[str],
        columns: Sequence[str],
        engine: str = "hive",
    ) -> List[ColumnStatistics]:
        """Per-entry column statistics, one ColumnStatistics per entry that has any."""
        with self._tracked("get_entry_statistics"):
            request = LogicalRequest(
                OperationKind.GET_ENTRY_STATISTICS,
                target,
                names=tuple(entry_names),
                columns=tuple(columns),
                engine=engine,
            )
            direct, indirect = self._resolve_both(request)
            self._reporter("get_entry_statistics").verify_lists(direct, indirect)
            return direct

    @log_operation("bulk_alter")
    def bulk_alter(
        self,
        target: TargetCoordinates,
        entry_values: Sequence[Sequence[str]],
        new_entries: Sequence[CatalogEntry],
        write_id: int = -1,
    ) -> List[CatalogEntry]:
        """
        Alter several entries in one transaction.

        New entries go through the direct path, then the pre-alteration
        entries through the indirect path, then a preserved copy of the new
        entries through the direct path again; that last write is returned.

        Args:
            target: owning target
            entry_values: partition values identifying each entry to alter
            new_entries: replacement entries, same order as ``entry_values``
            write_id: concurrency token; when positive it is stamped on the new entries

        Raises:
            MutationFailure: If any step fails; the transaction is rolled back
        """
        with self._tracked("bulk_alter"):
            target = target.normalized()
            results: List[CatalogEntry] = []
            try:
                with self.coordinator.scope() as scope:
                    handle = self.backend.resolve_target(target)
                    if write_id > 0:
                        new_entries = [replace(entry, write_id=write_id) for entry in new_entries]
                    else:
                        new_entries = list(new_entries)

                    names = [handle.entry_name(list(values)) for values in entry_values]
                    old_entries = self.list_by_names(target, names)
                    if len(old_entries) != len(names):
                        raise InvalidObjectError("Some entries to be altered are missing")

                    preserved = copy.deepcopy(new_entries)
                    self.backend.apply_alterations(
                        handle, names, new_entries, write_id, use_direct=True, use_indirect=False
                    )
                    self.backend.apply_alterations(
                        handle, names, old_entries, write_id, use_direct=False, use_indirect=True
                    )
                    results = self.backend.apply_alterations(
                        handle, names, preserved, write_id, use_direct=True, use_indirect=False
                    )

                    if not scope.commit():
                        raise BackendOperationFailure("Commit of bulk alteration failed")
            except Exception as exc:
                self.sink.error(
                    "Alter failed",
                    operation="bulk_alter",
                    context={
                        "target": target.table_key,
                        "entries": len(entry_values),
                        "new_entries": truncate_value(list(new_entries)),
                    },
                    error=str(exc),
                )
                raise MutationFailure(str(exc), exc) from exc
            return results
