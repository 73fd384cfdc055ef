"""Diagnostic Reporter - accumulate divergences, log the structured dump, raise."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from catalog_parity.comparison.equivalence import ComparisonOutcome, EquivalenceChecker
from catalog_parity.utils.logger import StructuredLogger
from catalog_parity.verification.exceptions import (
    ConsistencyDivergence,
    ProtocolFlagMismatch,
    SizeMismatch,
)

MAX_DIFFS = 5
TRUNCATION_NOTICE = "Too many diffs, giving up (lists might be sorted differently)"
DIVERGENCE_MESSAGE = "Different results from direct and indirect backends, see log for details"


@dataclass
class ItemDivergence:
    """Divergences found for one item of a result (index is None for single results)."""

    index: Optional[int]
    outcome: ComparisonOutcome

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "divergences": [record.to_dict() for record in self.outcome.records],
        }


class DiagnosticReporter:
    """
    Collects divergences for one verified operation and reports them fatally.

    At most ``max_diffs`` item divergences are kept. The next one stops
    accumulation and adds a single truncation notice, since that many
    differences usually share one systemic cause such as a different sort
    order. Size and flag mismatches bypass accumulation and raise at once.
    """

    def __init__(
        self,
        sink: StructuredLogger,
        operation: str,
        max_diffs: int = MAX_DIFFS,
        checker: Optional[EquivalenceChecker] = None,
    ) -> None:
        self.sink = sink
        self.operation = operation
        self.max_diffs = max_diffs
        self.checker = checker or EquivalenceChecker()
        self.divergences: List[ItemDivergence] = []
        self.truncated = False

    def add(self, index: Optional[int], outcome: ComparisonOutcome) -> bool:
        """
        Record one item's divergences.

        Returns:
            False once the budget is exhausted and the caller should stop comparing
        """
        if self.truncated:
            return False
        if len(self.divergences) >= self.max_diffs:
            self.truncated = True
            return False
        self.divergences.append(ItemDivergence(index=index, outcome=outcome))
        return True

    def verify_flags(self, direct_flag: bool, indirect_flag: bool) -> None:
        """Raise ProtocolFlagMismatch when the backends disagree on the truncation flag."""
        if direct_flag != indirect_flag:
            exc = ProtocolFlagMismatch(direct_flag, indirect_flag)
            self.sink.error(str(exc), operation=self.operation)
            raise exc

    def verify_objects(self, direct: Any, indirect: Any) -> None:
        """Compare two single results; raise ConsistencyDivergence when they differ."""
        outcome = self.checker.compare(direct, indirect)
        if outcome.is_equivalent:
            return
        self.add(None, outcome)
        self.raise_if_divergent()

    def verify_lists(self, direct_items: Sequence[Any], indirect_items: Sequence[Any]) -> None:
        """
        Compare two multi-item results item by item, in order.

        Raises:
            SizeMismatch: If the results differ in cardinality (no item is compared)
            ConsistencyDivergence: If any item differs
        """
        if len(direct_items) != len(indirect_items):
            exc = SizeMismatch(len(direct_items), len(indirect_items))
            self.sink.error(str(exc), operation=self.operation)
            raise exc

        for index, (direct, indirect) in enumerate(zip(direct_items, indirect_items)):
            outcome = self.checker.compare(direct, indirect)
            if outcome.is_equivalent:
                continue
            if not self.add(index, outcome):
                break

        self.raise_if_divergent()

    def to_dict(self) -> Dict[str, Any]:
        report: Dict[str, Any] = {
            "operation": self.operation,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "items": [divergence.to_dict() for divergence in self.divergences],
        }
        if self.truncated:
            report["notice"] = TRUNCATION_NOTICE
        return report

    def generate_json_report(self) -> str:
        return json.dumps(self.to_dict(), indent=2, default=str)

    def raise_if_divergent(self) -> None:
        """Log the full dump at error severity and raise, if anything was recorded."""
        if not self.divergences:
            return
        self.sink.error(
            "Different results",
            operation=self.operation,
            context=self.to_dict(),
        )
        raise ConsistencyDivergence(DIVERGENCE_MESSAGE)
