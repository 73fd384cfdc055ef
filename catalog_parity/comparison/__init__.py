"""Structural comparison of backend results and divergence reporting."""

from .result_value import Record, ValueKind, classify, record_type
from .equivalence import ComparisonOutcome, DivergenceKind, DivergenceRecord, EquivalenceChecker
from .diff_reporter import MAX_DIFFS, DiagnosticReporter, ItemDivergence

__all__ = [
    "Record",
    "ValueKind",
    "classify",
    "record_type",
    "ComparisonOutcome",
    "DivergenceKind",
    "DivergenceRecord",
    "EquivalenceChecker",
    "MAX_DIFFS",
    "DiagnosticReporter",
    "ItemDivergence",
]
