"""Monitoring and telemetry module for verification runs."""

from catalog_parity.monitoring.comparison import (
    OperationStats,
    VerificationMetricsPublisher,
    VerificationSummary,
)

__all__ = [
    "OperationStats",
    "VerificationMetricsPublisher",
    "VerificationSummary",
]
