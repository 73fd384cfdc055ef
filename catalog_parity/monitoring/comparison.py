"""
Verification Telemetry Module

Tracks per-operation verification outcomes for one parity run and publishes
them as CloudWatch custom metrics.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import boto3


def _get_iso_timestamp() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class OperationStats:
    """Outcome counts for one operation kind."""

    operation: str
    verified: int = 0
    divergences: int = 0
    failures: int = 0

    @property
    def total(self) -> int:
        return self.verified + self.divergences + self.failures


@dataclass
class VerificationSummary:
    """Overall verification run summary."""

    run_id: str
    started_at: str = field(default_factory=_get_iso_timestamp)
    operations: Dict[str, OperationStats] = field(default_factory=dict)

    def _stats(self, operation: str) -> OperationStats:
        if operation not in self.operations:
            self.operations[operation] = OperationStats(operation=operation)
        return self.operations[operation]

    def record_pass(self, operation: str) -> None:
        self._stats(operation).verified += 1

    def record_divergence(self, operation: str) -> None:
        self._stats(operation).divergences += 1

    def record_failure(self, operation: str) -> None:
        self._stats(operation).failures += 1

    @property
    def total_divergences(self) -> int:
        return sum(stats.divergences for stats in self.operations.values())

    def calculate_match_percentage(self) -> float:
        """Share of calls that verified cleanly; failures count as non-matching."""
        total = sum(stats.total for stats in self.operations.values())
        if total == 0:
            return 100.0
        verified = sum(stats.verified for stats in self.operations.values())
        return (verified / total) * 100.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "run_id": self.run_id,
            "started_at": self.started_at,
            "operations": {
                name: {
                    "verified": stats.verified,
                    "divergences": stats.divergences,
                    "failures": stats.failures,
                }
                for name, stats in self.operations.items()
            },
            "total_divergences": self.total_divergences,
            "match_percentage": self.calculate_match_percentage(),
        }


class VerificationMetricsPublisher:
    """
    Publishes verification metrics to CloudWatch.

    Per operation: verified, divergences, failures. Per run: match_percentage.
    """

    NAMESPACE = "catalog-parity/verification"

    def __init__(self, region_name: str = "us-east-1", cloudwatch_client: Optional[Any] = None):
        """
        Initialize metrics publisher.

        Args:
            region_name: AWS region for CloudWatch
            cloudwatch_client: boto3 CloudWatch client (default: creates new)
        """
        self.region_name = region_name
        self.cloudwatch_client = cloudwatch_client or boto3.client(
            "cloudwatch", region_name=region_name
        )
        self.logger = logging.getLogger(__name__)

    def build_metric_data(self, summary: VerificationSummary) -> List[Dict[str, Any]]:
        timestamp = datetime.now(timezone.utc)
        metric_data: List[Dict[str, Any]] = []

        for name, stats in summary.operations.items():
            for metric_name, value in (
                ("verified", stats.verified),
                ("divergences", stats.divergences),
                ("failures", stats.failures),
            ):
                metric_data.append(
                    {
                        "MetricName": metric_name,
                        "Value": value,
                        "Unit": "Count",
                        "Timestamp": timestamp,
                        "Dimensions": [
                            {"Name": "Operation", "Value": name},
                            {"Name": "VerificationRun", "Value": summary.run_id},
                        ],
                    }
                )

        metric_data.append(
            {
                "MetricName": "match_percentage",
                "Value": summary.calculate_match_percentage(),
                "Unit": "Percent",
                "Timestamp": timestamp,
                "Dimensions": [{"Name": "VerificationRun", "Value": summary.run_id}],
            }
        )
        return metric_data

    def publish_summary(self, summary: VerificationSummary) -> None:
        """
        Publish summary metrics to CloudWatch.

        Failures are logged and not raised: metrics must never fail a parity run.
        """
        try:
            metric_data = self.build_metric_data(summary)

            # CloudWatch limit: 20 metrics per request
            for i in range(0, len(metric_data), 20):
                batch = metric_data[i : i + 20]
                self.cloudwatch_client.put_metric_data(Namespace=self.NAMESPACE, MetricData=batch)
                self.logger.debug(f"Published {len(batch)} metrics to CloudWatch")

            self.logger.info(
                f"Verification metrics published: "
                f"match_percentage={summary.calculate_match_percentage():.1f}%, "
                f"divergences={summary.total_divergences}"
            )

        except Exception as e:
            self.logger.error(f"Failed to publish verification metrics: {e}")
