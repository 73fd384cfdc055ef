"""
Configuration loader for catalog parity verification.

Reads environment variables, optionally overlays a YAML configuration file
validated against a JSON schema, and builds the repository and dispatcher.
"""

import logging
import os
from typing import Any, Dict, Optional

import boto3
import jsonschema
import yaml

from catalog_parity.database.dynamodb_client import CatalogRepository
from catalog_parity.monitoring.comparison import VerificationMetricsPublisher
from catalog_parity.verification.dispatcher import OperationDispatcher

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Exception raised for configuration-related errors."""

    pass


DEFAULT_REGION = "us-east-1"
DEFAULT_MAX_DIFFS = 5

VERIFICATION_CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "region": {"type": "string", "minLength": 1},
        "verification": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "enabled": {"type": "boolean"},
                "max_diffs": {"type": "integer", "minimum": 1},
            },
        },
        "tables": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "entries": {"type": "string", "minLength": 3},
                "statistics": {"type": "string", "minLength": 3},
                "targets": {"type": "string", "minLength": 3},
            },
        },
        "metrics": {
            "type": "object",
            "additionalProperties": False,
            "properties": {"enabled": {"type": "boolean"}},
        },
    },
}


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


class Settings:
    """
    Verification settings.

    Environment variables are read when the instance is created; a YAML
    file loaded with ``load_config`` overrides them.
    """

    def __init__(self, region_name: Optional[str] = None):
        """
        Initialize Settings from the environment.

        Args:
            region_name: AWS region (default: CATALOG_PARITY_REGION or us-east-1)
        """
        self.region_name = region_name or os.getenv("CATALOG_PARITY_REGION", DEFAULT_REGION)
        self.verification_enabled = _env_flag("CATALOG_PARITY_VERIFY_ENABLED", "true")
        self.max_diffs = _env_int("CATALOG_PARITY_MAX_DIFFS", DEFAULT_MAX_DIFFS)
        self.entries_table = os.getenv("CATALOG_PARITY_ENTRIES_TABLE", "catalog_entries")
        self.statistics_table = os.getenv("CATALOG_PARITY_STATISTICS_TABLE", "catalog_statistics")
        self.targets_table = os.getenv("CATALOG_PARITY_TARGETS_TABLE", "catalog_targets")
        self.metrics_enabled = _env_flag("CATALOG_PARITY_METRICS_ENABLED")
        self.dynamodb_resource = None

        if self.max_diffs < 1:
            raise ConfigurationError("CATALOG_PARITY_MAX_DIFFS must be at least 1")

    def is_verification_enabled(self) -> bool:
        """Check if both backends are verified against each other."""
        return self.verification_enabled

    def is_metrics_enabled(self) -> bool:
        """Check if CloudWatch verification metrics are published."""
        return self.metrics_enabled

    def load_config(self, config_path: str) -> None:
        """
        Overlay settings from a YAML file validated against VERIFICATION_CONFIG_SCHEMA.

        Args:
            config_path: Path to the YAML configuration file

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigurationError: If the YAML is invalid or fails schema validation
        """
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except FileNotFoundError:
            logger.error(f"Configuration file not found: {config_path}")
            raise
        except yaml.YAMLError as e:
            logger.error(f"Invalid YAML in configuration: {e}")
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not config:
            logger.warning(f"Empty configuration: {config_path}")
            return

        try:
            jsonschema.validate(instance=config, schema=VERIFICATION_CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            logger.error(f"Configuration failed schema validation: {e.message}")
            raise ConfigurationError(f"Configuration validation failed: {e.message}") from e

        self.region_name = config.get("region", self.region_name)

        verification = config.get("verification", {})
        self.verification_enabled = verification.get("enabled", self.verification_enabled)
        self.max_diffs = verification.get("max_diffs", self.max_diffs)

        tables = config.get("tables", {})
        self.entries_table = tables.get("entries", self.entries_table)
        self.statistics_table = tables.get("statistics", self.statistics_table)
        self.targets_table = tables.get("targets", self.targets_table)

        self.metrics_enabled = config.get("metrics", {}).get("enabled", self.metrics_enabled)
        logger.info(f"Loaded verification configuration from {config_path}")

    def _get_dynamodb_resource(self):
        """Lazy initialize the DynamoDB resource."""
        if self.dynamodb_resource is None:
            self.dynamodb_resource = boto3.resource("dynamodb", region_name=self.region_name)
        return self.dynamodb_resource

    def build_repository(self):
        """CatalogRepository over the configured tables."""
        return CatalogRepository(
            entries_table=self.entries_table,
            statistics_table=self.statistics_table,
            targets_table=self.targets_table,
            dynamodb_resource=self._get_dynamodb_resource(),
        )

    def build_dispatcher(self, backend=None, sink=None, summary=None):
        """
        OperationDispatcher over ``backend`` (default: the configured repository).

        Raises:
            ConfigurationError: If verification is disabled
        """
        if not self.verification_enabled:
            raise ConfigurationError(
                "Verification is disabled (CATALOG_PARITY_VERIFY_ENABLED=false)"
            )
        return OperationDispatcher(
            backend if backend is not None else self.build_repository(),
            sink=sink,
            max_diffs=self.max_diffs,
            summary=summary,
        )

    def build_metrics_publisher(self):
        """VerificationMetricsPublisher, or None when metrics are disabled."""
        if not self.metrics_enabled:
            return None
        return VerificationMetricsPublisher(region_name=self.region_name)
