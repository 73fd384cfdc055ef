"""
Unit tests for verification settings (catalog_parity/config/settings.py)
"""

import pytest
from moto import mock_aws

from catalog_parity.config.settings import (
    DEFAULT_MAX_DIFFS,
    ConfigurationError,
    Settings,
)
from catalog_parity.database.dynamodb_client import CatalogRepository
from catalog_parity.monitoring.comparison import VerificationMetricsPublisher
from catalog_parity.verification.dispatcher import OperationDispatcher
from tests.fakes import FakeBackend

ENV_VARS = [
    "CATALOG_PARITY_REGION",
    "CATALOG_PARITY_VERIFY_ENABLED",
    "CATALOG_PARITY_MAX_DIFFS",
    "CATALOG_PARITY_ENTRIES_TABLE",
    "CATALOG_PARITY_STATISTICS_TABLE",
    "CATALOG_PARITY_TARGETS_TABLE",
    "CATALOG_PARITY_METRICS_ENABLED",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestSettingsFromEnvironment:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        settings = Settings()
        assert settings.region_name == "us-east-1"
        assert settings.is_verification_enabled() is True
        assert settings.max_diffs == DEFAULT_MAX_DIFFS
        assert settings.entries_table == "catalog_entries"
        assert settings.is_metrics_enabled() is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CATALOG_PARITY_REGION", "eu-west-1")
        monkeypatch.setenv("CATALOG_PARITY_MAX_DIFFS", "10")
        monkeypatch.setenv("CATALOG_PARITY_ENTRIES_TABLE", "entries_v2")
        monkeypatch.setenv("CATALOG_PARITY_METRICS_ENABLED", "TRUE")

        settings = Settings()

        assert settings.region_name == "eu-west-1"
        assert settings.max_diffs == 10
        assert settings.entries_table == "entries_v2"
        assert settings.is_metrics_enabled() is True

    def test_explicit_region_wins(self, monkeypatch):
        monkeypatch.setenv("CATALOG_PARITY_REGION", "eu-west-1")
        assert Settings(region_name="ap-northeast-2").region_name == "ap-northeast-2"

    def test_non_integer_max_diffs(self, monkeypatch):
        monkeypatch.setenv("CATALOG_PARITY_MAX_DIFFS", "many")
        with pytest.raises(ConfigurationError, match="must be an integer"):
            Settings()

    def test_max_diffs_below_one(self, monkeypatch):
        monkeypatch.setenv("CATALOG_PARITY_MAX_DIFFS", "0")
        with pytest.raises(ConfigurationError):
            Settings()


class TestLoadConfig:
    """Tests for YAML configuration overlay."""

    def test_valid_config(self, tmp_path):
        config_file = tmp_path / "verification.yaml"
        config_file.write_text(
            "region: ap-northeast-2\n"
            "verification:\n"
            "  enabled: true\n"
            "  max_diffs: 3\n"
            "tables:\n"
            "  entries: entries_test\n"
            "metrics:\n"
            "  enabled: true\n",
            encoding="utf-8",
        )

        settings = Settings()
        settings.load_config(str(config_file))

        assert settings.region_name == "ap-northeast-2"
        assert settings.max_diffs == 3
        assert settings.entries_table == "entries_test"
        assert settings.statistics_table == "catalog_statistics"
        assert settings.is_metrics_enabled() is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Settings().load_config(str(tmp_path / "absent.yaml"))

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("verification: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            Settings().load_config(str(config_file))

    def test_schema_violation(self, tmp_path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("verification:\n  max_diffs: 0\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="validation failed"):
            Settings().load_config(str(config_file))

    def test_unknown_key_rejected(self, tmp_path):
        config_file = tmp_path / "extra.yaml"
        config_file.write_text("soft_fail: true\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            Settings().load_config(str(config_file))

    def test_empty_file_keeps_settings(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("", encoding="utf-8")
        settings = Settings()
        settings.load_config(str(config_file))
        assert settings.max_diffs == DEFAULT_MAX_DIFFS


class TestBuilders:
    """Tests for the component builders."""

    def test_build_dispatcher(self, captured_sink):
        sink, _ = captured_sink
        backend = FakeBackend()
        settings = Settings()
        settings.max_diffs = 2

        dispatcher = settings.build_dispatcher(backend=backend, sink=sink)

        assert isinstance(dispatcher, OperationDispatcher)
        assert dispatcher.backend is backend
        assert dispatcher.max_diffs == 2

    def test_build_dispatcher_disabled(self, monkeypatch):
        monkeypatch.setenv("CATALOG_PARITY_VERIFY_ENABLED", "false")
        with pytest.raises(ConfigurationError, match="disabled"):
            Settings().build_dispatcher(backend=FakeBackend())

    def test_build_repository(self, aws_credentials):
        with mock_aws():
            settings = Settings()
            settings.entries_table = "entries_test"
            repository = settings.build_repository()

        assert isinstance(repository, CatalogRepository)
        assert repository.entries.name == "entries_test"

    def test_metrics_publisher_disabled(self):
        assert Settings().build_metrics_publisher() is None

    def test_metrics_publisher_enabled(self, monkeypatch, aws_credentials):
        monkeypatch.setenv("CATALOG_PARITY_METRICS_ENABLED", "true")
        with mock_aws():
            publisher = Settings().build_metrics_publisher()
        assert isinstance(publisher, VerificationMetricsPublisher)
        assert publisher.region_name == "us-east-1"
