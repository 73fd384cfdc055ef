"""Shared fixtures."""

import json
import logging
import os
from io import StringIO

import boto3
import pytest
from moto import mock_aws

from catalog_parity.database.dynamodb_client import CatalogRepository
from catalog_parity.domain.catalog import CatalogEntry, ColumnStatisticsObj, TargetCoordinates
from catalog_parity.utils.logger import StructuredLogger


@pytest.fixture
def aws_credentials():
    """Fake AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def captured_sink():
    """StructuredLogger writing to a string stream; returns (sink, read_entries)."""
    sink = StructuredLogger("test_sink")
    sink.logger.handlers.clear()
    sink.logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter("%(message)s"))
    sink.logger.addHandler(handler)

    def read_entries():
        return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]

    return sink, read_entries


@pytest.fixture
def target():
    return TargetCoordinates("hive", "testpartdb", "testparttable")


def create_catalog_tables(dynamodb):
    """Create the targets, entries and statistics tables."""
    dynamodb.create_table(
        TableName="catalog_targets",
        KeySchema=[{"AttributeName": "table_key", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "table_key", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )
    dynamodb.create_table(
        TableName="catalog_entries",
        KeySchema=[
            {"AttributeName": "table_key", "KeyType": "HASH"},
            {"AttributeName": "entry_name", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "table_key", "AttributeType": "S"},
            {"AttributeName": "entry_name", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    dynamodb.create_table(
        TableName="catalog_statistics",
        KeySchema=[
            {"AttributeName": "stats_key", "KeyType": "HASH"},
            {"AttributeName": "column_name", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "stats_key", "AttributeType": "S"},
            {"AttributeName": "column_name", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def repository(aws_credentials):
    """CatalogRepository over empty moto tables."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
        create_catalog_tables(dynamodb)
        yield CatalogRepository(dynamodb_resource=dynamodb, backoff_base=0)


@pytest.fixture
def seeded_repository(repository, target):
    """
    Repository with one target partitioned by yyyy/mm/dd, three entries,
    table-level statistics and statistics for the first entry.
    """
    handle = repository.create_target(target, ["yyyy", "mm", "dd"])
    for day in ("01", "02", "03"):
        repository.add_entry(
            handle,
            CatalogEntry(
                "hive",
                "testpartdb",
                "testparttable",
                ["2017", "10", day],
                location=f"s3://warehouse/testparttable/2017/10/{day}",
                parameters={"owner": "etl"},
                create_time=1507000000,
            ),
        )
    repository.put_statistics(
        target,
        [
            ColumnStatisticsObj("id", "bigint", num_nulls=0, num_distinct=300),
            ColumnStatisticsObj("name", "string", num_nulls=2, num_distinct=120, max_col_len=40),
        ],
    )
    repository.put_statistics(
        target,
        [ColumnStatisticsObj("id", "bigint", num_distinct=100, low_value="1", high_value="100")],
        entry_name="yyyy=2017/mm=10/dd=01",
    )
    return repository
