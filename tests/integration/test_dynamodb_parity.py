"""
Integration tests: OperationDispatcher over CatalogRepository on moto DynamoDB.

Exercises every verified operation end to end, including the transactional
bulk alteration and divergence detection when the mapping layer is lossy.
"""

import pytest
from boto3.dynamodb.conditions import Key

from catalog_parity.comparison.diff_reporter import MAX_DIFFS, TRUNCATION_NOTICE
from catalog_parity.domain.catalog import CatalogEntry, EntryFilter, TargetCoordinates
from catalog_parity.monitoring.comparison import VerificationSummary
from catalog_parity.verification.dispatcher import OperationDispatcher
from catalog_parity.verification.exceptions import ConsistencyDivergence, MutationFailure

VALUES = [["2017", "10", "01"], ["2017", "10", "02"]]
NAMES = ["yyyy=2017/mm=10/dd=01", "yyyy=2017/mm=10/dd=02"]


@pytest.fixture
def dispatcher(seeded_repository, captured_sink):
    sink, _ = captured_sink
    return OperationDispatcher(
        seeded_repository, sink=sink, summary=VerificationSummary(run_id="integration")
    )


@pytest.fixture
def lossy_mapping(monkeypatch):
    """Make the indirect mapping layer drop entry parameters."""
    original = CatalogEntry.from_item.__func__

    def from_item(cls, item):
        entry = original(cls, item)
        entry.parameters = {}
        return entry

    monkeypatch.setattr(CatalogEntry, "from_item", classmethod(from_item))


def _moved(values, location="s3://moved"):
    return CatalogEntry("hive", "testpartdb", "testparttable", list(values), location)


class TestVerifiedReads:
    """Tests for verified reads against a consistent store."""

    def test_all_reads_verify(self, dispatcher, target):
        entry = dispatcher.point_lookup(target, NAMES[0])
        listed = dispatcher.list_by_names(target, NAMES)
        everything = dispatcher.list_all(target)
        filtered, truncated = dispatcher.list_by_filter(target, EntryFilter({"mm": "10"}))
        table_stats = dispatcher.get_statistics(target, ["id", "name"])
        entry_stats = dispatcher.get_entry_statistics(target, NAMES, ["id"])

        assert entry.values == VALUES[0]
        assert len(listed) == 2
        assert len(everything) == 3
        assert len(filtered) == 3 and truncated is False
        assert len(table_stats.stats_objs) == 2
        assert len(entry_stats) == 1
        assert dispatcher.summary.total_divergences == 0
        assert dispatcher.summary.calculate_match_percentage() == 100.0

    def test_lossy_mapping_detected(self, dispatcher, target, lossy_mapping, captured_sink):
        _, read_entries = captured_sink

        with pytest.raises(ConsistencyDivergence):
            dispatcher.point_lookup(target, NAMES[0])

        dump = next(e for e in read_entries() if e["message"] == "Different results")
        divergence = dump["context"]["items"][0]["divergences"][0]
        assert divergence["path"] == "parameters"
        assert divergence["kind"] == "key_set"
        assert dispatcher.summary.operations["point_lookup"].divergences == 1

    def test_divergence_budget(
        self, seeded_repository, dispatcher, target, captured_sink, monkeypatch
    ):
        """Test that seven divergent entries are reported as five plus a notice."""
        _, read_entries = captured_sink
        handle = seeded_repository.resolve_target(target)
        for day in ("04", "05", "06", "07"):
            seeded_repository.add_entry(
                handle,
                CatalogEntry(
                    "hive", "testpartdb", "testparttable", ["2017", "10", day],
                    parameters={"owner": "etl"},
                ),
            )

        original = CatalogEntry.from_item.__func__

        def from_item(cls, item):
            entry = original(cls, item)
            entry.location = "s3://elsewhere"
            return entry

        monkeypatch.setattr(CatalogEntry, "from_item", classmethod(from_item))
        with pytest.raises(ConsistencyDivergence):
            dispatcher.list_all(target)

        dump = next(e for e in read_entries() if e["message"] == "Different results")
        assert len(dump["context"]["items"]) == MAX_DIFFS
        assert dump["context"]["notice"] == TRUNCATION_NOTICE


class TestVerifiedBulkAlter:
    """Tests for the transactional bulk alteration."""

    def test_bulk_alter_commits(self, dispatcher, seeded_repository, target):
        new_entries = [_moved(values) for values in VALUES]

        result = dispatcher.bulk_alter(target, VALUES, new_entries, write_id=9)

        assert [e.location for e in result] == ["s3://moved", "s3://moved"]
        stored = dispatcher.list_by_names(target, NAMES)
        assert [e.location for e in stored] == ["s3://moved", "s3://moved"]
        assert [e.write_id for e in stored] == [9, 9]
        assert seeded_repository._depth == 0

    def test_bulk_alter_missing_entry(self, dispatcher, target):
        values = VALUES + [["2017", "12", "31"]]
        new_entries = [_moved(v) for v in values]

        with pytest.raises(MutationFailure, match="missing"):
            dispatcher.bulk_alter(target, values, new_entries)

        stored = dispatcher.list_by_names(target, NAMES)
        assert all(e.location != "s3://moved" for e in stored)

    def test_stale_write_id_rolls_back(self, dispatcher, seeded_repository, target):
        """Test that a write losing to a newer write id leaves every entry untouched."""
        dispatcher.bulk_alter(target, VALUES[:1], [_moved(VALUES[0], "s3://v5")], write_id=5)

        with pytest.raises(MutationFailure) as exc_info:
            dispatcher.bulk_alter(
                target, VALUES, [_moved(v, "s3://v3") for v in VALUES], write_id=3
            )

        assert "Transaction cancelled" in str(exc_info.value)
        stored = dispatcher.list_by_names(target, NAMES)
        assert stored[0].location == "s3://v5"
        assert stored[1].location != "s3://v3"
        assert seeded_repository._depth == 0
        assert seeded_repository._staged == {}

    def test_unknown_target(self, dispatcher):
        with pytest.raises(MutationFailure, match="not found"):
            dispatcher.bulk_alter(
                TargetCoordinates("hive", "nodb", "notable"), VALUES, [_moved(v) for v in VALUES]
            )

    def test_mixed_case_coordinates(self, dispatcher, seeded_repository, target):
        """Test that identifiers in any case alter the stored entries, not stray copies."""
        mixed_target = TargetCoordinates("Hive", "TestPartDB", "TestPartTable")
        new_entries = [
            CatalogEntry("Hive", "TestPartDB", "TestPartTable", list(values), "s3://moved")
            for values in VALUES
        ]

        result = dispatcher.bulk_alter(mixed_target, VALUES, new_entries)

        assert all(e.coordinates == target for e in result)
        stored = dispatcher.list_all(target)
        assert len(stored) == 3
        assert [e.location for e in stored[:2]] == ["s3://moved", "s3://moved"]
        stray = seeded_repository.entries.query(
            KeyConditionExpression=Key("table_key").eq("Hive.TestPartDB.TestPartTable")
        )
        assert stray["Items"] == []
