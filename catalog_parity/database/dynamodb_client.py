"""
DynamoDB catalog repository carrying both execution paths.

The direct path reads and writes by key (get_item, batch_get_item, query with
server-side filters). The indirect path loads whole partitions and goes
through the domain mapping layer (``from_item``/``to_item``), evaluating
predicates in Python. Writes made inside a transaction are staged and flushed
with transact_write_items on the outermost commit.
"""

import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Tuple

import boto3
from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from catalog_parity.domain.catalog import (
    CatalogEntry,
    ColumnStatistics,
    ColumnStatisticsDesc,
    ColumnStatisticsObj,
    EntryFilter,
    TargetCoordinates,
    TargetHandle,
    stats_key,
)
from catalog_parity.utils.logger import get_logger
from catalog_parity.verification.requests import (
    CatalogBackend,
    FilteredListing,
    LogicalRequest,
    OperationKind,
)
from .exceptions import (
    AccessDeniedError,
    BackendOperationFailure,
    InvalidObjectError,
    NetworkError,
    NotFoundError,
    ThrottlingError,
)


logger = get_logger(__name__)

BATCH_GET_LIMIT = 100
TRANSACTION_ITEM_LIMIT = 100
_THROTTLING_CODES = ("ProvisionedThroughputExceededException", "ThrottlingException")


def _direct_entry(item: Dict[str, Any]) -> CatalogEntry:
    catalog_name, database_name, table_name = item["table_key"].split(".", 2)
    return CatalogEntry(
        catalog_name,
        database_name,
        table_name,
        list(item.get("values") or []),
        item.get("location", ""),
        dict(item.get("parameters") or {}),
        int(item.get("write_id", -1)),
        int(item.get("create_time", 0)),
    )


def _direct_item(entry: CatalogEntry, table_key: str, entry_name: str) -> Dict[str, Any]:
    return {
        "table_key": table_key,
        "entry_name": entry_name,
        "values": entry.values,
        "location": entry.location,
        "parameters": entry.parameters,
        "write_id": entry.write_id,
        "create_time": entry.create_time,
    }


def _cap(items: List[Any], max_entries: int) -> Tuple[List[Any], bool]:
    if max_entries < 0 or len(items) <= max_entries:
        return items, False
    return items[:max_entries], True


class CatalogRepository(CatalogBackend):
    """
    Catalog backend over three DynamoDB tables.

    Table Schemas:
        targets:    Partition Key: table_key ("cat.db.tbl")
        entries:    Partition Key: table_key, Sort Key: entry_name ("yyyy=2017/mm=10")
        statistics: Partition Key: stats_key (table_key or table_key/entry_name),
                    Sort Key: column_name
    """

    def __init__(
        self,
        entries_table: str = "catalog_entries",
        statistics_table: str = "catalog_statistics",
        targets_table: str = "catalog_targets",
        dynamodb_resource: Optional[Any] = None,
        max_retries: int = 3,
        backoff_base: float = 1.0,
    ):
        """
        Initialize CatalogRepository.

        Args:
            entries_table: DynamoDB table holding catalog entries
            statistics_table: DynamoDB table holding column statistics
            targets_table: DynamoDB table holding target definitions
            dynamodb_resource: boto3 DynamoDB resource (default: creates new)
            max_retries: Number of attempts for throttled calls
            backoff_base: Base exponential backoff multiplier (seconds)
        """
        self.dynamodb = dynamodb_resource or boto3.resource("dynamodb")
        self.entries = self.dynamodb.Table(entries_table)
        self.statistics = self.dynamodb.Table(statistics_table)
        self.targets = self.dynamodb.Table(targets_table)
        self.client = self.dynamodb.meta.client
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._serializer = TypeSerializer()
        self._depth = 0
        # (table_key, entry_name) -> (item, write_id); last write wins
        self._staged: Dict[Tuple[str, str], Tuple[Dict[str, Any], int]] = {}

    # ------------------------------------------------------------------
    # DynamoDB call wrapper
    # ------------------------------------------------------------------

    def _call(self, operation: str, context: Dict[str, Any], fn: Callable, **kwargs) -> Any:
        """
        Invoke a DynamoDB call, retrying throttling and translating errors.

        Raises:
            ThrottlingError: If throttled after max retries
            AccessDeniedError: If IAM permissions insufficient
            InvalidObjectError: If a conditional write lost to a newer write
            NetworkError: If connection fails
            BackendOperationFailure: For any other DynamoDB error
        """
        for attempt in range(self.max_retries):
            try:
                start_time = time.time()
                result = fn(**kwargs)
                logger.debug(
                    f"{operation} succeeded",
                    operation=operation,
                    context={**context, "duration_ms": round((time.time() - start_time) * 1000, 2)},
                )
                return result

            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")

                if error_code in _THROTTLING_CODES:
                    if attempt < self.max_retries - 1:
                        wait_time = self.backoff_base * (2**attempt)
                        logger.warning(
                            f"Throttled, retrying after {wait_time}s",
                            operation=operation,
                            context=context,
                            error=error_code,
                        )
                        time.sleep(wait_time)
                        continue
                    logger.error(
                        "Throttling after max retries",
                        operation=operation,
                        context=context,
                        error=error_code,
                    )
                    raise ThrottlingError(
                        f"DynamoDB throttled after {self.max_retries} retries"
                    ) from e

                if error_code == "AccessDeniedException":
                    logger.error(
                        "Permission denied", operation=operation, context=context, error=error_code
                    )
                    raise AccessDeniedError(f"Insufficient IAM permissions: {error_code}") from e

                if error_code == "ConditionalCheckFailedException":
                    raise InvalidObjectError(
                        f"Entry was altered by a newer write: {context}"
                    ) from e

                if error_code == "TransactionCanceledException":
                    reasons = [
                        reason.get("Code", "None")
                        for reason in e.response.get("CancellationReasons", [])
                    ]
                    logger.error(
                        "Transaction cancelled",
                        operation=operation,
                        context={**context, "reasons": reasons},
                        error=error_code,
                    )
                    raise BackendOperationFailure(f"Transaction cancelled: {reasons}") from e

                logger.error("DynamoDB error", operation=operation, context=context, error=str(e))
                raise BackendOperationFailure(f"DynamoDB error: {e}") from e

            except (BotoCoreError, OSError) as e:
                logger.error("Network error", operation=operation, context=context, error=str(e))
                raise NetworkError(f"Network error: {e}") from e

        raise ThrottlingError(f"DynamoDB throttled after {self.max_retries} retries")

    def _query_all(self, table, operation: str, context: Dict[str, Any], **kwargs) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        while True:
            response = self._call(operation, context, table.query, **kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    def _batch_get(self, table, keys: List[Dict[str, Any]], operation: str) -> List[Dict[str, Any]]:
        """
        batch_get_item in chunks, following UnprocessedKeys with backoff.

        Raises:
            ThrottlingError: If keys are still unprocessed after max retries
        """
        items: List[Dict[str, Any]] = []
        for i in range(0, len(keys), BATCH_GET_LIMIT):
            request = {table.name: {"Keys": keys[i : i + BATCH_GET_LIMIT]}}
            attempt = 0
            while request:
                context = {"table": table.name, "keys": len(request[table.name]["Keys"])}
                response = self._call(
                    operation, context, self.dynamodb.batch_get_item, RequestItems=request
                )
                items.extend(response.get("Responses", {}).get(table.name, []))
                request = response.get("UnprocessedKeys") or {}
                if not request:
                    break

                attempt += 1
                if attempt >= self.max_retries:
                    logger.error(
                        "Unprocessed keys after max retries", operation=operation, context=context
                    )
                    raise ThrottlingError(
                        f"DynamoDB left keys unprocessed after {self.max_retries} retries"
                    )
                wait_time = self.backoff_base * (2 ** (attempt - 1))
                logger.warning(
                    f"Unprocessed keys, retrying after {wait_time}s",
                    operation=operation,
                    context=context,
                )
                time.sleep(wait_time)
        return items

    # ------------------------------------------------------------------
    # Targets and seeding
    # ------------------------------------------------------------------

    def resolve_target(self, target: TargetCoordinates) -> TargetHandle:
        context = {"table_key": target.table_key}
        response = self._call(
            "resolve_target", context, self.targets.get_item, Key={"table_key": target.table_key}
        )
        item = response.get("Item")
        if item is None:
            raise NotFoundError(f"Target {target.table_key} not found")
        return TargetHandle(coordinates=target, partition_keys=list(item.get("partition_keys", [])))

    def create_target(self, target: TargetCoordinates, partition_keys: List[str]) -> TargetHandle:
        self._call(
            "create_target",
            {"table_key": target.table_key},
            self.targets.put_item,
            Item={"table_key": target.table_key, "partition_keys": list(partition_keys)},
        )
        logger.info("Target created", operation="create_target", context={"table_key": target.table_key})
        return TargetHandle(coordinates=target, partition_keys=list(partition_keys))

    def add_entry(self, handle: TargetHandle, entry: CatalogEntry) -> str:
        """Store ``entry`` under its name; returns the entry name."""
        entry_name = handle.entry_name(entry.values)
        self._call(
            "add_entry",
            {"table_key": handle.coordinates.table_key, "entry_name": entry_name},
            self.entries.put_item,
            Item=entry.to_item(entry_name),
        )
        return entry_name

    def put_statistics(
        self,
        target: TargetCoordinates,
        stats_objs: List[ColumnStatisticsObj],
        engine: str = "hive",
        entry_name: Optional[str] = None,
    ) -> None:
        key = stats_key(target, entry_name)
        with self.statistics.batch_writer() as batch:
            for obj in stats_objs:
                batch.put_item(Item=obj.to_item(key, engine))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def resolve(self, request: LogicalRequest, use_direct: bool, use_indirect: bool) -> Any:
        if use_direct == use_indirect:
            raise ValueError("Exactly one of use_direct/use_indirect must be set")
        handlers = self._direct_handlers() if use_direct else self._indirect_handlers()
        return handlers[request.kind](request)

    def _direct_handlers(self) -> Dict[OperationKind, Callable[[LogicalRequest], Any]]:
        return {
            OperationKind.POINT_LOOKUP: self._direct_point_lookup,
            OperationKind.LIST_BY_FILTER: self._direct_list_by_filter,
            OperationKind.LIST_BY_NAMES: self._direct_list_by_names,
            OperationKind.LIST_ALL: self._direct_list_all,
            OperationKind.GET_STATISTICS: self._direct_statistics,
            OperationKind.GET_ENTRY_STATISTICS: self._direct_entry_statistics,
        }

    def _indirect_handlers(self) -> Dict[OperationKind, Callable[[LogicalRequest], Any]]:
        return {
            OperationKind.POINT_LOOKUP: self._indirect_point_lookup,
            OperationKind.LIST_BY_FILTER: self._indirect_list_by_filter,
            OperationKind.LIST_BY_NAMES: self._indirect_list_by_names,
            OperationKind.LIST_ALL: self._indirect_list_all,
            OperationKind.GET_STATISTICS: self._indirect_statistics,
            OperationKind.GET_ENTRY_STATISTICS: self._indirect_entry_statistics,
        }

    # direct path

    def _direct_point_lookup(self, request: LogicalRequest) -> CatalogEntry:
        table_key = request.target.table_key
        response = self._call(
            "point_lookup",
            {"table_key": table_key, "entry_name": request.entry_name},
            self.entries.get_item,
            Key={"table_key": table_key, "entry_name": request.entry_name},
        )
        item = response.get("Item")
        if item is None:
            raise NotFoundError(f"Entry {request.entry_name} not found in {table_key}")
        return _direct_entry(item)

    def _direct_list_by_names(self, request: LogicalRequest) -> List[CatalogEntry]:
        table_key = request.target.table_key
        names = list(dict.fromkeys(request.names))
        keys = [{"table_key": table_key, "entry_name": name} for name in names]
        found = {
            item["entry_name"]: _direct_entry(item)
            for item in self._batch_get(self.entries, keys, "list_by_names")
        }
        return [found[name] for name in names if name in found]

    def _direct_list_by_filter(self, request: LogicalRequest) -> FilteredListing:
        entry_filter = request.entry_filter or EntryFilter()
        handle = self.resolve_target(request.target)

        if any(key not in handle.partition_keys for key in entry_filter.conditions):
            return FilteredListing(items=[], truncated=False)

        kwargs: Dict[str, Any] = {
            "KeyConditionExpression": Key("table_key").eq(request.target.table_key)
        }
        condition = None
        for key, value in entry_filter.conditions.items():
            clause = Attr(f"values[{handle.partition_keys.index(key)}]").eq(value)
            condition = clause if condition is None else condition & clause
        if condition is not None:
            kwargs["FilterExpression"] = condition

        items = self._query_all(
            self.entries, "list_by_filter", {"table_key": request.target.table_key}, **kwargs
        )
        items.sort(key=lambda item: item["entry_name"])
        capped, truncated = _cap(items, entry_filter.max_entries)
        return FilteredListing(items=[_direct_entry(item) for item in capped], truncated=truncated)

    def _direct_list_all(self, request: LogicalRequest) -> List[CatalogEntry]:
        items = self._query_all(
            self.entries,
            "list_all",
            {"table_key": request.target.table_key},
            KeyConditionExpression=Key("table_key").eq(request.target.table_key),
        )
        items.sort(key=lambda item: item["entry_name"])
        capped, _ = _cap(items, request.max_entries)
        return [_direct_entry(item) for item in capped]

    def _direct_stats_objs(self, key: str, request: LogicalRequest) -> List[ColumnStatisticsObj]:
        keys = [{"stats_key": key, "column_name": column} for column in dict.fromkeys(request.columns)]
        items = [
            item
            for item in self._batch_get(self.statistics, keys, "get_statistics")
            if item.get("engine") == request.engine
        ]
        items.sort(key=lambda item: item["column_name"])
        return [
            ColumnStatisticsObj(
                item["column_name"],
                item.get("column_type", ""),
                int(item.get("num_nulls", 0)),
                int(item.get("num_distinct", 0)),
                int(item.get("max_col_len", 0)),
                item.get("low_value"),
                item.get("high_value"),
            )
            for item in items
        ]

    def _direct_statistics(self, request: LogicalRequest) -> Optional[ColumnStatistics]:
        target = request.target
        objs = self._direct_stats_objs(stats_key(target), request)
        if not objs:
            return None
        desc = ColumnStatisticsDesc(
            True, target.catalog_name, target.database_name, target.table_name
        )
        return ColumnStatistics(desc=desc, stats_objs=objs, engine=request.engine)

    def _direct_entry_statistics(self, request: LogicalRequest) -> List[ColumnStatistics]:
        target = request.target
        results = []
        for name in dict.fromkeys(request.names):
            objs = self._direct_stats_objs(stats_key(target, name), request)
            if objs:
                desc = ColumnStatisticsDesc(
                    False, target.catalog_name, target.database_name, target.table_name, name
                )
                results.append(ColumnStatistics(desc=desc, stats_objs=objs, engine=request.engine))
        return results

    # indirect path

    def _load_entries(self, target: TargetCoordinates) -> Dict[str, CatalogEntry]:
        """Whole partition through the mapping layer, keyed and ordered by entry name."""
        items = self._query_all(
            self.entries,
            "load_entries",
            {"table_key": target.table_key},
            KeyConditionExpression=Key("table_key").eq(target.table_key),
        )
        return {
            item["entry_name"]: CatalogEntry.from_item(item)
            for item in sorted(items, key=lambda item: item["entry_name"])
        }

    def _indirect_point_lookup(self, request: LogicalRequest) -> CatalogEntry:
        entries = self._load_entries(request.target)
        if request.entry_name not in entries:
            raise NotFoundError(
                f"Entry {request.entry_name} not found in {request.target.table_key}"
            )
        return entries[request.entry_name]

    def _indirect_list_by_names(self, request: LogicalRequest) -> List[CatalogEntry]:
        entries = self._load_entries(request.target)
        return [entries[name] for name in dict.fromkeys(request.names) if name in entries]

    def _indirect_list_by_filter(self, request: LogicalRequest) -> FilteredListing:
        entry_filter = request.entry_filter or EntryFilter()
        handle = self.resolve_target(request.target)
        matched = [
            entry
            for entry in self._load_entries(request.target).values()
            if entry_filter.matches(handle.partition_keys, entry.values)
        ]
        items, truncated = _cap(matched, entry_filter.max_entries)
        return FilteredListing(items=items, truncated=truncated)

    def _indirect_list_all(self, request: LogicalRequest) -> List[CatalogEntry]:
        items, _ = _cap(list(self._load_entries(request.target).values()), request.max_entries)
        return items

    def _indirect_stats_objs(self, key: str, request: LogicalRequest) -> List[ColumnStatisticsObj]:
        items = self._query_all(
            self.statistics,
            "load_statistics",
            {"stats_key": key},
            KeyConditionExpression=Key("stats_key").eq(key),
        )
        wanted = set(request.columns)
        objs = [
            ColumnStatisticsObj.from_item(item)
            for item in items
            if item["column_name"] in wanted and item.get("engine") == request.engine
        ]
        return sorted(objs, key=lambda obj: obj.column_name)

    def _indirect_statistics(self, request: LogicalRequest) -> Optional[ColumnStatistics]:
        target = request.target
        objs = self._indirect_stats_objs(stats_key(target), request)
        if not objs:
            return None
        return ColumnStatistics(
            desc=ColumnStatisticsDesc(
                is_table_level=True,
                catalog_name=target.catalog_name,
                database_name=target.database_name,
                table_name=target.table_name,
            ),
            stats_objs=objs,
            engine=request.engine,
        )

    def _indirect_entry_statistics(self, request: LogicalRequest) -> List[ColumnStatistics]:
        target = request.target
        results = []
        for name in dict.fromkeys(request.names):
            objs = self._indirect_stats_objs(stats_key(target, name), request)
            if not objs:
                continue
            results.append(
                ColumnStatistics(
                    desc=ColumnStatisticsDesc(
                        is_table_level=False,
                        catalog_name=target.catalog_name,
                        database_name=target.database_name,
                        table_name=target.table_name,
                        entry_name=name,
                    ),
                    stats_objs=objs,
                    engine=request.engine,
                )
            )
        return results

    # ------------------------------------------------------------------
    # Writes and transactions
    # ------------------------------------------------------------------

    def apply_alterations(
        self,
        target_handle: TargetHandle,
        names: List[str],
        new_entries: List[CatalogEntry],
        write_id: int,
        use_direct: bool,
        use_indirect: bool,
    ) -> List[CatalogEntry]:
        if use_direct == use_indirect:
            raise ValueError("Exactly one of use_direct/use_indirect must be set")
        if len(names) != len(new_entries):
            raise InvalidObjectError(
                f"Got {len(new_entries)} entries for {len(names)} entry names"
            )

        # entries are stored under the resolved target, whatever their own coordinates say
        coordinates = target_handle.coordinates
        applied = [
            replace(
                entry,
                catalog_name=coordinates.catalog_name,
                database_name=coordinates.database_name,
                table_name=coordinates.table_name,
            )
            for entry in new_entries
        ]
        for name, entry in zip(names, applied):
            if use_direct:
                item = _direct_item(entry, coordinates.table_key, name)
            else:
                item = entry.to_item(name)
            self._write(item, write_id)

        logger.info(
            "Alterations applied",
            operation="apply_alterations",
            context={
                "table_key": coordinates.table_key,
                "entries": len(names),
                "path": "direct" if use_direct else "indirect",
                "staged": self._depth > 0,
            },
        )
        return applied

    def _write(self, item: Dict[str, Any], write_id: int) -> None:
        if self._depth > 0:
            self._staged[(item["table_key"], item["entry_name"])] = (item, write_id)
            return

        kwargs: Dict[str, Any] = {"Item": item}
        if write_id > 0:
            kwargs["ConditionExpression"] = Attr("write_id").not_exists() | Attr("write_id").lte(
                write_id
            )
        self._call(
            "put_entry",
            {"table_key": item["table_key"], "entry_name": item["entry_name"]},
            self.entries.put_item,
            **kwargs,
        )

    def begin_transaction(self) -> None:
        self._depth += 1

    def commit_transaction(self) -> bool:
        """
        Close one transaction level; the outermost commit flushes staged writes.

        Returns:
            False if no transaction is open, True otherwise

        Raises:
            BackendOperationFailure: If the staged writes cannot be committed
        """
        if self._depth == 0:
            logger.warning("Commit without an open transaction", operation="commit")
            return False
        self._depth -= 1
        if self._depth > 0:
            return True

        staged, self._staged = list(self._staged.values()), {}
        if not staged:
            return True
        if len(staged) > TRANSACTION_ITEM_LIMIT:
            raise BackendOperationFailure(
                f"Transaction stages {len(staged)} writes, limit is {TRANSACTION_ITEM_LIMIT}"
            )

        transact_items = []
        for item, write_id in staged:
            put: Dict[str, Any] = {
                "TableName": self.entries.name,
                "Item": {k: self._serializer.serialize(v) for k, v in item.items()},
            }
            if write_id > 0:
                put["ConditionExpression"] = "attribute_not_exists(write_id) OR write_id <= :wid"
                put["ExpressionAttributeValues"] = {":wid": {"N": str(write_id)}}
            transact_items.append({"Put": put})

        self._call(
            "commit",
            {"writes": len(transact_items)},
            self.client.transact_write_items,
            TransactItems=transact_items,
        )
        logger.info("Transaction committed", operation="commit", context={"writes": len(staged)})
        return True

    def rollback_transaction(self) -> None:
        if self._staged:
            logger.info(
                "Discarding staged writes",
                operation="rollback",
                context={"writes": len(self._staged)},
            )
        self._staged = {}
        self._depth = 0
