"""
Store capability consumed by the room service, and its DynamoDB implementation.

The service only needs item-level put/get/update/delete, paged partition
queries, paged filtered scans and bounded batch writes. ``Store`` spells that
contract out; ``DynamoStore`` fulfils it with boto3 and translates botocore
failures into :mod:`app.exceptions`.
"""
import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from app import config as app_config
from app.exceptions import ConditionFailedError, StoreUnavailableError
from app.storage.keys import PARTITION_KEY, ItemKey, encode_key, item_key

logger = logging.getLogger(__name__)

# DynamoDB rejects BatchWriteItem calls with more than 25 requests.
MAX_BATCH_SIZE = 25

TRANSIENT_ERROR_CODES = {
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "RequestLimitExceeded",
    "InternalServerError",
    "ServiceUnavailable",
    "TransactionConflictException",
}

ContinuationToken = Dict[str, Any]


@dataclass
class Page:
    items: List[Dict[str, Any]]
    next_token: Optional[ContinuationToken] = None


@dataclass(frozen=True)
class AttributeFilter:
    """Server-side scan predicate: ``name <op> value`` with op ``eq`` or ``lt``."""

    name: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in ("eq", "lt"):
            raise ValueError(f"Unsupported filter operator: {self.op}")

    def matches(self, item: Dict[str, Any]) -> bool:
        if self.name not in item:
            return False
        if self.op == "eq":
            return item[self.name] == self.value
        return item[self.name] < self.value


@dataclass
class PutRequest:
    item: Dict[str, Any]


@dataclass
class DeleteRequest:
    key: ItemKey


WriteRequest = Union[PutRequest, DeleteRequest]


class Store(ABC):
    """Abstract async store. One instance is shared by all operations of a service."""

    @abstractmethod
    async def put(self, key: ItemKey, attributes: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def get(self, key: ItemKey) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def delete(self, key: ItemKey) -> None:
        ...

    @abstractmethod
    async def update(
        self,
        key: ItemKey,
        changes: Dict[str, Any],
        require_exists: bool = False,
    ) -> Dict[str, Any]:
        """
        Set the given attributes and return the item as stored afterwards.

        Raises:
            ConditionFailedError: if ``require_exists`` and the item is absent
        """

    @abstractmethod
    async def query_page(
        self,
        partition_key: str,
        start_token: Optional[ContinuationToken] = None,
        limit: Optional[int] = None,
    ) -> Page:
        ...

    @abstractmethod
    async def scan_page(
        self,
        filters: Sequence[AttributeFilter],
        projection: Optional[Sequence[str]] = None,
        start_token: Optional[ContinuationToken] = None,
        limit: Optional[int] = None,
    ) -> Page:
        ...

    @abstractmethod
    async def batch_write(self, requests: Sequence[WriteRequest]) -> List[WriteRequest]:
        """
        Apply up to :data:`MAX_BATCH_SIZE` puts/deletes in one call.

        Returns the requests the store left unprocessed (empty on full success).
        """


def create_dynamodb_resource():
    """Build a boto3 DynamoDB resource from app config, pointing at LocalStack when configured."""
    kwargs = {
        "region_name": getattr(app_config, "AWS_DEFAULT_REGION", None),
    }
    if getattr(app_config, "AWS_ACCESS_KEY_ID", None):
        kwargs["aws_access_key_id"] = app_config.AWS_ACCESS_KEY_ID
        kwargs["aws_secret_access_key"] = app_config.AWS_SECRET_ACCESS_KEY
    localstack_host = getattr(app_config, "LOCALSTACK_HOSTNAME", None)
    if localstack_host:
        kwargs["endpoint_url"] = f"http://{localstack_host}:4566"
        logger.info(f"Using LocalStack DynamoDB endpoint: {kwargs['endpoint_url']}")
    return boto3.resource("dynamodb", **kwargs)


def translate_error(operation: str, error: Exception) -> Exception:
    """Map a botocore failure onto the poker error taxonomy."""
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "Unknown")
        if code == "ConditionalCheckFailedException":
            return ConditionFailedError(f"{operation}: condition check failed")
        translated = StoreUnavailableError(f"{operation} failed with {code}")
        translated.code = code
        translated.retryable = code in TRANSIENT_ERROR_CODES
        return translated
    if isinstance(error, BotoCoreError):
        translated = StoreUnavailableError(f"{operation} failed: {error}")
        translated.code = type(error).__name__
        return translated
    return error


class DynamoStore(Store):
    """
    ``Store`` backed by one DynamoDB table with a ``PK``/``SK`` composite key.

    boto3 is synchronous, so every call runs in the loop's default executor.
    """

    def __init__(self, table_name: Optional[str] = None, dynamodb=None):
        self.table_name = table_name or app_config.DYNAMODB_TABLE_NAME
        self.dynamodb = dynamodb if dynamodb is not None else create_dynamodb_resource()
        self.table = self.dynamodb.Table(self.table_name)
        logger.info(f"DynamoStore initialized for table: {self.table_name}")

    async def _call(self, operation: str, fn, **kwargs):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(fn, **kwargs))
        except (ClientError, BotoCoreError) as e:
            translated = translate_error(operation, e)
            if isinstance(translated, StoreUnavailableError):
                logger.warning(f"DynamoDB {operation} failed on {self.table_name}: {e}")
            raise translated from e

    async def put(self, key: ItemKey, attributes: Dict[str, Any]) -> None:
        item = {**attributes, **encode_key(key)}
        await self._call("PutItem", self.table.put_item, Item=item)

    async def get(self, key: ItemKey) -> Optional[Dict[str, Any]]:
        response = await self._call("GetItem", self.table.get_item, Key=encode_key(key))
        return response.get("Item")

    async def delete(self, key: ItemKey) -> None:
        await self._call("DeleteItem", self.table.delete_item, Key=encode_key(key))

    async def update(
        self,
        key: ItemKey,
        changes: Dict[str, Any],
        require_exists: bool = False,
    ) -> Dict[str, Any]:
        if not changes:
            raise ValueError("update requires at least one attribute change")

        names = {}
        values = {}
        assignments = []
        for index, (name, value) in enumerate(changes.items()):
            names[f"#a{index}"] = name
            values[f":v{index}"] = value
            assignments.append(f"#a{index} = :v{index}")

        kwargs = {
            "Key": encode_key(key),
            "UpdateExpression": "SET " + ", ".join(assignments),
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": values,
            "ReturnValues": "ALL_NEW",
        }
        if require_exists:
            names["#pk"] = PARTITION_KEY
            kwargs["ConditionExpression"] = "attribute_exists(#pk)"

        response = await self._call("UpdateItem", self.table.update_item, **kwargs)
        return response.get("Attributes", {})

    async def query_page(
        self,
        partition_key: str,
        start_token: Optional[ContinuationToken] = None,
        limit: Optional[int] = None,
    ) -> Page:
        kwargs = {"KeyConditionExpression": Key(PARTITION_KEY).eq(partition_key)}
        if start_token:
            kwargs["ExclusiveStartKey"] = start_token
        if limit:
            kwargs["Limit"] = limit

        response = await self._call("Query", self.table.query, **kwargs)
        return Page(response.get("Items", []), response.get("LastEvaluatedKey"))

    async def scan_page(
        self,
        filters: Sequence[AttributeFilter],
        projection: Optional[Sequence[str]] = None,
        start_token: Optional[ContinuationToken] = None,
        limit: Optional[int] = None,
    ) -> Page:
        kwargs = {}
        filter_expr = None
        for attribute_filter in filters:
            condition = getattr(Attr(attribute_filter.name), attribute_filter.op)(attribute_filter.value)
            filter_expr = condition if filter_expr is None else filter_expr & condition
        if filter_expr is not None:
            kwargs["FilterExpression"] = filter_expr
        if projection:
            names = {f"#p{index}": name for index, name in enumerate(projection)}
            kwargs["ProjectionExpression"] = ", ".join(names)
            kwargs["ExpressionAttributeNames"] = names
        if start_token:
            kwargs["ExclusiveStartKey"] = start_token
        if limit:
            kwargs["Limit"] = limit

        response = await self._call("Scan", self.table.scan, **kwargs)
        return Page(response.get("Items", []), response.get("LastEvaluatedKey"))

    async def batch_write(self, requests: Sequence[WriteRequest]) -> List[WriteRequest]:
        if not requests:
            return []
        if len(requests) > MAX_BATCH_SIZE:
            raise ValueError(f"Batch of {len(requests)} exceeds the limit of {MAX_BATCH_SIZE}")

        request_items = []
        for request in requests:
            if isinstance(request, PutRequest):
                request_items.append({"PutRequest": {"Item": request.item}})
            else:
                request_items.append({"DeleteRequest": {"Key": encode_key(request.key)}})

        response = await self._call(
            "BatchWriteItem",
            self.dynamodb.batch_write_item,
            RequestItems={self.table_name: request_items},
        )

        unprocessed = []
        for entry in response.get("UnprocessedItems", {}).get(self.table_name, []):
            if "PutRequest" in entry:
                unprocessed.append(PutRequest(entry["PutRequest"]["Item"]))
            else:
                unprocessed.append(DeleteRequest(item_key(entry["DeleteRequest"]["Key"])))
        if unprocessed:
            logger.warning(f"BatchWriteItem left {len(unprocessed)} of {len(requests)} requests unprocessed")
        return unprocessed
