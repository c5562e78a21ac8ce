"""DynamoDB backends implementing IPhotoStore and IEventLog."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import boto3
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from photoflow.core.exceptions import StoreUnavailable
from photoflow.models.photo import Photo, PhotoEvent, PhotoStatus, format_timestamp

PHOTOS_TABLE = "photoflow-photos"
EVENTS_TABLE = "photoflow-photo-events"

_KEY_ATTRIBUTES = ("PK", "SK", "GSI1PK", "GSI1SK", "GSI2PK", "GSI2SK")


def _gsi(name: str) -> dict[str, Any]:
    return {
        "IndexName": name,
        "KeySchema": [
            {"AttributeName": f"{name}PK", "KeyType": "HASH"},
            {"AttributeName": f"{name}SK", "KeyType": "RANGE"},
        ],
        "Projection": {"ProjectionType": "ALL"},
    }


TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {"name": PHOTOS_TABLE, "indexes": ["GSI1", "GSI2"]},
    {"name": EVENTS_TABLE, "indexes": ["GSI1"]},
]


def ensure_tables(ddb: Any, suffix: str = "") -> list[str]:
    """Create the photo and event tables. Skips tables that already exist.

    Returns:
        Names of the tables that were created.
    """
    client = ddb.meta.client
    existing = client.list_tables().get("TableNames", [])
    created: list[str] = []

    for defn in TABLE_DEFINITIONS:
        table_name = f"{defn['name']}{suffix}"
        if table_name in existing:
            continue
        attributes = ["PK", "SK"]
        for index in defn["indexes"]:
            attributes += [f"{index}PK", f"{index}SK"]
        client.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": name, "AttributeType": "S"} for name in attributes
            ],
            GlobalSecondaryIndexes=[_gsi(index) for index in defn["indexes"]],
            BillingMode="PAY_PER_REQUEST",
        )
        created.append(table_name)
    return created


def _strip_keys(item: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in item.items() if k not in _KEY_ATTRIBUTES}


_serializer = TypeSerializer()


def _serialize(item: dict[str, Any]) -> dict[str, Any]:
    """Plain values to the low-level attribute-value form the client API takes."""
    return {k: _serializer.serialize(v) for k, v in item.items()}


def _event_to_item(event: PhotoEvent) -> dict[str, Any]:
    created = format_timestamp(event.created_at)
    item = event.model_dump(mode="json", by_alias=True, exclude_none=True)
    item["createdAt"] = created
    item.update({
        "PK": f"PHOTO#{event.photo_id}",
        "SK": f"EVENT#{event.sequence:02d}#{event.id}",
        "GSI1PK": "EVENTS",
        "GSI1SK": f"{created}#{event.id}",
    })
    return item


class _DynamoDBTable:
    """Shared resource wiring and paged index queries."""

    TABLE = ""

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)
        self._table = self._ddb.Table(f"{self.TABLE}{table_suffix}")

    def _query(self, *, newest_first: bool, stop_after: int | None = None,
               **kwargs: Any) -> list[dict[str, Any]]:
        """Follow LastEvaluatedKey until exhausted or ``stop_after`` items."""
        items: list[dict[str, Any]] = []
        kwargs["ScanIndexForward"] = not newest_first
        while True:
            resp = self._table.query(**kwargs)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if last_key is None or (stop_after is not None and len(items) >= stop_after):
                return items
            kwargs["ExclusiveStartKey"] = last_key

    def _count(self, **kwargs: Any) -> int:
        total = 0
        kwargs["Select"] = "COUNT"
        while True:
            resp = self._table.query(**kwargs)
            total += resp.get("Count", 0)
            last_key = resp.get("LastEvaluatedKey")
            if last_key is None:
                return total
            kwargs["ExclusiveStartKey"] = last_key

    def _page(self, index: str, pk: str, offset: int, limit: int) -> tuple[list[dict[str, Any]], int]:
        condition = {
            "IndexName": index,
            "KeyConditionExpression": f"{index}PK = :pk",
            "ExpressionAttributeValues": {":pk": pk},
        }
        items = self._query(newest_first=True, stop_after=offset + limit, **condition)
        return items[offset:offset + limit], self._count(**condition)

    def ping(self) -> bool:
        try:
            self._table.load()
            return True
        except (BotoCoreError, ClientError):
            return False


class DynamoDBPhotoStore(_DynamoDBTable):
    """Production IPhotoStore.

    Record writes go through ``transact_write_items`` together with the
    event item, so the events table never misses a status change and never
    records one that did not happen.
    """

    TABLE = PHOTOS_TABLE

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        super().__init__(table_suffix, region, endpoint_url)
        self._client = self._ddb.meta.client
        self._events_table = f"{EVENTS_TABLE}{table_suffix}"

    @staticmethod
    def _to_item(photo: Photo) -> dict[str, Any]:
        sort_key = f"{format_timestamp(photo.created_at)}#{photo.id}"
        item = photo.model_dump(mode="json", by_alias=True, exclude_none=True)
        item["createdAt"] = format_timestamp(photo.created_at)
        item["updatedAt"] = format_timestamp(photo.updated_at)
        if photo.processed_at is not None:
            item["processedAt"] = format_timestamp(photo.processed_at)
        item.update({
            "PK": f"PHOTO#{photo.id}",
            "SK": "PHOTO",
            "GSI1PK": f"STATUS#{photo.status}",
            "GSI1SK": sort_key,
            "GSI2PK": "PHOTOS",
            "GSI2SK": sort_key,
        })
        return item

    @staticmethod
    def _from_item(item: dict[str, Any]) -> Photo:
        return Photo.model_validate(_strip_keys(item))

    def _put_event(self, event: PhotoEvent) -> dict[str, Any]:
        return {"Put": {"TableName": self._events_table, "Item": _serialize(_event_to_item(event))}}

    def create(self, photo: Photo, event: PhotoEvent) -> None:
        try:
            self._client.transact_write_items(TransactItems=[
                {
                    "Put": {
                        "TableName": self._table.name,
                        "Item": _serialize(self._to_item(photo)),
                        "ConditionExpression": "attribute_not_exists(PK)",
                    }
                },
                self._put_event(event),
            ])
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailable(f"DynamoDB put failed for photo {photo.id!r}: {exc}") from exc

    def get(self, photo_id: str) -> Photo | None:
        try:
            resp = self._table.get_item(
                Key={"PK": f"PHOTO#{photo_id}", "SK": "PHOTO"}, ConsistentRead=True
            )
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailable(f"DynamoDB get failed for photo {photo_id!r}: {exc}") from exc
        item = resp.get("Item")
        return self._from_item(item) if item else None

    def compare_and_set_status(
        self,
        photo_id: str,
        expected: PhotoStatus,
        status: PhotoStatus,
        updated_at: datetime,
        processed_at: datetime | None,
        event: PhotoEvent,
    ) -> Photo | None:
        current = self.get(photo_id)
        if current is None or current.status != expected:
            return None

        update = "SET #status = :status, updatedAt = :updated, GSI1PK = :gsi1pk"
        values: dict[str, Any] = {
            ":status": str(status),
            ":expected": str(expected),
            ":updated": format_timestamp(updated_at),
            ":gsi1pk": f"STATUS#{status}",
        }
        if processed_at is None:
            update += " REMOVE processedAt"
        else:
            update += ", processedAt = :processed"
            values[":processed"] = format_timestamp(processed_at)
        try:
            self._client.transact_write_items(TransactItems=[
                {
                    "Update": {
                        "TableName": self._table.name,
                        "Key": _serialize({"PK": f"PHOTO#{photo_id}", "SK": "PHOTO"}),
                        "UpdateExpression": update,
                        "ConditionExpression": "attribute_exists(PK) AND #status = :expected",
                        "ExpressionAttributeNames": {"#status": "status"},
                        "ExpressionAttributeValues": _serialize(values),
                    }
                },
                self._put_event(event),
            ])
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "TransactionCanceledException":
                # Lost the race if the record moved on; anything else is an outage.
                latest = self.get(photo_id)
                if latest is None or latest.status != expected:
                    return None
            raise StoreUnavailable(f"DynamoDB update failed for photo {photo_id!r}: {exc}") from exc
        except BotoCoreError as exc:
            raise StoreUnavailable(f"DynamoDB update failed for photo {photo_id!r}: {exc}") from exc
        return current.model_copy(
            update={"status": status, "updated_at": updated_at, "processed_at": processed_at}
        )

    def list_by_status(
        self, status: PhotoStatus | None, offset: int, limit: int
    ) -> tuple[list[Photo], int]:
        if status is None:
            index, pk = "GSI2", "PHOTOS"
        else:
            index, pk = "GSI1", f"STATUS#{status}"
        try:
            items, total = self._page(index, pk, offset, limit)
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailable(f"DynamoDB list failed for status={status!r}: {exc}") from exc
        return [self._from_item(item) for item in items], total


class DynamoDBEventLog(_DynamoDBTable):
    """Production IEventLog. Items are only ever put, never updated."""

    TABLE = EVENTS_TABLE

    @staticmethod
    def _from_item(item: dict[str, Any]) -> PhotoEvent:
        item = _strip_keys(item)
        item["sequence"] = int(item.get("sequence", 0))
        return PhotoEvent.model_validate(item)

    def append(self, event: PhotoEvent) -> None:
        try:
            self._table.put_item(Item=_event_to_item(event))
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailable(f"DynamoDB event append failed for photo {event.photo_id!r}: {exc}") from exc

    def for_photo(self, photo_id: str) -> list[PhotoEvent]:
        try:
            items = self._query(
                newest_first=False,
                KeyConditionExpression="PK = :pk AND begins_with(SK, :prefix)",
                ExpressionAttributeValues={":pk": f"PHOTO#{photo_id}", ":prefix": "EVENT#"},
            )
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailable(f"DynamoDB event query failed for photo {photo_id!r}: {exc}") from exc
        return [self._from_item(item) for item in items]

    def recent(self, offset: int, limit: int) -> tuple[list[PhotoEvent], int]:
        try:
            items, total = self._page("GSI1", "EVENTS", offset, limit)
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailable(f"DynamoDB recent events query failed: {exc}") from exc
        return [self._from_item(item) for item in items], total
