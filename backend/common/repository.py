import logging
import uuid
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from common.codec import decode_task, encode_task, string_attr
from common.config import Settings
from common.errors import StoreError
from common.models import NewTask, Task, TaskStatus

logger = logging.getLogger(__name__)


def build_dynamodb_client(settings: Settings):
    return boto3.client(
        "dynamodb",
        region_name=settings.AWS_REGION,
        endpoint_url=settings.DYNAMODB_ENDPOINT_URL,
        config=Config(
            retries={"max_attempts": settings.DYNAMODB_MAX_ATTEMPTS, "mode": "standard"},
            connect_timeout=settings.DYNAMODB_TIMEOUT_SECONDS,
            read_timeout=settings.DYNAMODB_TIMEOUT_SECONDS,
        ),
    )


def table_definition(table_name: str, status_index: Optional[str] = None) -> Dict[str, Any]:
    """CreateTable arguments for the tasks table.

    Items are keyed by ``(owner_id, task_id)``. When ``status_index`` is set a
    global secondary index on ``(owner_id, status)`` lets pending tasks be
    queried per owner instead of scanned.
    """
    definition: Dict[str, Any] = {
        "TableName": table_name,
        "KeySchema": [
            {"AttributeName": "owner_id", "KeyType": "HASH"},
            {"AttributeName": "task_id", "KeyType": "RANGE"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "owner_id", "AttributeType": "S"},
            {"AttributeName": "task_id", "AttributeType": "S"},
        ],
        "BillingMode": "PAY_PER_REQUEST",
    }
    if status_index:
        definition["AttributeDefinitions"].append({"AttributeName": "status", "AttributeType": "S"})
        definition["GlobalSecondaryIndexes"] = [
            {
                "IndexName": status_index,
                "KeySchema": [
                    {"AttributeName": "owner_id", "KeyType": "HASH"},
                    {"AttributeName": "status", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            }
        ]
    return definition


class TaskRepository:
    def __init__(self, client, table_name: str, status_index: Optional[str] = None):
        self.client = client
        self.table_name = table_name
        self.status_index = status_index

    def _key(self, owner_id: str, task_id: str) -> Dict[str, Dict[str, str]]:
        return {"owner_id": string_attr(owner_id), "task_id": string_attr(task_id)}

    def create(self, new_task: NewTask) -> Task:
        """Stores a new pending task under a freshly generated id."""
        task = Task(**new_task.model_dump(), task_id=str(uuid.uuid4()), status=TaskStatus.pending)
        try:
            self.client.put_item(TableName=self.table_name, Item=encode_task(task))
        except (BotoCoreError, ClientError) as exc:
            logger.error("Failed to put task %s for owner %s: %s", task.task_id, task.owner_id, exc)
            raise StoreError(f"Could not store task: {exc}") from exc
        return task

    def list_pending(self, owner_id: Optional[str] = None) -> List[Task]:
        """Returns pending tasks, scoped to ``owner_id`` when given.

        Order is whatever the store returns and is not stable across calls.
        """
        kwargs: Dict[str, Any] = {
            "TableName": self.table_name,
            "ExpressionAttributeNames": {"#st": "status"},
            "ExpressionAttributeValues": {":pending": string_attr(TaskStatus.pending.value)},
        }
        if owner_id is not None and self.status_index:
            kwargs["IndexName"] = self.status_index
            kwargs["KeyConditionExpression"] = "owner_id = :owner AND #st = :pending"
            kwargs["ExpressionAttributeValues"][":owner"] = string_attr(owner_id)
            operation = self.client.query
        else:
            filter_parts = ["#st = :pending"]
            if owner_id is not None:
                filter_parts.append("owner_id = :owner")
                kwargs["ExpressionAttributeValues"][":owner"] = string_attr(owner_id)
            kwargs["FilterExpression"] = " AND ".join(filter_parts)
            operation = self.client.scan

        items: List[Dict[str, Any]] = []
        try:
            while True:
                resp = operation(**kwargs)
                page = resp.get("Items")
                if not isinstance(page, list):
                    raise StoreError("Malformed response: Items is not a list")
                items.extend(page)
                last_key = resp.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        except (BotoCoreError, ClientError) as exc:
            logger.error("Failed to list pending tasks (owner=%s): %s", owner_id, exc)
            raise StoreError(f"Could not list tasks: {exc}") from exc

        return [decode_task(item) for item in items]

    def delete(self, owner_id: str, task_id: str) -> None:
        # No condition expression: deleting a missing key is a successful no-op.
        try:
            self.client.delete_item(TableName=self.table_name, Key=self._key(owner_id, task_id))
        except (BotoCoreError, ClientError) as exc:
            logger.error("Failed to delete task %s for owner %s: %s", task_id, owner_id, exc)
            raise StoreError(f"Could not delete task: {exc}") from exc

    def ping(self) -> None:
        try:
            self.client.describe_table(TableName=self.table_name)
        except (BotoCoreError, ClientError) as exc:
            raise StoreError(f"Table {self.table_name} is not reachable: {exc}") from exc
