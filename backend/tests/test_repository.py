from unittest.mock import MagicMock

import pytest
from botocore.exceptions import EndpointConnectionError

from common.codec import encode_task
from common.errors import CodecError, StoreError
from common.models import NewTask, TaskStatus
from common.repository import TaskRepository, table_definition
from fakes import FakeDynamoClient, client_error, make_task


def _new_task(text="buy milk", owner_id="12345"):
    return NewTask(
        owner_id=owner_id,
        source_message_id="7",
        created_at="1700000000",
        text=text,
        chat_id="12345",
    )


def test_create_assigns_fresh_id_and_pending_status():
    client = FakeDynamoClient()
    repo = TaskRepository(client, "tasks")

    first = repo.create(_new_task())
    second = repo.create(_new_task())

    assert first.task_id and second.task_id and first.task_id != second.task_id
    assert first.status == TaskStatus.pending
    op, kwargs = client.calls[0]
    assert op == "put_item"
    assert kwargs["TableName"] == "tasks"
    assert kwargs["Item"] == encode_task(first)


def test_list_pending_returns_only_pending_tasks():
    client = FakeDynamoClient()
    repo = TaskRepository(client, "tasks")
    created = repo.create(_new_task("write report"))
    done = make_task(task_id="old", status=TaskStatus.done)
    client.items[(done.owner_id, done.task_id)] = encode_task(done)

    tasks = repo.list_pending()

    assert [t.task_id for t in tasks] == [created.task_id]
    op, kwargs = client.calls[-1]
    assert op == "scan"
    assert kwargs["FilterExpression"] == "#st = :pending"
    assert kwargs["ExpressionAttributeNames"] == {"#st": "status"}


def test_list_pending_scopes_scan_to_owner():
    client = FakeDynamoClient()
    repo = TaskRepository(client, "tasks")
    mine = repo.create(_new_task(owner_id="12345"))
    repo.create(_new_task(owner_id="999"))

    tasks = repo.list_pending(owner_id="12345")

    assert [t.task_id for t in tasks] == [mine.task_id]
    assert client.calls[-1][1]["FilterExpression"] == "#st = :pending AND owner_id = :owner"


def test_list_pending_queries_status_index_when_configured():
    client = FakeDynamoClient()
    repo = TaskRepository(client, "tasks", status_index="owner-status-index")
    repo.create(_new_task())

    tasks = repo.list_pending(owner_id="12345")

    assert len(tasks) == 1
    op, kwargs = client.calls[-1]
    assert op == "query"
    assert kwargs["IndexName"] == "owner-status-index"
    assert kwargs["KeyConditionExpression"] == "owner_id = :owner AND #st = :pending"
    assert "FilterExpression" not in kwargs


def test_list_pending_follows_pagination():
    client = FakeDynamoClient(page_size=2)
    repo = TaskRepository(client, "tasks")
    for i in range(5):
        repo.create(_new_task(f"task {i}"))

    tasks = repo.list_pending()

    assert sorted(t.text for t in tasks) == [f"task {i}" for i in range(5)]
    scans = [kwargs for op, kwargs in client.calls if op == "scan"]
    assert len(scans) == 3
    assert "ExclusiveStartKey" not in scans[0]
    assert scans[1]["ExclusiveStartKey"] == {"offset": {"N": "2"}}


def test_created_then_deleted_task_is_not_listed():
    repo = TaskRepository(FakeDynamoClient(), "tasks")
    keep = repo.create(_new_task("keep"))
    drop = repo.create(_new_task("drop"))

    repo.delete(drop.owner_id, drop.task_id)

    assert [t.task_id for t in repo.list_pending()] == [keep.task_id]


def test_delete_missing_key_is_not_an_error():
    client = FakeDynamoClient()
    repo = TaskRepository(client, "tasks")

    repo.delete("12345", "task-42")

    op, kwargs = client.calls[0]
    assert op == "delete_item"
    assert kwargs["Key"] == {"owner_id": {"S": "12345"}, "task_id": {"S": "task-42"}}
    assert "ConditionExpression" not in kwargs


def test_store_failures_surface_as_store_error():
    client = FakeDynamoClient()
    repo = TaskRepository(client, "tasks")

    client.fail_with = client_error("ProvisionedThroughputExceededException", "PutItem")
    with pytest.raises(StoreError):
        repo.create(_new_task())

    client.fail_with = EndpointConnectionError(endpoint_url="http://localhost:8000")
    with pytest.raises(StoreError):
        repo.list_pending()
    with pytest.raises(StoreError):
        repo.delete("12345", "task-1")
    with pytest.raises(StoreError):
        repo.ping()


def test_malformed_items_fail_the_listing():
    client = FakeDynamoClient()
    bad = encode_task(make_task())
    bad["chat_id"] = {"N": "12345"}
    client.items[("12345", "task-1")] = bad

    with pytest.raises(CodecError):
        TaskRepository(client, "tasks").list_pending()


def test_malformed_response_is_a_store_error():
    client = MagicMock()
    client.scan.return_value = {"Items": None}

    with pytest.raises(StoreError, match="Malformed response"):
        TaskRepository(client, "tasks").list_pending()


def test_table_definition_uses_string_composite_key():
    plain = table_definition("tasks")
    assert plain["KeySchema"] == [
        {"AttributeName": "owner_id", "KeyType": "HASH"},
        {"AttributeName": "task_id", "KeyType": "RANGE"},
    ]
    assert {d["AttributeType"] for d in plain["AttributeDefinitions"]} == {"S"}
    assert "GlobalSecondaryIndexes" not in plain

    indexed = table_definition("tasks", "owner-status-index")
    gsi = indexed["GlobalSecondaryIndexes"][0]
    assert gsi["IndexName"] == "owner-status-index"
    assert gsi["KeySchema"][1] == {"AttributeName": "status", "KeyType": "RANGE"}
