"""Mapping between ``Task`` records and DynamoDB typed attribute maps.

Every attribute is stored as a string (``{"S": ...}``), identifiers included,
so decoding never has to guess between numeric and string representations.
"""
from typing import Any, Dict

from common.errors import CodecError
from common.models import Task, TaskStatus

AttributeMap = Dict[str, Dict[str, Any]]

TASK_ATTRIBUTES = (
    "owner_id",
    "task_id",
    "source_message_id",
    "status",
    "created_at",
    "text",
    "chat_id",
)


def string_attr(value: Any) -> Dict[str, str]:
    return {"S": str(value)}


def encode_task(task: Task) -> AttributeMap:
    return {
        "owner_id": string_attr(task.owner_id),
        "task_id": string_attr(task.task_id),
        "source_message_id": string_attr(task.source_message_id),
        "status": string_attr(task.status.value),
        "created_at": string_attr(task.created_at),
        "text": string_attr(task.text),
        "chat_id": string_attr(task.chat_id),
    }


def _read_string(item: AttributeMap, key: str) -> str:
    attr = item.get(key)
    if attr is None:
        raise CodecError(f"Attribute {key!r} is missing")
    if not isinstance(attr, dict) or set(attr) != {"S"} or not isinstance(attr["S"], str):
        kinds = ",".join(sorted(attr)) if isinstance(attr, dict) else type(attr).__name__
        raise CodecError(f"Attribute {key!r} must be a string attribute, got {kinds}")
    return attr["S"]


def decode_task(item: AttributeMap) -> Task:
    if not isinstance(item, dict):
        raise CodecError(f"Item must be an attribute map, got {type(item).__name__}")
    values = {key: _read_string(item, key) for key in TASK_ATTRIBUTES}
    try:
        values["status"] = TaskStatus(values["status"])
    except ValueError:
        raise CodecError(f"Attribute 'status' has unknown value {values['status']!r}") from None
    try:
        return Task(**values)
    except ValueError as exc:
        raise CodecError(f"Item does not describe a valid task: {exc}") from exc
