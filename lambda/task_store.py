from __future__ import annotations

import uuid
from typing import Any

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from api_events import now_iso
from task_settings import aws_region
from task_settings import tasks_table_name

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"
VALID_STATUSES = {STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED}

USER_ID_INDEX = "userId-index"
UPDATABLE_FIELDS = ("title", "description", "status")

_ddb_resource: Any | None = None


class TaskNotFoundError(LookupError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"task not found: {task_id}")
        self.task_id = task_id


def _ddb() -> Any:
    global _ddb_resource
    if _ddb_resource is None:
        _ddb_resource = boto3.resource("dynamodb", region_name=aws_region())
    return _ddb_resource


def _tasks_table() -> Any:
    name = tasks_table_name()
    return _ddb().Table(name)


def _is_conditional_check_failure(e: ClientError) -> bool:
    code = str(e.response.get("Error", {}).get("Code") or "")
    return code == "ConditionalCheckFailedException"


def _key(task_id: str, owner_id: str) -> dict[str, str]:
    return {"taskId": task_id, "userId": owner_id}


def new_task_id() -> str:
    return str(uuid.uuid4())


def task_to_json(item: dict[str, Any]) -> dict[str, Any]:
    return {
        "taskId": str(item.get("taskId") or ""),
        "userId": str(item.get("userId") or ""),
        "title": str(item.get("title") or ""),
        "description": str(item.get("description") or ""),
        "status": str(item.get("status") or STATUS_PENDING),
        "createdAt": str(item.get("createdAt") or ""),
        "updatedAt": str(item.get("updatedAt") or ""),
    }


def create_task(
    *,
    owner_id: str,
    title: str,
    description: str = "",
    status: str = STATUS_PENDING,
) -> dict[str, Any]:
    if not owner_id:
        raise ValueError("owner_id is required")
    if not title:
        raise ValueError("title is required")

    now = now_iso()
    item = {
        "taskId": new_task_id(),
        "userId": owner_id,
        "title": title,
        "description": description or "",
        "status": status or STATUS_PENDING,
        "createdAt": now,
        "updatedAt": now,
    }
    _tasks_table().put_item(
        Item=item,
        ConditionExpression="attribute_not_exists(taskId)",
    )
    return task_to_json(item)


def list_tasks(owner_id: str) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    start_key: dict[str, Any] | None = None
    while True:
        kwargs: dict[str, Any] = {
            "IndexName": USER_ID_INDEX,
            "KeyConditionExpression": Key("userId").eq(owner_id),
        }
        if start_key:
            kwargs["ExclusiveStartKey"] = start_key
        page = _tasks_table().query(**kwargs)
        for item in page.get("Items", []) or []:
            if not isinstance(item, dict):
                continue
            # GSI reads are eventually consistent; keep the owner scope strict anyway.
            if str(item.get("userId") or "") != owner_id:
                continue
            out.append(task_to_json(item))
        start_key = page.get("LastEvaluatedKey")
        if not start_key:
            return out


def get_task(task_id: str, owner_id: str) -> dict[str, Any] | None:
    """Return the task addressed by ``(task_id, owner_id)`` or ``None``.

    A task owned by someone else is reported exactly like a missing one.
    """
    if not task_id or not owner_id:
        return None
    got = _tasks_table().get_item(Key=_key(task_id, owner_id), ConsistentRead=True)
    item = got.get("Item") if isinstance(got, dict) else None
    if not item:
        return None
    return task_to_json(item)


def _changed_fields(changes: dict[str, Any]) -> dict[str, Any]:
    # Falsy values (including "") count as absent.
    return {field: changes[field] for field in UPDATABLE_FIELDS if changes.get(field)}


def update_task(task_id: str, owner_id: str, changes: dict[str, Any]) -> dict[str, Any]:
    """Overwrite the supplied fields of a task and refresh ``updatedAt``.

    Only ``title``, ``description`` and ``status`` are considered; anything
    else in ``changes`` is ignored. Raises ``TaskNotFoundError`` when the
    ``(task_id, owner_id)`` key does not exist, so an update racing a delete
    never recreates the record.
    """
    fields = _changed_fields(changes)
    fields["updatedAt"] = now_iso()

    assignments: list[str] = []
    expr_names: dict[str, str] = {}
    expr_values: dict[str, Any] = {}
    for name, value in fields.items():
        assignments.append(f"#{name} = :{name}")
        expr_names[f"#{name}"] = name
        expr_values[f":{name}"] = value

    try:
        out = _tasks_table().update_item(
            Key=_key(task_id, owner_id),
            UpdateExpression="SET " + ", ".join(assignments),
            ConditionExpression="attribute_exists(taskId)",
            ExpressionAttributeNames=expr_names,
            ExpressionAttributeValues=expr_values,
            ReturnValues="ALL_NEW",
        )
    except ClientError as e:
        if _is_conditional_check_failure(e):
            raise TaskNotFoundError(task_id) from e
        raise
    return task_to_json(out.get("Attributes") or {})


def delete_task(task_id: str, owner_id: str) -> None:
    try:
        _tasks_table().delete_item(
            Key=_key(task_id, owner_id),
            ConditionExpression="attribute_exists(taskId)",
        )
    except ClientError as e:
        if _is_conditional_check_failure(e):
            raise TaskNotFoundError(task_id) from e
        raise
