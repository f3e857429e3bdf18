from __future__ import annotations

import time
from typing import Any

from botocore.exceptions import ClientError

import task_store
from api_events import emit_wide_event
from api_events import error
from api_events import method as event_method
from api_events import now_iso
from api_events import parse_body
from api_events import path_param
from api_events import request_id as event_request_id
from api_events import resource as event_resource
from api_events import response
from task_auth import bearer_token
from task_auth import caller_subject
from task_auth import caller_username
from task_settings import SCHEMA_VERSION
from task_settings import ConfigurationError


def _caller_or_error(event: dict[str, Any], request_id: str) -> tuple[str | None, dict[str, Any] | None]:
    if not bearer_token(event):
        return None, error(401, "MISSING_TOKEN", "Missing token", request_id)
    sub = caller_subject(event)
    if not sub:
        return None, error(401, "UNAUTHORIZED", "Unauthorized", request_id)
    return sub, None


def _text_field(body: dict[str, Any], name: str) -> tuple[str, str | None]:
    val = body.get(name)
    if val is None:
        return "", None
    if not isinstance(val, str):
        return "", f"{name} must be a string"
    return val, None


def _validated_fields(body: dict[str, Any]) -> tuple[dict[str, str], str | None, str]:
    """Pull title/description/status out of a request body.

    Returns ``(fields, None, "")`` or ``({}, code, message)`` for the first bad field.
    """
    fields: dict[str, str] = {}
    for name in task_store.UPDATABLE_FIELDS:
        val, err = _text_field(body, name)
        if err:
            return {}, "INVALID_BODY", err
        fields[name] = val.strip() if name == "title" else val
    status = fields.get("status") or ""
    if status and status not in task_store.VALID_STATUSES:
        return {}, "INVALID_STATUS", f"invalid status: {status}"
    return fields, None, ""


def _list_tasks(event: dict[str, Any], request_id: str, wide_event: dict[str, Any]) -> dict[str, Any]:
    owner_id, auth_err = _caller_or_error(event, request_id)
    if auth_err:
        return auth_err
    assert owner_id is not None
    wide_event["caller_sub"] = owner_id

    tasks = task_store.list_tasks(owner_id)
    wide_event["task_count"] = len(tasks)
    return response(200, {"tasks": tasks}, request_id)


def _create_task(event: dict[str, Any], request_id: str, wide_event: dict[str, Any]) -> dict[str, Any]:
    owner_id, auth_err = _caller_or_error(event, request_id)
    if auth_err:
        return auth_err
    assert owner_id is not None
    wide_event["caller_sub"] = owner_id

    body, err = parse_body(event)
    if err:
        return error(400, "INVALID_BODY", err, request_id)
    assert body is not None

    fields, code, message = _validated_fields(body)
    if code:
        return error(400, code, message, request_id)
    if not fields["title"]:
        return error(400, "INVALID_BODY", "Title is required.", request_id)

    task = task_store.create_task(
        owner_id=owner_id,
        title=fields["title"],
        description=fields["description"],
        status=fields["status"] or task_store.STATUS_PENDING,
    )
    wide_event["task_id"] = task["taskId"]
    return response(201, {"task": task}, request_id)


def _update_task(event: dict[str, Any], request_id: str, wide_event: dict[str, Any]) -> dict[str, Any]:
    owner_id, auth_err = _caller_or_error(event, request_id)
    if auth_err:
        return auth_err
    assert owner_id is not None
    wide_event["caller_sub"] = owner_id

    task_id = path_param(event, "taskId")
    if not task_id:
        return error(400, "INVALID_PATH", "Task ID is required.", request_id)
    wide_event["task_id"] = task_id

    if task_store.get_task(task_id, owner_id) is None:
        return error(404, "TASK_NOT_FOUND", "Task not found.", request_id)

    body, err = parse_body(event)
    if err:
        return error(400, "INVALID_BODY", err, request_id)
    assert body is not None

    fields, code, message = _validated_fields(body)
    if code:
        return error(400, code, message, request_id)

    try:
        task = task_store.update_task(task_id, owner_id, fields)
    except task_store.TaskNotFoundError:
        return error(404, "TASK_NOT_FOUND", "Task not found.", request_id)
    return response(200, {"task": task}, request_id)


def _delete_task(event: dict[str, Any], request_id: str, wide_event: dict[str, Any]) -> dict[str, Any]:
    owner_id, auth_err = _caller_or_error(event, request_id)
    if auth_err:
        return auth_err
    assert owner_id is not None
    wide_event["caller_sub"] = owner_id

    task_id = path_param(event, "taskId")
    if not task_id:
        return error(400, "INVALID_PATH", "Task ID is required.", request_id)
    wide_event["task_id"] = task_id

    if task_store.get_task(task_id, owner_id) is None:
        return error(404, "TASK_NOT_FOUND", "Task not found.", request_id)

    try:
        task_store.delete_task(task_id, owner_id)
    except task_store.TaskNotFoundError:
        return error(404, "TASK_NOT_FOUND", "Task not found.", request_id)
    return response(200, {"message": "Task deleted successfully."}, request_id)


def _route(event: dict[str, Any], request_id: str, wide_event: dict[str, Any]) -> dict[str, Any]:
    method = event_method(event)
    segments = [s for s in event_resource(event).split("/") if s]
    wide_event["route"] = f"{method} /{'/'.join(segments)}"
    username = caller_username(event)
    if username:
        wide_event["caller_username"] = username

    # /tasks
    if segments[-1:] == ["tasks"]:
        if method == "GET":
            return _list_tasks(event, request_id, wide_event)
        if method == "POST":
            return _create_task(event, request_id, wide_event)

    # /tasks/{taskId}; an id-less PUT/DELETE on /tasks is a bad request, not a missing route.
    if (segments[-1:] == ["tasks"] or segments[-2:-1] == ["tasks"]) and method in {"PUT", "DELETE"}:
        if method == "PUT":
            return _update_task(event, request_id, wide_event)
        return _delete_task(event, request_id, wide_event)

    return error(404, "NOT_FOUND", f"route not found: {method} {event_resource(event)}", request_id)


def handler(event: dict[str, Any], _context: Any) -> dict[str, Any]:
    start = time.time()
    request_id = event_request_id(event)
    wide_event: dict[str, Any] = {
        "event": "task_api_tasks",
        "schema_version": SCHEMA_VERSION,
        "request_id": request_id,
        "ts": now_iso(),
    }

    out: dict[str, Any] = {}
    try:
        out = _route(event, request_id, wide_event)
        wide_event["outcome"] = "success" if out["statusCode"] < 400 else "rejected"
        return out
    except ConfigurationError as exc:
        wide_event["outcome"] = "misconfigured"
        wide_event["error"] = {"type": type(exc).__name__, "message": str(exc)}
        out = error(500, "MISCONFIGURED", "Server misconfigured", request_id, detail=str(exc))
        return out
    except ClientError as exc:
        wide_event["outcome"] = "error"
        wide_event["error"] = {"type": type(exc).__name__, "message": str(exc)}
        out = error(500, "DDB_ERROR", "Internal Server Error", request_id, detail=str(exc))
        return out
    except Exception as exc:
        wide_event["outcome"] = "error"
        wide_event["error"] = {"type": type(exc).__name__, "message": str(exc)}
        out = error(500, "INTERNAL_ERROR", "Internal Server Error", request_id, detail=str(exc))
        return out
    finally:
        wide_event["status_code"] = int(out.get("statusCode") or 500)
        wide_event["duration_ms"] = int((time.time() - start) * 1000)
        emit_wide_event(wide_event)
