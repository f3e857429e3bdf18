from __future__ import annotations

import base64
import json
import uuid
from datetime import datetime, timezone
from typing import Any

from task_settings import SCHEMA_VERSION


def now_iso() -> str:
    # Fixed-format UTC timestamp for lexicographic ordering.
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def response(status_code: int, body: dict[str, Any], request_id: str) -> dict[str, Any]:
    payload = dict(body)
    payload.setdefault("requestId", request_id)
    payload.setdefault("schemaVersion", SCHEMA_VERSION)
    return {
        "statusCode": int(status_code),
        "headers": {
            "content-type": "application/json",
            "cache-control": "no-store",
            # Preflight is answered by API Gateway; proxy responses still need the origin header.
            "access-control-allow-origin": "*",
        },
        "body": json.dumps(payload),
    }


def error(
    status_code: int,
    code: str,
    message: str,
    request_id: str,
    *,
    detail: str | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {"errorCode": code, "message": message}
    if detail is not None:
        body["error"] = detail
    return response(status_code, body, request_id)


def request_id(event: dict[str, Any]) -> str:
    rc = event.get("requestContext") or {}
    if isinstance(rc, dict):
        rid = str(rc.get("requestId") or "").strip()
        if rid:
            return rid
    return str(uuid.uuid4())


def get_header(event: dict[str, Any], name: str) -> str:
    headers = event.get("headers") or {}
    if not isinstance(headers, dict):
        return ""
    # API Gateway can canonicalize headers; treat them case-insensitively.
    for k, v in headers.items():
        if isinstance(k, str) and k.lower() == name.lower():
            return str(v) if v is not None else ""
    return ""


def path_param(event: dict[str, Any], key: str) -> str:
    params = event.get("pathParameters") or {}
    if not isinstance(params, dict):
        return ""
    val = params.get(key)
    return str(val).strip() if val is not None else ""


def method(event: dict[str, Any]) -> str:
    return str(event.get("httpMethod") or "").upper()


def resource(event: dict[str, Any]) -> str:
    """Return the API Gateway resource template, e.g. ``/tasks/{taskId}``.

    Falls back to the raw path when the event has no ``resource`` (direct
    invokes, custom-domain base paths).
    """
    res = str(event.get("resource") or "").strip()
    if res:
        return res
    return str(event.get("path") or "").strip()


def parse_body(event: dict[str, Any]) -> tuple[dict[str, Any] | None, str | None]:
    raw = event.get("body")
    if raw is None:
        return {}, None
    if not isinstance(raw, str):
        return None, "request body must be a JSON object"
    if bool(event.get("isBase64Encoded")):
        try:
            raw = base64.b64decode(raw.encode("utf-8")).decode("utf-8")
        except Exception:
            return None, "request body base64 decode failed"
    if not raw.strip():
        return {}, None
    try:
        parsed = json.loads(raw)
    except Exception:
        return None, "request body must be valid JSON"
    if not isinstance(parsed, dict):
        return None, "request body must be a JSON object"
    return parsed, None


def emit_wide_event(wide_event: dict[str, Any]) -> None:
    # One line per invocation; CloudWatch Logs picks up stdout.
    print(json.dumps(wide_event, separators=(",", ":"), sort_keys=True, default=str))
