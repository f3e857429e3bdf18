from __future__ import annotations

import time
from typing import Any

import identity_provider
from api_events import emit_wide_event
from api_events import error
from api_events import method as event_method
from api_events import now_iso
from api_events import parse_body
from api_events import request_id as event_request_id
from api_events import resource as event_resource
from api_events import response
from task_settings import SCHEMA_VERSION
from task_settings import ConfigurationError


def _credentials_or_error(
    event: dict[str, Any], request_id: str
) -> tuple[dict[str, str] | None, dict[str, Any] | None]:
    body, err = parse_body(event)
    if err:
        return None, error(400, "INVALID_BODY", err, request_id)
    assert body is not None

    creds: dict[str, str] = {}
    for name in ("username", "password", "email"):
        val = body.get(name)
        if val is not None and not isinstance(val, str):
            return None, error(400, "INVALID_BODY", f"{name} must be a string", request_id)
        creds[name] = (val or "").strip() if name != "password" else (val or "")
    if not creds["username"]:
        return None, error(400, "INVALID_BODY", "username is required", request_id)
    if not creds["password"]:
        return None, error(400, "INVALID_BODY", "password is required", request_id)
    return creds, None


def _register(event: dict[str, Any], request_id: str, wide_event: dict[str, Any]) -> dict[str, Any]:
    creds, creds_err = _credentials_or_error(event, request_id)
    if creds_err:
        return creds_err
    assert creds is not None
    wide_event["username"] = creds["username"]

    try:
        result = identity_provider.register_user(creds["username"], creds["password"], creds["email"])
    except identity_provider.IdentityProviderError as e:
        wide_event["error"] = {"type": type(e).__name__, "message": str(e)}
        return error(400, "SIGNUP_FAILED", "Signup failed", request_id, detail=str(e))
    wide_event["user_sub"] = str(result.get("UserSub") or "")
    return response(200, {"message": "Signup successful", "data": result}, request_id)


def _login(event: dict[str, Any], request_id: str, wide_event: dict[str, Any]) -> dict[str, Any]:
    creds, creds_err = _credentials_or_error(event, request_id)
    if creds_err:
        return creds_err
    assert creds is not None
    wide_event["username"] = creds["username"]

    try:
        result = identity_provider.login_user(creds["username"], creds["password"])
    except identity_provider.IdentityProviderError as e:
        wide_event["error"] = {"type": type(e).__name__, "message": str(e)}
        return error(400, "LOGIN_FAILED", "Login failed", request_id, detail=str(e))
    return response(200, {"message": "Login successful", "data": result}, request_id)


def handler(event: dict[str, Any], _context: Any) -> dict[str, Any]:
    start = time.time()
    request_id = event_request_id(event)
    method = event_method(event)
    segments = [s for s in event_resource(event).split("/") if s]
    action = segments[-1] if segments else ""

    wide_event: dict[str, Any] = {
        "event": "task_api_auth",
        "schema_version": SCHEMA_VERSION,
        "request_id": request_id,
        "ts": now_iso(),
        "route": f"{method} /{action}",
    }

    out: dict[str, Any] = {}
    try:
        if method == "POST" and action == "register":
            out = _register(event, request_id, wide_event)
        elif method == "POST" and action == "login":
            out = _login(event, request_id, wide_event)
        else:
            out = error(404, "NOT_FOUND", f"route not found: {method} {event_resource(event)}", request_id)
        wide_event["outcome"] = "success" if out["statusCode"] < 400 else "rejected"
        return out
    except ConfigurationError as exc:
        wide_event["outcome"] = "misconfigured"
        wide_event["error"] = {"type": type(exc).__name__, "message": str(exc)}
        out = error(500, "MISCONFIGURED", "Server misconfigured", request_id, detail=str(exc))
        return out
    except Exception as exc:
        wide_event["outcome"] = "error"
        wide_event["error"] = {"type": type(exc).__name__, "message": str(exc)}
        out = error(500, "INTERNAL_ERROR", "Internal Server Error", request_id, detail=str(exc))
        return out
    finally:
        # Never log passwords or tokens.
        wide_event["status_code"] = int(out.get("statusCode") or 500)
        wide_event["duration_ms"] = int((time.time() - start) * 1000)
        emit_wide_event(wide_event)
