"""Caller identity extraction.

The front door (API Gateway + Cognito authorizer) has already verified the
token by the time a handler runs; this module only reads the claims it
attached. Two authorizer shapes are in use:

* REST API Cognito authorizer: ``requestContext.authorizer.claims``
* HTTP API JWT authorizer: ``requestContext.authorizer.jwt.claims``
"""

from __future__ import annotations

from typing import Any

from api_events import get_header


def authorizer_claims(event: dict[str, Any]) -> dict[str, Any]:
    rc = event.get("requestContext") or {}
    if not isinstance(rc, dict):
        return {}
    auth = rc.get("authorizer") or {}
    if not isinstance(auth, dict):
        return {}
    claims = auth.get("claims")
    if isinstance(claims, dict):
        return claims
    jwt = auth.get("jwt") or {}
    if not isinstance(jwt, dict):
        return {}
    jwt_claims = jwt.get("claims")
    if isinstance(jwt_claims, dict):
        return jwt_claims
    return {}


def caller_subject(event: dict[str, Any]) -> str | None:
    sub = str(authorizer_claims(event).get("sub") or "").strip()
    return sub or None


def caller_username(event: dict[str, Any]) -> str:
    c = authorizer_claims(event)
    return str(c.get("cognito:username") or c.get("username") or "").strip()


def bearer_token(event: dict[str, Any]) -> str:
    return get_header(event, "authorization").strip()
