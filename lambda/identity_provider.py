from __future__ import annotations

from typing import Any

import boto3
from botocore.exceptions import BotoCoreError
from botocore.exceptions import ClientError

from api_events import now_iso
from task_settings import aws_region
from task_settings import client_id
from task_settings import user_pool_id
from task_settings import users_table_name

_cognito_client: Any | None = None
_ddb_resource: Any | None = None


class IdentityProviderError(Exception):
    """A Cognito (or users-table) call failed; ``str(e)`` is the provider message."""


def _cognito() -> Any:
    global _cognito_client
    if _cognito_client is None:
        _cognito_client = boto3.client("cognito-idp", region_name=aws_region())
    return _cognito_client


def _ddb() -> Any:
    global _ddb_resource
    if _ddb_resource is None:
        _ddb_resource = boto3.resource("dynamodb", region_name=aws_region())
    return _ddb_resource


def _users_table() -> Any:
    name = users_table_name()
    return _ddb().Table(name)


def _provider_message(e: Exception) -> str:
    if isinstance(e, ClientError):
        err = e.response.get("Error", {})
        msg = str(err.get("Message") or "").strip()
        if msg:
            return msg
        code = str(err.get("Code") or "").strip()
        if code:
            return code
    return str(e) or type(e).__name__


def _without_metadata(resp: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in resp.items() if k != "ResponseMetadata"}


def register_user(username: str, password: str, email: str = "") -> dict[str, Any]:
    """Sign the user up, auto-confirm them, and record them in the users table."""
    pool_id = user_pool_id()
    app_client_id = client_id()
    users_table = _users_table()

    params: dict[str, Any] = {
        "ClientId": app_client_id,
        "Username": username,
        "Password": password,
    }
    if email:
        params["UserAttributes"] = [{"Name": "email", "Value": email}]

    try:
        resp = _cognito().sign_up(**params)
        _cognito().admin_confirm_sign_up(UserPoolId=pool_id, Username=username)
        users_table.put_item(
            Item={
                "userId": str(resp.get("UserSub") or ""),
                "username": username,
                "email": email or "",
                "createdAt": now_iso(),
            }
        )
    except (ClientError, BotoCoreError) as e:
        raise IdentityProviderError(_provider_message(e)) from e
    return _without_metadata(resp)


def login_user(username: str, password: str) -> dict[str, Any]:
    pool_id = user_pool_id()
    app_client_id = client_id()
    try:
        resp = _cognito().admin_initiate_auth(
            UserPoolId=pool_id,
            ClientId=app_client_id,
            AuthFlow="ADMIN_USER_PASSWORD_AUTH",
            AuthParameters={"USERNAME": username, "PASSWORD": password},
        )
    except (ClientError, BotoCoreError) as e:
        raise IdentityProviderError(_provider_message(e)) from e
    return _without_metadata(resp)
