from __future__ import annotations

import os

SCHEMA_VERSION = os.environ.get("TASK_API_SCHEMA_VERSION", "2026-10-19")


class ConfigurationError(RuntimeError):
    pass


def _require_env(*names: str) -> str:
    for name in names:
        val = (os.environ.get(name) or "").strip()
        if val:
            return val
    raise ConfigurationError(f"missing required env var: {' or '.join(names)}")


def tasks_table_name() -> str:
    return _require_env("TASKS_TABLE_NAME")


def users_table_name() -> str:
    return _require_env("USERS_TABLE_NAME")


def user_pool_id() -> str:
    return _require_env("USER_POOL_ID")


def client_id() -> str:
    return _require_env("CLIENT_ID")


def aws_region() -> str:
    return _require_env("AWS_REGION", "AWS_DEFAULT_REGION")
