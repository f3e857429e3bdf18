import pytest

from fakes import FakeTable


@pytest.fixture
def task_env(monkeypatch):
    monkeypatch.setenv("AWS_REGION", "us-east-1")
    monkeypatch.setenv("TASKS_TABLE_NAME", "tasks")
    monkeypatch.setenv("USERS_TABLE_NAME", "users")
    monkeypatch.setenv("USER_POOL_ID", "us-east-1_pool")
    monkeypatch.setenv("CLIENT_ID", "client-1")


@pytest.fixture
def tasks_table(monkeypatch, task_env):
    import task_store

    table = FakeTable()
    monkeypatch.setattr(task_store, "_tasks_table", lambda: table)
    return table
