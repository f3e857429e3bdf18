import pytest

import task_store


def test_create_assigns_id_timestamps_and_defaults(tasks_table):
    task = task_store.create_task(owner_id="U1", title="Buy milk")

    assert task["taskId"]
    assert task["userId"] == "U1"
    assert task["description"] == ""
    assert task["status"] == "pending"
    assert task["createdAt"] == task["updatedAt"]
    assert task["createdAt"].endswith("Z")

    op, call = tasks_table.calls[0]
    assert op == "put_item"
    assert call["ConditionExpression"] == "attribute_not_exists(taskId)"
    assert tasks_table.items[(task["taskId"], "U1")]["title"] == "Buy milk"


def test_created_task_ids_are_unique(tasks_table):
    ids = {task_store.create_task(owner_id="U1", title=f"t{i}")["taskId"] for i in range(50)}
    assert len(ids) == 50
    assert all(ids)


@pytest.mark.parametrize("title", ["", None])
def test_create_without_title_never_persists(tasks_table, title):
    with pytest.raises(ValueError, match="title"):
        task_store.create_task(owner_id="U1", title=title)
    assert tasks_table.items == {}


def test_get_is_scoped_to_owner(tasks_table):
    task = task_store.create_task(owner_id="U1", title="mine")

    assert task_store.get_task(task["taskId"], "U1") == task
    assert task_store.get_task(task["taskId"], "U2") is None
    assert task_store.get_task("missing", "U1") is None
    assert task_store.get_task("", "U1") is None

    get_calls = [c for op, c in tasks_table.calls if op == "get_item"]
    assert all(c["ConsistentRead"] for c in get_calls)


def test_list_returns_exactly_owner_tasks_across_pages(tasks_table):
    tasks_table.page_size = 2
    mine = {task_store.create_task(owner_id="U1", title=f"m{i}")["taskId"] for i in range(5)}
    task_store.create_task(owner_id="U2", title="theirs")
    deleted = task_store.create_task(owner_id="U1", title="gone")
    task_store.delete_task(deleted["taskId"], "U1")

    listed = task_store.list_tasks("U1")

    assert {t["taskId"] for t in listed} == mine
    queries = [c for op, c in tasks_table.calls if op == "query"]
    assert len(queries) == 3
    assert all(q["IndexName"] == "userId-index" for q in queries)
    assert queries[1]["ExclusiveStartKey"] == {"offset": 2}


def test_list_for_owner_without_tasks_is_empty(tasks_table):
    task_store.create_task(owner_id="U2", title="theirs")
    assert task_store.list_tasks("U1") == []


def test_status_only_update_keeps_other_fields(tasks_table, monkeypatch):
    monkeypatch.setattr(task_store, "now_iso", lambda: "2026-01-01T00:00:00.000000Z")
    task = task_store.create_task(owner_id="U1", title="Buy milk", description="2%")
    monkeypatch.setattr(task_store, "now_iso", lambda: "2026-01-02T00:00:00.000000Z")

    updated = task_store.update_task(task["taskId"], "U1", {"status": "completed"})

    assert updated["status"] == "completed"
    assert updated["title"] == "Buy milk"
    assert updated["description"] == "2%"
    assert updated["createdAt"] == "2026-01-01T00:00:00.000000Z"
    assert updated["updatedAt"] == "2026-01-02T00:00:00.000000Z"


def test_update_drops_falsy_and_unknown_fields(tasks_table):
    task = task_store.create_task(owner_id="U1", title="keep", description="desc")

    updated = task_store.update_task(
        task["taskId"],
        "U1",
        {"title": "", "description": None, "userId": "U2", "taskId": "other"},
    )

    assert updated["title"] == "keep"
    assert updated["description"] == "desc"
    assert updated["userId"] == "U1"
    assert updated["taskId"] == task["taskId"]
    _, call = [c for c in tasks_table.calls if c[0] == "update_item"][-1]
    assert call["UpdateExpression"] == "SET #updatedAt = :updatedAt"
    assert call["ConditionExpression"] == "attribute_exists(taskId)"
    assert call["ReturnValues"] == "ALL_NEW"


def test_update_and_delete_of_foreign_task_are_not_found(tasks_table):
    task = task_store.create_task(owner_id="U1", title="mine")

    with pytest.raises(task_store.TaskNotFoundError):
        task_store.update_task(task["taskId"], "U2", {"title": "stolen"})
    with pytest.raises(task_store.TaskNotFoundError):
        task_store.delete_task(task["taskId"], "U2")

    assert task_store.get_task(task["taskId"], "U1")["title"] == "mine"
    assert (task["taskId"], "U2") not in tasks_table.items


def test_delete_twice_is_not_found(tasks_table):
    task = task_store.create_task(owner_id="U1", title="once")

    task_store.delete_task(task["taskId"], "U1")
    with pytest.raises(task_store.TaskNotFoundError):
        task_store.delete_task(task["taskId"], "U1")
    assert task_store.get_task(task["taskId"], "U1") is None


def test_update_after_concurrent_delete_does_not_recreate(tasks_table):
    task = task_store.create_task(owner_id="U1", title="racy")
    tasks_table.items.clear()

    with pytest.raises(task_store.TaskNotFoundError):
        task_store.update_task(task["taskId"], "U1", {"status": "completed"})
    assert tasks_table.items == {}


def test_unexpected_client_errors_propagate(tasks_table, monkeypatch):
    from botocore.exceptions import ClientError

    def boom(**_kwargs):
        raise ClientError({"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}}, "DeleteItem")

    monkeypatch.setattr(tasks_table, "delete_item", boom)
    with pytest.raises(ClientError):
        task_store.delete_task("t1", "U1")


def test_tasks_table_requires_configured_name(monkeypatch):
    import task_settings

    monkeypatch.delenv("TASKS_TABLE_NAME", raising=False)
    monkeypatch.setattr(task_store, "_ddb", lambda: pytest.fail("client must not be built"))
    with pytest.raises(task_settings.ConfigurationError, match="TASKS_TABLE_NAME"):
        task_store.list_tasks("U1")
