# tests/test_editor.py

from __future__ import annotations

import json

import pytest

from tasksmith.core.errors import ValidationError
from tasksmith.core.state import AppState
from tasksmith.tasks.task_models import Priority

from .fakes import FakeLLMClient, FakeNotifier, FakeRecordStore


def _seed(store: FakeRecordStore) -> None:
    store.records.update(
        {
            "m1": {"id": "m1", "title": "Trip", "priority": "high", "owner": "u", "createdTime": 1.0},
            "s1": {"id": "s1", "title": "A", "parentId": "m1", "order": 0, "createdTime": 2.0},
            "s2": {"id": "s2", "title": "B", "parentId": "m1", "order": 1, "createdTime": 3.0},
            "s3": {"id": "s3", "title": "C", "parentId": "m1", "order": 2, "createdTime": 4.0},
        }
    )


@pytest.mark.asyncio
async def test_new_task_submit_creates_aggregate(state: AppState, store: FakeRecordStore) -> None:
    editor = state.editor
    editor.open_new()
    editor.set_title("Trip")
    editor.add_subtask("Book flight")
    editor.add_subtask("Pack")

    assert editor.main_task.priority is Priority.LOW
    assert await editor.submit() is True

    assert not editor.is_open
    mains = [r for r in store.records.values() if "parentId" not in r]
    assert len(mains) == 1
    main = mains[0]
    assert main["title"] == "Trip"
    assert main["owner"].startswith("local-")

    children = sorted(store.children_of(main["id"]), key=lambda r: r["order"])
    assert [c["title"] for c in children] == ["Book flight", "Pack"]
    assert state.board.find(main["id"]) is not None


@pytest.mark.asyncio
async def test_submit_without_title_raises_and_keeps_form(
    state: AppState, store: FakeRecordStore
) -> None:
    editor = state.editor
    editor.open_new()
    editor.add_subtask("Pack")

    with pytest.raises(ValidationError):
        await editor.submit()

    assert editor.is_open
    assert editor.subtasks.titles() == ["Pack"]
    assert store.ops == []


@pytest.mark.asyncio
async def test_submit_write_failure_notifies_and_stays_open(
    state: AppState, store: FakeRecordStore, notifier: FakeNotifier
) -> None:
    editor = state.editor
    editor.open_new()
    editor.set_title("Trip")
    entry = editor.add_subtask("Pack")
    store.fail_put.add(entry.task.id)

    assert await editor.submit() is False

    assert notifier.messages == ["Error saving task."]
    assert editor.is_open
    assert editor.main_task.title == "Trip"
    assert editor.subtasks.titles() == ["Pack"]


@pytest.mark.asyncio
async def test_open_existing_reorder_and_remove_then_submit(
    state: AppState, store: FakeRecordStore
) -> None:
    _seed(store)
    await state.board.refresh()
    editor = state.editor

    assert await editor.open("m1") is True
    assert not editor.is_new
    assert editor.subtasks.titles() == ["A", "B", "C"]

    editor.subtasks.move_up("s3")
    editor.subtasks.remove("s1")
    assert await editor.submit() is True

    assert "s1" not in store.records
    assert store.records["s3"]["order"] == 0
    assert store.records["s2"]["order"] == 1
    # untouched fields survive the merge write
    assert store.records["s2"]["createdTime"] == 3.0
    assert store.records["m1"]["priority"] == "high"


@pytest.mark.asyncio
async def test_open_unknown_key_notifies(state: AppState, notifier: FakeNotifier) -> None:
    await state.board.refresh()

    assert await state.editor.open("nope") is False
    assert notifier.messages == ["Task nope not found."]
    assert not state.editor.is_open


@pytest.mark.asyncio
async def test_open_with_subtask_load_failure_does_not_open(
    state: AppState, store: FakeRecordStore, notifier: FakeNotifier
) -> None:
    _seed(store)
    await state.board.refresh()
    store.fail_query = True

    assert await state.editor.open("m1") is False
    assert notifier.messages == ["Error loading subtasks."]
    assert not state.editor.is_open

    # nothing to save, so the persisted subtasks survive
    store.fail_query = False
    with pytest.raises(ValidationError):
        await state.editor.submit()
    assert sorted(r["id"] for r in store.children_of("m1")) == ["s1", "s2", "s3"]


def test_set_priority_rejects_unknown_value(state: AppState) -> None:
    state.editor.open_new()
    with pytest.raises(ValidationError):
        state.editor.set_priority("urgent")
    assert state.editor.set_priority("High") is Priority.HIGH


def test_add_subtask_requires_title(state: AppState) -> None:
    state.editor.open_new()
    with pytest.raises(ValidationError):
        state.editor.add_subtask("   ")


def test_rename_and_toggle_subtask(state: AppState) -> None:
    editor = state.editor
    editor.open_new()
    entry = editor.add_subtask("Pakc")

    assert editor.toggle_editing(entry.task.id) is True
    assert editor.rename_subtask(entry.task.id, "Pack") is True
    assert entry.task.title == "Pack"
    assert entry.editing is False
    assert editor.toggle_subtask_complete(entry.task.id) is True
    assert editor.rename_subtask("missing", "x") is False


@pytest.mark.asyncio
async def test_suggest_main_task_fills_form(state: AppState, llm: FakeLLMClient) -> None:
    llm.next_text = json.dumps({"title": "Repot plants", "priority": "medium", "description": "Spring"})

    assert await state.editor.suggest_main_task() is True

    editor = state.editor
    assert editor.is_open
    assert editor.main_task.title == "Repot plants"
    assert editor.main_task.priority is Priority.MEDIUM
    assert editor.main_task.description == "Spring"


@pytest.mark.asyncio
async def test_suggest_main_task_failure_notifies(
    state: AppState, llm: FakeLLMClient, notifier: FakeNotifier
) -> None:
    llm.next_text = "no json here"

    assert await state.editor.suggest_main_task() is False
    assert notifier.messages == ["Failed to generate task."]


@pytest.mark.asyncio
async def test_suggest_subtasks_appends_new_titles(state: AppState, llm: FakeLLMClient) -> None:
    editor = state.editor
    editor.open_new()
    editor.set_title("Trip")
    editor.add_subtask("Pack")
    llm.next_text = json.dumps({"subtasks": [{"title": "pack"}, {"title": "Book hotel"}]})

    added = await editor.suggest_subtasks()

    assert added == 1
    assert editor.subtasks.titles() == ["Pack", "Book hotel"]
    assert [e.task.order for e in editor.subtasks.entries] == [0, 1]


@pytest.mark.asyncio
async def test_suggest_subtasks_failure_leaves_list(
    state: AppState, llm: FakeLLMClient, notifier: FakeNotifier
) -> None:
    editor = state.editor
    editor.open_new()
    editor.set_title("Trip")
    editor.add_subtask("Pack")
    llm.error = RuntimeError("All LLM models failed.")

    assert await editor.suggest_subtasks() == 0
    assert notifier.messages == ["Failed to generate subtasks."]
    assert editor.subtasks.titles() == ["Pack"]


@pytest.mark.asyncio
async def test_delete_and_toggle_through_editor(
    state: AppState, store: FakeRecordStore, notifier: FakeNotifier
) -> None:
    _seed(store)
    await state.board.refresh()

    assert await state.editor.toggle_complete("m1") is True
    assert store.records["m1"]["completed"] is True

    store.fail_delete.add("s2")
    assert await state.editor.delete("m1") is False
    assert notifier.messages == ["Error deleting task."]
    assert "m1" not in store.records
    assert [r["id"] for r in store.children_of("m1")] == ["s2"]


@pytest.mark.asyncio
async def test_retry_after_partial_create_reuses_main_task(
    state: AppState, store: FakeRecordStore, notifier: FakeNotifier
) -> None:
    editor = state.editor
    editor.open_new()
    editor.set_title("Trip")
    entry = editor.add_subtask("Pack")
    store.fail_put.add(entry.task.id)

    assert await editor.submit() is False
    assert editor.is_new
    first_id = editor.main_task.id
    assert first_id in store.records

    store.fail_put.clear()
    assert await editor.submit() is True

    mains = [r for r in store.records.values() if "parentId" not in r]
    assert [m["id"] for m in mains] == [first_id]
    assert [r["title"] for r in store.children_of(first_id)] == ["Pack"]


@pytest.mark.asyncio
async def test_update_lookup_failure_keeps_editor_open(
    state: AppState, store: FakeRecordStore, notifier: FakeNotifier
) -> None:
    _seed(store)
    await state.board.refresh()
    assert await state.editor.open("m1") is True
    store.fail_query = True

    assert await state.editor.submit() is False

    assert notifier.messages == ["Error saving task."]
    assert state.editor.is_open
    assert state.editor.subtasks.titles() == ["A", "B", "C"]


@pytest.mark.asyncio
async def test_delete_with_refresh_failure_still_counts_as_deleted(
    state: AppState, store: FakeRecordStore, notifier: FakeNotifier
) -> None:
    _seed(store)
    await state.board.refresh()
    assert await state.editor.open("m1") is True
    store.fail_list = True

    assert await state.editor.delete("m1") is True

    assert store.records == {}
    assert notifier.messages == ["Task deleted, but the list could not be refreshed."]
    assert not state.editor.is_open


@pytest.mark.asyncio
async def test_listed_subtask_toggle_rename_and_delete(
    state: AppState, store: FakeRecordStore
) -> None:
    _seed(store)
    await state.board.refresh()
    editor = state.editor

    assert await editor.toggle_complete("m1", 2) is True
    assert store.records["s2"]["completed"] is True

    assert await editor.rename_listed("m1", "Big trip") is True
    assert await editor.rename_listed("m1", "Bee", 2) is True
    assert store.records["m1"]["title"] == "Big trip"
    assert store.records["s2"]["title"] == "Bee"

    assert await editor.delete_listed_subtask("m1", 1) is True
    assert "s1" not in store.records
    assert "m1" in store.records

    with pytest.raises(ValidationError):
        await editor.delete_listed_subtask("m1", 9)


@pytest.mark.asyncio
async def test_listed_write_failure_notifies(
    state: AppState, store: FakeRecordStore, notifier: FakeNotifier
) -> None:
    _seed(store)
    await state.board.refresh()
    store.fail_put.add("m1")

    assert await state.editor.toggle_complete("m1") is False
    assert notifier.messages == ["Error updating task."]
