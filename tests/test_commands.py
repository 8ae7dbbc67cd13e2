# tests/test_commands.py

from __future__ import annotations

import pytest

from tasksmith.cli.commands import CommandRegistry, format_board, registry
from tasksmith.core.errors import ValidationError
from tasksmith.tasks.aggregator import aggregate
from tasksmith.tasks.task_models import Task

from .fakes import FakeRecordStore


@pytest.mark.asyncio
async def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}
    notes: list[str] = []

    async def h2(state, args):
        called["h2"] += 1
        return "h2:" + ",".join(args)

    async def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bb"])

    assert await reg.handle(state, "/a x y") == "h2:x,y"
    assert await reg.handle(state, "/BB", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


@pytest.mark.asyncio
async def test_validation_errors_become_inline_replies(state) -> None:
    reg = CommandRegistry()

    async def bad(state, args):
        raise ValidationError("Title is required.", field="title")

    reg.register("bad", bad, "bad")

    assert await reg.handle(state, "/bad") == "Invalid: Title is required."


@pytest.mark.asyncio
async def test_new_sub_save_flow(state, store: FakeRecordStore) -> None:
    await registry.handle(state, "/new Trip")
    await registry.handle(state, "/sub Pack")
    reply = await registry.handle(state, "/sub Book flight")
    assert reply is not None and "2. [ ] Book flight" in reply

    await registry.handle(state, "/up 2")
    reply = await registry.handle(state, "/save")

    assert reply is not None and reply.startswith("Saved.")
    assert "Trip" in reply
    main_id = next(r["id"] for r in store.records.values() if "parentId" not in r)
    children = sorted(store.children_of(main_id), key=lambda r: r["order"])
    assert [c["title"] for c in children] == ["Book flight", "Pack"]


@pytest.mark.asyncio
async def test_save_without_title_is_inline_error(state, store: FakeRecordStore) -> None:
    await registry.handle(state, "/new")
    reply = await registry.handle(state, "/save")

    assert reply is not None and reply.startswith("Invalid:")
    assert state.editor.is_open
    assert store.ops == []


@pytest.mark.asyncio
async def test_editing_commands_require_open_editor(state) -> None:
    reply = await registry.handle(state, "/sub Pack")
    assert reply is not None and "Editor is closed" in reply


@pytest.mark.asyncio
async def test_done_and_del_by_position(state, store: FakeRecordStore) -> None:
    store.records.update(
        {
            "m1": {"id": "m1", "title": "Trip", "createdTime": 1.0},
            "s1": {"id": "s1", "title": "Pack", "parentId": "m1", "order": 0, "createdTime": 2.0},
        }
    )
    await registry.handle(state, "/list")

    reply = await registry.handle(state, "/done 1")
    assert reply is not None and "[x] Trip" in reply

    reply = await registry.handle(state, "/del 1")
    assert reply is not None and reply.startswith("Deleted.")
    assert store.records == {}

    assert await registry.handle(state, "/del 5") == "Usage: /del <n|id>"


@pytest.mark.asyncio
async def test_login_and_logout_switch_owner(state) -> None:
    assert await registry.handle(state, "/login alice") == "Signed in as alice."
    status = await registry.handle(state, "/status")
    assert status is not None and "Owner: alice" in status

    reply = await registry.handle(state, "/logout")
    assert reply is not None and "local-" in reply


def test_format_board_marks_missing_main_task() -> None:
    aggs = aggregate([Task(id="s1", title="Orphan", parent_id="gone", order=0)])

    text = format_board(aggs)

    assert "(missing main task)" in text
    assert "Orphan" in text
    assert format_board([]).startswith("No tasks yet")


def _seed_listed(store: FakeRecordStore) -> None:
    store.records.update(
        {
            "m1": {"id": "m1", "title": "Trip", "createdTime": 1.0},
            "s1": {"id": "s1", "title": "Pack", "parentId": "m1", "order": 0, "createdTime": 2.0},
            "s2": {"id": "s2", "title": "Book", "parentId": "m1", "order": 1, "createdTime": 3.0},
        }
    )


@pytest.mark.asyncio
async def test_listed_subtask_commands(state, store: FakeRecordStore) -> None:
    _seed_listed(store)
    reply = await registry.handle(state, "/list")
    assert reply is not None and "1.2 [ ] Book" in reply

    reply = await registry.handle(state, "/done 1.2")
    assert reply is not None and "1.2 [x] Book" in reply
    assert store.records["s2"]["completed"] is True
    assert "completed" not in store.records["m1"]

    await registry.handle(state, "/retitle 1 Big trip")
    await registry.handle(state, "/retitle 1.1 Pack bags")
    assert store.records["m1"]["title"] == "Big trip"
    assert store.records["s1"]["title"] == "Pack bags"

    reply = await registry.handle(state, "/rmsub 1.1")
    assert reply is not None and "Pack bags" not in reply
    assert set(store.records) == {"m1", "s2"}


@pytest.mark.asyncio
async def test_listed_subtask_commands_reject_bad_targets(state, store: FakeRecordStore) -> None:
    _seed_listed(store)
    await registry.handle(state, "/list")

    assert await registry.handle(state, "/rmsub 1") == "Usage: /rmsub <n|id>.<m>"
    assert await registry.handle(state, "/retitle 1") == "Usage: /retitle <n|id>[.m] <title>"
    assert await registry.handle(state, "/done 1.x") == "Usage: /done <n|id>[.m]"

    reply = await registry.handle(state, "/done 1.7")
    assert reply is not None and reply.startswith("Invalid:")
    assert store.ops == []


@pytest.mark.asyncio
async def test_edit_and_check_in_editor(state) -> None:
    await registry.handle(state, "/new Trip")
    await registry.handle(state, "/sub Pakc")

    reply = await registry.handle(state, "/edit 1")
    assert reply is not None and "1. [ ] Pakc *" in reply

    reply = await registry.handle(state, "/rename 1 Pack")
    assert reply is not None and "1. [ ] Pack" in reply and "*" not in reply

    reply = await registry.handle(state, "/check 1")
    assert reply is not None and "1. [x] Pack" in reply
    assert await registry.handle(state, "/check 4") == "Usage: /check <n>"
