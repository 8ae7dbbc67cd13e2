# tests/test_aggregator.py

from __future__ import annotations

from tasksmith.tasks.aggregator import aggregate, sort_subtasks
from tasksmith.tasks.task_models import Task


def _main(id_: str, title: str = "") -> Task:
    return Task(id=id_, title=title or f"main {id_}")


def _sub(id_: str, parent: str, order: int | None = None) -> Task:
    return Task(id=id_, title=f"sub {id_}", parent_id=parent, order=order)


def test_empty_input_gives_no_aggregates() -> None:
    assert aggregate([]) == []


def test_every_record_lands_in_exactly_one_aggregate() -> None:
    records = [
        _main("m1"),
        _sub("s1", "m1", 1),
        _main("m2"),
        _sub("s2", "m1", 0),
        _sub("s3", "m2", 0),
        _sub("s4", "m3", 0),
    ]
    aggs = aggregate(records)

    seen: list[str] = []
    for agg in aggs:
        if agg.has_main_task:
            seen.append(agg.main_task.id)
        seen.extend(s.id for s in agg.subtasks)
        assert all(s.parent_id == agg.key for s in agg.subtasks)

    assert sorted(seen) == sorted(r.id for r in records)
    assert len(seen) == len(set(seen))


def test_output_follows_first_seen_key_order_and_keeps_arrival_order() -> None:
    aggs = aggregate([_sub("s1", "m2", 5), _main("m1"), _main("m2"), _sub("s2", "m2", 0)])

    assert [a.key for a in aggs] == ["m2", "m1"]
    # not re-sorted by order in the base pass
    assert [s.id for s in aggs[0].subtasks] == ["s1", "s2"]


def test_orphan_subtask_gets_placeholder_main_task() -> None:
    aggs = aggregate([Task(id="s1", title="x", parent_id="m1", order=0)])

    assert len(aggs) == 1
    assert aggs[0].key == "m1"
    assert aggs[0].main_task.id == ""
    assert not aggs[0].has_main_task
    assert [s.id for s in aggs[0].subtasks] == ["s1"]


def test_placeholder_is_replaced_when_main_arrives_later() -> None:
    aggs = aggregate([_sub("s1", "m1"), _main("m1", "Trip")])

    assert len(aggs) == 1
    assert aggs[0].main_task.title == "Trip"
    assert [s.id for s in aggs[0].subtasks] == ["s1"]


def test_main_task_without_subtasks() -> None:
    aggs = aggregate([_main("m1")])
    assert aggs[0].subtasks == []


def test_duplicate_main_ids_last_seen_wins() -> None:
    aggs = aggregate([_main("m1", "first"), _main("m1", "second")])
    assert len(aggs) == 1
    assert aggs[0].main_task.title == "second"


def test_aggregate_is_idempotent() -> None:
    records = [_main("m1"), _sub("s1", "m1", 0), _sub("s2", "m9", 1), _main("m2")]

    first = aggregate(records)
    second = aggregate(records)

    assert first == second


def test_sort_subtasks_is_stable_and_puts_missing_order_last() -> None:
    subs = [_sub("a", "m", 1), _sub("b", "m", None), _sub("c", "m", 0), _sub("d", "m", 1)]
    assert [s.id for s in sort_subtasks(subs)] == ["c", "a", "d", "b"]
