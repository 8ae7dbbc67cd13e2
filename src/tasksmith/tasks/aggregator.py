# src/tasksmith/tasks/aggregator.py

"""
Group a flat list of task records into main-task aggregates.

The grouping is recomputed from scratch for every snapshot; there is no
incremental diffing.
"""

from __future__ import annotations

from collections.abc import Iterable

from .task_models import Task, TaskAggregate


def aggregate(records: Iterable[Task]) -> list[TaskAggregate]:
    """
    Build aggregates keyed by main-task id.

    - main tasks key by their own id, subtasks by their parent_id
    - output follows first-seen key order
    - subtasks keep encounter order (see sort_subtasks)
    - a key first seen through a subtask gets an empty placeholder main task,
      replaced if the main record shows up later in the same pass
    - duplicate main-task ids: last one wins
    """
    groups: dict[str, TaskAggregate] = {}

    for task in records:
        if task.is_main:
            key = task.id
            agg = groups.get(key)
            if agg is None:
                groups[key] = TaskAggregate(key=key, main_task=task)
            else:
                agg.main_task = task
            continue

        key = task.parent_id or ""
        agg = groups.get(key)
        if agg is None:
            agg = TaskAggregate(key=key, main_task=Task.empty())
            groups[key] = agg
        agg.subtasks.append(task)

    return list(groups.values())


def sort_subtasks(subtasks: Iterable[Task]) -> list[Task]:
    """Stable sort by order; tasks without an order go last."""
    return sorted(
        subtasks,
        key=lambda t: (t.order is None, t.order if t.order is not None else 0),
    )


def find_aggregate(aggregates: Iterable[TaskAggregate], key: str) -> TaskAggregate | None:
    for agg in aggregates:
        if agg.key == key:
            return agg
    return None
