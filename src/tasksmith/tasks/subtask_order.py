# src/tasksmith/tasks/subtask_order.py

from __future__ import annotations

import logging

from ..core.ports import RecordStore
from .aggregator import sort_subtasks
from .task_models import SubtaskEntry, Task

logger = logging.getLogger(__name__)


class SubtaskOrderManager:
    """
    Local ordered list of subtasks for the main task being edited.

    Moves renumber every entry densely from 0. remove() leaves gaps; the
    write coordinator renumbers on submission.

    Single writer: the editor session is the only caller.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self._entries: list[SubtaskEntry] = []

    @property
    def entries(self) -> list[SubtaskEntry]:
        return self._entries

    def tasks(self) -> list[Task]:
        return [e.task for e in self._entries]

    def titles(self) -> list[str]:
        return [e.task.title for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries = []

    def _set_tasks(self, tasks: list[Task]) -> None:
        self._entries = [SubtaskEntry(task=t) for t in sort_subtasks(tasks)]

    async def load(self, parent_id: str) -> list[SubtaskEntry]:
        """
        Replace the list with the persisted subtasks of parent_id, sorted by order.

        StoreReadError propagates and the current list is kept.
        """
        records = await self._store.query("parentId", parent_id)
        tasks = [Task.from_record(r) for r in records]
        self._set_tasks(tasks)
        logger.debug("Loaded %d subtasks for parent=%s", len(self._entries), parent_id)
        return self._entries

    def index_of(self, task_id: str) -> int:
        for i, e in enumerate(self._entries):
            if e.task.id == task_id:
                return i
        return -1

    def get(self, task_id: str) -> SubtaskEntry | None:
        i = self.index_of(task_id)
        return self._entries[i] if i >= 0 else None

    def append(self, task: Task) -> SubtaskEntry:
        task.order = len(self._entries)
        entry = SubtaskEntry(task=task)
        self._entries = [*self._entries, entry]
        return entry

    def move_up(self, task_id: str) -> bool:
        i = self.index_of(task_id)
        if i <= 0:
            return False
        return self._swap(i, i - 1)

    def move_down(self, task_id: str) -> bool:
        i = self.index_of(task_id)
        if i < 0 or i >= len(self._entries) - 1:
            return False
        return self._swap(i, i + 1)

    def remove(self, task_id: str) -> SubtaskEntry | None:
        i = self.index_of(task_id)
        if i < 0:
            return None
        entry = self._entries[i]
        self._entries = self._entries[:i] + self._entries[i + 1 :]
        return entry

    def renumber(self) -> None:
        for i, e in enumerate(self._entries):
            e.task.order = i

    def _swap(self, a: int, b: int) -> bool:
        entries = list(self._entries)
        entries[a], entries[b] = entries[b], entries[a]
        self._entries = entries
        self.renumber()
        return True
