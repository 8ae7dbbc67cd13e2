# src/tasksmith/tasks/coordinator.py

from __future__ import annotations

"""
Aggregate write coordinator.

Creates, updates and deletes a main task together with its subtasks on top of
a store that is only atomic per document. Every operation is a best-effort
sequence of independent single-document writes:

- no rollback: a failed sub-write leaves the others in place
- failures are reported once per operation (StoreWriteError), without
  per-record detail
- after a successful operation the board is refreshed; a failure there
  is raised as RefreshError so callers can tell it from a failed write

Overlapping calls are not guarded; the store resolves them last-write-wins
per document.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import replace

from ..core.errors import RefreshError, StoreReadError, StoreWriteError, TasksmithError, ValidationError
from ..core.ports import RecordStore
from .board import TaskBoard
from .identity import Identity
from .task_models import Priority, Task

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def validate_aggregate(main_task: Task, subtasks: Iterable[Task]) -> None:
    """Raise ValidationError if a required field is missing."""
    if not (main_task.title or "").strip():
        raise ValidationError("Title is required.", field="title")
    for i, sub in enumerate(subtasks):
        if not (sub.title or "").strip():
            raise ValidationError(f"Subtask #{i + 1} needs a title.", field="subtasks")


class AggregateWriteCoordinator:
    def __init__(self, store: RecordStore, board: TaskBoard, *, clock: Clock = time.time) -> None:
        self._store = store
        self._board = board
        self._clock = clock

    # ---- helpers ----

    def _stamp(self, task: Task, identity: Identity) -> Task:
        """Fill id/owner/created_time when missing."""
        return replace(
            task,
            id=task.id or self._store.new_id(),
            owner=task.owner or identity.user_id,
            created_time=task.created_time if task.created_time is not None else self._clock(),
        )

    def _stamp_subtasks(self, main_id: str, subtasks: Iterable[Task], identity: Identity) -> list[Task]:
        out: list[Task] = []
        for index, sub in enumerate(subtasks):
            stamped = self._stamp(sub, identity)
            stamped.parent_id = main_id
            stamped.order = index
            stamped.priority = Priority.NONE
            out.append(stamped)
        return out

    @staticmethod
    async def _run_all(label: str, steps: list[Awaitable[None]]) -> int:
        """
        Await independent writes concurrently.

        Returns the number of failed steps. Non-store exceptions are re-raised.
        """
        if not steps:
            return 0
        results = await asyncio.gather(*steps, return_exceptions=True)
        failed = 0
        for res in results:
            if isinstance(res, TasksmithError):
                failed += 1
                logger.warning("%s: sub-write failed: %s", label, res)
            elif isinstance(res, BaseException):
                raise res
        return failed

    async def _refresh(self) -> None:
        try:
            await self._board.refresh()
        except StoreReadError as e:
            raise RefreshError(str(e)) from e

    async def _put(self, task: Task, *, merge: bool) -> None:
        await self._store.put(task.id, task.to_record(), merge=merge)

    # ---- aggregate operations ----

    async def create_aggregate(
            self,
            main_task: Task,
            subtasks: list[Task],
            *,
            identity: Identity,
    ) -> Task:
        """
        Write a new main task and its subtasks.

        Subtasks get parent_id = main id and order = their index in `subtasks`.
        Returns the persisted main task.
        """
        validate_aggregate(main_task, subtasks)

        main = self._stamp(main_task, identity)
        main.parent_id = None
        main.order = None

        await self._put(main, merge=False)
        logger.info("Created main task id=%s owner=%s", main.id, main.owner)

        stamped = self._stamp_subtasks(main.id, subtasks, identity)
        failed = await self._run_all(
            f"create {main.id}", [self._put(s, merge=False) for s in stamped]
        )
        if failed:
            raise StoreWriteError(
                f"Failed to save {failed} of {len(stamped)} subtasks.",
                failed=failed,
                attempted=len(stamped) + 1,
            )

        await self._refresh()
        return main

    async def update_aggregate(
            self,
            main_task: Task,
            subtasks: list[Task],
            *,
            identity: Identity,
    ) -> Task:
        """
        Merge-write the main task, then reconcile its subtasks.

        Persisted subtasks that are no longer submitted are deleted; every
        submitted subtask is merge-upserted with a dense order. Deletes and
        upserts run concurrently.
        """
        if not main_task.id:
            raise ValidationError("Cannot update a task without an id.", field="id")
        validate_aggregate(main_task, subtasks)

        main = replace(main_task, owner=main_task.owner or identity.user_id, parent_id=None)
        await self._put(main, merge=True)

        persisted = await self._store.query("parentId", main.id)
        stamped = self._stamp_subtasks(main.id, subtasks, identity)
        submitted_ids = {s.id for s in stamped}
        to_delete = [str(r.get("id")) for r in persisted if r.get("id") not in submitted_ids]

        steps: list[Awaitable[None]] = [self._store.delete(rid) for rid in to_delete]
        steps.extend(self._put(s, merge=True) for s in stamped)
        failed = await self._run_all(f"update {main.id}", steps)
        logger.info(
            "Updated main task id=%s subtasks=%d deleted=%d failed=%d",
            main.id,
            len(stamped),
            len(to_delete),
            failed,
        )
        if failed:
            raise StoreWriteError(
                f"Failed to save {failed} subtask change(s).",
                failed=failed,
                attempted=len(steps) + 1,
            )

        await self._refresh()
        return main

    async def delete_aggregate(self, main_task_id: str, *, identity: Identity) -> None:
        """
        Delete every subtask of main_task_id, then the main task itself.

        The main task is deleted even if some subtask deletes failed; the
        failure is still reported afterwards.
        """
        if not main_task_id:
            raise ValidationError("Cannot delete a task without an id.", field="id")

        persisted = await self._store.query("parentId", main_task_id)
        sub_ids = [str(r.get("id")) for r in persisted if r.get("id")]
        failed = await self._run_all(
            f"delete {main_task_id}", [self._store.delete(sid) for sid in sub_ids]
        )

        await self._store.delete(main_task_id)
        logger.info(
            "Deleted main task id=%s subtasks=%d failed=%d by=%s",
            main_task_id,
            len(sub_ids),
            failed,
            identity.user_id,
        )
        if failed:
            raise StoreWriteError(
                f"Failed to delete {failed} of {len(sub_ids)} subtasks.",
                failed=failed,
                attempted=len(sub_ids) + 1,
            )

        await self._refresh()

    # ---- single-record operations ----

    async def toggle_complete(self, task: Task, *, identity: Identity) -> Task:
        if not task.id:
            raise ValidationError("Cannot update a task without an id.", field="id")
        updated = replace(task, completed=not task.completed)
        await self._store.put(task.id, {"completed": updated.completed}, merge=True)
        logger.debug("Toggled completed id=%s -> %s by=%s", task.id, updated.completed, identity.user_id)
        await self._refresh()
        return updated

    async def rename_task(self, task_id: str, title: str, *, identity: Identity) -> None:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required.", field="title")
        await self._store.put(task_id, {"title": title}, merge=True)
        logger.debug("Renamed id=%s by=%s", task_id, identity.user_id)
        await self._refresh()

    async def delete_task(self, task_id: str) -> None:
        await self._store.delete(task_id)
        await self._refresh()
