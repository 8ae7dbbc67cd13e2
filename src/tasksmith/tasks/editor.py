# src/tasksmith/tasks/editor.py

from __future__ import annotations

"""
Editor session: the form-side workflow around one main task.

- open a new or existing aggregate (subtasks loaded through the order manager)
- edit fields, add/remove/reorder subtasks locally
- merge generated drafts into the form or the subtask list
- submit through the write coordinator

Store and generation failures are reported through the Notifier and leave the
form as it was. ValidationError is raised to the caller instead (inline).
"""

import logging
from collections.abc import Awaitable
from dataclasses import replace
from typing import Any

from ..core.errors import (
    GenerationError,
    RefreshError,
    StoreReadError,
    StoreWriteError,
    ValidationError,
)
from ..core.ports import Notifier, RecordStore, TaskGenerator
from .board import TaskBoard
from .coordinator import AggregateWriteCoordinator, validate_aggregate
from .identity import IdentityProvider
from .aggregator import sort_subtasks
from .subtask_order import SubtaskOrderManager
from .task_models import Priority, SubtaskEntry, Task, TaskAggregate

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = Priority.LOW


def _blank_main_task() -> Task:
    return Task(id="", title="", priority=DEFAULT_PRIORITY)


class TaskEditor:
    def __init__(
            self,
            *,
            store: RecordStore,
            board: TaskBoard,
            coordinator: AggregateWriteCoordinator,
            generator: TaskGenerator,
            identities: IdentityProvider,
            notifier: Notifier,
    ) -> None:
        self._store = store
        self._board = board
        self._coordinator = coordinator
        self._generator = generator
        self._identities = identities
        self._notifier = notifier

        self.subtasks = SubtaskOrderManager(store)
        self.main_task: Task = _blank_main_task()
        self.is_open = False
        # True until the aggregate has been created once; the main id may already
        # be minted (and partly written) while this is still set.
        self.is_new = False

    # ---- session ----

    def open_new(self) -> None:
        self.main_task = _blank_main_task()
        self.subtasks.clear()
        self.is_open = True
        self.is_new = True

    async def open(self, key: str) -> bool:
        """Open an existing aggregate for editing. Returns False if it could not be loaded."""
        agg = self._board.find(key)
        if agg is None or not agg.has_main_task:
            self._notifier.notify(f"Task {key} not found.")
            return False

        # An editor without the persisted subtasks would delete them all on submit.
        try:
            await self.subtasks.load(agg.main_task.id)
        except StoreReadError as e:
            logger.warning("Loading subtasks failed key=%s: %s", key, e)
            self._notifier.notify("Error loading subtasks.")
            self.close()
            return False

        self.main_task = replace(agg.main_task)
        self.is_open = True
        self.is_new = False
        return True

    def close(self) -> None:
        self.main_task = _blank_main_task()
        self.subtasks.clear()
        self.is_open = False
        self.is_new = False

    # ---- form fields ----

    def set_title(self, title: str) -> None:
        self.main_task.title = (title or "").strip()

    def set_priority(self, raw: str) -> Priority:
        value = (raw or "").strip().lower()
        if value not in {p.value for p in Priority}:
            raise ValidationError(f"Unknown priority: {raw}", field="priority")
        self.main_task.priority = Priority(value)
        return self.main_task.priority

    def set_description(self, text: str | None) -> None:
        self.main_task.description = (text or "").strip() or None

    def set_due_date(self, due: str | None) -> None:
        self.main_task.due_date = (due or "").strip() or None

    def set_flagged(self, flagged: bool) -> None:
        self.main_task.flagged = bool(flagged)

    # ---- subtasks ----

    def add_subtask(self, title: str) -> SubtaskEntry:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Subtask title is required.", field="subtasks")
        task = Task(
            id=self._store.new_id(),
            title=title,
            owner=self._identities.current_or_create().user_id,
            parent_id=self.main_task.id or None,
        )
        return self.subtasks.append(task)

    def rename_subtask(self, task_id: str, title: str) -> bool:
        entry = self.subtasks.get(task_id)
        if entry is None:
            return False
        title = (title or "").strip()
        if not title:
            raise ValidationError("Subtask title is required.", field="subtasks")
        entry.task.title = title
        entry.editing = False
        return True

    def toggle_editing(self, task_id: str) -> bool:
        entry = self.subtasks.get(task_id)
        if entry is None:
            return False
        entry.editing = not entry.editing
        return entry.editing

    def toggle_subtask_complete(self, task_id: str) -> bool:
        entry = self.subtasks.get(task_id)
        if entry is None:
            return False
        entry.task.completed = not entry.task.completed
        return entry.task.completed

    # ---- generation ----

    async def suggest_main_task(self) -> bool:
        """Fill the form with a generated main-task draft."""
        try:
            draft = await self._generator.generate_main_task(self._board.active_main_titles())
        except GenerationError as e:
            logger.info("Main task generation failed: %s", e)
            self._notifier.notify("Failed to generate task.")
            return False

        if not self.is_open:
            self.open_new()
        self.main_task.title = draft.title
        self.main_task.priority = draft.priority
        if draft.description:
            self.main_task.description = draft.description
        return True

    async def suggest_subtasks(
            self,
            *,
            image_bytes: bytes | None = None,
            image_mime: str = "image/png",
    ) -> int:
        """Append generated subtasks whose titles are not already in the list."""
        try:
            drafts = await self._generator.generate_subtasks(
                title=self.main_task.title,
                image_bytes=image_bytes,
                image_mime=image_mime,
                existing_titles=self.subtasks.titles(),
            )
        except GenerationError as e:
            logger.info("Subtask generation failed: %s", e)
            self._notifier.notify("Failed to generate subtasks.")
            return 0

        existing = {t.strip().lower() for t in self.subtasks.titles()}
        added = 0
        for draft in drafts:
            if draft.title.lower() in existing:
                continue
            existing.add(draft.title.lower())
            self.add_subtask(draft.title)
            added += 1
        return added

    # ---- persistence ----

    async def submit(self) -> bool:
        """
        Validate and persist the open aggregate.

        Raises ValidationError before touching the store. Store failures are
        notified and keep the editor open with its current contents; a retry
        writes to the same record ids.
        """
        if not self.is_open:
            raise ValidationError("Nothing to submit.")

        tasks = self.subtasks.tasks()
        validate_aggregate(self.main_task, tasks)
        self.subtasks.renumber()

        identity = self._identities.current_or_create()
        try:
            if self.is_new:
                if not self.main_task.id:
                    self.main_task.id = self._store.new_id()
                await self._coordinator.create_aggregate(self.main_task, tasks, identity=identity)
            else:
                await self._coordinator.update_aggregate(self.main_task, tasks, identity=identity)
        except RefreshError as e:
            logger.warning("Saved, but refresh failed: %s", e)
            self._notifier.notify("Task saved, but the list could not be refreshed.")
        except (StoreWriteError, StoreReadError) as e:
            logger.warning("Submit failed: %s", e)
            self._notifier.notify("Error saving task.")
            return False

        self.close()
        return True

    async def delete(self, key: str) -> bool:
        identity = self._identities.current_or_create()
        try:
            await self._coordinator.delete_aggregate(key, identity=identity)
        except RefreshError as e:
            logger.warning("Deleted key=%s, but refresh failed: %s", key, e)
            self._notifier.notify("Task deleted, but the list could not be refreshed.")
        except StoreWriteError as e:
            logger.warning("Delete failed key=%s: %s", key, e)
            self._notifier.notify("Error deleting task.")
            return False
        except StoreReadError as e:
            logger.warning("Delete failed to read key=%s: %s", key, e)
            self._notifier.notify("Error loading subtasks.")
            return False
        if self.is_open and self.main_task.id == key:
            self.close()
        return True

    # ---- listed tasks (no editor session) ----

    def _find_listed(self, key: str) -> TaskAggregate | None:
        agg = self._board.find(key)
        if agg is None:
            self._notifier.notify(f"Task {key} not found.")
        return agg

    async def _guarded_write(self, action: str, key: str, write: Awaitable[Any]) -> bool:
        try:
            await write
        except RefreshError as e:
            logger.warning("Refresh after %s failed key=%s: %s", action, key, e)
            self._notifier.notify("Task updated, but the list could not be refreshed.")
        except StoreWriteError as e:
            logger.warning("%s failed key=%s: %s", action, key, e)
            self._notifier.notify("Error updating task.")
            return False
        return True

    async def toggle_complete(self, key: str, sub_position: int | None = None) -> bool:
        """Flip `completed` on a listed main task, or on its n-th subtask (1-based)."""
        agg = self._find_listed(key)
        if agg is None:
            return False
        task = _pick(agg, sub_position)
        identity = self._identities.current_or_create()
        return await self._guarded_write(
            "toggle", key, self._coordinator.toggle_complete(task, identity=identity)
        )

    async def rename_listed(self, key: str, title: str, sub_position: int | None = None) -> bool:
        agg = self._find_listed(key)
        if agg is None:
            return False
        task = _pick(agg, sub_position)
        identity = self._identities.current_or_create()
        return await self._guarded_write(
            "rename", key, self._coordinator.rename_task(task.id, title, identity=identity)
        )

    async def delete_listed_subtask(self, key: str, sub_position: int) -> bool:
        agg = self._find_listed(key)
        if agg is None:
            return False
        task = _pick(agg, sub_position)
        return await self._guarded_write("delete subtask", key, self._coordinator.delete_task(task.id))


def _pick(agg: TaskAggregate, sub_position: int | None) -> Task:
    """The main task, or the sub_position-th subtask in display order."""
    if sub_position is None:
        if not agg.has_main_task:
            raise ValidationError("That task has no main record.", field="key")
        return agg.main_task
    subs = sort_subtasks(agg.subtasks)
    if not 1 <= sub_position <= len(subs):
        raise ValidationError(f"No subtask #{sub_position}.", field="subtasks")
    return subs[sub_position - 1]
