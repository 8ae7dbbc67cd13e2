# src/tasksmith/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

Record = dict[str, Any]
# Flat store document. Keys use the stored (camelCase) field names.


class Priority(StrEnum):
    """Main-task priority. Subtasks carry NONE."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_raw(cls, raw: Any) -> Priority:
        if raw is None:
            return cls.NONE
        s = str(raw).strip().lower()
        if not s:
            return cls.NONE
        try:
            return cls(s)
        except ValueError:
            return cls.NONE


def _opt_str(v: Any) -> str | None:
    if v is None:
        return None
    s = str(v)
    return s if s.strip() else None


def _opt_int(v: Any) -> int | None:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


@dataclass(slots=True)
class Task:
    id: str
    title: str
    completed: bool = False
    priority: Priority = Priority.NONE
    owner: str = ""
    created_time: float | None = None

    parent_id: str | None = None
    order: int | None = None

    due_date: str | None = None
    description: str | None = None
    flagged: bool | None = None

    @property
    def is_main(self) -> bool:
        return not self.parent_id

    @classmethod
    def empty(cls) -> Task:
        """Placeholder main task for aggregates whose main record is missing."""
        return cls(id="", title="")

    @classmethod
    def from_record(cls, record: Record) -> Task:
        created = record.get("createdTime")
        try:
            created_time = float(created) if created is not None else None
        except (TypeError, ValueError):
            created_time = None

        flagged = record.get("flagged")
        return cls(
            id=str(record.get("id") or ""),
            title=str(record.get("title") or ""),
            completed=bool(record.get("completed", False)),
            priority=Priority.from_raw(record.get("priority")),
            owner=str(record.get("owner") or ""),
            created_time=created_time,
            parent_id=_opt_str(record.get("parentId")),
            order=_opt_int(record.get("order")),
            due_date=_opt_str(record.get("dueDate")),
            description=_opt_str(record.get("description")),
            flagged=bool(flagged) if flagged is not None else None,
        )

    def to_record(self) -> Record:
        """
        Serialize to a store document.

        Optional fields that are unset are omitted, so a merge write leaves the
        stored value untouched.
        """
        rec: Record = {
            "id": self.id,
            "title": self.title,
            "completed": bool(self.completed),
            "priority": self.priority.value,
            "owner": self.owner,
        }
        if self.created_time is not None:
            rec["createdTime"] = float(self.created_time)
        if self.parent_id:
            rec["parentId"] = self.parent_id
        if self.order is not None:
            rec["order"] = int(self.order)
        if self.due_date is not None:
            rec["dueDate"] = self.due_date
        if self.description is not None:
            rec["description"] = self.description
        if self.flagged is not None:
            rec["flagged"] = bool(self.flagged)
        return rec


@dataclass(slots=True)
class TaskAggregate:
    """A main task with its subtasks. Derived from records, never persisted."""

    key: str
    main_task: Task
    subtasks: list[Task] = field(default_factory=list)

    @property
    def has_main_task(self) -> bool:
        return bool(self.main_task.id)


@dataclass(slots=True)
class SubtaskEntry:
    task: Task
    editing: bool = False
