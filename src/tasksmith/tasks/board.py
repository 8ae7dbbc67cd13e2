# src/tasksmith/tasks/board.py

from __future__ import annotations

"""
Task board: the owned snapshot of all task records and their aggregates.

refresh() is the only writer. Overlapping refreshes are serialized, and
subscribers receive every new snapshot (push-based view for front ends).
A failed refresh keeps the last-known-good snapshot.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from ..core.errors import StoreReadError
from ..core.ports import RecordStore
from .aggregator import aggregate, find_aggregate
from .task_models import Task, TaskAggregate

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class BoardSnapshot:
    version: int
    tasks: tuple[Task, ...] = ()
    aggregates: tuple[TaskAggregate, ...] = field(default_factory=tuple)


BoardListener = Callable[[BoardSnapshot], None]


class TaskBoard:
    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self._lock = asyncio.Lock()
        self._snapshot = BoardSnapshot(version=0)
        self._listeners: list[BoardListener] = []

    @property
    def snapshot(self) -> BoardSnapshot:
        return self._snapshot

    @property
    def aggregates(self) -> tuple[TaskAggregate, ...]:
        return self._snapshot.aggregates

    @property
    def loaded(self) -> bool:
        return self._snapshot.version > 0

    def find(self, key: str) -> TaskAggregate | None:
        return find_aggregate(self._snapshot.aggregates, key)

    def active_main_titles(self) -> list[str]:
        return [
            t.title for t in self._snapshot.tasks if t.is_main and not t.completed and t.title
        ]

    def subscribe(self, listener: BoardListener) -> Callable[[], None]:
        """Register a listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def refresh(self) -> BoardSnapshot:
        """
        Re-read every record and rebuild the aggregates from scratch.

        Raises StoreReadError on failure; the previous snapshot stays current.
        """
        async with self._lock:
            try:
                records = await self._store.list_records()
            except StoreReadError:
                logger.warning("Board refresh failed; keeping snapshot v%s", self._snapshot.version)
                raise

            tasks = tuple(Task.from_record(r) for r in records)
            snap = BoardSnapshot(
                version=self._snapshot.version + 1,
                tasks=tasks,
                aggregates=tuple(aggregate(tasks)),
            )
            self._snapshot = snap
            logger.debug(
                "Board refreshed v%s tasks=%d aggregates=%d",
                snap.version,
                len(snap.tasks),
                len(snap.aggregates),
            )

        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("Board listener failed")
        return snap
