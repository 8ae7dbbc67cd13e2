# src/tasksmith/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (store/board/LLM/editor).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import LLMClient, Notifier, RecordStore
from ..core.state import AppState
from ..llm.client import OpenRouterLLMClient
from ..llm.drafts import TaskDraftGenerator
from ..llm.offline import OfflineLLMClient
from ..tasks.board import TaskBoard
from ..tasks.coordinator import AggregateWriteCoordinator
from ..tasks.editor import TaskEditor
from ..tasks.identity import IdentityProvider
from ..tasks.task_store import SqliteRecordStore

logger = logging.getLogger(__name__)


class LogNotifier:
    """Notifier used when no front end is attached: notices go to the log."""

    def notify(self, text: str) -> None:
        logger.warning("Notice: %s", text)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def _build_llm(settings) -> LLMClient:
    try:
        return OpenRouterLLMClient(settings)
    except RuntimeError as e:
        # Fallback for demos / local runs without external services.
        logger.info("Using offline LLM client: %s", e)
        return OfflineLLMClient()


def create_initial_state(
    *,
    settings=None,
    notifier: Notifier | None = None,
    store: RecordStore | None = None,
    llm: LLMClient | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the collaborators) injectable makes the app easier
    to test and avoids hidden global config reads. If settings is None, falls
    back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    if store is None:
        _ensure_local_dirs(settings)
        store = SqliteRecordStore(settings.tasks_db_path)
    if llm is None:
        llm = _build_llm(settings)
    if notifier is None:
        notifier = LogNotifier()

    board = TaskBoard(store)
    identities = IdentityProvider(local_prefix=getattr(settings, "local_owner_prefix", "local-"))
    coordinator = AggregateWriteCoordinator(store, board)
    generator = TaskDraftGenerator(llm)
    editor = TaskEditor(
        store=store,
        board=board,
        coordinator=coordinator,
        generator=generator,
        identities=identities,
        notifier=notifier,
    )

    return AppState(
        settings=settings,
        llm=llm,
        store=store,
        board=board,
        identities=identities,
        coordinator=coordinator,
        generator=generator,
        notifier=notifier,
        editor=editor,
    )
