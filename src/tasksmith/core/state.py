# src/tasksmith/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..tasks.board import TaskBoard
from ..tasks.coordinator import AggregateWriteCoordinator
from ..tasks.editor import TaskEditor
from ..tasks.identity import IdentityProvider
from .ports import LLMClient, Notifier, RecordStore, TaskGenerator


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    llm: LLMClient
    store: RecordStore
    board: TaskBoard
    identities: IdentityProvider
    coordinator: AggregateWriteCoordinator
    generator: TaskGenerator
    notifier: Notifier
    editor: TaskEditor

    suggested_initial_task: bool = False
