# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tasksmith.cli.bootstrap import create_initial_state
from tasksmith.core.state import AppState
from tasksmith.tasks.board import TaskBoard
from tasksmith.tasks.coordinator import AggregateWriteCoordinator
from tasksmith.tasks.identity import Identity

from .fakes import FakeLLMClient, FakeNotifier, FakeRecordStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tasksmith-test",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        local_owner_prefix="local-",
        llm_models=["fake/model"],
        suggest_on_empty=False,
        console_enabled=False,
    )


@pytest.fixture()
def store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture()
def board(store: FakeRecordStore) -> TaskBoard:
    return TaskBoard(store)


@pytest.fixture()
def coordinator(store: FakeRecordStore, board: TaskBoard) -> AggregateWriteCoordinator:
    return AggregateWriteCoordinator(store, board, clock=lambda: 1000.0)


@pytest.fixture()
def identity() -> Identity:
    return Identity(user_id="user-1", authenticated=True)


@pytest.fixture()
def llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    store: FakeRecordStore,
    llm: FakeLLMClient,
    notifier: FakeNotifier,
) -> AppState:
    """AppState wired with deterministic fakes."""
    return create_initial_state(settings=settings, store=store, llm=llm, notifier=notifier)
