# src/tasksmith/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the record store, LLM provider and front end swappable and makes
testing easier.
"""

from typing import Any, Awaitable, Iterable, Protocol

ChatMessage = dict[str, Any]
# OpenAI-style chat messages: {"role": "...", "content": ...}.
# content is a string, or a list of parts when an image is attached.

Record = dict[str, Any]


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI/OpenRouter-compatible)."""
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...


class RecordStore(Protocol):
    """
    Document collection holding task records.

    Single-document writes are atomic; nothing spans more than one document.
    Deleting a missing id is a successful no-op.
    """

    async def list_records(self) -> list[Record]: ...
    # all records, newest createdTime first

    async def query(self, field: str, value: Any) -> list[Record]: ...

    async def get(self, record_id: str) -> Record | None: ...

    async def put(self, record_id: str, record: Record, *, merge: bool = False) -> None: ...

    async def delete(self, record_id: str) -> None: ...

    def new_id(self) -> str: ...


class Notifier(Protocol):
    """
    Front-end side port: how the core reports user-visible notices
    (store failures, generation failures).
    """

    def notify(self, text: str) -> None: ...


class TaskGenerator(Protocol):
    """Generation collaborator: drafts, never written directly to the store."""

    def generate_main_task(self, active_titles: list[str]) -> Awaitable[Any]: ...

    def generate_subtasks(
            self,
            *,
            title: str | None = None,
            image_bytes: bytes | None = None,
            image_mime: str = "image/png",
            existing_titles: list[str] | None = None,
    ) -> Awaitable[list[Any]]: ...
