# src/tasksmith/llm/offline.py

from __future__ import annotations

import json
from collections.abc import Iterable

from ..core.ports import ChatMessage


def _last_user_text(messages: list[ChatMessage]) -> str:
    for m in reversed(messages):
        if m.get("role") != "user":
            continue
        content = m.get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts = [p.get("text", "") for p in content if isinstance(p, dict) and p.get("type") == "text"]
            return "\n".join(parts)
    return ""


class OfflineLLMClient:
    """
    Offline deterministic LLM client used for demos when no external API is configured.

    Behavior:
    - Subtask prompts -> a fixed three-step plan
    - Main task prompts -> a fixed low-priority suggestion
    """

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        text = _last_user_text(messages).lower()

        if "break this task down" in text:
            yield json.dumps(
                {
                    "subtasks": [
                        {"title": "Outline the steps", "order": 0},
                        {"title": "Do the first step", "order": 1},
                        {"title": "Review the result", "order": 2},
                    ]
                }
            )
            return

        yield json.dumps(
            {
                "title": "Tidy up your desk",
                "description": "Offline demo mode: set TASKSMITH_OPENROUTER_API_KEY for real suggestions.",
                "priority": "low",
            }
        )
