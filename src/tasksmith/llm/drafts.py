# src/tasksmith/llm/drafts.py

"""
Task draft generation.

Prompts the LLM for a main-task suggestion or a subtask breakdown and turns
the answer into strict drafts. LLM output is untrusted: anything that does not
fit the draft shape is rejected with GenerationError, never passed through.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from dataclasses import dataclass
from typing import Any

from ..core.errors import GenerationError
from ..core.ports import ChatMessage, LLMClient
from ..tasks.task_models import Priority

logger = logging.getLogger(__name__)

DRAFT_SYSTEM_PROMPT = """
You draft TODO items for a personal task list.

Keep TODO titles short, ideally within 7 words.

Output format:
Return STRICT JSON only. No extra text. No Markdown.
""".strip()

MAIN_TASK_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "description": {"type": "string"},
        "priority": {"type": "string", "enum": [p.value for p in Priority]},
    },
}

SUBTASKS_SCHEMA = {
    "subtasks": [
        {
            "title": {"type": "string"},
            "order": {"type": "int"},
        }
    ]
}


@dataclass(slots=True, frozen=True)
class MainTaskDraft:
    title: str
    priority: Priority = Priority.NONE
    description: str | None = None


@dataclass(slots=True, frozen=True)
class SubtaskDraft:
    title: str


def _extract_json(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```"):
        raw = raw.strip("`")
        if raw.lower().startswith("json"):
            raw = raw[4:]
        raw = raw.strip()
    if (raw.startswith("{") and raw.endswith("}")) or (raw.startswith("[") and raw.endswith("]")):
        return raw
    first = raw.find("{")
    last = raw.rfind("}")
    if first != -1 and last != -1 and last > first:
        return raw[first : last + 1]
    return raw


def _parse_json(raw: str) -> Any:
    try:
        return json.loads(_extract_json(raw))
    except ValueError as e:
        raise GenerationError("Generated draft is not valid JSON.") from e


def _clean_title(v: Any) -> str | None:
    if not isinstance(v, str):
        return None
    title = " ".join(v.split())
    return title or None


def parse_main_task_draft(raw: str) -> MainTaskDraft:
    data = _parse_json(raw)
    if not isinstance(data, dict):
        raise GenerationError("Generated task must be a JSON object.")

    title = _clean_title(data.get("title"))
    if title is None:
        raise GenerationError("Generated task has no usable title.")

    description = data.get("description")
    if description is not None and not isinstance(description, str):
        raise GenerationError("Generated task description must be text.")

    if description is not None:
        description = description.strip() or None

    return MainTaskDraft(
        title=title,
        priority=Priority.from_raw(data.get("priority")),
        description=description,
    )


def parse_subtask_drafts(raw: str) -> list[SubtaskDraft]:
    data = _parse_json(raw)
    items = data.get("subtasks") if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise GenerationError("Generated subtasks must be a JSON list.")

    drafts: list[SubtaskDraft] = []
    for i, item in enumerate(items):
        value = item.get("title") if isinstance(item, dict) else item
        title = _clean_title(value)
        if title is None:
            raise GenerationError(f"Generated subtask #{i + 1} has no usable title.")
        drafts.append(SubtaskDraft(title=title))
    return drafts


def _image_part(image_bytes: bytes, mime: str) -> dict[str, Any]:
    data = base64.b64encode(image_bytes).decode("ascii")
    return {"type": "image_url", "image_url": {"url": f"data:{mime};base64,{data}"}}


class TaskDraftGenerator:
    """TaskGenerator implementation on top of an LLMClient."""

    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    def _complete(self, messages: list[ChatMessage]) -> str:
        return "".join(self._llm.stream_chat(messages, DRAFT_SYSTEM_PROMPT))

    async def _ask(self, messages: list[ChatMessage], what: str) -> str:
        try:
            raw = await asyncio.to_thread(self._complete, messages)
        except RuntimeError as e:
            logger.warning("Failed to generate %s: %s", what, e)
            raise GenerationError(f"Failed to generate {what}: {e}") from e
        logger.debug("Generated %s raw=%r", what, raw[:500])
        return raw

    @staticmethod
    def main_task_prompt(active_titles: list[str]) -> str:
        if active_titles:
            goal = f"is different from any of {json.dumps(active_titles, ensure_ascii=False)}."
        else:
            goal = "should be feasible in a few days at this time of the year"
        return f"Generate a TODO task that {goal} using this JSON schema: {json.dumps(MAIN_TASK_SCHEMA)}"

    @staticmethod
    def subtasks_prompt(title: str | None, has_image: bool, existing_titles: list[str]) -> str:
        parts = ["Break this task down into smaller pieces"]
        if title:
            parts.append(f'main task "{title}"')
        if has_image:
            parts.append("also consider the image in the input.")
        if existing_titles:
            parts.append("excluding these existing subtasks:\n" + "\n".join(existing_titles) + "\n")
        parts.append(f"The output should be in the format: {json.dumps(SUBTASKS_SCHEMA)}.")
        return " ".join(parts)

    async def generate_main_task(self, active_titles: list[str]) -> MainTaskDraft:
        prompt = self.main_task_prompt(active_titles)
        raw = await self._ask([{"role": "user", "content": prompt}], "task")
        return parse_main_task_draft(raw)

    async def generate_subtasks(
            self,
            *,
            title: str | None = None,
            image_bytes: bytes | None = None,
            image_mime: str = "image/png",
            existing_titles: list[str] | None = None,
    ) -> list[SubtaskDraft]:
        title = (title or "").strip() or None
        if title is None and not image_bytes:
            return []

        existing = list(existing_titles or [])
        prompt = self.subtasks_prompt(title, bool(image_bytes), existing)

        content: Any = prompt
        if image_bytes:
            content = [{"type": "text", "text": prompt}, _image_part(image_bytes, image_mime)]

        raw = await self._ask([{"role": "user", "content": content}], "subtasks")
        drafts = parse_subtask_drafts(raw)

        seen = {t.strip().lower() for t in existing}
        out: list[SubtaskDraft] = []
        for d in drafts:
            key = d.title.lower()
            if key in seen:
                continue
            seen.add(key)
            out.append(d)
        return out
