# src/tasksmith/llm/client.py

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator
from typing import Any

import httpx
import openai
from openai import OpenAI

from ..core.ports import ChatMessage

logger = logging.getLogger(__name__)

_UNAVAILABLE_MODEL_COOLDOWN_SECONDS = 3600.0
_WRITE_TIMEOUT_SECONDS = 10.0

# failure kinds
_AUTH = "auth"
_UNAVAILABLE = "unavailable"
_RATE_LIMIT = "rate_limit"
_NETWORK = "network"
_OTHER = "other"


def classify_llm_error(exc: BaseException) -> str:
    """Map an SDK/transport exception to a coarse failure kind."""
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return _AUTH
    if isinstance(exc, openai.NotFoundError):
        return _UNAVAILABLE
    if isinstance(exc, openai.RateLimitError):
        return _RATE_LIMIT
    if isinstance(exc, (openai.APIConnectionError, httpx.TimeoutException, TimeoutError)):
        return _NETWORK
    return _OTHER


_FINAL_MESSAGES = {
    _RATE_LIMIT: "LLM is rate-limited. Try again later.",
    _NETWORK: "LLM network/timeout error. Try again later or change models.",
}


def _chunk_text(chunk: Any) -> str | None:
    choices = getattr(chunk, "choices", None)
    if not choices:
        return None
    delta = getattr(choices[0], "delta", None)
    return getattr(delta, "content", None) if delta is not None else None


def _close_quietly(stream: Any) -> None:
    close = getattr(stream, "close", None)
    if not callable(close):
        return
    try:
        close()
    except (httpx.HTTPError, RuntimeError):
        logger.debug("LLM: stream close failed", exc_info=True)


class OpenRouterLLMClient:
    """
    Streaming chat client for an OpenAI-compatible endpoint (OpenRouter by default).

    Models are tried in the configured order until one streams content:
    - auth errors stop immediately
    - a model reported as missing (404) is skipped for an hour
    - rate limits, network errors and a slow first token move on to the next model

    The SDK's own retries are off so the fallback stays fast. Every failure
    surfaces as RuntimeError with a user-facing message.
    """

    def __init__(self, settings: Any) -> None:
        api_key = str(getattr(settings, "openrouter_api_key", None) or "").strip()
        base_url = str(getattr(settings, "openrouter_base_url", None) or "").strip()
        if not api_key:
            raise RuntimeError("LLM API key is not set. Set TASKSMITH_OPENROUTER_API_KEY in your .env.")
        if not base_url:
            raise RuntimeError("LLM base URL is not set. Set TASKSMITH_OPENROUTER_BASE_URL in your .env.")

        self.models: list[str] = [m.strip() for m in getattr(settings, "llm_models", None) or [] if m.strip()]
        self._headers: dict[str, str] = dict(getattr(settings, "extra_headers", None) or {})
        self._first_token_timeout = float(getattr(settings, "llm_first_token_timeout", 20.0))

        connect = float(getattr(settings, "llm_connect_timeout", 5.0))
        self._timeout = httpx.Timeout(
            connect=connect,
            read=float(getattr(settings, "llm_read_timeout", 25.0)),
            write=_WRITE_TIMEOUT_SECONDS,
            pool=connect,
        )
        self._unavailable_until: dict[str, float] = {}
        self._client = OpenAI(base_url=base_url, api_key=api_key, timeout=self._timeout, max_retries=0)

    def _candidates(self) -> list[str]:
        now = time.monotonic()
        return [m for m in self.models if self._unavailable_until.get(m, 0.0) <= now]

    def _stream_model(self, model: str, messages: list[ChatMessage]) -> Iterator[str]:
        """Yield content chunks from one model; raise TimeoutError on a slow first token."""
        started = time.monotonic()
        stream = self._client.chat.completions.create(
            model=model,
            messages=messages,  # type: ignore[arg-type]
            stream=True,
            extra_headers=self._headers or None,
            timeout=self._timeout,
        )
        first = True
        try:
            for chunk in stream:
                if first and time.monotonic() - started > self._first_token_timeout:
                    raise TimeoutError(f"First token timeout on model: {model}")
                text = _chunk_text(chunk)
                if not text:
                    continue
                if first:
                    logger.info("LLM: first token from model=%s (%.2fs)", model, time.monotonic() - started)
                    first = False
                yield text
        finally:
            _close_quietly(stream)

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        if not self.models:
            raise RuntimeError("LLM model list is empty. Set TASKSMITH_LLM_MODELS in your .env.")

        full = [{"role": "system", "content": system_prompt}, *messages]
        last_kind: str | None = None
        last_error: BaseException | None = None

        for model in self._candidates():
            logger.info("LLM: trying model=%s", model)
            produced = False
            try:
                for text in self._stream_model(model, full):
                    produced = True
                    yield text
            except (openai.OpenAIError, httpx.HTTPError, TimeoutError) as e:
                if produced:
                    # a partial answer cannot be retried on another model
                    raise RuntimeError(f"LLM stream broke on model {model}.") from e
                last_error, last_kind = e, classify_llm_error(e)
                if last_kind == _AUTH:
                    raise RuntimeError(
                        "LLM authentication failed. Check your API key (TASKSMITH_OPENROUTER_API_KEY)."
                    ) from e
                if last_kind == _UNAVAILABLE:
                    self._unavailable_until[model] = time.monotonic() + _UNAVAILABLE_MODEL_COOLDOWN_SECONDS
                logger.info("LLM: model=%s failed (%s), trying next", model, last_kind)
                continue

            if produced:
                logger.debug("LLM: completed with model=%s", model)
                return
            logger.info("LLM: model=%s returned no content, trying next", model)

        message = _FINAL_MESSAGES.get(last_kind or "", "All LLM models failed.")
        raise RuntimeError(message) from last_error
