# src/taskpilot/llm/client.py

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from typing import Any

import httpx
import openai
from openai import OpenAI

from ..core.ports import ChatMessage

logger = logging.getLogger(__name__)


def _is_auth_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError))


def _is_rate_limit_error(exc: Exception) -> bool:
    return isinstance(exc, openai.RateLimitError)


def _is_connection_error(exc: Exception) -> bool:
    # APITimeoutError is a subclass of APIConnectionError.
    return isinstance(exc, (openai.APIConnectionError, httpx.TimeoutException, TimeoutError))


def _is_not_found_error(exc: Exception) -> bool:
    # OpenAI-compatible endpoints answer 404 for models they do not serve
    return isinstance(exc, openai.NotFoundError)


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "LLM error."
    if "LLM API key is not set" in msg:
        return "LLM is not configured (missing API key). Set TASKPILOT_OPENROUTER_API_KEY in .env."
    if "LLM model list is empty" in msg:
        return "LLM is not configured (no models). Set TASKPILOT_LLM_MODELS in .env."
    if "LLM base URL is not set" in msg:
        return "LLM is not configured (missing base URL). Set TASKPILOT_OPENROUTER_BASE_URL in .env."
    return msg


class OpenRouterLLMClient:
    """
    Streaming chat client for an OpenAI-compatible endpoint (OpenRouter by default).

    Behavior:
    - Tries models in the configured order (TASKPILOT_LLM_MODELS).
    - Only transport-level failures move on to the next model: 404 (model not
      served), rate limit, network/timeout before any content arrived.
    - Auth issues fail fast.
    - With a deadline, no model is tried once it has passed and each request
      timeout is capped to the remaining budget.
    - Once a model started producing content, its answer is final.
    """

    # model -> retry_at (monotonic); shared so a 404 is remembered across clients
    _bad_models: dict[str, float] = {}

    def __init__(self, settings: Any) -> None:
        api_key = getattr(settings, "openrouter_api_key", None)
        base_url = getattr(settings, "openrouter_base_url", "") or ""

        if not api_key or not str(api_key).strip():
            raise RuntimeError("LLM API key is not set. Set TASKPILOT_OPENROUTER_API_KEY in your .env.")
        if not base_url.strip():
            raise RuntimeError("LLM base URL is not set. Set TASKPILOT_OPENROUTER_BASE_URL in your .env.")

        self._models: list[str] = [m.strip() for m in (getattr(settings, "llm_models", []) or []) if m.strip()]
        if not self._models:
            raise RuntimeError("LLM model list is empty. Set TASKPILOT_LLM_MODELS in your .env.")

        self._headers: dict[str, str] = dict(getattr(settings, "extra_headers", {}) or {})

        self._connect_s = float(getattr(settings, "llm_connect_timeout_seconds", 5.0))
        self._read_s = float(getattr(settings, "llm_read_timeout_seconds", 25.0))
        self._timeout = httpx.Timeout(connect=self._connect_s, read=self._read_s, write=10.0, pool=self._connect_s)

        # Automatic retries are disabled; the model list is the only fallback.
        self._client = OpenAI(
            base_url=str(base_url),
            api_key=str(api_key),
            timeout=self._timeout,
            max_retries=0,
        )
        logger.info("LLM client ready base_url=%s models=%s", base_url, ",".join(self._models))

    @property
    def models(self) -> list[str]:
        return list(self._models)

    def _request_timeout(self, deadline: float | None) -> httpx.Timeout:
        if deadline is None:
            return self._timeout
        remaining = max(0.1, deadline - time.monotonic())
        connect_s = min(self._connect_s, remaining)
        return httpx.Timeout(connect=connect_s, read=min(self._read_s, remaining), write=10.0, pool=connect_s)

    def stream_chat(
        self,
        messages: list[ChatMessage],
        system_prompt: str,
        *,
        deadline: float | None = None,
    ) -> Iterable[str]:
        last_error: Exception | None = None
        now = time.monotonic()

        for model in self._models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            if deadline is not None and time.monotonic() >= deadline:
                logger.info("LLM: deadline reached, not trying model=%s", model)
                raise TimeoutError("LLM deadline reached before any model answered.") from last_error

            logger.info("LLM: trying model=%s", model)
            t0 = time.monotonic()
            stream = None
            used_any = False

            try:
                stream = self._client.chat.completions.create(
                    model=model,
                    stream=True,
                    extra_headers=self._headers or None,
                    messages=[{"role": "system", "content": system_prompt}, *messages],
                    timeout=self._request_timeout(deadline),
                )

                for chunk in stream:
                    if not used_any and deadline is not None and time.monotonic() > deadline:
                        raise TimeoutError(f"No content from model={model} before the deadline")
                    content = chunk.choices[0].delta.content if chunk.choices else None
                    if content:
                        if not used_any:
                            logger.info("LLM: first token from model=%s (%.2fs)", model, time.monotonic() - t0)
                        used_any = True
                        yield content

                if used_any:
                    logger.debug("LLM: completed with model=%s", model)
                    return

                last_error = RuntimeError(f"Model returned no content: {model}")

            except Exception as e:
                if used_any:
                    raise
                last_error = e

                if _is_auth_error(e):
                    raise RuntimeError(
                        "LLM authentication failed. Check your API key (TASKPILOT_OPENROUTER_API_KEY)."
                    ) from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + 3600.0  # 1 hour
                    logger.info("LLM: model not available (404): %s", model)
                    continue

                if _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                    continue

                if _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                    continue

                raise

            finally:
                if stream is not None:
                    stream.close()

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise RuntimeError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise RuntimeError("LLM network/timeout error. Try again later or change models.") from last_error
            raise RuntimeError("All LLM models failed.") from last_error

        raise RuntimeError("All LLM models failed.")
