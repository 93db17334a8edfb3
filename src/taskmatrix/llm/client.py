# src/taskmatrix/llm/client.py

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from ..config import Settings, get_settings
from ..core.ports import ChatMessage, LLMRequest, LLMResponse

logger = logging.getLogger(__name__)

BAD_MODEL_COOLDOWN_SECONDS = 3600.0
HEALTH_CHECK_PROMPT = "Hello"


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return exc.__class__.__name__ in {
        "AuthenticationError",
        "PermissionDeniedError",
        "UnauthorizedError",
    }


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"RateLimitError", "TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    if isinstance(exc, openai.APIConnectionError):
        return True
    return exc.__class__.__name__ in {
        "APIConnectionError",
        "APITimeoutError",
        "Timeout",
        "ConnectTimeout",
        "ReadTimeout",
        "WriteTimeout",
    }


def _is_not_found_error(exc: Exception) -> bool:
    # OpenAI-compatible servers use NotFoundError for unknown models
    if isinstance(exc, openai.NotFoundError):
        return True
    return exc.__class__.__name__ in {"NotFoundError"}


def build_messages(request: LLMRequest) -> list[ChatMessage]:
    messages: list[ChatMessage] = []
    if request.system:
        messages.append({"role": "system", "content": request.system})
    messages.extend(request.conversation)
    messages.append({"role": "user", "content": request.prompt})
    return messages


def cache_key(request: LLMRequest) -> tuple:
    conversation = tuple(tuple(sorted(m.items())) for m in request.conversation)
    return (request.prompt, request.system, conversation, request.temperature, request.max_tokens)


@dataclass(slots=True)
class LLMStats:
    total_requests: int = 0
    cache_hits: int = 0
    errors: int = 0
    total_tokens: int = 0
    total_duration: float = 0.0

    @property
    def cache_hit_rate(self) -> float:
        return self.cache_hits / self.total_requests if self.total_requests else 0.0

    @property
    def average_duration(self) -> float:
        """Mean latency of requests that reached the API."""
        served = self.total_requests - self.cache_hits - self.errors
        return self.total_duration / served if served > 0 else 0.0


class OpenAILLMBridge:
    """
    LLM bridge backed by an OpenAI-compatible chat completions API.

    Behavior:
    - Tries models in order (settings.llm_models).
    - 404 (model not available) -> model is skipped for an hour, try next.
    - Rate limit / network issues -> try next.
    - Auth issues -> fail fast.
    - Successful responses are cached per request for llm_cache_ttl_seconds.
    """

    def __init__(
            self,
            settings: Settings | None = None,
            *,
            client: Any = None,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = settings or get_settings()
        self._models: list[str] = [m.strip() for m in settings.llm_models if m and m.strip()]
        if not self._models:
            raise RuntimeError("LLM model list is empty. Set TASKMATRIX_LLM_MODELS in your .env.")

        if client is None:
            api_key = settings.llm_api_key
            if not api_key or not str(api_key).strip():
                raise RuntimeError("LLM API key is not set. Set TASKMATRIX_LLM_API_KEY in your .env.")
            # No SDK retries: we fall back across models instead.
            client = AsyncOpenAI(
                base_url=settings.llm_base_url,
                api_key=str(api_key),
                timeout=settings.llm_timeout_seconds,
                max_retries=0,
            )
        self._client = client
        self._bad_models: dict[str, float] = {}  # model -> retry_at (monotonic)
        self._cache_ttl = float(settings.llm_cache_ttl_seconds)
        self._cache: dict[tuple, tuple[float, LLMResponse]] = {}  # key -> (expires_at, response)
        self._clock = clock
        self._stats = LLMStats()

    @property
    def models(self) -> list[str]:
        return list(self._models)

    @property
    def stats(self) -> LLMStats:
        return replace(self._stats)

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()

    async def generate(self, request: LLMRequest) -> LLMResponse:
        self._stats.total_requests += 1
        key = cache_key(request)
        now = self._clock()

        cached = self._cache.get(key)
        if cached is not None:
            expires_at, response = cached
            if expires_at > now:
                self._stats.cache_hits += 1
                return replace(response)
            del self._cache[key]

        try:
            response = await self._generate(request)
        except Exception:
            self._stats.errors += 1
            raise

        self._stats.total_tokens += response.total_tokens
        self._stats.total_duration += response.duration
        if self._cache_ttl > 0:
            self._cache[key] = (now + self._cache_ttl, response)
        return replace(response)

    async def health_check(self) -> dict[str, Any]:
        """Probe the API with a tiny uncached request."""
        try:
            response = await self._generate(LLMRequest(prompt=HEALTH_CHECK_PROMPT, max_tokens=5))
        except RuntimeError as e:
            logger.warning("LLM health check failed: %s", e)
            return {"status": "unhealthy", "reason": str(e)}
        return {
            "status": "healthy",
            "model": response.model,
            "duration": response.duration,
            "cache_size": self.cache_size,
        }

    async def _complete(self, model: str, request: LLMRequest) -> Any:
        kwargs: dict[str, Any] = {"model": model, "messages": build_messages(request)}
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if request.max_tokens is not None:
            kwargs["max_tokens"] = request.max_tokens
        return await self._client.chat.completions.create(**kwargs)

    async def _generate(self, request: LLMRequest) -> LLMResponse:
        last_error: Optional[Exception] = None
        now = time.monotonic()

        for model in self._models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            t0 = time.monotonic()
            logger.info("LLM: trying model=%s", model)
            try:
                completion = await self._complete(model, request)
            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise RuntimeError("LLM authentication failed. Check TASKMATRIX_LLM_API_KEY.") from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + BAD_MODEL_COOLDOWN_SECONDS
                    logger.info("LLM: model not available (404): %s", model)
                elif _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                elif _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                else:
                    logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)
                continue

            content = ""
            try:
                content = completion.choices[0].message.content or ""
            except (AttributeError, IndexError, TypeError):
                content = ""
            if not content:
                last_error = RuntimeError(f"Model returned no content: {model}")
                logger.info("LLM: empty response from model=%s, trying next", model)
                continue

            usage = getattr(completion, "usage", None)
            return LLMResponse(
                content=content,
                model=str(getattr(completion, "model", None) or model),
                prompt_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
                completion_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
                duration=time.monotonic() - t0,
            )

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise RuntimeError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise RuntimeError("LLM network/timeout error. Try again later or change models.") from last_error
            raise RuntimeError("All LLM models failed.") from last_error

        raise RuntimeError("All LLM models failed.")
