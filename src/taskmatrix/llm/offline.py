# src/taskmatrix/llm/offline.py

from __future__ import annotations

from collections import deque

from ..core.ports import LLMRequest, LLMResponse


class OfflineLLMBridge:
    """
    Offline deterministic LLM bridge used when no API key is configured.

    Echoes the prompt back so demo tasks can run end to end without network.
    """

    model = "offline"

    def __init__(self) -> None:
        self.requests: deque[LLMRequest] = deque(maxlen=32)

    async def generate(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        prompt = (request.prompt or "").strip()
        content = (
            "Offline mode: no LLM is configured. "
            "Set TASKMATRIX_LLM_API_KEY to enable real responses. "
            f"Prompt was: {prompt}"
        )
        return LLMResponse(
            content=content,
            model=self.model,
            prompt_tokens=len(prompt.split()),
            completion_tokens=len(content.split()),
        )
