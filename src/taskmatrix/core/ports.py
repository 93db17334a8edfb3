# src/taskmatrix/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) for the collaborators reachable from a task context.

The scheduler never calls these itself (except the optional Kernel hooks);
they exist so task bodies and adapters can be typed structurally.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Protocol

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


@dataclass(slots=True)
class LLMRequest:
    prompt: str
    system: str | None = None
    conversation: list[ChatMessage] = field(default_factory=list)
    temperature: float | None = None
    max_tokens: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class LLMResponse:
    content: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    duration: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class Kernel(Protocol):
    """
    Kernel hooks used by the matrix.

    All three are optional at runtime: the matrix checks for each one
    before calling it, so a bare object is a valid kernel.
    """

    def heartbeat(self) -> Any: ...
    def self_heal(self) -> Any: ...
    def recover(self) -> Any: ...


class LLMBridge(Protocol):
    def generate(self, request: LLMRequest) -> Awaitable[LLMResponse]: ...


class PatternEngine(Protocol):
    def recognize_pattern(self, data: Any) -> Awaitable[Any]: ...
    def make_decision(self, context: Any) -> Awaitable[Any]: ...
    def get_patterns(self) -> list[Any]: ...


class ConsciousnessEngine(Protocol):
    def map_consciousness(self, data: Any) -> Awaitable[Any]: ...
    def recognize_dream_pattern(self, data: Any) -> Awaitable[Any]: ...
    def integrate_with_lilith(self, data: Any) -> Awaitable[Any]: ...


class CodeGenBridge(Protocol):
    def generate_code(self, context: Any) -> Awaitable[Any]: ...
    def analyze_code(self, code: str) -> Awaitable[Any]: ...
    def optimize_code(self, code: str) -> Awaitable[Any]: ...


class MemoryBackend(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...


class TradingBackend(Protocol):
    def get_balance(self) -> Awaitable[float]: ...
    def get_market_data(self, symbol: str) -> Awaitable[dict[str, Any]]: ...
    def place_order(self, *, symbol: str, side: str, amount: float) -> Awaitable[dict[str, Any]]: ...
