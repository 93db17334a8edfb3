# src/taskmatrix/ops/demo_tasks.py

"""
Example task set used by the CLI.

Each task only touches collaborators that are present on the context, so the
set can be registered against a partially wired matrix.
"""

from __future__ import annotations

import logging
import time

from ..core.ports import LLMRequest
from ..tasks.task_models import Mood, TaskContext, TaskDefinition
from .matrix import TaskMatrix

logger = logging.getLogger(__name__)

DEMO_PLUGIN = "demo-tasks"
DEMO_SYMBOL = "BTC/USD"


def _has(*names: str):
    def _condition(ctx: TaskContext) -> bool:
        return all(getattr(ctx, n, None) is not None for n in names)

    return _condition


async def _store_heartbeat(ctx: TaskContext) -> float:
    last = ctx.ops.last_heartbeat if ctx.ops is not None else None
    value = last if last is not None else time.time()
    ctx.memory.set("lastHeartbeat", value)
    return value


async def _log_balance(ctx: TaskContext) -> float:
    balance = await ctx.trading.get_balance()
    logger.info("Trading balance: %.2f", balance)
    return balance


async def _market_summary(ctx: TaskContext) -> str:
    response = await ctx.llm.generate(
        LLMRequest(prompt="Summarize today's market news in two sentences.", max_tokens=120)
    )
    logger.info("LLM summary (%s): %s", response.model, response.content)
    ctx.memory.set("lastSummary", response.content)
    return response.content


async def _llm_to_trade(ctx: TaskContext) -> dict | None:
    market = await ctx.trading.get_market_data(DEMO_SYMBOL)
    response = await ctx.llm.generate(
        LLMRequest(
            prompt=(
                f"{DEMO_SYMBOL} trades at {market['price']:.2f}. "
                "Answer with a single word: buy, sell or hold."
            ),
            max_tokens=5,
        )
    )
    answer = response.content.strip().lower()
    if answer.startswith("buy"):
        return await ctx.trading.place_order(symbol=DEMO_SYMBOL, side="buy", amount=0.01)
    logger.info("LLM trade signal: %s (no order)", answer[:40])
    return None


def demo_tasks() -> list[TaskDefinition]:
    return [
        TaskDefinition(
            id="memory-store",
            name="Memory Update",
            description="Store the last heartbeat timestamp in memory",
            run=_store_heartbeat,
            condition=_has("memory"),
            interval=5.0,
            plugin=DEMO_PLUGIN,
        ),
        TaskDefinition(
            id="trading-balance",
            name="Trading Balance Check",
            description="Log the trading balance",
            run=_log_balance,
            condition=_has("trading"),
            interval=30.0,
            plugin=DEMO_PLUGIN,
        ),
        TaskDefinition(
            id="llm-summary",
            name="Market News Summary",
            description="Ask the LLM for a market summary",
            run=_market_summary,
            condition=_has("llm", "memory"),
            interval=60.0,
            plugin=DEMO_PLUGIN,
            emotional={"mood": Mood.ANALYTICAL},
        ),
        TaskDefinition(
            id="llm-to-trade",
            name="LLM Trading Decision",
            description="Let the LLM decide whether to open a small paper position",
            run=_llm_to_trade,
            condition=_has("llm", "trading"),
            interval=120.0,
            plugin=DEMO_PLUGIN,
            priority=-1,
            emotional={"mood": Mood.ADAPTIVE},
            control={"timeout": 60.0},
        ),
    ]


def register_demo_tasks(ops: TaskMatrix) -> list[str]:
    ids: list[str] = []
    for task in demo_tasks():
        ops.register_task(task)
        ids.append(task.id)
    return ids
