# src/taskmatrix/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) data directory exists,
- wires concrete collaborators (LLM bridge, simulated backends) into a TaskMatrix.
"""

from __future__ import annotations

import logging

from ..backends import InMemoryStore, PaperTradingBackend
from ..config import Settings, get_settings
from ..core.ports import LLMBridge
from ..llm.client import OpenAILLMBridge
from ..llm.offline import OfflineLLMBridge
from ..ops.bootstrap import bootstrap_task_matrix
from ..ops.demo_tasks import DEMO_PLUGIN, register_demo_tasks
from ..ops.matrix import Collaborators, TaskMatrix

logger = logging.getLogger(__name__)


class LocalKernel:
    """Minimal in-process kernel: counts heartbeats and heal requests."""

    def __init__(self) -> None:
        self.beats = 0
        self.heals = 0
        self.recoveries = 0

    def heartbeat(self) -> int:
        self.beats += 1
        return self.beats

    def self_heal(self) -> None:
        self.heals += 1

    def recover(self) -> None:
        self.recoveries += 1
        logger.warning("Kernel recovery requested (#%d)", self.recoveries)


def create_llm_bridge(settings: Settings) -> LLMBridge:
    try:
        return OpenAILLMBridge(settings)
    except RuntimeError as e:
        # Fallback for demos / local runs without external services.
        logger.info("Using offline LLM bridge: %s", e)
        return OfflineLLMBridge()


def create_matrix(*, settings: Settings | None = None, with_demo_tasks: bool = True) -> TaskMatrix:
    """
    Build a ready-to-start TaskMatrix from settings.

    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    settings.data_dir.mkdir(parents=True, exist_ok=True)

    collaborators = Collaborators(
        kernel=LocalKernel(),
        llm=create_llm_bridge(settings),
        memory=InMemoryStore(),
        trading=PaperTradingBackend(),
    )
    ops = bootstrap_task_matrix(collaborators, settings=settings)
    if with_demo_tasks:
        ops.plugin(DEMO_PLUGIN, register_demo_tasks)
    return ops
