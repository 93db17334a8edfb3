# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from taskmatrix.config import Settings
from taskmatrix.ops.matrix import Collaborators, TaskMatrix

from .fakes import EventRecorder, FakeClock, FakeKernel, FakeLLMBridge


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Explicit Settings for tests.

    Built directly rather than from the environment, to keep unit tests
    isolated and deterministic (no API key -> offline LLM bridge).
    """
    return Settings(
        app_name="taskmatrix-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        tick_seconds=0.01,
        heartbeat_seconds=0.05,
        default_task_timeout_seconds=1.0,
        llm_api_key=None,
        llm_base_url="http://localhost:9/v1",
        llm_models=["model-a", "model-b"],
        llm_timeout_seconds=1.0,
    )


@pytest.fixture()
def kernel() -> FakeKernel:
    return FakeKernel()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def collaborators(kernel: FakeKernel) -> Collaborators:
    return Collaborators(kernel=kernel, llm=FakeLLMBridge())


@pytest.fixture()
def ops(collaborators: Collaborators, clock: FakeClock) -> TaskMatrix:
    """TaskMatrix on a manual clock, for single-tick tests driven via run_tick()."""
    return TaskMatrix(collaborators, tick_seconds=0.01, heartbeat_seconds=0.05, clock=clock)


@pytest.fixture()
def recorder(ops: TaskMatrix) -> EventRecorder:
    rec = EventRecorder()
    ops.on("*", rec)
    return rec
