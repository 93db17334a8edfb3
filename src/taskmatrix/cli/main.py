# src/taskmatrix/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the TaskMatrix, starts it and runs until
SIGINT/SIGTERM.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from ..config import get_settings
from ..core.events import Event, EventName
from ..logging_setup import setup_logging
from ..ops.matrix import TaskMatrix
from .bootstrap import create_matrix

logger = logging.getLogger(__name__)


def _log_task_error(event: Event) -> None:
    logger.error("Task %s failed: %s", event.data.get("id"), event.data.get("error"))


def _log_task_skipped(event: Event) -> None:
    logger.info("Task %s skipped: %s", event.data.get("id"), event.data.get("reason"))


async def run(ops: TaskMatrix, *, duration: float | None = None) -> None:
    stop_main = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _handle_signal(signum: int) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _handle_signal, sig)
        except (NotImplementedError, RuntimeError):
            # Some platforms (Windows) do not support loop signal handlers.
            pass

    ops.on(EventName.TASK_ERROR, _log_task_error)
    ops.on(EventName.TASK_SKIPPED, _log_task_skipped)

    ops.start()
    try:
        if duration is None:
            await stop_main.wait()
        else:
            try:
                await asyncio.wait_for(stop_main.wait(), timeout=duration)
            except asyncio.TimeoutError:
                pass
    finally:
        ops.stop()
        await ops.join()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="taskmatrix", description="Run the task matrix.")
    parser.add_argument("--no-demo", action="store_true", help="register only the heartbeat task")
    parser.add_argument("--duration", type=float, default=None, help="stop after N seconds")
    args = parser.parse_args(argv)

    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    logger.info("Starting %s...", settings.app_name)

    async def _amain() -> None:
        ops = create_matrix(settings=settings, with_demo_tasks=not args.no_demo)
        await run(ops, duration=args.duration)

    try:
        asyncio.run(_amain())
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
