"""
Periodic background sweeps for the process-wide cache and rate limiter.
Started and cancelled by the FastAPI lifespan in codebook_api.py.
"""

import asyncio
import logging
from typing import Callable, List

log = logging.getLogger(__name__)


async def run_periodically(interval: float, sweep: Callable[[], int], label: str) -> None:
    """Call sweep() every `interval` seconds until cancelled. A failing sweep is logged, not fatal."""
    while True:
        await asyncio.sleep(interval)
        try:
            sweep()
        except Exception:
            log.exception(f"[SWEEP] {label} sweep failed")


def start_sweeps(jobs: List[tuple]) -> List[asyncio.Task]:
    """jobs: [(interval_seconds, sweep_fn, label), ...] → running tasks."""
    return [
        asyncio.create_task(run_periodically(interval, fn, label), name=f"sweep:{label}")
        for interval, fn, label in jobs
    ]


async def stop_sweeps(tasks: List[asyncio.Task]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
