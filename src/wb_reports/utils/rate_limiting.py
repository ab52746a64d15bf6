"""
Pacing utilities for Wildberries API calls.

Every intentional wait in a report pipeline goes through a Sleeper with a
named phase, so waits are visible in logs and tests can run them instantly.
Also provides bounded batching for fan-out calls.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from wb_reports.utils.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class Phase(str, Enum):
    """Named suspension points of a report pipeline."""

    AWAITING_JOB = "awaiting-job"
    BACKING_OFF = "backing-off"
    PAGING = "paging"
    THROTTLING = "throttling"


class Sleeper:
    """
    Injectable suspension point.

    The default implementation logs the phase and awaits asyncio.sleep.
    Tests substitute a recording sleeper that returns immediately.
    """

    async def sleep(self, seconds: float, phase: Phase, reason: str = "") -> None:
        if seconds <= 0:
            return
        message = f"[{phase.value}] waiting {seconds:.2f}s"
        if reason:
            message += f" ({reason})"
        # long waits are user-visible progress, short ones are noise
        if seconds >= 5:
            logger.info(message)
        else:
            logger.debug(message)
        await asyncio.sleep(seconds)


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """Split items into consecutive lists of at most `size` elements."""
    if size <= 0:
        raise ValueError("Chunk size must be positive")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def run_in_batches(items: Sequence[T],
                         handler: Callable[[List[T]], Awaitable[R]],
                         batch_size: int,
                         concurrency: int = 1,
                         pause: float = 0.0,
                         sleeper: Optional[Sleeper] = None) -> List[R]:
    """
    Run `handler` over fixed-size batches with bounded concurrency.

    Batches are processed in rounds of `concurrency`; the sleeper pauses
    between rounds (phase throttling). Results keep batch order. Exceptions
    from the handler propagate; handlers that need per-batch degradation
    catch their own errors.

    Args:
        items: Items to split
        handler: Coroutine function receiving one batch
        batch_size: Maximum items per batch
        concurrency: Maximum batches in flight
        pause: Seconds to wait between rounds
        sleeper: Suspension point, defaults to a real Sleeper

    Returns:
        Handler results, one per batch, in batch order
    """
    sleeper = sleeper or Sleeper()
    batches = chunked(items, batch_size)
    concurrency = max(1, concurrency)
    results: List[R] = []

    for start in range(0, len(batches), concurrency):
        if start > 0:
            await sleeper.sleep(pause, Phase.THROTTLING, "between batch rounds")
        round_batches = batches[start:start + concurrency]
        round_results = await asyncio.gather(*(handler(batch) for batch in round_batches))
        results.extend(round_results)

    logger.debug(f"Processed {len(items)} items in {len(batches)} batches")
    return results
