import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Iterable, List, Optional

BATCH_SIZE = 32
MIN_BATCH_DURATION_MS = 3000

logger = logging.getLogger(__name__)


def shuffle_keys(keys: Iterable[str], rng: Optional[random.Random] = None) -> List[str]:
    """
    Return a uniformly random permutation of ``keys``.

    ``random.Random.shuffle`` is a Fisher-Yates shuffle. Sending keys in a random
    order keeps the backend from seeing alphabetical runs of related strings.

    Args:
        keys: The flat keys to shuffle.
        rng: Optional random generator, e.g. ``random.Random(seed)`` in tests.

    Returns:
        List[str]: A new list; ``keys`` is not modified.
    """
    shuffled = list(keys)
    (rng or random).shuffle(shuffled)
    return shuffled


def partition_keys(keys: List[str], batch_size: int = BATCH_SIZE) -> List[List[str]]:
    """
    Split ``keys`` into contiguous batches of ``batch_size``; the last batch may be shorter.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}.")
    return [keys[i:i + batch_size] for i in range(0, len(keys), batch_size)]


def schedule_batches(keys: Iterable[str],
                     batch_size: int = BATCH_SIZE,
                     rng: Optional[random.Random] = None) -> List[List[str]]:
    """Shuffle ``keys`` and partition them into batches."""
    return partition_keys(shuffle_keys(keys, rng), batch_size)


class BatchProgress:
    """Tracks completion percentage and remaining-time estimates across batches."""

    def __init__(self, total_keys: int, clock: Callable[[], float] = time.monotonic):
        self.total_keys = total_keys
        self.clock = clock
        self.start_time = clock()

    def percent_complete(self, processed_keys: int) -> float:
        if self.total_keys == 0:
            return 100.0
        return processed_keys / self.total_keys * 100

    def estimated_seconds_left(self, processed_keys: int) -> Optional[float]:
        """``(elapsed / processed) * remaining``; ``None`` before anything is processed."""
        if processed_keys <= 0:
            return None
        elapsed = self.clock() - self.start_time
        return elapsed / processed_keys * (self.total_keys - processed_keys)

    def report(self, processed_keys: int) -> None:
        logger.info(f"Completed {self.percent_complete(processed_keys):.0f}%")
        seconds_left = self.estimated_seconds_left(processed_keys)
        if seconds_left is not None:
            logger.info(f"Estimated time left: {seconds_left / 60:.0f} minutes")


async def pace_batch(batch_start: float,
                     min_duration_ms: int = MIN_BATCH_DURATION_MS,
                     clock: Callable[[], float] = time.monotonic,
                     sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> float:
    """
    Hold the pipeline until at least ``min_duration_ms`` have passed since ``batch_start``.

    Args:
        batch_start: The ``clock()`` reading taken when the batch started.
        min_duration_ms: The minimum wall-clock duration of one batch.
        clock: Monotonic clock returning seconds.
        sleep: Coroutine function used to wait.

    Returns:
        float: The number of seconds waited (0 when the batch was already slow enough).
    """
    elapsed_ms = (clock() - batch_start) * 1000
    if elapsed_ms >= min_duration_ms:
        return 0.0
    wait_ms = min_duration_ms - elapsed_ms
    logger.info(f"Waiting for {wait_ms:.0f}ms...")
    await sleep(wait_ms / 1000)
    return wait_ms / 1000
