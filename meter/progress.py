"""
Simulated progress for a timed phase.

The download and upload transfers expose no byte counts while in flight, so
the live indicator is driven by a heuristic: a periodic task that nudges the
sample up by a random amount every ``interval`` seconds until it reaches
``ceiling``.  The result is a randomized ramp that looks like progress
without claiming to know the true completion percentage.

The estimator is bound to the lifetime of one phase::

    async with ProgressEstimator(on_sample=update) as estimator:
        outcome = await executor.run_transfer(spec)
    # the periodic task is cancelled here, on every exit path
"""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Callable, Optional

from .constants import ESTIMATOR_CEILING, ESTIMATOR_INTERVAL, ESTIMATOR_MAX_STEP

LOGGER = logging.getLogger(__name__)


class ProgressEstimator:
    """Cancellable periodic task producing a bounded, non-decreasing estimate."""

    def __init__(
        self,
        on_sample: Optional[Callable[[float], None]] = None,
        *,
        interval: float = ESTIMATOR_INTERVAL,
        max_step: float = ESTIMATOR_MAX_STEP,
        ceiling: float = ESTIMATOR_CEILING,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.on_sample = on_sample
        self.interval = interval
        self.max_step = max_step
        self.ceiling = ceiling
        self.value = 0.0
        self._rng = rng or random.Random()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> ProgressEstimator:
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.stop()

    # -- Public -------------------------------------------------------------

    def tick(self) -> float:
        """Advance the estimate by one random step, capped at the ceiling."""
        if self.value < self.ceiling:
            step = self._rng.uniform(0.0, self.max_step)
            self.value = min(self.value + step, self.ceiling)
            if self.on_sample:
                self.on_sample(self.value)
        return self.value

    def start(self) -> None:
        if self.running:
            raise RuntimeError("ProgressEstimator is already running")
        self.value = 0.0
        self._task = asyncio.create_task(self._run())
        LOGGER.debug("estimator started (interval=%.3f s)", self.interval)

    async def stop(self) -> None:
        """Cancel the periodic task and wait until it has really finished."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        results = await asyncio.gather(task, return_exceptions=True)
        error = results[0]
        if isinstance(error, Exception):
            LOGGER.error("estimator task failed: %s", error)
        LOGGER.debug("estimator stopped at %.1f", self.value)

    # -- Internals ----------------------------------------------------------

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.tick()
