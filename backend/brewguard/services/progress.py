"""Synthetic progress while a detection call is outstanding."""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Optional

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 0.3
MAX_STEP = 15.0
SIMULATED_CEILING = 95.0
COMPLETE = 100.0

ProgressCallback = Callable[[float], None]


@dataclass
class ProgressHandle:
    value: float = 0.0
    stopped: bool = False
    task: Optional["asyncio.Task[None]"] = field(default=None, repr=False)


class ProgressEstimator:
    """Advances a handle by random steps, never past 95 until stopped.

    Only ``stop(handle, 100)`` reports completion, so the real outcome is
    always distinguishable from the simulated one.
    """

    def __init__(
        self,
        interval: float = PROGRESS_INTERVAL,
        max_step: float = MAX_STEP,
        ceiling: float = SIMULATED_CEILING,
        rng: Optional[random.Random] = None,
        on_update: Optional[ProgressCallback] = None,
    ) -> None:
        self.interval = interval
        self.max_step = max_step
        self.ceiling = ceiling
        self._rng = rng or random.Random()
        self._on_update = on_update

    def start(self, on_update: Optional[ProgressCallback] = None) -> ProgressHandle:
        handle = ProgressHandle()
        callback = on_update or self._on_update
        handle.task = asyncio.get_running_loop().create_task(self._run(handle, callback))
        return handle

    def advance(self, handle: ProgressHandle) -> float:
        if handle.stopped:
            return handle.value
        step = self._rng.random() * self.max_step
        handle.value = min(self.ceiling, handle.value + step)
        return handle.value

    async def _run(self, handle: ProgressHandle, callback: Optional[ProgressCallback]) -> None:
        while not handle.stopped:
            await asyncio.sleep(self.interval)
            if handle.stopped:
                break
            value = self.advance(handle)
            if callback is not None:
                callback(value)

    def stop(self, handle: ProgressHandle, final_value: Optional[float] = None) -> float:
        """Cancel the timer once; later calls only return the current value."""
        if handle.stopped:
            return handle.value
        handle.stopped = True
        if handle.task is not None and not handle.task.done():
            handle.task.cancel()
        if final_value is not None:
            handle.value = max(handle.value, min(final_value, COMPLETE))
        logger.debug("Progress stopped at %.1f", handle.value)
        return handle.value
