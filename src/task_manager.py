"""
task_manager.py — Cooperative step queue driven by the host's update loop.

Steps are plain callables run in FIFO order from tick(). A delay entry holds
the queue until it has elapsed; the delay starts counting when it reaches
the head of the queue, not when it was enqueued. Nothing here spawns
threads: everything runs on whichever thread calls tick().
"""

import time
import logging
from collections import deque
from typing import Callable, Deque, Optional, Tuple

logger = logging.getLogger(__name__)

_STEP = "step"
_DELAY = "delay"


class TaskManager:
    """
    Usage:
        tasks = TaskManager()
        tasks.enqueue(first_step)
        tasks.enqueue_delay(0.1)
        tasks.enqueue(second_step)
        ...
        tasks.tick()   # once per frame
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._queue: Deque[Tuple[str, object, str]] = deque()
        # When the delay currently at the head of the queue expires
        self._delay_until: Optional[float] = None

    @property
    def is_busy(self) -> bool:
        return bool(self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    def enqueue(self, step: Callable[[], None], name: str = ""):
        self._queue.append((_STEP, step, name or getattr(step, "__name__", "step")))

    def enqueue_delay(self, seconds: float):
        self._queue.append((_DELAY, max(0.0, seconds), "delay"))

    def abort(self):
        """Drop every pending step immediately."""
        if self._queue:
            logger.debug(f"TaskManager: aborting {len(self._queue)} pending steps")
        self._queue.clear()
        self._delay_until = None

    def tick(self) -> int:
        """Run every step that is due. Returns how many steps ran."""
        ran = 0
        while self._queue:
            kind, payload, name = self._queue[0]
            if kind == _DELAY:
                now = self._clock()
                if self._delay_until is None:
                    self._delay_until = now + payload
                if now < self._delay_until:
                    break
                self._queue.popleft()
                self._delay_until = None
                continue

            self._queue.popleft()
            ran += 1
            try:
                payload()
            except Exception as e:
                logger.error(f"TaskManager: step {name} raised {e}; aborting queue", exc_info=True)
                self.abort()
                break
        return ran
