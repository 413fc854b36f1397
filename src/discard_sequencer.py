"""
discard_sequencer.py — Discards the selected items one slot at a time.

Flow per item:
1. Dispatching: pick the next live eligible slot, ask the game to dispose it
2. AwaitingConfirmation: accept the Yes/No prompt if it is ours, or notice
   that the game didn't need one
3. Confirmed: wait for the slot to actually change, then go back to 1

The next target is always re-read from the live inventory, never from a
precomputed list, and nothing new is dispatched until the previous slot has
resolved (changed, emptied, or timed out). Runs are driven by tick() from
the host's update loop; there are no threads here.
"""

import time
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from config import (
    DISCARD_GRACE_PERIOD,
    DISCARD_SETTLE_DELAY,
    CONFIRM_POLL_INTERVAL,
    CONTINUE_POLL_INTERVAL,
    DONE_MESSAGE,
    FAILED_MESSAGE,
    NOTHING_TO_DISCARD_MESSAGE,
)
from confirmation import ConfirmationSurface, DiscardPromptMatcher
from inventory import InventoryScanner, InventorySlotEntry, ItemFilter
from task_manager import TaskManager

logger = logging.getLogger(__name__)


class DiscardState(str, Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMED = "confirmed"
    DONE = "done"
    FAILED = "failed"
    ABORTED = "aborted"


_ACTIVE_STATES = (
    DiscardState.DISPATCHING,
    DiscardState.AWAITING_CONFIRMATION,
    DiscardState.CONFIRMED,
)


@dataclass
class RunSummary:
    state: DiscardState
    dispatched: int = 0
    message: str = ""


def _log_notify(message: str, is_error: bool = False):
    if is_error:
        logger.error(message)
    else:
        logger.info(message)


class DiscardSequencer:
    """
    Usage:
        seq = DiscardSequencer(scanner, surface, matcher,
                               notify=chat.print, on_finished=lambda s: refresh())
        seq.start_run(ItemFilter.of(settings.items_to_discard))
        ...
        seq.tick()   # every frame
    """

    def __init__(self, scanner: InventoryScanner, surface: ConfirmationSurface,
                 matcher: DiscardPromptMatcher,
                 tasks: Optional[TaskManager] = None,
                 clock: Callable[[], float] = time.monotonic,
                 notify: Callable[[str, bool], None] = _log_notify,
                 on_finished: Optional[Callable[[RunSummary], None]] = None,
                 grace_period: float = DISCARD_GRACE_PERIOD,
                 settle_delay: float = DISCARD_SETTLE_DELAY,
                 confirm_poll_interval: float = CONFIRM_POLL_INTERVAL,
                 continue_poll_interval: float = CONTINUE_POLL_INTERVAL):
        self.scanner = scanner
        self.surface = surface
        self.matcher = matcher
        self._clock = clock
        self.tasks = tasks or TaskManager(clock=clock)
        self._notify = notify
        self._on_finished = on_finished
        self.grace_period = grace_period
        self.settle_delay = settle_delay
        self.confirm_poll_interval = confirm_poll_interval
        self.continue_poll_interval = continue_poll_interval

        self._state = DiscardState.IDLE
        self._filter: Optional[ItemFilter] = None
        self._deadline = 0.0
        self._dispatched = 0
        self.last_summary: Optional[RunSummary] = None

    # ─── Public API ───────────────────────────────

    @property
    def state(self) -> DiscardState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state in _ACTIVE_STATES

    @property
    def dispatched(self) -> int:
        return self._dispatched

    def start_run(self, item_filter: ItemFilter) -> bool:
        """Begin discarding everything in the filter. Aborts any active run first.

        Returns False (and changes nothing) when the inventory can't be read.
        """
        if not self.scanner.source.is_available():
            logger.warning("Inventory is not available, not starting a discard run")
            self._notify(NOTHING_TO_DISCARD_MESSAGE, False)
            return False

        if self.is_running:
            logger.info("Discard run already active, aborting it first")
            self.abort()

        logger.info(f"Starting discard run for {len(item_filter)} item ids")
        self._filter = item_filter
        self._dispatched = 0
        self._deadline = 0.0
        self._state = DiscardState.DISPATCHING
        self.tasks.enqueue(self._step(self._discard_next_item), "discard_next_item")
        return True

    def abort(self):
        """Stop immediately. Pending steps are dropped and nothing is reported."""
        self.tasks.abort()
        if self.is_running:
            logger.info(f"Discard run aborted after {self._dispatched} items")
            self._state = DiscardState.ABORTED
            self.last_summary = RunSummary(DiscardState.ABORTED, self._dispatched)

    def tick(self) -> int:
        return self.tasks.tick()

    # ─── Steps ────────────────────────────────────

    def _step(self, fn, *args):
        """Wrap a step so a collaborator exception ends the run instead of escaping."""
        def run():
            try:
                fn(*args)
            except Exception as e:
                logger.error(f"Discard step {fn.__name__} failed: {e}", exc_info=True)
                self.tasks.abort()
                self._finish(FAILED_MESSAGE)
        run.__name__ = fn.__name__
        return run

    def _next_item(self) -> Optional[InventorySlotEntry]:
        return self.scanner.get_next_item_to_discard(self._filter)

    def _discard_next_item(self):
        self._state = DiscardState.DISPATCHING
        entry = self._next_item()
        if entry is None:
            logger.info("No item to discard found")
            self._finish()
            return

        logger.info(
            f"Discarding itemId {entry.item_id} in slot {entry.slot} "
            f"of container {entry.container}.")
        self.scanner.source.dispose(entry.container, entry.slot)
        self._dispatched += 1
        self._deadline = self._clock() + self.grace_period
        self._state = DiscardState.AWAITING_CONFIRMATION

        self.tasks.enqueue_delay(self.settle_delay)
        self.tasks.enqueue(self._step(self._confirm_discard, entry),
                           "confirm_discard")

    def _confirm_discard(self, target: InventorySlotEntry):
        if self.matcher.find_discard_prompt(self.surface):
            logger.debug("Prompt is visible, clicking 'yes'")
            self.surface.accept()
            self._state = DiscardState.CONFIRMED
            self.tasks.enqueue_delay(self.settle_delay)
            self.tasks.enqueue(self._step(self._continue_after_discard, target),
                               "continue_after_discard")
            return

        if self._is_unresolved(target):
            if self._past_deadline():
                logger.info(f"Prompt never appeared for slot {target.slot} in container {target.container}")
                self._finish(FAILED_MESSAGE)
                return
            logger.debug(
                f"Prompt is not (yet) visible, still trying to discard slot {target.slot} "
                f"in container {target.container}")
            self.tasks.enqueue_delay(self.confirm_poll_interval)
            self.tasks.enqueue(self._step(self._confirm_discard, target), "confirm_discard")
        else:
            logger.info("Prompt is not visible, but the slot changed; retrying from start")
            self._state = DiscardState.DISPATCHING
            self.tasks.enqueue_delay(self.confirm_poll_interval)
            self.tasks.enqueue(self._step(self._discard_next_item), "discard_next_item")

    def _continue_after_discard(self, target: InventorySlotEntry):
        if self._is_unresolved(target):
            if self._past_deadline():
                logger.info("No longer waiting for the server, assuming the discard failed")
                self._finish(FAILED_MESSAGE)
                return
            logger.debug(f"Waiting for server response for another {self._deadline - self._clock():.2f}s")
            self.tasks.enqueue_delay(self.continue_poll_interval)
            self.tasks.enqueue(self._step(self._continue_after_discard, target),
                               "continue_after_discard")
        else:
            logger.debug("Continuing after discard: slot resolved")
            self._state = DiscardState.DISPATCHING
            self.tasks.enqueue(self._step(self._discard_next_item), "discard_next_item")

    def _is_unresolved(self, target: InventorySlotEntry) -> bool:
        """The dispatched slot still holds the item we asked the game to dispose."""
        current = self.scanner.slot_at(target.container, target.slot)
        return current is not None and current.item_id == target.item_id

    # ─── Completion ───────────────────────────────

    def _past_deadline(self) -> bool:
        return self._clock() > self._deadline

    def _finish(self, error: Optional[str] = None):
        self._state = DiscardState.FAILED if error else DiscardState.DONE
        message = error or DONE_MESSAGE
        self.last_summary = RunSummary(self._state, self._dispatched, message)
        logger.info(f"Discard run finished: {self._state.value}, {self._dispatched} dispatched")

        self._notify(message, bool(error))
        if self._on_finished is not None:
            try:
                self._on_finished(self.last_summary)
            except Exception as e:
                logger.warning(f"Post-discard refresh failed: {e}", exc_info=True)
