import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from orderedindex.primitives import PageId

logger = logging.getLogger(__name__)


class LatchMode(Enum):
    """
    🔒 Modes a page latch can be held in 🔒

    📖 SHARED: Read latch - many threads can hold it at once
    ✏️ EXCLUSIVE: Write latch - only one thread can hold it

    Compatibility:
    ┌─────────────┬─────────┬───────────┐
    │             │ SHARED  │ EXCLUSIVE │
    ├─────────────┼─────────┼───────────┤
    │ SHARED      │    ✅    │     ❌    │
    │ EXCLUSIVE   │    ❌    │     ❌    │
    └─────────────┴─────────┴───────────┘
    """
    SHARED = "SHARED"
    EXCLUSIVE = "EXCLUSIVE"


class LatchTimeoutError(Exception):
    """Raised when a latch could not be acquired in time."""
    pass


@dataclass
class _LatchState:
    readers: int = 0
    writer: bool = False
    waiters: int = 0

    def can_grant(self, mode: LatchMode) -> bool:
        if mode is LatchMode.SHARED:
            return not self.writer
        return not self.writer and self.readers == 0

    def is_idle(self) -> bool:
        return self.readers == 0 and not self.writer and self.waiters == 0


class LatchManager:
    """
    🔐 Short-term reader/writer latches on pages 🔐

    💡 Latches protect the physical structure of the tree while one
    operation walks it. Unlike transaction locks they are held only for
    the duration of a single index call and are never tracked per
    transaction.

    🏗️ Structure:
    ------------------------------------------------------------
    PageId → _LatchState(readers, writer, waiters)
    one Condition shared by all pages, entries of idle pages dropped
    ------------------------------------------------------------

    The manager does not detect deadlocks; callers avoid them by always
    latching in a fixed order (meta page, then root towards the leaves).
    """

    def __init__(self, timeout: Optional[float] = None):
        self._mutex = threading.Lock()
        self._condition = threading.Condition(self._mutex)
        self._latches: dict[PageId, _LatchState] = {}
        self._timeout = timeout

        # Statistics
        self.latches_granted = 0
        self.latch_waits = 0
        self.latch_timeouts = 0

    def acquire(self, page_id: PageId, mode: LatchMode,
                timeout: Optional[float] = None) -> None:
        """
        🎯 Acquire a latch, blocking until it is compatible 🎯

        Args:
            🆔 page_id: Page to latch
            🔒 mode: SHARED or EXCLUSIVE
            ⏰ timeout: Seconds to wait, defaults to the manager's timeout

        Raises:
            ⏳ LatchTimeoutError: If the latch is not granted in time
        """
        if timeout is None:
            timeout = self._timeout
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._condition:
            state = self._latches.setdefault(page_id, _LatchState())

            if not state.can_grant(mode):
                self.latch_waits += 1
                state.waiters += 1
                try:
                    while not state.can_grant(mode):
                        remaining = None if deadline is None else deadline - time.monotonic()
                        if remaining is not None and remaining <= 0:
                            self.latch_timeouts += 1
                            raise LatchTimeoutError(
                                f"Timed out waiting for {mode.value} latch on {page_id}")
                        self._condition.wait(remaining)
                finally:
                    state.waiters -= 1
                    if state.is_idle():
                        del self._latches[page_id]

            if mode is LatchMode.SHARED:
                state.readers += 1
            else:
                state.writer = True
            # The entry may have been dropped by the finally above
            self._latches[page_id] = state
            self.latches_granted += 1

    def release(self, page_id: PageId, mode: LatchMode) -> None:
        """🔓 Release a latch previously acquired in ``mode``."""
        with self._condition:
            state = self._latches.get(page_id)
            if state is None:
                raise RuntimeError(f"{page_id} is not latched")

            if mode is LatchMode.SHARED:
                if state.readers == 0:
                    raise RuntimeError(f"{page_id} holds no shared latch")
                state.readers -= 1
            else:
                if not state.writer:
                    raise RuntimeError(f"{page_id} holds no exclusive latch")
                state.writer = False

            if state.is_idle():
                del self._latches[page_id]
            self._condition.notify_all()

    def is_latched(self, page_id: PageId) -> bool:
        with self._mutex:
            state = self._latches.get(page_id)
            return state is not None and (state.writer or state.readers > 0)

    def latched_pages(self) -> set[PageId]:
        with self._mutex:
            return {page_id for page_id, state in self._latches.items()
                    if state.writer or state.readers > 0}


class LatchCoupler:
    """
    Tracks the latches one index operation holds.

    With ``hold_all`` false, ``step`` implements latch coupling: the next
    page is latched before the previous one is released. With ``hold_all``
    true every latch stays held until ``release_all``. Without a manager
    every call is a no-op.
    """

    def __init__(self, manager: Optional[LatchManager], mode: LatchMode, hold_all: bool):
        self._manager = manager
        self.mode = mode
        self.hold_all = hold_all
        self._held: list[PageId] = []

    def acquire(self, page_id: PageId) -> None:
        if self._manager is None:
            return
        self._manager.acquire(page_id, self.mode)
        self._held.append(page_id)

    def release(self, page_id: PageId) -> None:
        if self._manager is None:
            return
        self._held.remove(page_id)
        self._manager.release(page_id, self.mode)

    def step(self, next_page_id: PageId, previous_page_id: PageId) -> None:
        self.acquire(next_page_id)
        if not self.hold_all:
            self.release(previous_page_id)

    def release_all(self) -> None:
        while self._held:
            page_id = self._held.pop()
            self._manager.release(page_id, self.mode)
