"""Round-robin scheduling state for user-level threads."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, List, Optional

EntryPoint = Callable[[], None]


class Status(Enum):
    """Lifecycle state of a thread slot."""

    RUNNING = "running"
    READY = "ready"
    BLOCKED = "blocked"


@dataclass(eq=False)
class Thread:
    """One thread slot; a ``tid`` of -1 marks the slot as free."""

    tid: int = -1
    status: Status = Status.READY
    quantum: int = 0
    sleep: int = 0
    is_sleep: bool = False
    stack: Optional[bytearray] = None
    entry_point: Optional[EntryPoint] = None

    @property
    def in_use(self) -> bool:
        return self.tid != -1


class Scheduler:
    """Keeps the thread table, the ready queue and the sleep queue."""

    def __init__(self, max_size: int, max_stack_size: int) -> None:
        self.stack_size = max_stack_size
        self.threads: List[Thread] = [Thread() for _ in range(max_size)]
        self.ready: Deque[Thread] = deque()
        self.sleeping: Deque[Thread] = deque()
        self.running: Optional[Thread] = None
        self.quantum = 0

    def _slot(self, tid: int) -> Thread:
        if not 0 <= tid < len(self.threads):
            raise IndexError(f"thread id {tid} is out of range")
        return self.threads[tid]

    def _existing(self, tid: int) -> Thread:
        thread = self._slot(tid)
        if not thread.in_use:
            raise ValueError(f"no thread with id {tid} exists")
        return thread

    def spawn(self, tid: int, entry_point: Optional[EntryPoint]) -> Thread:
        """Occupy slot ``tid`` and append the new thread to the ready queue."""
        thread = self._slot(tid)
        if thread.in_use:
            raise ValueError(f"thread id {tid} is already in use")
        self.ready.append(thread)
        thread.tid = tid
        thread.status = Status.READY
        thread.entry_point = entry_point
        thread.quantum = 1
        thread.sleep = 0
        thread.is_sleep = False
        if tid != 0:
            thread.stack = bytearray(self.stack_size)
        return thread

    def preempt(self) -> None:
        """Requeue the running thread unless it sleeps, then schedule the next."""
        running = self.running
        if running is not None and running.sleep <= 0:
            running.status = Status.READY
            self.ready.append(running)
        self.schedule()

    def schedule(self) -> Optional[Thread]:
        """Move the front of the ready queue to RUNNING.

        Returns the new running thread, or None when nothing could be
        scheduled, in which case the running thread is left as it was.
        """
        if not self.ready or not self.ready[0].in_use:
            return None
        self.running = self.ready.popleft()
        self.running.status = Status.RUNNING
        return self.running

    def block(self, tid: int) -> None:
        """Mark ``tid`` as BLOCKED, scheduling the next thread if it was running."""
        thread = self._slot(tid)
        running = self.running
        if running is not None and tid == running.tid and not running.is_sleep:
            thread.status = Status.BLOCKED
            self.schedule()
            return
        if running is not None and running.is_sleep:
            thread.status = Status.BLOCKED
            return
        thread.status = Status.BLOCKED
        self._remove_from_ready(tid)

    def resume(self, tid: int) -> None:
        """Move a blocked thread back to READY; no effect if already runnable."""
        thread = self._existing(tid)
        if thread.is_sleep:
            thread.status = Status.READY
            return
        if thread.status in (Status.RUNNING, Status.READY):
            return
        thread.status = Status.READY
        self.ready.append(thread)

    def terminate(self, tid: int) -> bool:
        """Free slot ``tid``.

        Returns True when the terminated thread was the running one (and the
        next thread has been scheduled), False otherwise.
        """
        thread = self._existing(tid)
        if thread.is_sleep:
            self.remove_from_sleep_queue(tid)
        elif thread.status is Status.READY:
            self._remove_from_ready(tid)
        thread.stack = None
        thread.tid = -1
        thread.quantum = 0
        thread.sleep = 0
        if thread.status is Status.RUNNING and not thread.is_sleep:
            self.schedule()
            return True
        thread.is_sleep = False
        thread.status = Status.READY
        return False

    def sleep(self, tid: int, sleep_quantum: int) -> None:
        """Put ``tid`` to sleep for ``sleep_quantum`` quantums."""
        if tid <= 0:
            raise ValueError("the main thread cannot sleep")
        thread = self._slot(tid)
        thread.sleep = sleep_quantum
        thread.is_sleep = True
        if thread.status is Status.RUNNING and self.running is not None:
            self.sleeping.append(self.running)
            self.schedule()
            return
        self.sleeping.append(thread)

    def exit_sleep(self, tid: int) -> None:
        """Wake ``tid``: requeue it as READY unless it is blocked."""
        thread = self._slot(tid)
        if thread.status is Status.RUNNING:
            self.remove_from_sleep_queue(tid)
            self.ready.append(thread)
            thread.status = Status.READY
        elif thread.status is Status.BLOCKED:
            self.remove_from_sleep_queue(tid)
        thread.is_sleep = False

    def remove_from_sleep_queue(self, tid: int) -> None:
        """Drop every entry for ``tid`` from the sleep queue."""
        self.sleeping = deque(t for t in self.sleeping if t.tid != tid)

    def _remove_from_ready(self, tid: int) -> None:
        self.ready = deque(t for t in self.ready if t.tid != tid)

    def is_ready_empty(self) -> bool:
        """Whether no thread is waiting in the ready queue."""
        return not self.ready