"""Preemptive user-level threads scheduled in round-robin quantums.

Every user-level thread runs on its own interpreter thread, but only the
thread that currently holds the CPU baton may execute.  A periodic timer
ends each quantum and hands the baton to the next thread chosen by the
:class:`~uthreadlib.scheduler.Scheduler`.  Running threads notice the loss of
the baton at the next traced line and park until they are scheduled again.
"""

from __future__ import annotations

import sys
import threading
import traceback
from contextlib import contextmanager
from dataclasses import dataclass
from types import FrameType
from typing import Any, Callable, Dict, Iterator, Optional

from .scheduler import Scheduler, Status, Thread

MAX_THREAD_NUM = 100
STACK_SIZE = 4096
_USEC_PER_SEC = 1_000_000

EntryPoint = Callable[[], None]


class ThreadLibraryError(Exception):
    """Raised when the thread library is called with invalid arguments."""


class _ThreadExit(BaseException):
    """Unwinds the interpreter thread of a terminated user-level thread."""


@dataclass(eq=False)
class _Runner:
    tid: int
    started: bool = False
    killed: bool = False
    finished: bool = False


class ThreadLibrary:
    """A user-level thread library; the constructing thread becomes thread 0."""

    def __init__(self, quantum_usecs: int, max_threads: int = MAX_THREAD_NUM) -> None:
        if quantum_usecs <= 0:
            raise ThreadLibraryError("the value of quantum_usecs should be greater than 0")
        if max_threads <= 0:
            raise ThreadLibraryError("max_threads should be greater than 0")
        self._quantum_seconds = quantum_usecs / _USEC_PER_SEC
        self._max_threads = max_threads
        self._scheduler = Scheduler(max_threads, STACK_SIZE)
        self._cond = threading.Condition(threading.RLock())
        self._local = threading.local()
        self._closed = False
        self._stop = threading.Event()

        self._scheduler.spawn(0, None)
        self._scheduler.schedule()
        self._scheduler.quantum += 1

        main_runner = _Runner(tid=0, started=True)
        self._runners: Dict[int, _Runner] = {0: main_runner}
        self._active: Optional[_Runner] = main_runner
        self._local.runner = main_runner
        self._local.busy = 0

        self._install_main_trace()
        self._timer = threading.Thread(
            target=self._tick_loop, name="uthread-timer", daemon=True
        )
        self._timer.start()

    # ------------------------------------------------------------------
    # public interface

    def spawn(self, entry_point: Optional[EntryPoint]) -> int:
        """Create a thread running ``entry_point`` and return its id."""
        with self._critical():
            tid = self._free_tid()
            if tid is None:
                raise ThreadLibraryError("you reached the max number of threads")
            if entry_point is None:
                raise ThreadLibraryError("the entry_point should not be None")
            self._scheduler.spawn(tid, entry_point)
            runner = _Runner(tid=tid)
            self._runners[tid] = runner
            threading.Thread(
                target=self._run,
                args=(runner, entry_point),
                name=f"uthread-{tid}",
                daemon=True,
            ).start()
            return tid

    def terminate(self, tid: int) -> None:
        """Terminate thread ``tid``.

        Terminating thread 0 shuts the library down and raises SystemExit(0)
        in the main thread.  A thread that terminates itself does not return.
        """
        with self._critical() as caller:
            self._existing(tid)
            if tid == 0:
                self._shutdown()
                self._leave(caller)
            thread = self._scheduler.threads[tid]
            if thread.status is Status.RUNNING and not thread.is_sleep:
                self._scheduler.terminate(tid)
                self._kill(tid)
                self._jump()
                raise _ThreadExit
            self._scheduler.terminate(tid)
            self._kill(tid)

    def block(self, tid: int) -> None:
        """Block thread ``tid`` until it is resumed; blocking a blocked thread is a no-op."""
        with self._critical() as caller:
            self._existing(tid)
            if tid == 0:
                raise ThreadLibraryError("cannot block the main thread")
            thread = self._scheduler.threads[tid]
            if thread.status is Status.BLOCKED:
                return
            running = self._scheduler.running
            if running is not None and running.tid == tid:
                self._scheduler.block(tid)
                self._jump()
                self._wait_turn(caller)
                return
            self._scheduler.block(tid)

    def resume(self, tid: int) -> None:
        """Move a blocked thread back to READY; no effect on runnable threads."""
        with self._critical():
            if not 0 <= tid < self._max_threads:
                raise ThreadLibraryError("no thread with this tid exists")
            if not self._scheduler.threads[tid].in_use:
                raise ThreadLibraryError("no thread to resume")
            self._scheduler.resume(tid)

    def sleep(self, num_quantums: int) -> None:
        """Put the calling thread to sleep for ``num_quantums`` quantums."""
        with self._critical() as caller:
            running = self._scheduler.running
            tid = running.tid if running is not None else -1
            if tid <= 0 or tid >= self._max_threads:
                raise ThreadLibraryError("the main thread cannot be put to sleep")
            if num_quantums <= 0:
                raise ThreadLibraryError("num_quantums must be greater than 0")
            self._scheduler.sleep(tid, num_quantums)
            self._jump()
            self._wait_turn(caller)

    def get_tid(self) -> int:
        """Return the id of the calling thread."""
        with self._critical():
            running = self._scheduler.running
            return running.tid if running is not None else -1

    def get_total_quantums(self) -> int:
        """Return the number of quantums started since initialisation."""
        with self._critical():
            return self._scheduler.quantum

    def get_quantums(self, tid: int) -> int:
        """Return the number of quantums thread ``tid`` has been running."""
        with self._critical():
            if not 0 <= tid < self._max_threads or not self._scheduler.threads[tid].in_use:
                raise ThreadLibraryError(f"thread {tid} does not exist")
            return self._scheduler.threads[tid].quantum

    # ------------------------------------------------------------------
    # switching

    def _existing(self, tid: int) -> Thread:
        if not 0 <= tid < self._max_threads or not self._scheduler.threads[tid].in_use:
            raise ThreadLibraryError("no thread with ID tid exists")
        return self._scheduler.threads[tid]

    def _free_tid(self) -> Optional[int]:
        return next(
            (t.tid if t.in_use else i for i, t in enumerate(self._scheduler.threads) if not t.in_use),
            None,
        )

    def _decrease_sleep(self) -> None:
        for index, thread in enumerate(self._scheduler.threads):
            if thread.in_use and thread.sleep > 0:
                thread.sleep -= 1
                if thread.is_sleep and thread.sleep <= 0:
                    self._scheduler.exit_sleep(index)

    def _jump(self) -> None:
        """Start a new quantum for the scheduler's running thread."""
        self._decrease_sleep()
        self._scheduler.quantum += 1
        target = self._scheduler.running
        runner = self._runners.get(target.tid) if target is not None else None
        if runner is not None:
            if runner.started:
                target.quantum += 1
            runner.started = True
            self._active = runner
        self._cond.notify_all()

    def _preempt(self) -> None:
        scheduler = self._scheduler
        scheduler.preempt()
        attempts = len(scheduler.threads)
        while scheduler.running is not None and scheduler.running.sleep > 0 and attempts:
            scheduler.preempt()
            attempts -= 1
        self._jump()

    def _tick_loop(self) -> None:
        while not self._stop.wait(self._quantum_seconds):
            with self._cond:
                if self._closed:
                    return
                self._preempt()

    def _kill(self, tid: int) -> None:
        runner = self._runners.pop(tid, None)
        if runner is not None:
            runner.killed = True
        self._cond.notify_all()

    def _shutdown(self) -> None:
        self._closed = True
        self._stop.set()
        for runner in self._runners.values():
            runner.killed = True
        self._runners.clear()
        self._active = None
        self._cond.notify_all()

    def _leave(self, runner: _Runner) -> None:
        """Unwind the calling thread after it lost its place for good."""
        runner.finished = True
        if runner.tid == 0:
            sys.settrace(None)
            raise SystemExit(0)
        raise _ThreadExit

    def _wait_turn(self, runner: _Runner) -> None:
        """Wait, holding the condition, until ``runner`` owns the CPU."""
        while True:
            if self._closed or runner.killed:
                self._leave(runner)
            if self._active is runner:
                return
            self._cond.wait()

    def _caller(self) -> _Runner:
        runner = getattr(self._local, "runner", None)
        if runner is None:
            raise ThreadLibraryError("the calling thread does not belong to this library")
        return runner

    @contextmanager
    def _critical(self) -> Iterator[_Runner]:
        runner = self._caller()
        self._local.busy = getattr(self._local, "busy", 0) + 1
        try:
            with self._cond:
                self._wait_turn(runner)
                yield runner
        finally:
            self._local.busy -= 1

    # ------------------------------------------------------------------
    # preemption points

    def _trace(self, frame: FrameType, event: str, arg: Any) -> Optional[Callable[..., Any]]:
        local = self._local
        if getattr(local, "busy", 0):
            return None
        runner = getattr(local, "runner", None)
        if runner is None or runner.finished:
            return None
        if self._active is runner and not self._closed and not runner.killed:
            return self._trace
        local.busy = 1
        try:
            with self._cond:
                self._wait_turn(runner)
        finally:
            local.busy = 0
        return self._trace

    def _install_main_trace(self) -> None:
        sys.settrace(self._trace)
        frame: Optional[FrameType] = sys._getframe(2)
        while frame is not None:
            frame.f_trace = self._trace
            frame = frame.f_back

    def _run(self, runner: _Runner, entry_point: EntryPoint) -> None:
        local = self._local
        local.runner = runner
        local.busy = 0
        try:
            local.busy = 1
            try:
                with self._cond:
                    self._wait_turn(runner)
            finally:
                local.busy = 0
            sys.settrace(self._trace)
            try:
                entry_point()
            except Exception:
                traceback.print_exc()
            self.terminate(runner.tid)
        except _ThreadExit:
            pass
        finally:
            runner.finished = True
            sys.settrace(None)