"""End-to-end scenarios that exercise the thread library and report on a stream."""

from __future__ import annotations

import argparse
import sys
from typing import Callable, Optional, Sequence, TextIO

from .uthreads import MAX_THREAD_NUM, ThreadLibrary, ThreadLibraryError

TEST_END_QUANTUMS = 200

EntryPoint = Callable[[], None]


def _wait_one_quantum(lib: ThreadLibrary) -> None:
    """Busy-wait until the calling thread has been scheduled once more."""
    tid = lib.get_tid()
    start = lib.get_quantums(tid)
    while lib.get_quantums(tid) == start:
        pass


def _wait_for_test_end(lib: ThreadLibrary) -> None:
    for _ in range(TEST_END_QUANTUMS):
        _wait_one_quantum(lib)


def _spin() -> None:
    while True:
        pass


def _report_error(exc: ThreadLibraryError) -> None:
    print(f"thread library error: {exc}", file=sys.stderr)


def _attempt(action: Callable[[int], None], tid: int) -> bool:
    """Run a library call, reporting a library error instead of raising it."""
    try:
        action(tid)
    except ThreadLibraryError as exc:
        _report_error(exc)
        return False
    return True


def _spawn(lib: ThreadLibrary, entry_point: EntryPoint) -> int:
    """Spawn a thread, giving -1 when the library refuses."""
    try:
        return lib.spawn(entry_point)
    except ThreadLibraryError as exc:
        _report_error(exc)
        return -1


def _quantums(lib: ThreadLibrary, tid: int) -> int:
    try:
        return lib.get_quantums(tid)
    except ThreadLibraryError as exc:
        _report_error(exc)
        return -1


def _report(
    lib: ThreadLibrary,
    out: TextIO,
    tid: int,
    round_no: int,
    watched: Optional[int] = None,
    label: str = "quantums",
) -> None:
    watched = tid if watched is None else watched
    print(f"thread-{tid}: round-{round_no}, {label}-{_quantums(lib, watched)}", file=out)


def _fail(out: TextIO, message: str) -> None:
    print(message, file=out)
    raise RuntimeError(message)


def _expect_pair(out: TextIO, first: int, second: int) -> None:
    if (first, second) != (1, 2):
        _fail(out, f"threads ids are not 1 and 2, but instead: {first} and {second}")


def _worker(
    lib: ThreadLibrary, out: TextIO, tid: int, rounds: int = 5, waits: int = 1
) -> EntryPoint:
    def run() -> None:
        for round_no in range(rounds):
            for _ in range(waits):
                _wait_one_quantum(lib)
            _report(lib, out, tid, round_no)
        _attempt(lib.terminate, tid)

    return run


def check_two_threads_running(lib: ThreadLibrary, out: TextIO) -> None:
    """Two threads take turns, each printing five rounds."""
    print("thread 1 and 2 will print 'thread-i' 5 times each", file=out)
    id1 = _spawn(lib, _worker(lib, out, 1))
    id2 = _spawn(lib, _worker(lib, out, 2))
    _expect_pair(out, id1, id2)
    _wait_for_test_end(lib)
    print("threads 1 and 2 finished successfully", file=out)


def block_threads_test(lib: ThreadLibrary, out: TextIO) -> None:
    """Thread 1 blocks thread 2 midway and resumes it when done."""
    print("thread 1 will count to 8 and thread 2 to 5.", file=out)

    def thread1_block() -> None:
        for round_no in range(8):
            _wait_one_quantum(lib)
            _report(lib, out, 1, round_no)
            if round_no == 3:
                print("blocking thread 2!!!", file=out)
                _attempt(lib.block, 2)
        print("resuming thread 2!!!", file=out)
        _attempt(lib.resume, 2)
        _attempt(lib.terminate, 1)

    id1 = _spawn(lib, thread1_block)
    id2 = _spawn(lib, _worker(lib, out, 2))
    _expect_pair(out, id1, id2)
    _wait_for_test_end(lib)
    print("threads 1 and 2 finished successfully", file=out)


def sleep_threads_test(lib: ThreadLibrary, out: TextIO) -> None:
    """Thread 1 sleeps for five quantums midway through its rounds."""
    print("thread 1 and 2 will print 'thread-i' 8 times each", file=out)

    def thread1_sleep() -> None:
        for round_no in range(8):
            _wait_one_quantum(lib)
            _report(lib, out, 1, round_no)
            if round_no == 3:
                print("putting thread 1 to sleep for 5 quantums.", file=out)
                lib.sleep(5)
        _attempt(lib.terminate, 1)

    id1 = _spawn(lib, thread1_sleep)
    id2 = _spawn(lib, _worker(lib, out, 2, rounds=8))
    _expect_pair(out, id1, id2)
    _wait_for_test_end(lib)
    print("threads 1 and 2 finished successfully", file=out)


def _sleeper(lib: ThreadLibrary, out: TextIO, quantums: int) -> EntryPoint:
    def run() -> None:
        for round_no in range(8):
            _wait_one_quantum(lib)
            _report(lib, out, 1, round_no)
            if round_no == 3:
                print(f"putting thread 1 to sleep for {quantums} quantums", file=out)
                before = lib.get_total_quantums()
                lib.sleep(quantums)
                elapsed = lib.get_total_quantums() - before
                print(f"thread 1 is awake, it was out for {elapsed} quantums", file=out)
        _attempt(lib.terminate, 1)

    return run


def test_block_sleeping_before_wakeup(lib: ThreadLibrary, out: TextIO) -> None:
    """Block a sleeping thread and resume it before its sleep is over."""
    print("thread 1 and 2 will print 'thread-i' 8 times each", file=out)
    print("thread 1 should be blocked and resumed before waking up from its sleep", file=out)

    def thread2() -> None:
        for round_no in range(8):
            _wait_one_quantum(lib)
            _report(lib, out, 2, round_no, watched=1)
            if round_no == 4:
                print("blocking thread 1", file=out)
                _attempt(lib.block, 1)
        print("resuming thread 1", file=out)
        _attempt(lib.resume, 1)
        _attempt(lib.terminate, 2)

    id1 = _spawn(lib, _sleeper(lib, out, 20))
    id2 = _spawn(lib, thread2)
    _expect_pair(out, id1, id2)
    _wait_for_test_end(lib)
    print("threads 1 and 2 finished successfully", file=out)


def test_block_sleeping_after_wakeup(lib: ThreadLibrary, out: TextIO) -> None:
    """Block a sleeping thread and resume it only after its sleep is over."""
    print("thread 1 and 2 will print 'thread-i' 8 times each", file=out)
    print("thread 1 should be blocked while sleeping, and resumed when is awake", file=out)

    def thread2() -> None:
        for round_no in range(8):
            _wait_one_quantum(lib)
            _report(lib, out, 2, round_no, watched=1, label="quantum")
            if round_no == 4:
                print("blocking thread 1", file=out)
                _attempt(lib.block, 1)
        # Sleep long enough for thread 1 to finish its own sleep first.
        lib.sleep(10)
        print("resuming thread 1", file=out)
        _attempt(lib.resume, 1)
        _attempt(lib.terminate, 2)

    id1 = _spawn(lib, _sleeper(lib, out, 10))
    id2 = _spawn(lib, thread2)
    _expect_pair(out, id1, id2)
    _wait_for_test_end(lib)
    print("threads 1 and 2 finished successfully", file=out)


def test_thread_id_management(lib: ThreadLibrary, out: TextIO) -> None:
    """Freed ids are handed out again, lowest first."""
    print("checking allocation of ids.", file=out)
    ids = tuple(_spawn(lib, _spin) for _ in range(3))
    if ids != (1, 2, 3):
        _fail(out, "initial threads ids are not correct")

    for tid in (2, 3):
        _attempt(lib.terminate, tid)
        if _spawn(lib, _spin) != tid:
            _fail(
                out,
                f"terminated thread {tid} and created a new one instead, "
                f"it did not receive id={tid}",
            )

    for tid in (1, 2, 3):
        _attempt(lib.terminate, tid)
    print("Success", file=out)


def test_5_threads(lib: ThreadLibrary, out: TextIO) -> None:
    """Five threads share the CPU, two of them waiting twice per round."""
    print("Spawning 5 threads, each thread will print thread-i 5 times", file=out)
    waits = {1: 1, 2: 1, 3: 2, 4: 2, 5: 1}
    ids = tuple(_spawn(lib, _worker(lib, out, tid, waits=count)) for tid, count in waits.items())
    if ids != tuple(waits):
        _fail(out, "threads ids are not correct")
    _wait_for_test_end(lib)
    print("Success", file=out)


def test_100_threads(lib: ThreadLibrary, out: TextIO) -> None:
    """Fill the thread table, check the limit, then terminate every thread."""

    def sleep_100() -> None:
        lib.sleep(500)
        _spin()

    for attempt in range(MAX_THREAD_NUM):
        tid = _spawn(lib, sleep_100)
        if attempt == MAX_THREAD_NUM - 1:
            if tid != -1:
                _fail(out, "thread id is not -1")
            print("max limit reached - this is good!", file=out)
        elif tid != attempt + 1:
            _fail(out, f"wrong id, expected: {attempt + 1}, got: {tid}")

    _wait_for_test_end(lib)
    for tid in range(1, MAX_THREAD_NUM):
        _attempt(lib.terminate, tid)
    print("finished spawning and terminating 100 threads successfully.", file=out)


_SCENARIOS = (
    check_two_threads_running,
    block_threads_test,
    sleep_threads_test,
    test_block_sleeping_before_wakeup,
    test_block_sleeping_after_wakeup,
    test_thread_id_management,
    test_5_threads,
    test_100_threads,
)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run every scenario in order on one library, printing to stdout."""
    parser = argparse.ArgumentParser(description="Run the thread library scenarios.")
    parser.add_argument("--quantum-usecs", type=int, default=1)
    args = parser.parse_args(argv)

    lib = ThreadLibrary(args.quantum_usecs)
    out = sys.stdout
    try:
        for number, scenario in enumerate(_SCENARIOS, start=1):
            print(file=out)
            print(f"Test {number}", file=out)
            scenario(lib, out)
    except RuntimeError:
        return 1
    print("ERR: this message should not be printed!!!!!!!", file=out)
    return 0