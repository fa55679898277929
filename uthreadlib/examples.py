"""Small demonstrations of interval timers, cooperative switching and signals."""

from __future__ import annotations

import argparse
import collections
import signal
import sys
import time
from typing import Deque, Iterator, Optional, Sequence, TextIO

FIRST_EXPIRY_SECONDS = 1.0
INTERVAL_SECONDS = 3.0
_POLL_SECONDS = 0.05


def itimer_demo(expirations: int, out: Optional[TextIO] = None) -> int:
    """Run a virtual interval timer until it has been noticed ``expirations`` times.

    The first expiry comes after one second of CPU time, the following ones
    every three seconds.  Returns the number of expiries noticed.
    """
    if expirations < 0:
        raise ValueError("expirations must not be negative")
    out = sys.stdout if out is None else out
    expired: Deque[int] = collections.deque()

    def on_timer(signum: int, frame: object) -> None:
        expired.append(signum)
        print("Timer expired", file=out)

    previous = signal.signal(signal.SIGVTALRM, on_timer)
    received = 0
    try:
        signal.setitimer(signal.ITIMER_VIRTUAL, FIRST_EXPIRY_SECONDS, INTERVAL_SECONDS)
        while received < expirations:
            if expired:
                expired.clear()
                print("Got it!", file=out)
                received += 1
    finally:
        signal.setitimer(signal.ITIMER_VIRTUAL, 0)
        signal.signal(signal.SIGVTALRM, previous)
    return received


def _worker(name: str, period: int, out: TextIO) -> Iterator[None]:
    count = 0
    while True:
        count += 1
        print(f"in {name} ({count})", file=out)
        if count % period == 0:
            print(f"{name}: yielding", file=out)
            print("yield: ret_val=0", file=out)
            yield
            print("yield: ret_val=1", file=out)


def yield_demo(rounds: int, out: Optional[TextIO] = None) -> None:
    """Alternate two workers that yield every third and fifth step, ``rounds`` times."""
    if rounds < 0:
        raise ValueError("rounds must not be negative")
    out = sys.stdout if out is None else out
    workers = [_worker("thread0", 3, out), _worker("thread1", 5, out)]
    current = 0
    try:
        for _ in range(rounds):
            next(workers[current])
            current = 1 - current
    finally:
        for worker in workers:
            worker.close()


def sigint_demo(out: Optional[TextIO] = None) -> int:
    """Answer every SIGINT with a warning until SIGTERM arrives.

    Returns the number of interrupts that were caught.
    """
    out = sys.stdout if out is None else out
    interrupts: Deque[int] = collections.deque()
    stop_requests: Deque[int] = collections.deque()

    def on_interrupt(signum: int, frame: object) -> None:
        interrupts.append(signum)
        print(" Don't do that!", file=out)
        out.flush()

    def on_terminate(signum: int, frame: object) -> None:
        stop_requests.append(signum)

    previous_int = signal.signal(signal.SIGINT, on_interrupt)
    previous_term = signal.signal(signal.SIGTERM, on_terminate)
    try:
        while not stop_requests:
            time.sleep(_POLL_SECONDS)
    finally:
        signal.signal(signal.SIGINT, previous_int)
        signal.signal(signal.SIGTERM, previous_term)
    return len(interrupts)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run one of the demonstrations, printing to stdout."""
    parser = argparse.ArgumentParser(description="Timer, switching and signal demonstrations.")
    commands = parser.add_subparsers(dest="command", required=True)
    itimer = commands.add_parser("itimer", help="virtual interval timer")
    itimer.add_argument("--expirations", type=int, default=3)
    yielding = commands.add_parser("yield", help="two cooperatively switching workers")
    yielding.add_argument("--rounds", type=int, default=10)
    commands.add_parser("sigint", help="catch SIGINT until SIGTERM")
    args = parser.parse_args(argv)

    if args.command == "itimer":
        itimer_demo(args.expirations)
    elif args.command == "yield":
        yield_demo(args.rounds)
    else:
        sigint_demo()
    return 0