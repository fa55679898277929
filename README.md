# uthreadlib

A user-level threads library. Threads are plain Python callables driven by a
round-robin scheduler that counts time in *quantums*: each time a thread is
given the CPU, the library's total quantum count and that thread's own count
grow by one. A background timer ends every quantum and hands the CPU to the
next ready thread.

## Modules

- `uthreadlib.uthreads` – the library itself: `ThreadLibrary`,
  `ThreadLibraryError`, and the limits `MAX_THREAD_NUM` (100) and
  `STACK_SIZE` (4096).
- `uthreadlib.scheduler` – the bookkeeping behind it: `Scheduler`, the
  per-thread record `Thread`, and the states in `Status` (`RUNNING`, `READY`,
  `BLOCKED`).
- `uthreadlib.demo` – scheduling scenarios run against a `ThreadLibrary`.
- `uthreadlib.examples` – small demonstrations of an interval timer, of two
  workers yielding to each other, and of a SIGINT handler.

## The thread library

`ThreadLibrary(quantum_usecs, max_threads=100)` makes the calling thread
thread 0 and marks it as running; the total quantum count starts at 1. A
non-positive `quantum_usecs` or `max_threads` raises `ThreadLibraryError`.

- `spawn(entry_point)` gives the new thread the lowest free id and appends it
  to the ready queue. It raises `ThreadLibraryError` when every id is taken or
  when `entry_point` is `None`. A thread whose entry point returns is
  terminated.
- `block(tid)` blocks a thread; a thread that blocks itself gives up the CPU.
  Blocking the main thread, or an id that does not exist, raises
  `ThreadLibraryError`; blocking a blocked thread has no effect.
- `resume(tid)` makes a blocked thread ready again; resuming a ready or
  running thread has no effect.
- `sleep(num_quantums)` takes the calling thread off the CPU for that many
  quantums. The main thread cannot sleep, and `num_quantums` must be positive.
  A thread blocked while asleep becomes ready only once it has been resumed
  and its sleep is over.
- `terminate(tid)` frees the id for a later `spawn`. A thread that terminates
  itself does not return. Terminating thread 0 shuts the library down and
  raises `SystemExit(0)`.
- `get_tid()`, `get_total_quantums()` and `get_quantums(tid)` report the
  calling thread's id, the total quantum count, and a thread's own count
  (`ThreadLibraryError` for an unknown id).

```python
from uthreadlib.uthreads import ThreadLibrary, ThreadLibraryError

lib = ThreadLibrary(quantum_usecs=1000)

def worker():
    tid = lib.get_tid()
    print("worker", tid, lib.get_quantums(tid))
    lib.terminate(tid)

tid = lib.spawn(worker)   # 1, the lowest free id

try:
    lib.block(0)
except ThreadLibraryError as err:
    print(err)            # cannot block the main thread
```

`Scheduler` can also be driven by hand. Its `spawn`, `schedule`, `preempt`,
`block`, `resume`, `sleep`, `exit_sleep` and `terminate` methods update the
thread table (`threads`), the `ready` and `sleeping` queues and the `running`
thread. An id out of range raises `IndexError`, an unused or taken id
`ValueError`.

## Installation

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## Commands

Run the scheduling scenarios (two threads, blocking, sleeping, blocking while
asleep, id reuse, five threads, the thread limit) one after another:

```
uthreadlib-demo
uthreadlib-demo --quantum-usecs 1000
```

A scenario that sees a wrong result prints it and the command exits with 1.

Run one of the small demonstrations:

```
uthreadlib-examples itimer --expirations 3
uthreadlib-examples yield --rounds 10
uthreadlib-examples sigint
```

`itimer` waits for a virtual (CPU time) interval timer that first expires
after one second and then every three seconds. `yield` alternates two workers
that yield every third and every fifth step. `sigint` answers every SIGINT
with a warning until it receives SIGTERM. `itimer` and `sigint` rely on POSIX
signals.

## What this package does not do

Threads do not get stacks and registers of their own that the library
switches between: each one runs on its own interpreter thread, and only the
thread holding the CPU may execute. A thread notices that its quantum is over
at the next traced Python line, so code that spends a long time in a single C
call is not interrupted. Quantums are measured in wall-clock time, not in the
process's CPU time.