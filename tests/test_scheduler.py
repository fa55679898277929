import pytest

from uthreadlib.scheduler import Scheduler, Status, Thread


def _noop():
    pass


def _tids(queue):
    return [t.tid for t in queue]


@pytest.fixture
def sched():
    s = Scheduler(10, 64)
    s.spawn(0, None)
    s.schedule()
    return s


@pytest.fixture
def pair(sched):
    """Scheduler with threads 1 and 2 spawned and waiting in the ready queue."""
    for tid in (1, 2):
        sched.spawn(tid, _noop)
    return sched


@pytest.fixture
def one_running(pair):
    """Scheduler where thread 1 has been switched in and 2, 0 are ready."""
    pair.preempt()
    return pair


def test_fresh_thread_slot_is_free():
    t = Thread()
    assert t.tid == -1
    assert t.in_use is False
    assert t.status is Status.READY


def test_main_thread_runs_after_init(sched):
    assert sched.running.tid == 0
    assert sched.running.status is Status.RUNNING
    assert sched.is_ready_empty()
    assert sched.threads[0].stack is None


def test_spawn_sets_fields_and_queues(sched):
    thread = sched.spawn(3, _noop)
    assert thread is sched.threads[3]
    assert thread.tid == 3
    assert thread.entry_point is _noop
    assert thread.quantum == 1
    assert len(thread.stack) == 64
    assert _tids(sched.ready) == [3]
    assert not sched.is_ready_empty()


@pytest.mark.parametrize(
    "call, error",
    [
        (lambda s: s.spawn(1, _noop), ValueError),
        (lambda s: s.spawn(10, _noop), IndexError),
        (lambda s: s.block(-1), IndexError),
        (lambda s: s.resume(5), ValueError),
        (lambda s: s.terminate(4), ValueError),
        (lambda s: s.sleep(0, 3), ValueError),
    ],
    ids=["spawn-used", "spawn-range", "block-range", "resume-missing",
         "terminate-missing", "sleep-main"],
)
def test_invalid_requests_raise(pair, call, error):
    with pytest.raises(error):
        call(pair)
    assert _tids(pair.ready) == [1, 2]
    assert pair.running.tid == 0
    assert not pair.sleeping


def test_schedule_empty_keeps_running(sched):
    running = sched.running
    assert sched.schedule() is None
    assert sched.running is running


def test_preempt_rotates_round_robin(one_running):
    assert one_running.running.tid == 1
    assert _tids(one_running.ready) == [2, 0]
    assert one_running.threads[0].status is Status.READY
    one_running.preempt()
    assert one_running.running.tid == 2
    assert _tids(one_running.ready) == [0, 1]


def test_block_running_schedules_next(one_running):
    one_running.block(1)
    assert one_running.threads[1].status is Status.BLOCKED
    assert one_running.running.tid == 2
    assert 1 not in _tids(one_running.ready)


def test_block_ready_removes_from_queue(pair):
    pair.block(1)
    assert pair.threads[1].status is Status.BLOCKED
    assert _tids(pair.ready) == [2]
    assert pair.running.tid == 0


def test_resume_blocked_appends_to_end(pair):
    pair.block(1)
    pair.resume(1)
    assert pair.threads[1].status is Status.READY
    assert _tids(pair.ready) == [2, 1]


def test_resume_ready_is_noop(sched):
    sched.spawn(1, _noop)
    sched.resume(1)
    assert _tids(sched.ready) == [1]


def test_terminate_ready_thread(pair):
    assert pair.terminate(1) is False
    released = pair.threads[1]
    assert (released.in_use, released.stack, released.quantum) == (False, None, 0)
    assert _tids(pair.ready) == [2]


def test_terminate_running_schedules_next(one_running):
    assert one_running.terminate(1) is True
    assert one_running.running.tid == 2
    assert one_running.threads[1].in_use is False


def test_slot_reusable_after_terminate(sched):
    sched.spawn(2, _noop)
    sched.terminate(2)
    thread = sched.spawn(2, _noop)
    assert (thread.tid, thread.status) == (2, Status.READY)


def test_sleep_running_moves_to_sleep_queue(one_running):
    one_running.sleep(1, 3)
    sleeper = one_running.threads[1]
    assert (sleeper.is_sleep, sleeper.sleep) == (True, 3)
    assert _tids(one_running.sleeping) == [1]
    assert one_running.running.tid == 2


def test_preempt_does_not_requeue_sleeper(sched):
    sched.spawn(1, _noop)
    sched.preempt()
    sched.threads[1].sleep = 2
    sched.preempt()
    assert 1 not in _tids(sched.ready)
    assert sched.running.tid == 0


def test_exit_sleep_requeues_thread(one_running):
    one_running.sleep(1, 1)
    one_running.exit_sleep(1)
    woken = one_running.threads[1]
    assert (woken.is_sleep, woken.status) == (False, Status.READY)
    assert not one_running.sleeping
    assert _tids(one_running.ready)[-1] == 1


def test_exit_sleep_blocked_stays_out_of_ready(one_running):
    one_running.sleep(1, 2)
    one_running.block(1)
    one_running.exit_sleep(1)
    assert one_running.threads[1].status is Status.BLOCKED
    assert 1 not in _tids(one_running.ready)
    assert not one_running.sleeping


def test_resume_sleeping_does_not_queue(one_running):
    one_running.sleep(1, 2)
    one_running.block(1)
    one_running.resume(1)
    sleeper = one_running.threads[1]
    assert (sleeper.status, sleeper.is_sleep) == (Status.READY, True)
    assert 1 not in _tids(one_running.ready)


def test_terminate_sleeping_clears_sleep_queue(one_running):
    one_running.sleep(1, 5)
    assert one_running.terminate(1) is False
    assert not one_running.sleeping
    assert not one_running.threads[1].is_sleep


def test_remove_from_sleep_queue(pair):
    for tid in (1, 2):
        pair.sleep(tid, 4)
    pair.remove_from_sleep_queue(1)
    assert _tids(pair.sleeping) == [2]
    pair.remove_from_sleep_queue(7)
    assert _tids(pair.sleeping) == [2]