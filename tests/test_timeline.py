"""Ordering guarantees of the pending-event list."""

from qnet.timeline import Event, EventKind, Timeline


def _event(time, job_id=0, kind=EventKind.ARRIVAL):
    return Event(time=time, kind=kind, job_id=job_id, node_id=1)


def test_pops_in_time_order():
    timeline = Timeline()
    for t in (10, 5, 15):
        timeline.insert(_event(t))
    assert [timeline.pop_earliest().time for _ in range(3)] == [5, 10, 15]
    assert timeline.pop_earliest() is None


def test_equal_times_pop_in_insertion_order():
    timeline = Timeline()
    a = _event(7, job_id=1)
    b = _event(7, job_id=2, kind=EventKind.DEPARTURE)
    timeline.insert(a)
    timeline.insert(b)
    assert timeline.pop_earliest() is a
    assert timeline.pop_earliest() is b


def test_no_events_lost_or_duplicated():
    timeline = Timeline()
    times = [3.0, 1.0, 3.0, 2.0, 1.0, 0.5, 3.0]
    for i, t in enumerate(times):
        timeline.insert(_event(t, job_id=i))
    assert len(timeline) == len(times)

    popped = []
    while timeline:
        popped.append(timeline.pop_earliest())
    assert [e.time for e in popped] == sorted(times)
    assert sorted(e.job_id for e in popped) == list(range(len(times)))
    # FIFO among the three events at t=3.0
    assert [e.job_id for e in popped if e.time == 3.0] == [0, 2, 6]


def test_peek_does_not_remove():
    timeline = Timeline()
    timeline.insert(_event(2.0))
    assert timeline.peek().time == 2.0
    assert len(timeline) == 1
