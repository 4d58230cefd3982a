"""Snapshot relay and result thinning."""

import threading

from qnet.network_core import run_network
from qnet.progress import SnapshotRelay
from qnet.reduce import downsample
from qnet.scenarios import get_params


def test_relay_delivers_snapshots_off_thread():
    seen = []
    threads = set()

    def consumer(snapshot):
        threads.add(threading.current_thread().name)
        seen.append(snapshot.time)

    params = get_params("mm1", seed=1, warmup=0.0, period=20.0, progress_interval=0.5)
    with SnapshotRelay(consumer, maxsize=1_000) as relay:
        run_network(params, progress=relay)
    assert seen
    assert seen == sorted(seen)
    assert threads == {"snapshot-relay"}
    assert relay.delivered == len(seen)


def test_relay_drops_oldest_when_full():
    relay = SnapshotRelay(lambda snapshot: None, maxsize=2)
    params = get_params("mm1", seed=1, warmup=0.0, period=20.0, progress_interval=0.5)
    run_network(params, progress=relay)
    assert relay.queue.qsize() == 2
    assert relay.dropped > 0
    relay.start()
    relay.close()
    assert relay.delivered == 2


def test_downsample_caps_series():
    params = get_params("tandem", seed=4, warmup=10.0, period=500.0)
    result = run_network(params)
    thin = downsample(result, max_points=100)
    for node_id, stats in thin.node_stats.items():
        full = result.node_stats[node_id]
        assert len(stats.queue_lengths) <= 2 * 100
        assert len(stats.queue_lengths) == len(stats.times)
        assert stats.queue_lengths[0] == full.queue_lengths[0]
    assert len(thin.sojourn_times) <= 2 * 100
    assert thin.mean_sojourn_time == result.mean_sojourn_time
    assert thin.utilizations == result.utilizations
