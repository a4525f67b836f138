import threading

import pytest
from kubernetes import client

from ingress_operator.errors import ErrorKind, WorkloadError
from ingress_operator.readiness import ReadinessState, ReadinessWaiter


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedStore:
    """Returns one scripted status per poll, repeating the last one."""

    def __init__(self, statuses):
        self.statuses = list(statuses)
        self.polls = 0

    def get(self, name):
        index = min(self.polls, len(self.statuses) - 1)
        self.polls += 1
        entry = self.statuses[index]
        if isinstance(entry, Exception):
            raise entry
        replicas, ready = entry
        return client.V1Deployment(
            metadata=client.V1ObjectMeta(name=name),
            status=client.V1DeploymentStatus(replicas=replicas, ready_replicas=ready),
        )


def _waiter(store, clock, interval=2.0, timeout=10.0, **kwargs):
    return ReadinessWaiter(
        store, interval=interval, timeout=timeout, clock=clock, sleep=clock.sleep, **kwargs
    )


@pytest.mark.parametrize("k", [0, 1, 3])
def test_ready_after_k_plus_one_polls(k):
    clock = FakeClock()
    store = ScriptedStore([(2, 1)] * k + [(2, 2)])

    state = _waiter(store, clock).wait("management-ingress")

    assert state == ReadinessState.READY
    assert store.polls == k + 1
    assert clock.now == pytest.approx(2.0 * k)


def test_missing_ready_counter_counts_as_zero():
    clock = FakeClock()
    store = ScriptedStore([(1, None), (1, 1)])

    assert _waiter(store, clock).wait("management-ingress") == ReadinessState.READY
    assert store.polls == 2


def test_times_out_within_one_interval_of_bound():
    clock = FakeClock()
    store = ScriptedStore([(3, 1)])

    state = _waiter(store, clock, interval=3.0, timeout=10.0).wait("management-ingress")

    assert state == ReadinessState.TIMED_OUT
    assert 10.0 <= clock.now < 10.0 + 3.0
    assert clock.sleeps == [3.0, 3.0, 3.0, 1.0]


def test_not_found_during_wait_is_fatal():
    clock = FakeClock()
    missing = WorkloadError(ErrorKind.NOT_FOUND, "get", "management-ingress")
    store = ScriptedStore([(2, 1), missing])

    with pytest.raises(WorkloadError) as exc_info:
        _waiter(store, clock).wait("management-ingress")

    assert exc_info.value.kind == ErrorKind.NOT_FOUND
    assert exc_info.value.operation == "wait"
    assert store.polls == 2


def test_other_fetch_errors_propagate_immediately():
    clock = FakeClock()
    store = ScriptedStore([WorkloadError(ErrorKind.TRANSIENT, "get", "management-ingress")])

    with pytest.raises(WorkloadError) as exc_info:
        _waiter(store, clock).wait("management-ingress")

    assert exc_info.value.kind == ErrorKind.TRANSIENT
    assert store.polls == 1
    assert clock.sleeps == []


def test_cancel_stops_waiting():
    clock = FakeClock()
    cancel = threading.Event()
    store = ScriptedStore([(2, 0)])

    def sleep_then_cancel(seconds):
        clock.sleep(seconds)
        cancel.set()

    waiter = ReadinessWaiter(
        store, interval=1.0, timeout=60.0, clock=clock, sleep=sleep_then_cancel, cancel=cancel
    )

    assert waiter.wait("management-ingress") == ReadinessState.CANCELLED
    assert store.polls == 1


def test_cancel_event_interrupts_real_pause():
    store = ScriptedStore([(2, 0)])
    waiter = ReadinessWaiter(store, interval=30.0, timeout=60.0)
    waiter.cancel()

    assert waiter.wait("management-ingress") == ReadinessState.CANCELLED
    assert store.polls == 0


@pytest.mark.parametrize(
    "interval,timeout",
    [(5.0, 5.0), (5.0, 2.0), (0, 10.0), (1.0, -1.0)],
)
def test_interval_must_be_shorter_than_timeout(interval, timeout):
    with pytest.raises(ValueError):
        ReadinessWaiter(ScriptedStore([(1, 1)]), interval=interval, timeout=timeout)


class RolloutStore:
    """Returns scripted Deployments as they are, one per poll."""

    def __init__(self, deployments):
        self.deployments = list(deployments)
        self.polls = 0

    def get(self, name):
        deployment = self.deployments[min(self.polls, len(self.deployments) - 1)]
        self.polls += 1
        return deployment


def _deployment(generation=None, status=None):
    return client.V1Deployment(
        metadata=client.V1ObjectMeta(name="management-ingress", generation=generation),
        status=status,
    )


def test_missing_status_is_not_ready():
    clock = FakeClock()
    store = RolloutStore(
        [
            _deployment(generation=1),
            _deployment(
                generation=1,
                status=client.V1DeploymentStatus(replicas=1, ready_replicas=1, observed_generation=1),
            ),
        ]
    )

    assert _waiter(store, clock).wait("management-ingress") == ReadinessState.READY
    assert store.polls == 2


def test_stale_observed_generation_is_not_ready():
    clock = FakeClock()
    stale = client.V1DeploymentStatus(replicas=1, ready_replicas=1, observed_generation=1)
    current = client.V1DeploymentStatus(replicas=1, ready_replicas=1, observed_generation=2)
    store = RolloutStore(
        [_deployment(generation=2, status=stale), _deployment(generation=2, status=current)]
    )

    assert _waiter(store, clock).wait("management-ingress") == ReadinessState.READY
    assert store.polls == 2


def test_never_observed_times_out():
    clock = FakeClock()
    store = RolloutStore([_deployment(generation=1)])

    assert _waiter(store, clock).wait("management-ingress") == ReadinessState.TIMED_OUT
