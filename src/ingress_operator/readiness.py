"""Bounded wait for a Deployment rollout to become ready."""

import logging
import threading
import time
from enum import Enum

from .errors import ErrorKind, WorkloadError

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 5.0
DEFAULT_TIMEOUT_S = 300.0


class ReadinessState(Enum):
    READY = "Ready"
    TIMED_OUT = "TimedOut"
    CANCELLED = "Cancelled"


def is_ready(deployment):
    """All replicas ready, as reported for the latest spec generation."""
    status = deployment.status
    if status is None:
        return False
    generation = deployment.metadata.generation if deployment.metadata else None
    if generation is not None and (status.observed_generation or 0) < generation:
        return False
    return (status.replicas or 0) == (status.ready_replicas or 0)


class ReadinessWaiter:
    """Polls a Deployment until its ready replicas match its replicas.

    ``clock`` and ``sleep`` can be swapped for fakes in tests. Without a
    ``sleep`` the waiter pauses on ``cancel`` so another thread can stop it.
    """

    def __init__(
        self,
        store,
        interval=DEFAULT_INTERVAL_S,
        timeout=DEFAULT_TIMEOUT_S,
        clock=time.monotonic,
        sleep=None,
        cancel=None,
    ):
        if interval <= 0 or timeout <= 0:
            raise ValueError("interval and timeout must be positive")
        if interval >= timeout:
            raise ValueError(f"interval ({interval}s) must be shorter than timeout ({timeout}s)")
        self.store = store
        self.interval = interval
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep
        self._cancel = cancel or threading.Event()

    def cancel(self):
        self._cancel.set()

    def _pause(self, seconds):
        """Pause for ``seconds``; True when the wait got cancelled."""
        if self._sleep is not None:
            self._sleep(seconds)
            return self._cancel.is_set()
        return self._cancel.wait(seconds)

    def wait(self, name):
        deadline = self._clock() + self.timeout
        polls = 0
        while True:
            if self._cancel.is_set():
                logger.info(f"Readiness wait for {name} cancelled after {polls} polls")
                return ReadinessState.CANCELLED

            try:
                deployment = self.store.get(name)
            except WorkloadError as e:
                if e.kind == ErrorKind.NOT_FOUND:
                    raise WorkloadError(ErrorKind.NOT_FOUND, "wait", name, e.owner, e.cause) from e
                raise
            polls += 1

            if is_ready(deployment):
                logger.info(f"Deployment {name} ready after {polls} polls")
                return ReadinessState.READY

            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.warning(f"Deployment {name} not ready after {self.timeout}s")
                return ReadinessState.TIMED_OUT

            logger.debug(
                f"Deployment {name}: {deployment.status.ready_replicas or 0}/"
                f"{deployment.status.replicas or 0} replicas ready"
            )
            if self._pause(min(self.interval, remaining)):
                logger.info(f"Readiness wait for {name} cancelled after {polls} polls")
                return ReadinessState.CANCELLED
