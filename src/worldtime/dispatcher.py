"""
Bounded-concurrency probe dispatch and deadline-bounded collection

The candidate pool is split into consecutive batches of at most
``max_at_once`` servers. Every server of a batch gets its own probe thread,
so the whole batch is in flight at once. The collector then waits on the
batch until either every probe finished or the per-batch deadline passed,
whichever comes first; only then does the next batch start.

Probes that are still running at the deadline are abandoned, not cancelled:
the blocking exchange keeps going until its own receive timeout and its
result is dropped. Probe threads are daemon threads, so an abandoned probe
never delays interpreter exit. Abandoned probes are recorded in one
process-wide ``AbandonedProbes`` registry shared by every dispatcher, and no
new batch starts while ``max_abandoned`` of them are still alive, so
unreachable servers cannot pile up threads across sync cycles.
"""

import time
import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from .errors import ProbeAbandoned, ProbeNetworkError
from .models import Measurement, ServerInfo
from .prober import PROBE_TIMEOUT_SECONDS, Prober

logger = logging.getLogger(__name__)

DEFAULT_MAX_AT_ONCE = 50
DEFAULT_MAX_TIMEOUT_SECONDS = 0.300
DEFAULT_POLL_INTERVAL_SECONDS = 0.005
DEFAULT_MAX_ABANDONED = 100


@dataclass
class BatchOutcome:
    """What the collector harvested from one batch"""
    measurements: List[Measurement] = field(default_factory=list)
    failed: List[ServerInfo] = field(default_factory=list)
    abandoned: Dict[Future, ServerInfo] = field(default_factory=dict)
    elapsed: float = 0.0

    @property
    def timed_out(self) -> bool:
        return bool(self.abandoned)


@dataclass
class DispatchSummary:
    """Result of probing a whole candidate pool"""
    measurements: List[Measurement] = field(default_factory=list)
    failed: List[ServerInfo] = field(default_factory=list)
    abandoned: List[ProbeAbandoned] = field(default_factory=list)

    @property
    def skipped(self) -> List[ServerInfo]:
        """Servers that contributed no measurement."""
        return self.failed + [error.server for error in self.abandoned]

    def add(self, outcome: BatchOutcome) -> None:
        self.measurements.extend(outcome.measurements)
        self.failed.extend(outcome.failed)
        self.abandoned.extend(ProbeAbandoned(server) for server in outcome.abandoned.values())


def split_batches(pool: Sequence[ServerInfo], max_at_once: int) -> Iterator[List[ServerInfo]]:
    """Yield consecutive slices of ``pool`` of at most ``max_at_once`` items."""
    if max_at_once < 1:
        raise ValueError(f"max_at_once must be positive, got {max_at_once}")
    for start in range(0, len(pool), max_at_once):
        yield list(pool[start:start + max_at_once])


def _harvest(future: Future, server: ServerInfo, outcome: BatchOutcome) -> None:
    """Classify one finished probe into the batch outcome."""
    if future.cancelled():
        logger.warning(f"Probe for server {server} was cancelled")
        outcome.failed.append(server)
        return

    error = future.exception()
    if error is None:
        outcome.measurements.append(future.result())
    elif isinstance(error, ProbeNetworkError):
        logger.warning(f"Unable to get time from server {server}: {error.reason or error}")
        outcome.failed.append(server)
    else:
        # The worker itself blew up rather than reporting a network error.
        logger.warning(f"Probe thread for server {server} failed: {error!r}")
        outcome.failed.append(server)


def collect_batch(futures: Dict[Future, ServerInfo], deadline: float,
                  poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
                  started: Optional[float] = None,
                  clock: Callable[[], float] = time.monotonic) -> BatchOutcome:
    """
    Wait on a batch of probe futures without exceeding ``deadline`` seconds.

    Args:
        futures: Probe futures mapped to the server they query
        deadline: Seconds after ``started`` at which to stop waiting
        poll_interval: Longest single wait before re-checking the deadline
        started: Batch start on ``clock``; defaults to now
        clock: Monotonic time source

    Returns:
        BatchOutcome with measurements, failures and abandoned probes
    """
    if started is None:
        started = clock()

    outcome = BatchOutcome()
    outstanding = dict(futures)

    while True:
        for future in [f for f in outstanding if f.done()]:
            _harvest(future, outstanding.pop(future), outcome)

        elapsed = clock() - started
        if not outstanding:
            outcome.elapsed = elapsed
            logger.info(f"All servers responded in time: {elapsed * 1000:.0f}ms")
            return outcome

        if elapsed >= deadline:
            outcome.elapsed = elapsed
            outcome.abandoned = outstanding
            logger.debug(f"Don't wait for other servers: "
                         f"{[str(s) for s in outstanding.values()]}")
            return outcome

        wait(outstanding, timeout=min(deadline - elapsed, poll_interval),
             return_when=FIRST_COMPLETED)


class AbandonedProbes:
    """
    Probes that outlived their batch deadline and are still running.

    All methods are thread safe. Finished probes are dropped lazily whenever
    the registry is queried.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._futures: Dict[Future, ServerInfo] = {}

    def __len__(self) -> int:
        return self.reap()

    def add(self, futures: Dict[Future, ServerInfo]) -> None:
        with self._lock:
            self._futures.update(futures)

    def reap(self) -> int:
        """Drop finished probes and return how many are still alive."""
        with self._lock:
            finished = [(f, s) for f, s in self._futures.items() if f.done()]
            for future, _ in finished:
                del self._futures[future]
            alive = len(self._futures)

        for _, server in finished:
            logger.debug(f"Abandoned probe for server {server} finished, result discarded")
        return alive

    def wait_below(self, limit: int, timeout: float) -> bool:
        """Block until fewer than ``limit`` probes are alive.

        Returns False if there is still no room after ``timeout`` seconds.
        """
        alive = self.reap()
        if alive < limit:
            return True

        logger.info(f"Waiting for {alive} abandoned probes to finish")
        give_up_at = time.monotonic() + timeout
        while alive >= limit:
            remaining = give_up_at - time.monotonic()
            if remaining <= 0:
                return False
            with self._lock:
                pending = list(self._futures)
            wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)
            alive = self.reap()
        return True


# Global abandoned probe registry
_abandoned_probes: Optional[AbandonedProbes] = None
_abandoned_probes_lock = threading.Lock()


def get_abandoned_probes() -> AbandonedProbes:
    """Get or create the process-wide AbandonedProbes registry."""
    global _abandoned_probes
    if _abandoned_probes is None:
        with _abandoned_probes_lock:
            if _abandoned_probes is None:
                _abandoned_probes = AbandonedProbes()
    return _abandoned_probes


class ProbeDispatcher:
    """
    Runs probes over a candidate pool in sequential, bounded batches.

    Dispatchers are cheap; the abandoned probe bound holds across all of
    them because they share the process-wide registry unless given their
    own.
    """

    def __init__(self, prober: Prober,
                 max_at_once: int = DEFAULT_MAX_AT_ONCE,
                 max_timeout: float = DEFAULT_MAX_TIMEOUT_SECONDS,
                 poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
                 max_abandoned: int = DEFAULT_MAX_ABANDONED,
                 probe_timeout: float = PROBE_TIMEOUT_SECONDS,
                 abandoned: Optional[AbandonedProbes] = None):
        if max_at_once < 1:
            raise ValueError(f"max_at_once must be positive, got {max_at_once}")
        self.prober = prober
        self.max_at_once = max_at_once
        self.max_timeout = max_timeout
        self.poll_interval = poll_interval
        self.max_abandoned = max_abandoned
        self.probe_timeout = probe_timeout
        self.abandoned = abandoned if abandoned is not None else get_abandoned_probes()

        self._run_lock = threading.Lock()

    @property
    def abandoned_count(self) -> int:
        """Abandoned probes that are still running."""
        return self.abandoned.reap()

    def run(self, pool: Sequence[ServerInfo]) -> DispatchSummary:
        """Probe every server in ``pool``, one batch at a time."""
        summary = DispatchSummary()
        number_checked = 0

        with self._run_lock:
            for batch in split_batches(pool, self.max_at_once):
                logger.info(f"Checking [{number_checked}..{number_checked + len(batch)}] "
                            f"servers out of {len(pool)}")
                number_checked += len(batch)
                summary.add(self._run_batch(batch))

        if summary.skipped:
            logger.info(f"Skipped {len(summary.skipped)} of {len(pool)} servers "
                        f"({len(summary.failed)} failed, {len(summary.abandoned)} timed out)")
        return summary

    def _probe(self, future: Future, server: ServerInfo) -> None:
        try:
            result = self.prober.probe(server.ip_addr, server.port)
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(Measurement.from_probe(server, result))

    def _submit(self, server: ServerInfo) -> Future:
        future = Future()
        future.set_running_or_notify_cancel()
        # Daemon: nothing ever joins a probe thread.
        thread = threading.Thread(target=self._probe, args=(future, server),
                                  name=f"worldtime-probe-{server.ip_addr}", daemon=True)
        thread.start()
        return future

    def _run_batch(self, batch: List[ServerInfo]) -> BatchOutcome:
        if not self.abandoned.wait_below(self.max_abandoned, self.probe_timeout):
            logger.warning(f"{len(self.abandoned)} abandoned probes still running, "
                           f"skipping {len(batch)} servers: {[str(s) for s in batch]}")
            return BatchOutcome(failed=list(batch))

        started = time.monotonic()
        futures = {self._submit(server): server for server in batch}
        outcome = collect_batch(futures, self.max_timeout,
                                poll_interval=self.poll_interval, started=started)

        self.abandoned.add(outcome.abandoned)
        return outcome
