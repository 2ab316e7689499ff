"""
Pytest configuration and shared fixtures for worldtime tests.

Fake resolvers and probers stand in for DNS and the network so the
concurrency behaviour can be exercised deterministically.
"""

import threading
import time
from typing import Dict, List, Union

import pytest

from worldtime.errors import HostResolutionError, ProbeNetworkError
from worldtime.models import ProbeResult
from worldtime import dispatcher as dispatcher_module
from worldtime import world_clock as world_clock_module

HANG = "hang"


class FakeResolver:
    """Resolver answering from a dict; missing hosts fail to resolve."""

    def __init__(self, table: Dict[str, List[str]]):
        self.table = table
        self.calls: List[str] = []

    def resolve(self, host: str) -> List[str]:
        self.calls.append(host)
        if host not in self.table:
            raise HostResolutionError(host, "Name or service not known")
        return list(self.table[host])


class FakeProber:
    """
    Prober whose behaviour is configured per IP address.

    A behaviour is a ProbeResult, an exception instance to raise, or HANG to
    block until ``release()`` is called (or ``hang_timeout`` passes, which
    then raises ProbeNetworkError like a receive timeout would).
    ``timeout`` is what the dispatcher is told a probe may take at most.
    """

    def __init__(self, behaviours: Dict[str, Union[ProbeResult, Exception, str]],
                 delay: float = 0.0, hang_timeout: float = 5.0, timeout: float = 0.2):
        self.behaviours = behaviours
        self.delay = delay
        self.hang_timeout = hang_timeout
        self.timeout = timeout
        self.released = threading.Event()

        self.lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.calls: List[str] = []
        self.started: Dict[str, float] = {}
        self.finished: Dict[str, float] = {}

    def release(self):
        self.released.set()

    def probe(self, ip_addr: str, port: int) -> ProbeResult:
        with self.lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.calls.append(ip_addr)
            self.started[ip_addr] = time.monotonic()
        try:
            behaviour = self.behaviours.get(ip_addr, ProbeNetworkError(f"{ip_addr}:{port}", "unknown"))
            if self.delay:
                time.sleep(self.delay)
            if behaviour == HANG:
                self.released.wait(self.hang_timeout)
                raise ProbeNetworkError(f"{ip_addr}:{port}", "timed out")
            if isinstance(behaviour, Exception):
                raise behaviour
            return behaviour
        finally:
            with self.lock:
                self.active -= 1
                self.finished[ip_addr] = time.monotonic()


@pytest.fixture
def make_prober():
    """Factory for FakeProber; hanging probes are released after the test."""
    probers = []

    def _make(behaviours, **kwargs):
        prober = FakeProber(behaviours, **kwargs)
        probers.append(prober)
        return prober

    yield _make

    for prober in probers:
        prober.release()


@pytest.fixture
def fresh_world_clock(monkeypatch):
    """Reset the process-wide WorldClock for the duration of a test."""
    monkeypatch.setattr(world_clock_module, "_world_clock", None)
    yield


@pytest.fixture(autouse=True)
def fresh_abandoned_probes(monkeypatch):
    """Give every test its own process-wide AbandonedProbes registry."""
    monkeypatch.setattr(dispatcher_module, "_abandoned_probes", None)
    yield
