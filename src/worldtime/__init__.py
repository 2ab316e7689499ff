"""
worldtime - World clock offset estimation

Queries a pool of public NTP servers in bounded concurrent batches and
combines their answers into an offset of the local clock from UTC, with an
uncertainty estimate.

Quick Start:
    >>> from worldtime import init_world_time, world_time
    >>> init_world_time()
    >>> timer = world_time()
    >>> print(f"UTC now: {timer.utc_time()} (±{timer.precision}μs)")
"""

__version__ = "0.1.0"

from .aggregate import AggregateReport, aggregate_measurements, compute_world_timer
from .config import DEFAULT_HOSTS, WorldTimeConfig
from .dispatcher import (
    AbandonedProbes,
    DispatchSummary,
    ProbeDispatcher,
    collect_batch,
    get_abandoned_probes,
    split_batches,
)
from .errors import (
    ClockSetError,
    ClockSetErrorKind,
    ConfigParseError,
    HostResolutionError,
    ProbeAbandoned,
    ProbeNetworkError,
    WorldTimeError,
)
from .models import Measurement, ProbeResult, ServerInfo, WorldTimer
from .pool import build_candidate_pool
from .prober import NtplibProber, PROBE_TIMEOUT_SECONDS
from .resolver import SocketResolver
from .sync import WorldTimeSync, apply_to_system_clock, format_report_line, init_world_time
from .system_time import set_system_time
from .world_clock import WorldClock, get_world_clock, world_time

__all__ = [
    "AggregateReport",
    "aggregate_measurements",
    "compute_world_timer",
    "DEFAULT_HOSTS",
    "WorldTimeConfig",
    "AbandonedProbes",
    "DispatchSummary",
    "ProbeDispatcher",
    "collect_batch",
    "get_abandoned_probes",
    "split_batches",
    "ClockSetError",
    "ClockSetErrorKind",
    "ConfigParseError",
    "HostResolutionError",
    "ProbeAbandoned",
    "ProbeNetworkError",
    "WorldTimeError",
    "Measurement",
    "ProbeResult",
    "ServerInfo",
    "WorldTimer",
    "build_candidate_pool",
    "NtplibProber",
    "PROBE_TIMEOUT_SECONDS",
    "SocketResolver",
    "WorldTimeSync",
    "apply_to_system_clock",
    "format_report_line",
    "init_world_time",
    "set_system_time",
    "WorldClock",
    "get_world_clock",
    "world_time",
    "__version__",
]
