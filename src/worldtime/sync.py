"""
World time sync cycle

Ties the pieces together: build the candidate pool, probe it in bounded
batches, aggregate, commit the result to a WorldClock and optionally push it
to the OS clock.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .aggregate import AggregateReport, aggregate_measurements
from .config import WorldTimeConfig
from .dispatcher import ProbeDispatcher
from .errors import ClockSetError
from .models import WorldTimer
from .pool import build_candidate_pool
from .prober import NtplibProber, Prober
from .resolver import Resolver, SocketResolver
from .system_time import set_system_time
from .world_clock import WorldClock, get_world_clock

logger = logging.getLogger(__name__)

REPORT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class WorldTimeSync:
    """Runs sync cycles with one configuration, resolver and prober."""

    def __init__(self, config: Optional[WorldTimeConfig] = None,
                 resolver: Optional[Resolver] = None,
                 prober: Optional[Prober] = None):
        self.config = config or WorldTimeConfig()
        self.resolver = resolver or SocketResolver()
        self.prober = prober or NtplibProber()
        self.dispatcher = ProbeDispatcher(
            self.prober,
            max_at_once=self.config.max_at_once,
            max_timeout=self.config.max_timeout_seconds,
            poll_interval=self.config.poll_interval_seconds,
            max_abandoned=self.config.max_abandoned,
            probe_timeout=self.prober.timeout,
        )

    def measure(self) -> AggregateReport:
        """Run one full cycle without committing anything."""
        pool = build_candidate_pool(self.config.hosts, self.resolver, self.config.max_total)
        logger.info(f"Candidate pool: {len(pool)} servers from {len(self.config.hosts)} hosts")

        summary = self.dispatcher.run(pool)
        return aggregate_measurements(
            summary.measurements,
            precision_divisor=self.config.precision_divisor,
            systematic_error_us=self.config.systematic_error_us,
        )

    def sync(self, world_clock: Optional[WorldClock] = None) -> WorldTimer:
        """Run one cycle and commit the result.

        Commits to the process-wide WorldClock unless one is given.
        """
        timer = self.measure().to_world_timer()
        (world_clock or get_world_clock()).commit(timer)
        return timer


def init_world_time(config: Optional[WorldTimeConfig] = None) -> WorldTimer:
    """Sync the process-wide WorldClock using ``config`` or the environment."""
    if config is None:
        config = WorldTimeConfig.from_env()
    return WorldTimeSync(config).sync()


def apply_to_system_clock(timer: WorldTimer,
                          setter: Callable = set_system_time) -> bool:
    """
    Set the OS clock from a committed estimate.

    The setter is called at most once, and not at all when no server answered
    (precision is None). Failures are logged and not retried.

    Returns:
        True if the OS clock was set
    """
    if timer.precision is None:
        logger.warning("No world time estimate available, not setting system time")
        return False

    try:
        setter(timer.utc_time())
    except ClockSetError as e:
        logger.error(f"Error occurred when setting system time: {e}")
        return False

    logger.info(f"System time set. Current time: {datetime.now(timezone.utc)}")
    return True


def format_report_line(timer: WorldTimer) -> Optional[str]:
    """``<utc time>,<offset_us>,<precision_us>`` or None without precision."""
    if timer.precision is None:
        return None
    return f"{timer.utc_time().strftime(REPORT_TIME_FORMAT)},{timer.offset},{timer.precision}"
