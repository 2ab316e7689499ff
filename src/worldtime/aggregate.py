"""
Offset aggregation

Two estimators run over the same measurement set:

- the published offset is the plain arithmetic mean of all offsets;
- the precision comes from a roundtrip-weighted estimator where each
  measurement is weighted by 1/roundtrip², so close servers dominate:

      norm           = Σ 1/rt²
      weighted_mean  = Σ (offset/rt²) / norm
      standard_error = sqrt(1/norm)
      precision      = standard_error / K + C

The weighted mean is only reported, never published.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from .models import Measurement, WorldTimer

logger = logging.getLogger(__name__)

ROUNDTRIP_TO_ERROR_DIVISOR = 5.0      # K
ADDITIONAL_SYSTEMATIC_ERROR_US = 200.0  # C

# A zero roundtrip would give an infinite weight.
MIN_ROUNDTRIP_US = 1


@dataclass
class AggregateReport:
    """Everything the aggregator computed for one sync cycle"""
    offset: int = 0
    precision: Optional[int] = None
    weighted_mean: Optional[float] = None
    standard_error: Optional[float] = None
    measurements: List[Measurement] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.measurements)

    def to_world_timer(self) -> WorldTimer:
        return WorldTimer(offset=self.offset, precision=self.precision)


def mean_offset(offsets: Sequence[int]) -> int:
    """Arithmetic mean in whole microseconds, truncated toward zero."""
    total = sum(int(o) for o in offsets)
    quotient = abs(total) // len(offsets)
    return quotient if total >= 0 else -quotient


def weighted_estimate(measurements: Sequence[Measurement]):
    """Return ``(weighted_mean, standard_error)`` of the 1/rt² estimator."""
    offsets = np.array([m.offset_us for m in measurements], dtype=np.float64)
    roundtrips = np.array([max(m.roundtrip_us, MIN_ROUNDTRIP_US) for m in measurements],
                          dtype=np.float64)

    weights = 1.0 / np.square(roundtrips)
    norm = np.sum(weights)
    weighted_mean = float(np.sum(offsets * weights) / norm)
    standard_error = float(np.sqrt(1.0 / norm))
    return weighted_mean, standard_error


def aggregate_measurements(measurements: Sequence[Measurement],
                           precision_divisor: float = ROUNDTRIP_TO_ERROR_DIVISOR,
                           systematic_error_us: float = ADDITIONAL_SYSTEMATIC_ERROR_US
                           ) -> AggregateReport:
    """Reduce all measurements of a sync cycle into one report."""
    if not measurements:
        logger.warning("No time servers available")
        return AggregateReport()

    # Sorted for readable logs only; both estimators are order independent.
    ordered = sorted(measurements, key=lambda m: m.roundtrip_us)
    logger.info(f"Total of servers responded: {len(ordered)}")

    for m in ordered:
        logger.debug(f"Server {m.server}, Offset: {m.offset_us / 1000.0}ms, "
                     f"Roundtrip {m.roundtrip_us / 1000.0}ms")

    offset = mean_offset([m.offset_us for m in ordered])
    weighted_mean, standard_error = weighted_estimate(ordered)
    precision = standard_error / precision_divisor + systematic_error_us

    logger.info(f"Difference estimation: {weighted_mean / 1000.0:.02f}ms ± "
                f"{precision / 1000.0:.02f}ms (mean offset {offset / 1000.0:.02f}ms)")

    return AggregateReport(
        offset=offset,
        precision=int(precision),
        weighted_mean=weighted_mean,
        standard_error=standard_error,
        measurements=ordered,
    )


def compute_world_timer(measurements: Sequence[Measurement], **kwargs) -> WorldTimer:
    """Shorthand for ``aggregate_measurements(...).to_world_timer()``."""
    return aggregate_measurements(measurements, **kwargs).to_world_timer()
