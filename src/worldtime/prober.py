"""
Single-server NTP prober

One blocking request/response exchange against one endpoint. The wire
format and timestamp arithmetic belong to ntplib; this module only converts
the result to integer microseconds and maps failures to ProbeNetworkError.
"""

import logging
from typing import Protocol

import ntplib

from .errors import ProbeNetworkError
from .models import ProbeResult

logger = logging.getLogger(__name__)

# Receive timeout of a single exchange. Independent of the batch deadline.
PROBE_TIMEOUT_SECONDS = 2.0
NTP_VERSION = 3


class Prober(Protocol):
    timeout: float  # longest a single probe may run

    def probe(self, ip_addr: str, port: int) -> ProbeResult:
        """Run one exchange or raise ProbeNetworkError."""
        ...


def seconds_to_us(value: float) -> int:
    return int(round(value * 1_000_000))


class NtplibProber:
    """Prober backed by ``ntplib.NTPClient``."""

    def __init__(self, timeout: float = PROBE_TIMEOUT_SECONDS, version: int = NTP_VERSION):
        self.timeout = timeout
        self.version = version
        self.client = ntplib.NTPClient()

    def probe(self, ip_addr: str, port: int) -> ProbeResult:
        address = f"{ip_addr}:{port}"
        try:
            stats = self.client.request(ip_addr, version=self.version, port=port,
                                        timeout=self.timeout)
        except (ntplib.NTPException, OSError) as e:
            raise ProbeNetworkError(address, str(e)) from e

        result = ProbeResult(
            offset_us=seconds_to_us(stats.offset),
            roundtrip_us=max(0, seconds_to_us(stats.delay)),
        )
        logger.debug(f"NTP exchange with {address}: "
                     f"offset={result.offset_us}μs, roundtrip={result.roundtrip_us}μs")
        return result
