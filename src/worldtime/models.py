"""Data model for world time estimation.

All offsets and roundtrips are integer microseconds.
"""

from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

NTP_PORT = 123


class ServerInfo(NamedTuple):
    """One resolved candidate endpoint"""
    ip_addr: str           # IPv4 address
    port: int              # UDP port, 123 for resolved candidates
    host_name: str         # Hostname the address was resolved from

    @property
    def address(self) -> str:
        return f"{self.ip_addr}:{self.port}"

    def __str__(self) -> str:
        return f"{self.ip_addr}:{self.port} [{self.host_name}]"


class ProbeResult(NamedTuple):
    """Outcome of one successful NTP exchange"""
    offset_us: int         # True UTC minus local clock
    roundtrip_us: int      # Round-trip delay, never negative


class Measurement(NamedTuple):
    """Successful probe harvested by the collector"""
    server: ServerInfo
    offset_us: int
    roundtrip_us: int

    @classmethod
    def from_probe(cls, server: ServerInfo, result: ProbeResult) -> "Measurement":
        return cls(server=server, offset_us=result.offset_us,
                   roundtrip_us=max(0, result.roundtrip_us))


class WorldTimer(BaseModel):
    """Estimated offset of the local wall clock from UTC."""

    model_config = ConfigDict(frozen=True)

    offset: int = Field(0, description="True UTC minus local clock in microseconds")
    precision: Optional[int] = Field(
        None, ge=0,
        description="Uncertainty of the offset in microseconds, None when no server answered"
    )

    @property
    def is_synchronized(self) -> bool:
        """Whether at least one measurement contributed to this estimate."""
        return self.precision is not None

    def utc_time(self) -> datetime:
        """Current UTC time corrected by the offset.

        Reads the wall clock on every call, so repeated calls advance.
        """
        return datetime.now(timezone.utc) + timedelta(microseconds=self.offset)

    def local_time(self) -> datetime:
        """Current local time (timezone aware) corrected by the offset."""
        return datetime.now().astimezone() + timedelta(microseconds=self.offset)
