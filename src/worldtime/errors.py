"""Exception hierarchy for worldtime."""

from enum import Enum
from typing import Optional


class WorldTimeError(Exception):
    """Base class for all worldtime errors."""


class ConfigParseError(WorldTimeError):
    """Configuration could not be parsed or failed validation.

    Raised before any probing starts; callers treat it as fatal.
    """


class HostResolutionError(WorldTimeError):
    """A configured hostname could not be resolved."""

    def __init__(self, host: str, reason: Optional[str] = None):
        self.host = host
        self.reason = reason
        message = f"Unable to resolve host: {host}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class ProbeNetworkError(WorldTimeError):
    """The NTP exchange with a single server failed at the network level."""

    def __init__(self, address: str, reason: Optional[str] = None):
        self.address = address
        self.reason = reason
        message = f"NTP exchange with {address} failed"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ProbeAbandoned(WorldTimeError):
    """A probe was still running when its batch deadline passed."""

    def __init__(self, server):
        self.server = server
        super().__init__(f"Gave up waiting for {server}")


class ClockSetErrorKind(str, Enum):
    """Reasons the OS clock could not be set."""
    UNSUPPORTED_PLATFORM = "unsupported_platform"
    PERMISSION_DENIED = "permission_denied"
    OTHER = "other"


class ClockSetError(WorldTimeError):
    """Setting the OS clock failed."""

    def __init__(self, kind: ClockSetErrorKind, message: str = ""):
        self.kind = kind
        self.message = message
        if not message:
            message = {
                ClockSetErrorKind.UNSUPPORTED_PLATFORM: "Operating system not supported",
                ClockSetErrorKind.PERMISSION_DENIED: "No permission for setting system time",
                ClockSetErrorKind.OTHER: "Error setting system time",
            }[kind]
            self.message = message
        super().__init__(f"{kind.value}: {message}")
