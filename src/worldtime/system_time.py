"""
Setting the operating system clock

Unix-like systems go through ``time.clock_settime_ns(CLOCK_REALTIME)``,
Windows through ``SetSystemTime`` (millisecond precision). Both need
elevated privileges; failures are raised as ClockSetError.
"""

import sys
import time
import ctypes
import logging
from datetime import datetime, timedelta, timezone

from .errors import ClockSetError, ClockSetErrorKind

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ERROR_PRIVILEGE_NOT_HELD = 1314


def _as_utc(date_time: datetime) -> datetime:
    if date_time.tzinfo is None:
        return date_time.replace(tzinfo=timezone.utc)
    return date_time.astimezone(timezone.utc)


def _epoch_ns(date_time: datetime) -> int:
    return (_as_utc(date_time) - EPOCH) // timedelta(microseconds=1) * 1000


def _set_system_time_unix(date_time: datetime) -> None:
    if not hasattr(time, "clock_settime_ns"):
        raise ClockSetError(ClockSetErrorKind.UNSUPPORTED_PLATFORM,
                            f"clock_settime is not available on {sys.platform}")
    try:
        time.clock_settime_ns(time.CLOCK_REALTIME, _epoch_ns(date_time))
    except PermissionError as e:
        raise ClockSetError(ClockSetErrorKind.PERMISSION_DENIED, str(e)) from e
    except OSError as e:
        raise ClockSetError(ClockSetErrorKind.OTHER, str(e)) from e


class _SYSTEMTIME(ctypes.Structure):
    _fields_ = [
        ("wYear", ctypes.c_uint16),
        ("wMonth", ctypes.c_uint16),
        ("wDayOfWeek", ctypes.c_uint16),
        ("wDay", ctypes.c_uint16),
        ("wHour", ctypes.c_uint16),
        ("wMinute", ctypes.c_uint16),
        ("wSecond", ctypes.c_uint16),
        ("wMilliseconds", ctypes.c_uint16),
    ]


def _set_system_time_windows(date_time: datetime) -> None:
    utc = _as_utc(date_time) + timedelta(microseconds=500)  # round to ms
    st = _SYSTEMTIME(
        wYear=utc.year,
        wMonth=utc.month,
        wDayOfWeek=(utc.weekday() + 1) % 7,
        wDay=utc.day,
        wHour=utc.hour,
        wMinute=utc.minute,
        wSecond=utc.second,
        wMilliseconds=utc.microsecond // 1000,
    )
    kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    if kernel32.SetSystemTime(ctypes.byref(st)):
        return

    error_code = ctypes.get_last_error()
    if error_code == ERROR_PRIVILEGE_NOT_HELD:
        raise ClockSetError(ClockSetErrorKind.PERMISSION_DENIED,
                            "SeSystemtimePrivilege is not held")
    raise ClockSetError(ClockSetErrorKind.OTHER, f"SetSystemTime failed with error {error_code}")


def set_system_time(date_time: datetime) -> None:
    """Set the OS clock to ``date_time`` (naive values are taken as UTC).

    Raises:
        ClockSetError: with kind UNSUPPORTED_PLATFORM, PERMISSION_DENIED or OTHER
    """
    if sys.platform == "win32":
        _set_system_time_windows(date_time)
    elif sys.platform.startswith(("linux", "darwin", "freebsd", "openbsd", "netbsd")):
        _set_system_time_unix(date_time)
    else:
        raise ClockSetError(ClockSetErrorKind.UNSUPPORTED_PLATFORM,
                            f"Setting the clock is not supported on {sys.platform}")
    logger.debug(f"System clock set to {_as_utc(date_time).isoformat()}")
