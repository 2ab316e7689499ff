"""Hostname resolution through the platform resolver."""

import socket
import logging
from typing import List, Protocol

from .errors import HostResolutionError

logger = logging.getLogger(__name__)


class Resolver(Protocol):
    def resolve(self, host: str) -> List[str]:
        """Return the addresses for ``host`` or raise HostResolutionError."""
        ...


class SocketResolver:
    """Resolve hostnames with ``socket.getaddrinfo``.

    Returns both IPv4 and IPv6 addresses in resolver order; filtering is the
    pool builder's job.
    """

    def __init__(self, port: int = 123):
        self.port = port

    def resolve(self, host: str) -> List[str]:
        try:
            infos = socket.getaddrinfo(host, self.port, proto=socket.IPPROTO_UDP)
        except (socket.gaierror, UnicodeError, OSError) as e:
            raise HostResolutionError(host, str(e)) from e

        addresses = []
        for family, _, _, _, sockaddr in infos:
            if family not in (socket.AF_INET, socket.AF_INET6):
                continue
            addr = sockaddr[0]
            if addr not in addresses:
                addresses.append(addr)
        return addresses
