"""Candidate pool building: hostnames to IPv4 endpoints."""

import ipaddress
import logging
from typing import Iterable, List

from .errors import HostResolutionError
from .models import NTP_PORT, ServerInfo
from .resolver import Resolver

logger = logging.getLogger(__name__)


def servers_from_host(host: str, resolver: Resolver) -> List[ServerInfo]:
    """Resolve one hostname into IPv4 candidates.

    Resolution failures propagate as HostResolutionError.
    """
    servers = []
    for addr in resolver.resolve(host):
        try:
            ip = ipaddress.ip_address(addr)
        except ValueError:
            logger.debug(f"Ignoring unparsable address {addr!r} resolved from {host}")
            continue

        if ip.version == 4:
            logger.debug(f"Adding IPv4 address: {ip} resolved from {host}")
            servers.append(ServerInfo(ip_addr=str(ip), port=NTP_PORT, host_name=host))
        else:
            logger.debug(f"Ignoring IPv6 address: {ip} resolved from {host}")
    return servers


def build_candidate_pool(hosts: Iterable[str], resolver: Resolver,
                         max_total: int) -> List[ServerInfo]:
    """Resolve every host and return the truncated candidate pool.

    Order is host order, then resolver order within each host. A host that
    fails to resolve is skipped.
    """
    pool: List[ServerInfo] = []
    for host in hosts:
        try:
            pool.extend(servers_from_host(host, resolver))
        except HostResolutionError as e:
            logger.warning(f"Unable to resolve host: {host} ({e.reason or 'no reason given'})")

    if len(pool) > max_total:
        logger.warning(f"Too many servers ({len(pool)}), truncating to {max_total}")
        del pool[max_total:]

    return pool
