"""Rate limiting for the state service.

Requests are keyed by client IP. ``X-Forwarded-For`` is only honoured when
the direct peer is a trusted proxy, so clients cannot spoof their key.
Override the trusted ranges with ``TRUSTED_PROXY_CIDRS`` (comma-separated).
"""

import ipaddress
import logging
import os
from functools import lru_cache

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_settings

logger = logging.getLogger("beliefsync.server.rate_limit")

_DEFAULT_TRUSTED_CIDRS = (
    "10.0.0.0/8",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "127.0.0.0/8",
    "::1/128",
)

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


@lru_cache
def trusted_networks() -> tuple[Network, ...]:
    """Parse trusted proxy ranges once. Invalid entries are skipped."""
    raw = os.environ.get("TRUSTED_PROXY_CIDRS", "")
    cidrs = [s.strip() for s in raw.split(",") if s.strip()] or list(_DEFAULT_TRUSTED_CIDRS)
    networks = []
    for cidr in cidrs:
        try:
            networks.append(ipaddress.ip_network(cidr, strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid trusted proxy CIDR: {cidr!r}")
    return tuple(networks)


def is_trusted_proxy(ip_str: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(addr in network for network in trusted_networks())


def get_client_ip(request) -> str:
    """Client IP, taking the leftmost forwarded address only from trusted proxies."""
    direct_ip = get_remote_address(request)
    if is_trusted_proxy(direct_ip):
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            client_ip = forwarded_for.split(",")[0].strip()
            if client_ip:
                return client_ip
    return direct_ip


def state_rate_limit() -> str:
    """Configured limit for the state routes."""
    return get_settings().state_rate_limit


limiter = Limiter(key_func=get_client_ip)
