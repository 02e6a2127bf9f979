"""
feedgate IP Filter Middleware

Allow/deny lists of addresses or CIDR networks. The deny list wins.
"""

import ipaddress
import logging
from typing import Iterable, List, Optional, Union

from fastapi import Request
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


def parse_networks(entries: Iterable[str]) -> List[Network]:
    """Turn addresses and CIDRs into networks; invalid entries are logged and skipped."""
    networks = []
    for entry in entries:
        entry = entry.strip()
        if not entry:
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            logger.warning(f"IP filter: ignoring invalid entry {entry!r}")
    return networks


def client_ip(request: Request, trust_forwarded: bool = True) -> Optional[str]:
    """
    X-Real-IP, then the first X-Forwarded-For hop, then the peer address.

    Any client can set the forwarding headers; they are only consulted
    when ``trust_forwarded`` is on.
    """
    if trust_forwarded:
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()

        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()

    return request.client.host if request.client else None


class IPFilterMiddleware(BaseHTTPMiddleware):
    """
    Reject requests from blocked addresses, and from addresses outside the
    allow list when one is configured.
    """

    def __init__(
        self,
        app: ASGIApp,
        allowed: Iterable[str] = (),
        blocked: Iterable[str] = (),
        trust_forwarded: bool = True,
    ):
        super().__init__(app)
        self.trust_forwarded = trust_forwarded
        self.allowed = parse_networks(allowed)
        self.blocked = parse_networks(blocked)

    def is_allowed(self, address: Optional[str]) -> bool:
        if not self.allowed and not self.blocked:
            return True
        if not address:
            return False
        try:
            ip = ipaddress.ip_address(address)
        except ValueError:
            return False

        if any(ip in network for network in self.blocked):
            return False
        if self.allowed and not any(ip in network for network in self.allowed):
            return False
        return True

    async def dispatch(self, request: Request, call_next):
        address = client_ip(request, self.trust_forwarded)
        if not self.is_allowed(address):
            logger.warning(f"IP filter: rejected {address} for {request.url.path}")
            return PlainTextResponse("403 Forbidden", status_code=403)
        return await call_next(request)
