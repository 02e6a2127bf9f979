
from .ip_filter import IPFilterMiddleware, client_ip, parse_networks

__all__ = [
    "IPFilterMiddleware",
    "client_ip",
    "parse_networks",
]
