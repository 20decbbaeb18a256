from collections.abc import Iterable
from typing import Any, Tuple
from urllib.parse import urlsplit
import ipaddress

DEFAULT_PORT = 4222

def format_addr(addr: Any) -> str:
    """
    Convert a socket address (or similar) to a compact string for logs.

    Behavior:
      - IPv4 or hostname (host, port) -> "host:port"
      - IPv6 (host, port[, flowinfo, scopeid]) -> "[host%scopeid]:port"  (scopeid only if nonzero)
      - bytes-like -> UTF-8 decoded with replacement
      - str -> returned as-is
      - None -> "None"
      - Fallback -> str(addr)
    """
    if addr is None:
        return "None"

    if isinstance(addr, (bytes, bytearray, memoryview)):
        return bytes(addr).decode("utf-8", errors="replace")

    if isinstance(addr, str):
        return addr

    if isinstance(addr, Iterable):
        seq = list(addr)
        if len(seq) >= 2 and isinstance(seq[0], str) and isinstance(seq[1], int):
            host, port = seq[0], seq[1]
            scopeid = seq[3] if len(seq) >= 4 and isinstance(seq[3], int) else None
            try:
                ip = ipaddress.ip_address(host)
            except ValueError:
                # Not an IP literal; fall back to host:port
                return f"{host}:{port}"
            if ip.version == 6:
                host_fmt = host if scopeid in (None, 0) else f"{host}%{scopeid}"
                return f"[{host_fmt}]:{port}"
            return f"{host}:{port}"
        return "[" + ",".join(map(str, seq)) + "]"

    return str(addr)

def parse_addr(url: str, default_port: int = DEFAULT_PORT) -> Tuple[str, int]:
    """
    Split "nats://host:port", "tcp://host:port" or "host:port" into (host, port).

    Raises ValueError when the port is not a number.
    """
    if "://" not in url:
        url = f"tcp://{url}"
    parts = urlsplit(url)
    host = parts.hostname or "localhost"
    port = parts.port if parts.port is not None else default_port
    return host, port
