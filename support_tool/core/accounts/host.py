from __future__ import annotations

import socket
from dataclasses import dataclass


UNKNOWN = "N/A"


@dataclass(frozen=True)
class HostInfo:
    hostname: str
    server_ip: str


def outbound_ipv4(probe_host: str = "1.1.1.1") -> str:
    # UDP connect only selects a route; nothing is sent
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.connect((probe_host, 53))
        return str(s.getsockname()[0])
    except OSError:
        return UNKNOWN
    finally:
        s.close()


def detect_host() -> HostInfo:
    try:
        hostname = socket.getfqdn() or socket.gethostname()
    except OSError:
        hostname = UNKNOWN
    return HostInfo(hostname=hostname or UNKNOWN, server_ip=outbound_ipv4())
