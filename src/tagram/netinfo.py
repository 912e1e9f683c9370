"""Socket setup and startup banner information."""

from __future__ import annotations

import logging
import socket
import struct
import sys
from dataclasses import dataclass

__all__ = ["ServerInfo", "banner", "bind_socket", "interface_address"]

logger = logging.getLogger("tagram.netinfo")

SIOCGIFADDR = 0x8915


@dataclass(frozen=True)
class ServerInfo:
    hostname: str
    address: str
    port: int

    def lines(self) -> list[str]:
        return [
            f"Host Name : {self.hostname}",
            f"Address : {self.address}",
            f"Port Number : {self.port}",
        ]


def bind_socket(host: str, port: int) -> socket.socket:
    """Create a UDP socket bound to *host*:*port* (``0`` for any free port)."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    return sock


def interface_address(interface: str) -> str | None:
    """Return the IPv4 address assigned to *interface*, or ``None``.

    Only Linux exposes ``SIOCGIFADDR``; elsewhere this always returns ``None``.
    """
    if not sys.platform.startswith("linux"):
        return None

    import fcntl

    request = struct.pack("256s", interface.encode()[:15])
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
        try:
            result = fcntl.ioctl(probe.fileno(), SIOCGIFADDR, request)
        except OSError as exc:
            logger.debug("No address for interface %s: %s", interface, exc)
            return None
    return socket.inet_ntoa(result[20:24])


def banner(sock: socket.socket, interface: str) -> ServerInfo:
    """Describe where *sock* is reachable.

    The address shown is the one assigned to *interface* when it has one,
    otherwise the address the socket is bound to.
    """
    host, port = sock.getsockname()[:2]
    return ServerInfo(
        hostname=socket.gethostname(),
        address=interface_address(interface) or host,
        port=port,
    )
