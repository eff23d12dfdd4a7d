"""
UDP multicast transport: one serialized message per datagram.
"""

from __future__ import annotations

import ipaddress
import logging
import select
import socket
import struct
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

from . import serializer
from .errors import NotMulticastError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALL_INTERFACES = "0.0.0.0"


@dataclass(frozen=True)
class MulticastEndpoint:
    """IPv4 multicast group address and port."""

    host: str
    port: int

    @classmethod
    def parse(cls, value: str) -> MulticastEndpoint:
        """Parse ``"239.0.0.22:7072"``. Raises ValueError on malformed input."""
        host, sep, port_text = value.strip().rpartition(":")
        if not sep or not host:
            raise ValueError(f"expected 'address:port', got '{value}'")
        try:
            port = int(port_text)
        except ValueError:
            raise ValueError(f"invalid port in '{value}'") from None
        # Rejects hostnames and IPv6; this transport is IPv4 only
        ipaddress.IPv4Address(host)
        if not 1 <= port <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {port}")
        return cls(host, port)

    @property
    def is_multicast(self) -> bool:
        try:
            return ipaddress.IPv4Address(self.host).is_multicast
        except ValueError:
            return False

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


def bind_multicast(
    endpoint: MulticastEndpoint, interfaces: Iterable[str] = ()
) -> socket.socket:
    """Open a UDP socket on the endpoint port and join the group.

    Args:
        endpoint: Multicast group to join.
        interfaces: Local IPv4 addresses to join on. Empty joins via INADDR_ANY.

    Raises:
        NotMulticastError: If the endpoint is not a multicast group. Checked
            before any socket is created.
        TransportError: If any socket operation fails.
    """
    if not endpoint.is_multicast:
        raise NotMulticastError(endpoint)

    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if hasattr(socket, "SO_REUSEPORT"):
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            except OSError as e:
                logger.debug(f"SO_REUSEPORT not available: {e}")
        sock.bind((ALL_INTERFACES, endpoint.port))
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_LOOP, 1)
        # A second IP_ADD_MEMBERSHIP for the same interface fails with EADDRINUSE
        for interface in list(dict.fromkeys(interfaces)) or [ALL_INTERFACES]:
            mreq = struct.pack(
                "4s4s", socket.inet_aton(endpoint.host), socket.inet_aton(interface)
            )
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)
    except OSError as e:
        sock.close()
        raise TransportError(f"failed to bind multicast socket on {endpoint}: {e}") from e
    return sock


class MulticastMessenger:
    """Sends and receives whole messages on one multicast group.

    ``send`` may be called from several threads at once; every call is a single
    ``sendto`` of an already serialized buffer. ``receive`` blocks without a
    timeout and is meant for one polling thread.
    """

    def __init__(
        self, endpoint: MulticastEndpoint | str, interfaces: Iterable[str] = ()
    ) -> None:
        if isinstance(endpoint, str):
            endpoint = MulticastEndpoint.parse(endpoint)
        self._endpoint = endpoint
        self._socket: socket.socket | None = bind_multicast(endpoint, interfaces)
        logger.info(f"Joined multicast group {endpoint}")

    @property
    def endpoint(self) -> MulticastEndpoint:
        return self._endpoint

    @property
    def closed(self) -> bool:
        return self._socket is None

    def _sock(self) -> socket.socket:
        sock = self._socket
        if sock is None:
            raise TransportError(f"messenger for {self._endpoint} is closed")
        return sock

    def send(self, value: Any) -> None:
        """Serialize ``value`` and send it as one datagram to the group."""
        payload = serializer.serialize(value)
        try:
            self._sock().sendto(payload, (self._endpoint.host, self._endpoint.port))
        except OSError as e:
            raise TransportError(
                f"failed to send {len(payload)} bytes to {self._endpoint}: {e}"
            ) from e

    def receive(self, kind: type[T]) -> T:
        """Block until a datagram arrives and decode it as ``kind``.

        Raises:
            DecodeError: If the payload is not a valid ``kind``.
            TransportError: If the socket fails or is closed.
        """
        try:
            data = self._sock().recv(serializer.MAX_DATAGRAM_SIZE)
        except OSError as e:
            raise TransportError(f"failed to receive on {self._endpoint}: {e}") from e
        return serializer.deserialize(data, kind)

    def pending(self, timeout: float = 0.0) -> bool:
        """Return True if a datagram can be read without blocking."""
        try:
            readable, _, _ = select.select([self._sock()], [], [], timeout)
        except (OSError, ValueError) as e:
            raise TransportError(f"failed to poll {self._endpoint}: {e}") from e
        return bool(readable)

    def close(self) -> None:
        if self._socket is not None:
            self._socket.close()
            self._socket = None
            logger.debug(f"Closed multicast socket for {self._endpoint}")
