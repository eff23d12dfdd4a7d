"""
Typed publisher and subscriber wrappers around :class:`MulticastMessenger`.

A publisher can be shared by any number of threads. A subscriber is a
single-reader poller: run ``next()`` on a dedicated thread, or call ``drain()``
once per tick to consume whatever is already queued without blocking.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Generic, TypeVar

from .errors import DecodeError
from .multicast import MulticastEndpoint, MulticastMessenger
from .serializer import MESSAGE_TYPES
from .types import Command, PointCloud2, PoseClientUpdate

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Endpoint(Generic[T]):
    def __init__(
        self,
        kind: type[T],
        address: MulticastEndpoint | str,
        interfaces: Iterable[str] = (),
    ) -> None:
        if kind not in MESSAGE_TYPES:
            raise TypeError(f"{kind.__name__} is not a pose publisher message type")
        self._kind = kind
        self._messenger = MulticastMessenger(address, interfaces)

    @property
    def kind(self) -> type[T]:
        return self._kind

    @property
    def endpoint(self) -> MulticastEndpoint:
        return self._messenger.endpoint

    def close(self) -> None:
        self._messenger.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class Publisher(_Endpoint[T]):
    """Publishes values of one message type to one multicast group."""

    def publish(self, value: T) -> None:
        """Send ``value`` as one datagram.

        Raises:
            TypeError: If ``value`` is not of this publisher's message type.
            TransportError: If the send fails.
        """
        if not isinstance(value, self._kind):
            raise TypeError(
                f"{type(self).__name__} publishes {self._kind.__name__}, "
                f"got {type(value).__name__}"
            )
        self._messenger.send(value)


class Subscriber(_Endpoint[T]):
    """Receives values of one message type from one multicast group."""

    def next(self) -> T:
        """Block until the next message arrives.

        Raises:
            DecodeError: If the datagram is not a valid message of this type.
            TransportError: If the socket fails or is closed.
        """
        return self._messenger.receive(self._kind)

    def pending(self, timeout: float = 0.0) -> bool:
        return self._messenger.pending(timeout)

    def drain(self, max_items: int | None = None) -> Iterator[T]:
        """Yield messages that are already waiting, without blocking.

        Stops when nothing more is queued, after ``max_items`` messages, or at
        the first datagram that fails to decode. A decode failure only ends
        this drain; the next drain continues with the following datagram.
        """
        count = 0
        while max_items is None or count < max_items:
            if not self._messenger.pending():
                return
            try:
                value = self._messenger.receive(self._kind)
            except DecodeError as e:
                logger.debug(f"Dropping malformed datagram on {self.endpoint}: {e}")
                return
            count += 1
            yield value


class PosePublisher(Publisher[PoseClientUpdate]):
    def __init__(
        self, address: MulticastEndpoint | str, interfaces: Iterable[str] = ()
    ) -> None:
        super().__init__(PoseClientUpdate, address, interfaces)


class PoseSubscriber(Subscriber[PoseClientUpdate]):
    def __init__(
        self, address: MulticastEndpoint | str, interfaces: Iterable[str] = ()
    ) -> None:
        super().__init__(PoseClientUpdate, address, interfaces)


class PointCloudPublisher(Publisher[PointCloud2]):
    def __init__(
        self, address: MulticastEndpoint | str, interfaces: Iterable[str] = ()
    ) -> None:
        super().__init__(PointCloud2, address, interfaces)


class PointCloudSubscriber(Subscriber[PointCloud2]):
    def __init__(
        self, address: MulticastEndpoint | str, interfaces: Iterable[str] = ()
    ) -> None:
        super().__init__(PointCloud2, address, interfaces)


class CommandPublisher(Publisher[Command]):
    def __init__(
        self, address: MulticastEndpoint | str, interfaces: Iterable[str] = ()
    ) -> None:
        super().__init__(Command, address, interfaces)


class CommandSubscriber(Subscriber[Command]):
    def __init__(
        self, address: MulticastEndpoint | str, interfaces: Iterable[str] = ()
    ) -> None:
        super().__init__(Command, address, interfaces)
