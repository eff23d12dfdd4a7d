"""Exception types raised by the pose publisher transport and codecs."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .multicast import MulticastEndpoint


class PosePublisherError(Exception):
    """Base class for every error raised by this package."""


class NotMulticastError(PosePublisherError):
    """Raised when a transport is bound to an address outside 224.0.0.0/4.

    Attributes:
        endpoint: The rejected endpoint.
    """

    def __init__(self, endpoint: MulticastEndpoint) -> None:
        self.endpoint = endpoint
        super().__init__(
            f"IP address needs to be in the multicast range, got {endpoint}"
        )


class TransportError(PosePublisherError):
    """Socket bind/send/receive failure. The underlying ``OSError`` is chained."""


class DecodeError(PosePublisherError):
    """Datagram was not UTF-8 JSON or not a well-formed instance of the expected type."""


# Name used by callers that think of it as a bad datagram rather than a codec failure
MalformedPayload = DecodeError
