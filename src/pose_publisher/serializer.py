"""
Text serializer for pose publisher messages.

One message maps to one UTF-8 JSON document, which maps to one UDP datagram.
There is no type tag on the wire: the receiver decides which type it expects
from the multicast group it listens on, and a payload of another type simply
fails to decode.
"""

import json
from collections.abc import Callable
from typing import Any, TypeVar

from . import adapters
from .errors import DecodeError
from .types import Command, PointCloud2, PoseClientUpdate

# Largest payload read from a single datagram
MAX_DATAGRAM_SIZE = 65000

T = TypeVar("T")


def _reject_constant(name: str) -> Any:
    raise DecodeError(f"failed to parse json: {name} is not a JSON value")

_CODECS: dict[type, tuple[Callable[[Any], Any], Callable[[Any], Any]]] = {
    PoseClientUpdate: (adapters.pose_update_to_wire, adapters.pose_update_from_wire),
    PointCloud2: (adapters.point_cloud_to_wire, adapters.point_cloud_from_wire),
    Command: (adapters.command_to_wire, adapters.command_from_wire),
}

MESSAGE_TYPES: tuple[type, ...] = tuple(_CODECS)


def _codec(kind: type) -> tuple[Callable[[Any], Any], Callable[[Any], Any]]:
    try:
        return _CODECS[kind]
    except KeyError:
        raise TypeError(f"{kind.__name__} is not a pose publisher message type") from None


def serialize(value: Any) -> bytes:
    """Encode a message as UTF-8 JSON bytes."""
    to_wire, _ = _codec(type(value))
    payload = json.dumps(to_wire(value), separators=(",", ":"), allow_nan=False)
    return payload.encode("utf-8")


def deserialize(data: bytes, kind: type[T]) -> T:
    """Decode UTF-8 JSON bytes into an instance of ``kind``.

    Raises:
        DecodeError: If the bytes are not UTF-8, not JSON, or not a valid ``kind``.
    """
    _, from_wire = _codec(kind)
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"payload is not valid UTF-8: {e}") from e
    try:
        document = json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise DecodeError(f"failed to parse json: {e}") from e
    return from_wire(document)
