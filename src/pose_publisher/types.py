"""
Data types carried over the multicast transport.

Every message is a plain dataclass. Defaults only exist to make construction
convenient; on the wire every field is always present.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

Point2 = tuple[float, float]
Point3 = tuple[float, float, float]
Quaternion = tuple[float, float, float, float]  # (x, y, z, w)

DEFAULT_TIMEOUT = 5.0
IDENTITY_ROTATION: Quaternion = (0.0, 0.0, 0.0, 1.0)


class Color(Enum):
    """Fixed color palette. The wire value is the member name."""

    Red = (1.0, 0.0, 0.0)
    Green = (0.0, 1.0, 0.0)
    Blue = (0.0, 0.0, 1.0)
    Black = (0.0, 0.0, 0.0)
    White = (1.0, 1.0, 1.0)
    Cyan = (0.0, 1.0, 1.0)
    Magenta = (1.0, 0.0, 1.0)
    Yellow = (1.0, 1.0, 0.0)

    def to_rgb(self) -> tuple[float, float, float]:
        return self.value


@dataclass(frozen=True)
class Sphere:
    radius: float


@dataclass(frozen=True)
class Cube:
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class Line:
    """Line from the object's pose to ``end``."""

    end: Point3


Shape = Sphere | Cube | Line

DEFAULT_COLOR = Color.Red
DEFAULT_SHAPE: Shape = Sphere(0.1)


@dataclass
class ObjectPose:
    """Full state of one named object. Each publish restates all of it."""

    id: str
    pose: Point3
    rotation: Quaternion = IDENTITY_ROTATION
    timeout: float = DEFAULT_TIMEOUT
    shape: Shape = DEFAULT_SHAPE
    color: Color = DEFAULT_COLOR

    def with_shape(self, shape: Shape) -> ObjectPose:
        self.shape = shape
        return self

    def with_color(self, color: Color) -> ObjectPose:
        self.color = color
        return self

    def with_rotation(self, rotation: Quaternion) -> ObjectPose:
        self.rotation = rotation
        return self

    def with_timeout(self, timeout: float) -> ObjectPose:
        self.timeout = timeout
        return self


@dataclass
class PoseClientUpdate:
    """One datagram worth of upserts and deletions.

    Example:
        >>> update = PoseClientUpdate()
        >>> update.add("obj_a", (0.0, 0.0, 1.0)).with_shape(Sphere(0.4))
        >>> update.delete("stale_object")
    """

    objects: list[ObjectPose] = field(default_factory=list)
    deletions: list[str] = field(default_factory=list)

    def add(self, id: str, pose: Point3) -> ObjectPose:
        """Append an object with default attributes and return it for chaining."""
        obj = ObjectPose(id=id, pose=pose)
        self.objects.append(obj)
        return obj

    def add_object(self, obj: ObjectPose) -> ObjectPose:
        self.objects.append(obj)
        return obj

    def delete(self, id: str) -> None:
        self.deletions.append(id)

    def updates(self) -> list[ObjectPose]:
        return self.objects


@dataclass
class PointCloud2:
    """Snapshot of a 2D point set, optionally anchored to an object's frame."""

    id: str
    points: list[Point2] = field(default_factory=list)
    parent_frame_id: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    color: Color = DEFAULT_COLOR

    @classmethod
    def from_points(cls, id: str, points: list[Point2]) -> PointCloud2:
        return cls(id=id, points=list(points))

    def with_timeout(self, timeout: float) -> PointCloud2:
        self.timeout = timeout
        return self

    def with_color(self, color: Color) -> PointCloud2:
        self.color = color
        return self

    def with_parent_frame_id(self, frame_id: str) -> PointCloud2:
        self.parent_frame_id = frame_id
        return self


@dataclass
class Command:
    """Control signal unrelated to pose state.

    ``id`` increases monotonically per sender, ``point`` is (x, y), ``angle`` is
    in radians in [-pi, pi].
    """

    id: int
    point: Point2
    angle: float
    length: float
