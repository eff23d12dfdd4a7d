"""
Subscriber-side replica of published object and point cloud state.

:class:`ObjectContainer` folds pose update batches and point cloud snapshots
into two tables keyed by id:

* Upserts create or fully overwrite an object and refresh its last-touched
  time. Deletions remove it at once.
* Point cloud snapshots replace any previous snapshot with the same id.
* :meth:`ObjectContainer.sweep` drops every entry older than its own timeout.
  Nothing expires between sweeps, but read accessors already hide entries
  whose age exceeds their timeout.

Consumers that hang an external resource on each object (a scene node, a
marker handle, ...) pass a :class:`ResourceBinder`. The container attaches a
resource when an object appears, releases and re-attaches it only when the
shape variant or its dimensions change, and releases it when the object is
deleted or expires.

The container has no lock. It is meant to be owned by one loop; see
:class:`pose_publisher.feed.ReplicaFeed` for handing its state to other
threads.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

from .events import EventHandler
from .types import (
    IDENTITY_ROTATION,
    Color,
    ObjectPose,
    Point3,
    PointCloud2,
    PoseClientUpdate,
    Quaternion,
    Shape,
)

logger = logging.getLogger(__name__)

ORIGIN: Point3 = (0.0, 0.0, 0.0)

# Reasons passed to on_object_removed / on_point_cloud_removed
REMOVED_DELETED = "deleted"
REMOVED_TIMEOUT = "timeout"


class ResourceBinder(Protocol):
    """Owner of the external resource attached to each live object."""

    def attach(self, obj: ObjectPose) -> Any:
        """Create a resource for ``obj`` and return it (None is allowed)."""

    def update(self, resource: Any, obj: ObjectPose) -> None:
        """Apply pose, rotation and color of ``obj`` to an existing resource."""

    def release(self, resource: Any) -> None:
        """Dispose of a resource returned by ``attach``."""


class NullBinder:
    """Binder for consumers that keep no per-object resources."""

    def attach(self, obj: ObjectPose) -> Any:
        return None

    def update(self, resource: Any, obj: ObjectPose) -> None:
        pass

    def release(self, resource: Any) -> None:
        pass


@dataclass
class ObjectEntry:
    """Last known state of one object plus its bookkeeping."""

    id: str
    pose: Point3
    rotation: Quaternion
    shape: Shape
    color: Color
    timeout: float
    last_touched: float
    resource: Any = field(default=None, compare=False, repr=False)

    @classmethod
    def from_object(cls, obj: ObjectPose, now: float) -> ObjectEntry:
        return cls(
            id=obj.id,
            pose=tuple(obj.pose),
            rotation=tuple(obj.rotation),
            shape=obj.shape,
            color=obj.color,
            timeout=obj.timeout,
            last_touched=now,
        )

    def age(self, now: float) -> float:
        return now - self.last_touched

    def is_timed_out(self, now: float) -> bool:
        return self.age(now) > self.timeout

    def to_object_pose(self) -> ObjectPose:
        return ObjectPose(
            id=self.id,
            pose=self.pose,
            rotation=self.rotation,
            timeout=self.timeout,
            shape=self.shape,
            color=self.color,
        )


@dataclass
class CloudEntry:
    """Last received snapshot of one point cloud."""

    cloud: PointCloud2
    last_touched: float

    @property
    def timeout(self) -> float:
        return self.cloud.timeout

    def age(self, now: float) -> float:
        return now - self.last_touched

    def is_timed_out(self, now: float) -> bool:
        return self.age(now) > self.timeout


@dataclass
class SweepResult:
    """Ids removed by one sweep."""

    objects: list[str] = field(default_factory=list)
    point_clouds: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.objects or self.point_clouds)


def normalize_quaternion(rotation: Quaternion) -> Quaternion:
    x, y, z, w = rotation
    norm = math.sqrt(x * x + y * y + z * z + w * w)
    if norm == 0.0 or not math.isfinite(norm):
        return IDENTITY_ROTATION
    return (x / norm, y / norm, z / norm, w / norm)


def rotate_point(rotation: Quaternion, point: Point3) -> Point3:
    """Rotate ``point`` by the (x, y, z, w) quaternion ``rotation``."""
    qx, qy, qz, qw = normalize_quaternion(rotation)
    px, py, pz = point
    # t = 2 * (q_vec x p); p' = p + w * t + q_vec x t
    tx = 2.0 * (qy * pz - qz * py)
    ty = 2.0 * (qz * px - qx * pz)
    tz = 2.0 * (qx * py - qy * px)
    return (
        px + qw * tx + (qy * tz - qz * ty),
        py + qw * ty + (qz * tx - qx * tz),
        pz + qw * tz + (qx * ty - qy * tx),
    )


def anchor_points(
    cloud: PointCloud2, anchor: tuple[Point3, Quaternion]
) -> list[Point3]:
    """Map the cloud's 2D points (z = 0) through the anchor's pose and rotation."""
    (ax, ay, az), rotation = anchor
    result: list[Point3] = []
    for px, py in cloud.points:
        rx, ry, rz = rotate_point(rotation, (px, py, 0.0))
        result.append((ax + rx, ay + ry, az + rz))
    return result


def format_summary(
    objects: dict[str, ObjectPose], point_clouds: dict[str, PointCloud2]
) -> str:
    """One status line per object and per point cloud, sorted by id."""
    lines = []
    for object_id in sorted(objects):
        obj = objects[object_id]
        x, y, z = obj.pose
        lines.append(f"{object_id}: {obj.color.name} [{x:.2f} {y:.2f} {z:.2f}]")
    for cloud_id in sorted(point_clouds):
        cloud = point_clouds[cloud_id]
        parent = cloud.parent_frame_id or "N/A"
        lines.append(f"{cloud_id}: {parent} len {len(cloud.points)}")
    return "\n".join(lines)


class ObjectContainer:
    """Replica table of live objects and point clouds.

    Every mutating method and read accessor takes an optional ``now``
    (``time.monotonic()`` seconds by default) so callers can drive the clock.
    """

    def __init__(
        self,
        binder: ResourceBinder | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._binder: ResourceBinder = binder if binder is not None else NullBinder()
        self._clock = clock
        self._objects: dict[str, ObjectEntry] = {}
        self._point_clouds: dict[str, CloudEntry] = {}

        # on_object_added(entry), on_object_removed(id, reason),
        # on_shape_changed(id, old_shape, new_shape),
        # on_point_cloud_removed(id, reason)
        self.on_object_added = EventHandler()
        self.on_object_removed = EventHandler()
        self.on_shape_changed = EventHandler()
        self.on_point_cloud_removed = EventHandler()

    def now(self) -> float:
        return self._clock()

    def _now(self, now: float | None) -> float:
        return self._clock() if now is None else now

    # Updates

    def apply_update_batch(
        self, batch: PoseClientUpdate, now: float | None = None
    ) -> None:
        """Apply every upsert of ``batch``, then every deletion."""
        now = self._now(now)
        for obj in batch.objects:
            self.update_object(obj, now)
        for object_id in batch.deletions:
            self.delete_object(object_id)

    def update_object(self, obj: ObjectPose, now: float | None = None) -> ObjectEntry:
        """Insert ``obj`` or overwrite every attribute of the existing entry."""
        now = self._now(now)
        entry = self._objects.get(obj.id)
        if entry is None:
            entry = ObjectEntry.from_object(obj, now)
            entry.resource = self._binder.attach(obj)
            self._objects[obj.id] = entry
            logger.debug(f"Object {obj.id} added")
            self.on_object_added.invoke(entry)
            return entry

        old_shape = entry.shape
        entry.pose = tuple(obj.pose)
        entry.rotation = tuple(obj.rotation)
        entry.color = obj.color
        entry.timeout = obj.timeout
        entry.shape = obj.shape
        entry.last_touched = now

        if obj.shape != old_shape:
            self._binder.release(entry.resource)
            entry.resource = self._binder.attach(obj)
            logger.debug(f"Object {obj.id} shape changed {old_shape} -> {obj.shape}")
            self.on_shape_changed.invoke(obj.id, old_shape, obj.shape)
        else:
            self._binder.update(entry.resource, obj)
        return entry

    def delete_object(self, object_id: str) -> bool:
        """Remove an object immediately. Returns False if it was not present."""
        entry = self._objects.pop(object_id, None)
        if entry is None:
            return False
        self._binder.release(entry.resource)
        logger.debug(f"Object {object_id} deleted")
        self.on_object_removed.invoke(object_id, REMOVED_DELETED)
        return True

    def apply_cloud_snapshot(
        self, snapshot: PointCloud2, now: float | None = None
    ) -> CloudEntry:
        """Replace the stored snapshot for ``snapshot.id`` in full.

        The replica keeps its own copy; later changes to ``snapshot`` do not
        reach it.
        """
        cloud = replace(snapshot, points=[tuple(p) for p in snapshot.points])
        entry = CloudEntry(cloud=cloud, last_touched=self._now(now))
        self._point_clouds[snapshot.id] = entry
        return entry

    def sweep(self, now: float | None = None) -> SweepResult:
        """Remove every object and point cloud whose age exceeds its timeout."""
        now = self._now(now)
        result = SweepResult()

        expired_objects = [
            object_id
            for object_id, entry in self._objects.items()
            if entry.is_timed_out(now)
        ]
        for object_id in expired_objects:
            entry = self._objects.pop(object_id)
            self._binder.release(entry.resource)
            result.objects.append(object_id)
            logger.debug(f"Object {object_id} removed (timeout)")
            self.on_object_removed.invoke(object_id, REMOVED_TIMEOUT)

        expired_clouds = [
            cloud_id
            for cloud_id, entry in self._point_clouds.items()
            if entry.is_timed_out(now)
        ]
        for cloud_id in expired_clouds:
            del self._point_clouds[cloud_id]
            result.point_clouds.append(cloud_id)
            logger.debug(f"Point cloud {cloud_id} removed (timeout)")
            self.on_point_cloud_removed.invoke(cloud_id, REMOVED_TIMEOUT)

        return result

    def clear(self) -> None:
        """Release every resource and forget all state."""
        for entry in self._objects.values():
            self._binder.release(entry.resource)
        self._objects.clear()
        self._point_clouds.clear()

    # Reads

    def objects(self, now: float | None = None) -> dict[str, ObjectEntry]:
        """Live object entries. Timed-out entries are hidden even before a sweep."""
        now = self._now(now)
        return {
            object_id: entry
            for object_id, entry in self._objects.items()
            if not entry.is_timed_out(now)
        }

    def point_clouds(self, now: float | None = None) -> dict[str, CloudEntry]:
        now = self._now(now)
        return {
            cloud_id: entry
            for cloud_id, entry in self._point_clouds.items()
            if not entry.is_timed_out(now)
        }

    def get_object(self, object_id: str, now: float | None = None) -> ObjectEntry | None:
        entry = self._objects.get(object_id)
        if entry is None or entry.is_timed_out(self._now(now)):
            return None
        return entry

    def get_point_cloud(
        self, cloud_id: str, now: float | None = None
    ) -> CloudEntry | None:
        entry = self._point_clouds.get(cloud_id)
        if entry is None or entry.is_timed_out(self._now(now)):
            return None
        return entry

    def cloud_anchor(
        self, cloud: PointCloud2, now: float | None = None
    ) -> tuple[Point3, Quaternion]:
        """Pose and rotation the cloud's points are relative to, read live.

        Falls back to the origin with identity rotation when the cloud has no
        parent frame or the parent object is currently absent.
        """
        if cloud.parent_frame_id is not None:
            parent = self.get_object(cloud.parent_frame_id, now)
            if parent is not None:
                return parent.pose, parent.rotation
        return ORIGIN, IDENTITY_ROTATION

    def anchored_points(
        self, cloud_id: str, now: float | None = None
    ) -> list[Point3] | None:
        """3D points of a live cloud in its parent's current frame, or None."""
        now = self._now(now)
        entry = self.get_point_cloud(cloud_id, now)
        if entry is None:
            return None
        return anchor_points(entry.cloud, self.cloud_anchor(entry.cloud, now))

    def display_message(self, now: float | None = None) -> str:
        now = self._now(now)
        return format_summary(
            {k: v.to_object_pose() for k, v in self.objects(now).items()},
            {k: v.cloud for k, v in self.point_clouds(now).items()},
        )

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, object_id: object) -> bool:
        return object_id in self._objects
