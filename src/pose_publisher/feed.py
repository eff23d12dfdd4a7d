"""
Replica feed: the poll/sweep loop of a pose viewer without the rendering.

Each tick drains the pose and point cloud subscribers into one
:class:`ObjectContainer`, sweeps expired entries and publishes an immutable
:class:`ReplicaSnapshot`. The container itself is only touched by the thread
calling :meth:`ReplicaFeed.tick`; other threads read snapshots.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any

from .errors import TransportError
from .pubsub import PointCloudSubscriber, PoseSubscriber
from .replica import ORIGIN, ObjectContainer, anchor_points, format_summary
from .types import IDENTITY_ROTATION, ObjectPose, Point3, PointCloud2

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReplicaSnapshot:
    """Copy of the live replica taken at the end of a tick."""

    objects: dict[str, ObjectPose] = field(default_factory=dict)
    point_clouds: dict[str, PointCloud2] = field(default_factory=dict)
    timestamp: float = 0.0  # monotonic seconds when the snapshot was taken

    def anchored_points(self, cloud_id: str) -> list[Point3] | None:
        cloud = self.point_clouds.get(cloud_id)
        if cloud is None:
            return None
        parent = (
            self.objects.get(cloud.parent_frame_id)
            if cloud.parent_frame_id is not None
            else None
        )
        if parent is None:
            return anchor_points(cloud, (ORIGIN, IDENTITY_ROTATION))
        anchor = (parent.pose, parent.rotation)
        return anchor_points(cloud, anchor)

    def summary(self) -> str:
        return format_summary(self.objects, self.point_clouds)


class ReplicaFeed:
    """Keeps an :class:`ObjectContainer` in sync with pose and cloud subscribers.

    Args:
        pose_subscriber: Source of pose update batches, or None.
        point_cloud_subscriber: Source of point cloud snapshots, or None.
        container: Replica to fill; a new one is created when omitted.
        max_messages_per_tick: Upper bound on messages drained per subscriber
            per tick, so a flood cannot starve the sweep.
    """

    def __init__(
        self,
        pose_subscriber: PoseSubscriber | None = None,
        point_cloud_subscriber: PointCloudSubscriber | None = None,
        container: ObjectContainer | None = None,
        max_messages_per_tick: int = 1000,
    ) -> None:
        self._pose_subscriber = pose_subscriber
        self._point_cloud_subscriber = point_cloud_subscriber
        self.container = container if container is not None else ObjectContainer()
        self._max_messages = max_messages_per_tick

        self._snapshot = ReplicaSnapshot()
        self._snapshot_lock = threading.Lock()

        self._running = False
        self._thread: threading.Thread | None = None
        self._lock = threading.RLock()

        self._stats = {
            "ticks": 0,
            "pose_updates_received": 0,
            "point_clouds_received": 0,
            "objects_expired": 0,
            "point_clouds_expired": 0,
            "last_tick_time": 0.0,
        }

    @property
    def is_running(self) -> bool:
        return self._running

    def tick(self, now: float | None = None) -> ReplicaSnapshot:
        """Drain pending messages, sweep, and publish a new snapshot."""
        current = self.container.now() if now is None else now
        if self._pose_subscriber is not None:
            for update in self._pose_subscriber.drain(self._max_messages):
                self.container.apply_update_batch(update, current)
                self._stats["pose_updates_received"] += 1

        if self._point_cloud_subscriber is not None:
            for cloud in self._point_cloud_subscriber.drain(self._max_messages):
                self.container.apply_cloud_snapshot(cloud, current)
                self._stats["point_clouds_received"] += 1

        removed = self.container.sweep(current)
        self._stats["objects_expired"] += len(removed.objects)
        self._stats["point_clouds_expired"] += len(removed.point_clouds)
        self._stats["ticks"] += 1
        self._stats["last_tick_time"] = current

        snapshot = ReplicaSnapshot(
            objects={
                object_id: entry.to_object_pose()
                for object_id, entry in self.container.objects(current).items()
            },
            point_clouds={
                cloud_id: entry.cloud
                for cloud_id, entry in self.container.point_clouds(current).items()
            },
            timestamp=current,
        )
        with self._snapshot_lock:
            self._snapshot = snapshot
        return snapshot

    def snapshot(self) -> ReplicaSnapshot:
        """Latest snapshot; safe to call from any thread."""
        with self._snapshot_lock:
            return self._snapshot

    def summary(self) -> str:
        return self.snapshot().summary()

    def get_stats(self) -> dict[str, Any]:
        return self._stats.copy()

    # Background loop

    def start(self, interval: float = 0.02) -> ReplicaFeed:
        """Run :meth:`tick` every ``interval`` seconds on a daemon thread."""
        with self._lock:
            if self._running:
                return self
            self._running = True
            self._thread = threading.Thread(
                target=self._loop, args=(interval,), name="ReplicaFeed", daemon=True
            )
            self._thread.start()
            logger.info(f"Replica feed started (tick every {interval:.3f}s)")
            return self

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            if self._thread and self._thread.is_alive():
                self._thread.join(timeout=1.0)
            self._thread = None
            logger.info("Replica feed stopped")

    def _loop(self, interval: float) -> None:
        try:
            while self._running:
                self.tick()
                time.sleep(interval)
        except TransportError as e:
            logger.error(f"Replica feed stopping, transport failed: {e}")
        except Exception:
            logger.exception("Replica feed stopping after unexpected error")
        finally:
            self._running = False
