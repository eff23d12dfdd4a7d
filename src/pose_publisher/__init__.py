"""
pose-publisher

Broadcast object poses, shapes, colors and point clouds over UDP multicast and
keep a self-expiring replica of them on any number of observers. Publishers
restate the current truth repeatedly; subscribers drop whatever nobody
restates within its timeout.

Main Classes:
    PosePublisher / PoseSubscriber: pose update batches
    PointCloudPublisher / PointCloudSubscriber: point cloud snapshots
    CommandPublisher / CommandSubscriber: control commands
    ObjectContainer: subscriber-side replica (upsert, delete, sweep)
    ReplicaFeed: drains subscribers into a replica once per tick

Examples:
    from pose_publisher import PosePublisher, PoseClientUpdate, Sphere

    publisher = PosePublisher("239.0.0.22:7072")
    update = PoseClientUpdate()
    update.add("obj_a", (0.0, 0.0, 1.0)).with_shape(Sphere(0.4))
    publisher.publish(update)

    from pose_publisher import ObjectContainer, PoseSubscriber

    subscriber = PoseSubscriber("239.0.0.22:7072")
    container = ObjectContainer()
    while True:
        container.apply_update_batch(subscriber.next())
        container.sweep()
"""

from .errors import (
    DecodeError,
    MalformedPayload,
    NotMulticastError,
    PosePublisherError,
    TransportError,
)
from .feed import ReplicaFeed, ReplicaSnapshot
from .multicast import MulticastEndpoint, MulticastMessenger
from .pubsub import (
    CommandPublisher,
    CommandSubscriber,
    PointCloudPublisher,
    PointCloudSubscriber,
    PosePublisher,
    PoseSubscriber,
    Publisher,
    Subscriber,
)
from .replica import CloudEntry, NullBinder, ObjectContainer, ObjectEntry, ResourceBinder
from .types import (
    Color,
    Command,
    Cube,
    Line,
    ObjectPose,
    PointCloud2,
    PoseClientUpdate,
    Shape,
    Sphere,
)

__all__ = [
    # Transport
    "MulticastEndpoint",
    "MulticastMessenger",
    # Publishers / subscribers
    "Publisher",
    "Subscriber",
    "PosePublisher",
    "PoseSubscriber",
    "PointCloudPublisher",
    "PointCloudSubscriber",
    "CommandPublisher",
    "CommandSubscriber",
    # Data types
    "Color",
    "Command",
    "Cube",
    "Line",
    "ObjectPose",
    "PointCloud2",
    "PoseClientUpdate",
    "Shape",
    "Sphere",
    # Replica
    "CloudEntry",
    "NullBinder",
    "ObjectContainer",
    "ObjectEntry",
    "ReplicaFeed",
    "ReplicaSnapshot",
    "ResourceBinder",
    # Errors
    "DecodeError",
    "MalformedPayload",
    "NotMulticastError",
    "PosePublisherError",
    "TransportError",
]

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("pose-publisher")
except PackageNotFoundError:
    __version__ = "unknown"
