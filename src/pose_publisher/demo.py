"""
Demo publishers that exercise a viewer: a bouncing sphere/cube with a line,
a rotating cube, and a circular point cloud anchored to that cube.
"""

import logging
import math
import time
from collections.abc import Callable

from .pubsub import PointCloudPublisher, PosePublisher
from .types import Color, Cube, Line, PointCloud2, PoseClientUpdate, Sphere

logger = logging.getLogger(__name__)

STEPS = 100
ROTATED_OBJECT_ID = "rotated_object"


def bounce_updates(step: int, rising: bool) -> PoseClientUpdate:
    """Batch for one animation step. Falling: red sphere; rising: cyan cube."""
    height = 0.01 * step
    update = PoseClientUpdate()
    if rising:
        update.add("obj_a", (0.0, 0.0, height)).with_color(Color.Cyan).with_shape(
            Cube(0.3, 0.01, 0.01)
        )
        update.add("test line", (0.0, 0.0, height)).with_shape(
            Line((0.0, 0.0, 0.0))
        ).with_color(Color.Magenta)
    else:
        update.add("obj_a", (0.0, 0.0, height)).with_shape(Sphere(0.4))
        update.add("test line", (0.0, 0.0, height)).with_shape(Line((0.0, 0.0, 0.0)))
    return update


def run_bounce(
    publisher: PosePublisher,
    cycles: int = 4,
    interval: float = 0.02,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Bounce ``obj_a`` up and down, then delete it. Returns datagrams sent."""
    sent = 0
    for cycle in range(cycles):
        logger.debug(f"Bounce cycle {cycle + 1}/{cycles}")
        for rising, steps in ((False, range(STEPS, -1, -1)), (True, range(STEPS + 1))):
            for step in steps:
                sleep(interval)
                publisher.publish(bounce_updates(step, rising))
                sent += 1

    final = PoseClientUpdate()
    final.delete("obj_a")
    publisher.publish(final)
    logger.info(f"Bounce demo finished after {sent + 1} datagrams")
    return sent + 1


def rotation_update(fraction: float) -> PoseClientUpdate:
    update = PoseClientUpdate()
    update.add(ROTATED_OBJECT_ID, (0.0, 0.0, fraction)).with_shape(
        Cube(0.3, 0.01, 0.01)
    ).with_rotation((1.0 - fraction, 0.0, fraction, 0.0))
    return update


def run_rotate(
    publisher: PosePublisher,
    cycles: int | None = None,
    interval: float = 0.02,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Raise and rotate a cube, then reverse. ``cycles=None`` runs forever."""
    sent = 0
    cycle = 0
    while cycles is None or cycle < cycles:
        for steps in (range(STEPS + 1), range(STEPS, -1, -1)):
            for step in steps:
                sleep(interval)
                publisher.publish(rotation_update(step / STEPS))
                sent += 1
        cycle += 1
    return sent


def circle_cloud(count: int = 2000) -> PointCloud2:
    # Rounded so 2000 points stay well below the datagram limit as JSON
    points = [
        (round(math.sin(i * 0.01), 6), round(math.cos(i * 0.01), 6))
        for i in range(count)
    ]
    return (
        PointCloud2.from_points("example cloud", points)
        .with_color(Color.Cyan)
        .with_parent_frame_id(ROTATED_OBJECT_ID)
    )


def run_cloud(
    publisher: PointCloudPublisher,
    cycles: int | None = None,
    interval: float = 0.2,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Publish :func:`circle_cloud` every ``interval`` seconds."""
    sent = 0
    while cycles is None or sent < cycles:
        sleep(interval)
        publisher.publish(circle_cloud())
        sent += 1
    return sent
