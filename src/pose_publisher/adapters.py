"""
Adapters between the Python dataclasses and their JSON wire representation.

The wire layout is shared with non-Python peers, so field names, tuple-as-array
encoding and the externally tagged shape encoding (``{"Sphere": 0.4}``) are
fixed. ``*_from_wire`` functions are strict: a missing field or a value of the
wrong type raises :class:`DecodeError` and nothing is built.
"""

import math
from typing import Any

from .errors import DecodeError
from .types import (
    Color,
    Command,
    Cube,
    Line,
    ObjectPose,
    Point2,
    Point3,
    PointCloud2,
    PoseClientUpdate,
    Quaternion,
    Shape,
    Sphere,
)


def _require(data: Any, key: str) -> Any:
    if not isinstance(data, dict):
        raise DecodeError(f"expected an object, got {type(data).__name__}")
    if key not in data:
        raise DecodeError(f"missing field '{key}'")
    return data[key]


def _float(value: Any, what: str) -> float:
    # bool is an int subclass; JSON true/false must not pass as numbers
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"{what} must be a number, got {value!r}")
    try:
        number = float(value)
    except OverflowError:
        raise DecodeError(f"{what} is out of range, got {value!r}") from None
    # 1e999 reaches here as inf; parse_constant only sees the NaN/Infinity tokens
    if not math.isfinite(number):
        raise DecodeError(f"{what} must be finite, got {value!r}")
    return number


def _str(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise DecodeError(f"{what} must be a string, got {value!r}")
    return value


def _floats(value: Any, size: int, what: str) -> tuple[float, ...]:
    if not isinstance(value, list) or len(value) != size:
        raise DecodeError(f"{what} must be an array of {size} numbers, got {value!r}")
    return tuple(_float(v, what) for v in value)


def _list(value: Any, what: str) -> list[Any]:
    if not isinstance(value, list):
        raise DecodeError(f"{what} must be an array, got {value!r}")
    return value


def _finite(value: float) -> float:
    # json.dumps(allow_nan=False) is used on send; keep NaN out of the payload early
    if not math.isfinite(value):
        raise ValueError(f"non-finite value {value!r} cannot be sent")
    return float(value)


def _point(values: tuple[float, ...]) -> list[float]:
    return [_finite(v) for v in values]


# Shape and color


def shape_to_wire(shape: Shape) -> dict[str, Any]:
    match shape:
        case Sphere(radius=radius):
            return {"Sphere": _finite(radius)}
        case Cube(x=x, y=y, z=z):
            return {"Cube": _point((x, y, z))}
        case Line(end=end):
            return {"Line": _point(end)}
    raise TypeError(f"unknown shape {shape!r}")


def shape_from_wire(data: Any) -> Shape:
    if not isinstance(data, dict) or len(data) != 1:
        raise DecodeError(f"shape must be a single-key object, got {data!r}")
    (tag, value), = data.items()
    match tag:
        case "Sphere":
            return Sphere(_float(value, "Sphere radius"))
        case "Cube":
            x, y, z = _floats(value, 3, "Cube size")
            return Cube(x, y, z)
        case "Line":
            end: Point3 = _floats(value, 3, "Line end")  # type: ignore[assignment]
            return Line(end)
    raise DecodeError(f"unknown shape variant '{tag}'")


def color_to_wire(color: Color) -> str:
    return color.name


def color_from_wire(data: Any) -> Color:
    name = _str(data, "color")
    try:
        return Color[name]
    except KeyError:
        raise DecodeError(f"unknown color '{name}'") from None


# Messages


def object_pose_to_wire(obj: ObjectPose) -> dict[str, Any]:
    """Convert an ObjectPose to its wire dictionary."""
    return {
        "id": obj.id,
        "pose": _point(obj.pose),
        "rotation": _point(obj.rotation),
        "timeout": _finite(obj.timeout),
        "shape": shape_to_wire(obj.shape),
        "color": color_to_wire(obj.color),
    }


def object_pose_from_wire(data: Any) -> ObjectPose:
    """Build an ObjectPose from its wire dictionary."""
    pose: Point3 = _floats(_require(data, "pose"), 3, "pose")  # type: ignore[assignment]
    rotation: Quaternion = _floats(  # type: ignore[assignment]
        _require(data, "rotation"), 4, "rotation"
    )
    return ObjectPose(
        id=_str(_require(data, "id"), "id"),
        pose=pose,
        rotation=rotation,
        timeout=_float(_require(data, "timeout"), "timeout"),
        shape=shape_from_wire(_require(data, "shape")),
        color=color_from_wire(_require(data, "color")),
    )


def pose_update_to_wire(update: PoseClientUpdate) -> dict[str, Any]:
    return {
        "objects": [object_pose_to_wire(obj) for obj in update.objects],
        "delete": list(update.deletions),
    }


def pose_update_from_wire(data: Any) -> PoseClientUpdate:
    objects = [
        object_pose_from_wire(item)
        for item in _list(_require(data, "objects"), "objects")
    ]
    deletions = [_str(item, "delete id") for item in _list(_require(data, "delete"), "delete")]
    return PoseClientUpdate(objects=objects, deletions=deletions)


def point_cloud_to_wire(cloud: PointCloud2) -> dict[str, Any]:
    return {
        "id": cloud.id,
        "parent_frame_id": cloud.parent_frame_id,
        "points": [_point(p) for p in cloud.points],
        "timeout": _finite(cloud.timeout),
        "color": color_to_wire(cloud.color),
    }


def point_cloud_from_wire(data: Any) -> PointCloud2:
    parent = _require(data, "parent_frame_id")
    if parent is not None:
        parent = _str(parent, "parent_frame_id")
    points: list[Point2] = [
        _floats(p, 2, "point")  # type: ignore[misc]
        for p in _list(_require(data, "points"), "points")
    ]
    return PointCloud2(
        id=_str(_require(data, "id"), "id"),
        points=points,
        parent_frame_id=parent,
        timeout=_float(_require(data, "timeout"), "timeout"),
        color=color_from_wire(_require(data, "color")),
    )


def command_to_wire(command: Command) -> dict[str, Any]:
    if command.id < 0:
        raise ValueError(f"command id must be non-negative, got {command.id}")
    return {
        "id": int(command.id),
        "point": _point(command.point),
        "angle": _finite(command.angle),
        "length": _finite(command.length),
    }


def command_from_wire(data: Any) -> Command:
    command_id = _require(data, "id")
    if isinstance(command_id, bool) or not isinstance(command_id, int) or command_id < 0:
        raise DecodeError(f"command id must be a non-negative integer, got {command_id!r}")
    point: Point2 = _floats(_require(data, "point"), 2, "point")  # type: ignore[assignment]
    return Command(
        id=command_id,
        point=point,
        angle=_float(_require(data, "angle"), "angle"),
        length=_float(_require(data, "length"), "length"),
    )
