from __future__ import annotations

import logging
import threading
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field, constr

from . import adapters
from .errors import DecodeError, TransportError
from .feed import ReplicaFeed
from .pubsub import PosePublisher
from .types import (
    DEFAULT_TIMEOUT,
    IDENTITY_ROTATION,
    Color,
    ObjectPose,
    PoseClientUpdate,
)

logger = logging.getLogger(__name__)

MAX_ID = 256


class ObjectBody(BaseModel):
    """One object upsert in a POST /v1/poses request."""

    model_config = ConfigDict(allow_inf_nan=False)

    id: constr(min_length=1, max_length=MAX_ID)  # type: ignore[valid-type]
    pose: tuple[float, float, float]
    rotation: tuple[float, float, float, float] = IDENTITY_ROTATION
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    shape: dict[str, Any] = Field(default_factory=lambda: {"Sphere": 0.1})
    color: str = Color.Red.name

    def to_object_pose(self) -> ObjectPose:
        return ObjectPose(
            id=self.id,
            pose=self.pose,
            rotation=self.rotation,
            timeout=self.timeout,
            shape=adapters.shape_from_wire(self.shape),
            color=adapters.color_from_wire(self.color),
        )


class PoseBatchBody(BaseModel):
    """Request body for POST /v1/poses, mirroring the wire batch layout."""

    objects: list[ObjectBody] = Field(default_factory=list)
    delete: list[constr(min_length=1, max_length=MAX_ID)] = Field(  # type: ignore[valid-type]
        default_factory=list
    )


def create_app(
    feed: ReplicaFeed, pose_publisher: PosePublisher | None = None
) -> FastAPI:
    """Create the FastAPI application exposing the replica of ``feed``.

    Reads only ever see :meth:`ReplicaFeed.snapshot`, never the live container,
    so the app can be served from any thread.
    """
    app = FastAPI(title="Pose Publisher REST Bridge", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.get("/")
    def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/v1/objects")
    def list_objects() -> dict[str, Any]:
        snapshot = feed.snapshot()
        return {
            "timestamp": snapshot.timestamp,
            "objects": [
                adapters.object_pose_to_wire(snapshot.objects[object_id])
                for object_id in sorted(snapshot.objects)
            ],
        }

    @app.get("/v1/objects/{object_id}")
    def get_object(object_id: str) -> dict[str, Any]:
        obj = feed.snapshot().objects.get(object_id)
        if obj is None:
            raise HTTPException(status_code=404, detail=f"object {object_id} not found")
        return adapters.object_pose_to_wire(obj)

    @app.get("/v1/point-clouds")
    def list_point_clouds() -> dict[str, Any]:
        snapshot = feed.snapshot()
        return {
            "timestamp": snapshot.timestamp,
            "point_clouds": [
                adapters.point_cloud_to_wire(snapshot.point_clouds[cloud_id])
                for cloud_id in sorted(snapshot.point_clouds)
            ],
        }

    @app.get("/v1/point-clouds/{cloud_id}/points")
    def get_anchored_points(cloud_id: str) -> dict[str, Any]:
        points = feed.snapshot().anchored_points(cloud_id)
        if points is None:
            raise HTTPException(
                status_code=404, detail=f"point cloud {cloud_id} not found"
            )
        return {"id": cloud_id, "points": [list(p) for p in points]}

    @app.post("/v1/poses")
    def publish_poses(body: PoseBatchBody) -> dict[str, Any]:
        if pose_publisher is None:
            raise HTTPException(status_code=503, detail="pose publishing is disabled")
        if not body.objects and not body.delete:
            raise HTTPException(
                status_code=400, detail="objects and delete must not both be empty"
            )
        try:
            update = PoseClientUpdate(
                objects=[item.to_object_pose() for item in body.objects],
                deletions=list(body.delete),
            )
        except DecodeError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        try:
            pose_publisher.publish(update)
        except (TransportError, ValueError) as exc:
            logger.warning(f"REST bridge publish failed: {exc}")
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"published": len(update.objects), "deleted": len(update.deletions)}

    return app


def run_uvicorn_in_thread(
    app: FastAPI, host: str = "127.0.0.1", port: int = 8800
) -> tuple[threading.Thread, "uvicorn.Server"]:
    """Spawn a Uvicorn server for the given FastAPI app in a background thread."""
    import uvicorn

    config = uvicorn.Config(
        app=app, host=host, port=port, log_level="warning", lifespan="off"
    )
    server = uvicorn.Server(config=config)
    thread = threading.Thread(target=server.run, name="RestBridge", daemon=True)
    thread.start()
    logger.info(f"REST bridge listening on http://{host}:{port}")
    return thread, server
