"""Tests for the REST bridge over a replica feed."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from pose_publisher.errors import TransportError
from pose_publisher.feed import ReplicaFeed
from pose_publisher.rest_bridge import create_app
from pose_publisher.types import Color, Cube, PointCloud2, PoseClientUpdate


class QueueSubscriber:
    def __init__(self, *messages) -> None:
        self.messages = list(messages)

    def drain(self, max_items=None):
        messages, self.messages = self.messages, []
        return iter(messages)


class RecordingPublisher:
    def __init__(self, error: Exception | None = None) -> None:
        self.published: list[PoseClientUpdate] = []
        self.error = error

    def publish(self, update: PoseClientUpdate) -> None:
        if self.error is not None:
            raise self.error
        self.published.append(update)


@pytest.fixture
def feed() -> ReplicaFeed:
    update = PoseClientUpdate()
    update.add("obj_b", (0.0, 0.0, 1.0)).with_color(Color.Cyan)
    update.add("obj_a", (1.0, 0.0, 0.0)).with_shape(Cube(1.0, 2.0, 3.0))
    cloud = PointCloud2.from_points("cloud", [(1.0, 1.0)]).with_parent_frame_id("obj_a")
    feed = ReplicaFeed(QueueSubscriber(update), QueueSubscriber(cloud))
    feed.tick(now=10.0)
    return feed


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def client(feed: ReplicaFeed, publisher: RecordingPublisher) -> TestClient:
    return TestClient(create_app(feed, publisher))


class TestReadEndpoints:
    def test_health_check(self, client: TestClient) -> None:
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_list_objects_uses_wire_layout(self, client: TestClient) -> None:
        body = client.get("/v1/objects").json()

        assert body["timestamp"] == 10.0
        assert [obj["id"] for obj in body["objects"]] == ["obj_a", "obj_b"]
        assert body["objects"][0]["shape"] == {"Cube": [1.0, 2.0, 3.0]}
        assert body["objects"][1]["color"] == "Cyan"

    def test_get_object(self, client: TestClient) -> None:
        response = client.get("/v1/objects/obj_b")
        assert response.status_code == 200
        assert response.json()["pose"] == [0.0, 0.0, 1.0]

    def test_unknown_object_is_404(self, client: TestClient) -> None:
        assert client.get("/v1/objects/missing").status_code == 404

    def test_point_clouds(self, client: TestClient) -> None:
        body = client.get("/v1/point-clouds").json()
        assert body["point_clouds"][0]["parent_frame_id"] == "obj_a"

        points = client.get("/v1/point-clouds/cloud/points").json()
        assert points == {"id": "cloud", "points": [[2.0, 1.0, 0.0]]}

    def test_unknown_cloud_is_404(self, client: TestClient) -> None:
        assert client.get("/v1/point-clouds/missing/points").status_code == 404


class TestPublishEndpoint:
    def test_publish_batch(
        self, client: TestClient, publisher: RecordingPublisher
    ) -> None:
        response = client.post(
            "/v1/poses",
            json={
                "objects": [
                    {"id": "obj_c", "pose": [1, 2, 3], "shape": {"Line": [0, 0, 1]}}
                ],
                "delete": ["obj_a"],
            },
        )

        assert response.status_code == 200
        assert response.json() == {"published": 1, "deleted": 1}
        (update,) = publisher.published
        assert update.objects[0].pose == (1.0, 2.0, 3.0)
        assert update.objects[0].color is Color.Red
        assert update.deletions == ["obj_a"]

    def test_empty_batch_is_400(self, client: TestClient) -> None:
        assert client.post("/v1/poses", json={}).status_code == 400

    def test_bad_shape_is_422(self, client: TestClient) -> None:
        response = client.post(
            "/v1/poses",
            json={"objects": [{"id": "x", "pose": [0, 0, 0], "shape": {"Cone": 1}}]},
        )
        assert response.status_code == 422

    def test_bad_color_is_422(self, client: TestClient) -> None:
        response = client.post(
            "/v1/poses",
            json={"objects": [{"id": "x", "pose": [0, 0, 0], "color": "Purple"}]},
        )
        assert response.status_code == 422

    def test_missing_pose_is_422(self, client: TestClient) -> None:
        response = client.post("/v1/poses", json={"objects": [{"id": "x"}]})
        assert response.status_code == 422

    @pytest.mark.parametrize(
        "body",
        [
            '{"objects": [{"id": "x", "pose": [NaN, 0, 0]}]}',
            '{"objects": [{"id": "x", "pose": ["Infinity", 0, 0]}]}',
            '{"objects": [{"id": "x", "pose": [0, 0, 0], "timeout": "Infinity"}]}',
            '{"objects": [{"id": "x", "pose": [0, 0, 0], "rotation": [0, 0, 0, -Infinity]}]}',
            '{"objects": [{"id": "x", "pose": [0, 0, 0], "shape": {"Sphere": NaN}}]}',
        ],
    )
    def test_non_finite_numbers_are_422(
        self, client: TestClient, publisher: RecordingPublisher, body: str
    ) -> None:
        response = client.post(
            "/v1/poses", content=body, headers={"content-type": "application/json"}
        )

        assert response.status_code == 422
        assert publisher.published == []

    def test_transport_failure_is_502(self, feed: ReplicaFeed) -> None:
        client = TestClient(
            create_app(feed, RecordingPublisher(TransportError("network down")))
        )

        response = client.post("/v1/poses", json={"delete": ["obj_a"]})

        assert response.status_code == 502
        assert "network down" in response.json()["detail"]

    def test_publishing_disabled_is_503(self, feed: ReplicaFeed) -> None:
        client = TestClient(create_app(feed))
        assert client.post("/v1/poses", json={"delete": ["obj_a"]}).status_code == 503
