"""Tests del gateway HTTP."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from telemetry_pipeline.domain.models import Reading
from telemetry_pipeline.errors import TransportError
from telemetry_pipeline.gateway import create_app


@pytest.fixture
def intake(make_queue):
    return make_queue("intake")


@pytest.fixture
def client(intake):
    return TestClient(create_app(intake))


class TestGateway:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "gateway"}

    def test_valid_reading_is_queued(self, client, intake):
        response = client.post(
            "/telemetry",
            json={"ship_id": "ship_1", "temp": -1, "timestamp": "2026-01-15T12:00:00Z"},
        )

        assert response.status_code == 200
        assert response.json()["message"] == (
            "Queued: ship_1 | ship_1_default_sensor | -1.0 | 2026-01-15T12:00:00+00:00"
        )
        reading = Reading.from_json(intake.poll(1, 0)[0].body)
        assert reading.entity_id == "ship_1"
        assert reading.value == -1.0

    def test_generic_field_names(self, client, intake):
        response = client.post(
            "/telemetry",
            json={
                "entity_id": "ship_2",
                "sensor_id": "hold_a",
                "value": "-6.5",
                "timestamp": "2026-01-15T12:00:00+00:00",
            },
        )
        assert response.status_code == 200
        assert Reading.from_json(intake.poll(1, 0)[0].body).sensor_id == "hold_a"

    def test_missing_fields(self, client, intake):
        response = client.post("/telemetry", json={"ship_id": "ship_1", "temp": -1})
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required field(s): ship_id, timestamp"
        assert len(intake) == 0

    def test_invalid_temperature(self, client):
        response = client.post(
            "/telemetry",
            json={"ship_id": "ship_1", "temp": "cold", "timestamp": "2026-01-15T12:00:00Z"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid temperature reading"

    def test_invalid_timestamp(self, client):
        response = client.post(
            "/telemetry", json={"ship_id": "ship_1", "temp": -1, "timestamp": "yesterday"}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid timestamp"

    def test_queue_failure(self):
        queue = MagicMock()
        queue.publish.side_effect = TransportError("down")
        client = TestClient(create_app(queue))

        response = client.post(
            "/telemetry",
            json={"ship_id": "ship_1", "temp": -1, "timestamp": "2026-01-15T12:00:00Z"},
        )

        assert response.status_code == 500
        assert "Sending telemetry to queue failed" in response.json()["detail"]


# =============================================================================
# TIPOS NO TEXTUALES EN EL PAYLOAD
# =============================================================================

class TestGatewayCoercion:
    def test_numeric_ship_id_is_accepted(self, client, intake):
        response = client.post(
            "/telemetry",
            json={"ship_id": 1, "temp": -1, "timestamp": "2026-01-15T12:00:00Z"},
        )

        assert response.status_code == 200
        reading = Reading.from_json(intake.poll(1, 0)[0].body)
        assert reading.entity_id == "1"
        assert reading.sensor_id == "1_default_sensor"

    def test_epoch_timestamp_is_accepted(self, client, intake):
        response = client.post(
            "/telemetry",
            json={"ship_id": "ship_1", "sensor_id": 7, "temp": -1, "timestamp": 1767225600},
        )

        assert response.status_code == 200
        reading = Reading.from_json(intake.poll(1, 0)[0].body)
        assert reading.observed_at.isoformat() == "2026-01-01T00:00:00+00:00"
        assert reading.sensor_id == "7"

    def test_boolean_timestamp_is_rejected(self, client, intake):
        response = client.post(
            "/telemetry", json={"ship_id": "ship_1", "temp": -1, "timestamp": True}
        )
        assert response.status_code == 400
        assert len(intake) == 0

    def test_out_of_range_epoch_is_rejected(self, client, intake):
        response = client.post(
            "/telemetry", json={"ship_id": "ship_1", "temp": -1, "timestamp": 1e20}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid timestamp"
        assert len(intake) == 0
