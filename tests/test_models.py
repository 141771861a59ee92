"""Tests del contrato de mensajes (Reading / EvaluationEvent)."""

import json
from datetime import datetime, timezone

import pytest

from telemetry_pipeline.domain.models import (
    Action,
    Classification,
    EvaluationEvent,
    EventType,
    Reading,
    Thresholds,
    parse_timestamp,
)
from telemetry_pipeline.errors import MalformedItemError, PipelineError


def _reading_body(**overrides):
    body = {
        "entity_id": "ship_1",
        "sensor_id": "s1",
        "value": -7.5,
        "observed_at": "2026-01-15T12:00:00Z",
    }
    body.update(overrides)
    return json.dumps(body)


# =============================================================================
# READING
# =============================================================================

class TestReadingParsing:
    def test_valid_reading(self):
        reading = Reading.from_json(_reading_body())
        assert reading.entity_id == "ship_1"
        assert reading.value == -7.5
        assert reading.observed_at == datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def test_missing_sensor_gets_default(self):
        reading = Reading.from_json(_reading_body(sensor_id=None))
        assert reading.sensor_id == "ship_1_default_sensor"

    def test_numeric_string_value_is_accepted(self):
        assert Reading.from_json(_reading_body(value="-3.25")).value == -3.25

    @pytest.mark.parametrize(
        "body",
        [
            "not json",
            "[1, 2]",
            _reading_body(value="abc"),
            _reading_body(value=True),
            _reading_body(value=None),
            _reading_body(entity_id=""),
            _reading_body(observed_at="yesterday"),
        ],
    )
    def test_malformed_bodies(self, body):
        with pytest.raises(MalformedItemError):
            Reading.from_json(body)

    def test_malformed_is_pipeline_error(self):
        assert issubclass(MalformedItemError, PipelineError)


class TestParseTimestamp:
    def test_naive_is_utc(self):
        ts = parse_timestamp("2026-01-15T12:00:00")
        assert ts.tzinfo is not None
        assert ts.utcoffset().total_seconds() == 0

    def test_offset_is_normalized(self):
        ts = parse_timestamp("2026-01-15T14:00:00+02:00")
        assert ts == datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# EVALUATION EVENT
# =============================================================================

class TestEvaluationEvent:
    def _event(self, **overrides):
        fields = dict(
            reading=Reading.from_json(_reading_body()),
            classification=Classification.WARNING,
            actions=(Action.RECORD, Action.NOTIFY_WARNING),
            thresholds=Thresholds(-10.0, -5.0, -18.0),
            message="WARNING | ship_1_s1 | -7.5 > -10.0 threshold",
            produced_at=datetime(2026, 1, 15, 12, 0, 1, tzinfo=timezone.utc),
        )
        fields.update(overrides)
        return EvaluationEvent(**fields)

    def test_event_survives_the_queue(self):
        event = self._event()
        assert EvaluationEvent.from_json(event.to_json()) == event

    def test_trend_event_has_no_thresholds(self):
        event = self._event(
            classification=Classification.TREND_ANOMALY,
            actions=(Action.RECORD_TREND,),
            thresholds=None,
        )
        data = json.loads(event.to_json())
        assert data["event_type"] == "TREND_ANOMALY"
        assert data["thresholds"] is None
        assert EvaluationEvent.from_json(event.to_json()).thresholds is None

    def test_event_type_for_ordinary_event(self):
        assert self._event().event_type == EventType.READING_EVALUATED

    def test_unknown_classification(self):
        data = json.loads(self._event().to_json())
        data["classification"] = "PANIC"
        with pytest.raises(MalformedItemError):
            EvaluationEvent.from_json(json.dumps(data))

    def test_empty_actions(self):
        data = json.loads(self._event().to_json())
        data["actions"] = []
        with pytest.raises(MalformedItemError):
            EvaluationEvent.from_json(json.dumps(data))
