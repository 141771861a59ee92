"""Tests de reglas de evaluación (funciones puras).

Ejecutar:
    pytest tests/test_rules.py -v
"""

from datetime import datetime, timezone

import pytest

from telemetry_pipeline.domain.models import Action, Classification, Reading, Thresholds
from telemetry_pipeline.evaluator.rules import actions_for, classify, describe, threshold_used

THRESHOLDS = Thresholds(warning=-10.0, critical=-5.0, target=-18.0)


def _reading(value: float) -> Reading:
    return Reading(
        entity_id="ship_1",
        sensor_id="s1",
        value=value,
        observed_at=datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc),
    )


# =============================================================================
# CLASSIFY
# =============================================================================

class TestClassify:
    """Clasificación con comparaciones estrictas."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (-1.0, Classification.CRITICAL),
            (-4.99, Classification.CRITICAL),
            (-5.0, Classification.WARNING),
            (-7.0, Classification.WARNING),
            (-9.99, Classification.WARNING),
            (-10.0, Classification.NORMAL),
            (-19.0, Classification.NORMAL),
        ],
    )
    def test_boundaries(self, value, expected):
        """Empates caen en la severidad menor."""
        assert classify(value, THRESHOLDS) == expected

    def test_same_input_same_output(self):
        assert classify(-6.0, THRESHOLDS) == classify(-6.0, THRESHOLDS)


# =============================================================================
# ACTIONS
# =============================================================================

class TestActionsFor:
    def test_critical_actions_in_order(self):
        assert actions_for(Classification.CRITICAL) == (
            Action.RECORD,
            Action.REQUEST_ADJUSTMENT,
            Action.NOTIFY_CRITICAL,
        )

    def test_warning_actions(self):
        assert actions_for(Classification.WARNING) == (Action.RECORD, Action.NOTIFY_WARNING)

    def test_normal_only_records(self):
        assert actions_for(Classification.NORMAL) == (Action.RECORD,)

    def test_trend_records_trend(self):
        assert actions_for(Classification.TREND_ANOMALY) == (Action.RECORD_TREND,)

    def test_every_classification_has_actions(self):
        for classification in Classification:
            assert len(actions_for(classification)) >= 1


# =============================================================================
# MENSAJES Y UMBRAL USADO
# =============================================================================

class TestDescribe:
    def test_threshold_used_per_classification(self):
        assert threshold_used(Classification.CRITICAL, THRESHOLDS) == -5.0
        assert threshold_used(Classification.WARNING, THRESHOLDS) == -10.0
        assert threshold_used(Classification.NORMAL, THRESHOLDS) is None
        assert threshold_used(Classification.TREND_ANOMALY, None) is None

    def test_critical_message(self):
        msg = describe(_reading(-1.0), Classification.CRITICAL, THRESHOLDS)
        assert msg == "CRITICAL | ship_1_s1 | -1.0 > -5.0 threshold"

    def test_normal_message(self):
        msg = describe(_reading(-19.0), Classification.NORMAL, THRESHOLDS)
        assert msg == "NORMAL | ship_1_s1 | -19.0 <= -10.0 threshold"
