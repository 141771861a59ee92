from .models import (
    Action,
    AlertRecord,
    Classification,
    CorrectionRequest,
    EvaluationEvent,
    EventType,
    Reading,
    Thresholds,
    parse_timestamp,
    utc_now,
)

__all__ = [
    "Action",
    "AlertRecord",
    "Classification",
    "CorrectionRequest",
    "EvaluationEvent",
    "EventType",
    "Reading",
    "Thresholds",
    "parse_timestamp",
    "utc_now",
]
