"""Evaluator stage.

Modules:
- thresholds: resolución cache-first con fallback por componente
- rules: classify / actions_for
- trend: detector de tendencia ascendente
- service: Evaluator (consume intake, publica en outcome)
"""

from .rules import actions_for, classify
from .service import Evaluator
from .thresholds import ThresholdResolver, load_default_thresholds, seed_thresholds
from .trend import TrendConfig, TrendDetector, detect_trend

__all__ = [
    "Evaluator",
    "ThresholdResolver",
    "TrendConfig",
    "TrendDetector",
    "actions_for",
    "classify",
    "detect_trend",
    "load_default_thresholds",
    "seed_thresholds",
]
