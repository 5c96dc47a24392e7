"""
Anomaly module: behavioral anomaly scoring.

Implements statistical primitives, six signal algorithms, the confidence-weighted
ensemble, the business-rule gate, and the cache boundary.
"""

from .cache import CachedScoreEngine, InMemoryScoreCache, ScoreCache, cache_key
from .engine import AnomalyScoreEngine, score_anomaly
from .schema import (
    AlgorithmName,
    AnomalyScoreResult,
    AnomalySeverity,
    PatternData,
    ScoreComponent,
    parse_pattern_data,
)
from .scoring import SeverityMapper, apply_score_gate, combine_components, overall_confidence
from .signals import SIGNAL_ALGORITHMS, SignalContext, run_signals

__all__ = [
    "AnomalyScoreEngine",
    "score_anomaly",
    "AlgorithmName",
    "AnomalyScoreResult",
    "AnomalySeverity",
    "PatternData",
    "ScoreComponent",
    "parse_pattern_data",
    "SeverityMapper",
    "apply_score_gate",
    "combine_components",
    "overall_confidence",
    "SIGNAL_ALGORITHMS",
    "SignalContext",
    "run_signals",
    "CachedScoreEngine",
    "InMemoryScoreCache",
    "ScoreCache",
    "cache_key",
]
