"""
Behavioral anomaly scoring.

Turns a bundle of behavioral signals into a 0-100 anomaly score with a
per-signal breakdown and a confidence estimate.
"""

from .anomaly import AnomalyScoreEngine, AnomalyScoreResult, PatternData, score_anomaly
from .core import Config, config

__version__ = "0.1.0"

__all__ = [
    "AnomalyScoreEngine",
    "AnomalyScoreResult",
    "PatternData",
    "score_anomaly",
    "Config",
    "config",
]
