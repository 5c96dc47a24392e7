"""
Ensemble combination, business-rule gate, and confidence estimation.

Turns the fired ScoreComponents of one evaluation into a single bounded score,
an overall confidence, and a severity label.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from anomaly_scoring.core.config import EnsembleConfig, ScoreGate, SeverityThresholds

from .schema import AnomalySeverity, ScoreComponent
from .statistics import variance


def diversity_bonus(component_count: int, ensemble: EnsembleConfig) -> float:
    """ln(n) scaled bonus for agreeing evidence from several algorithms."""
    if component_count < 2:
        return 0.0
    return min(math.log(component_count) * ensemble.diversity_factor, ensemble.diversity_cap)


def consensus_bonus(confidences: Sequence[float], ensemble: EnsembleConfig) -> float:
    """Bonus that shrinks as component confidences disagree."""
    if not confidences:
        return 0.0
    return (1.0 - min(variance(confidences), 1.0)) * ensemble.consensus_factor


def combine_components(
    components: Sequence[ScoreComponent], ensemble: EnsembleConfig
) -> float:
    """
    Confidence-weighted ensemble of component scores.

    With zero total confidence the plain sum is returned. Otherwise each score
    is weighted by its share of total confidence and the weighted sum receives
    the diversity and consensus bonuses. The result is capped at
    ensemble.max_score.
    """
    if not components:
        return 0.0

    confidences = [c.confidence for c in components]
    total_confidence = sum(confidences)

    if total_confidence == 0:
        return min(sum(c.score for c in components), ensemble.max_score)

    weighted = sum(c.score * (c.confidence / total_confidence) for c in components)
    bonus = diversity_bonus(len(components), ensemble) + consensus_bonus(confidences, ensemble)
    return min(weighted * (1.0 + bonus), ensemble.max_score)


def apply_score_gate(score: float, gate: ScoreGate) -> float:
    """
    Cap the score to [0, max_score] and drop it to 0 below the noise floor.

    A disabled gate still clamps to [0, 100].
    """
    if not gate.enabled:
        return min(max(score, 0.0), 100.0)

    capped = min(max(score, 0.0), gate.max_score)
    return capped if capped >= gate.noise_floor else 0.0


def overall_confidence(components: Sequence[ScoreComponent]) -> float:
    """Average component confidence plus a ln(n + 1) diversity boost, capped at 1."""
    if not components:
        return 0.0
    avg = sum(c.confidence for c in components) / len(components)
    boost = math.log(len(components) + 1) * 0.1
    return min(avg + boost, 1.0)


@dataclass
class SeverityMapper:
    """
    Maps a final score to a severity label.
    """

    thresholds: SeverityThresholds

    def severity(self, score: float) -> AnomalySeverity:
        if score >= self.thresholds.critical:
            return AnomalySeverity.CRITICAL
        if score >= self.thresholds.high:
            return AnomalySeverity.HIGH
        if score >= self.thresholds.medium:
            return AnomalySeverity.MEDIUM
        if score >= self.thresholds.low and score > 0:
            return AnomalySeverity.LOW
        return AnomalySeverity.NONE
