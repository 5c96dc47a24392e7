"""
Unit tests for ensemble combination, the score gate, and confidence.
"""

import math

import pytest

from anomaly_scoring.anomaly.schema import AlgorithmName, AnomalySeverity, ScoreComponent
from anomaly_scoring.anomaly.scoring import (
    SeverityMapper,
    apply_score_gate,
    combine_components,
    consensus_bonus,
    diversity_bonus,
    overall_confidence,
)
from anomaly_scoring.core.config import EnsembleConfig, ScoreGate, SeverityThresholds


def _component(score: float, confidence: float, algorithm=AlgorithmName.DEVIATION) -> ScoreComponent:
    return ScoreComponent(algorithm=algorithm, score=score, confidence=confidence)


def test_combine_empty():
    assert combine_components([], EnsembleConfig()) == 0.0


def test_combine_single_component_gets_consensus_bonus():
    # Variance of one confidence is 0 -> full 10% consensus, no diversity bonus
    score = combine_components([_component(45.0, 0.99865)], EnsembleConfig())
    assert score == pytest.approx(49.5)


def test_combine_zero_confidence_returns_plain_sum():
    components = [_component(20.0, 0.0), _component(30.0, 0.0, AlgorithmName.VELOCITY)]
    assert combine_components(components, EnsembleConfig()) == pytest.approx(50.0)


def test_combine_confidence_weighting_and_bonuses():
    components = [_component(50.0, 1.0), _component(10.0, 0.0, AlgorithmName.DEVICE)]
    diversity = math.log(2) * 0.05
    consensus = (1.0 - 0.25) * 0.10
    expected = 50.0 * (1.0 + diversity + consensus)
    assert combine_components(components, EnsembleConfig()) == pytest.approx(expected)


def test_combine_is_capped():
    assert combine_components([_component(200.0, 1.0)], EnsembleConfig()) == 100.0


def test_diversity_bonus():
    ensemble = EnsembleConfig()
    assert diversity_bonus(0, ensemble) == 0.0
    assert diversity_bonus(1, ensemble) == 0.0
    assert diversity_bonus(2, ensemble) == pytest.approx(math.log(2) * 0.05)
    assert diversity_bonus(6, ensemble) == pytest.approx(math.log(6) * 0.05)
    assert diversity_bonus(100, ensemble) == 0.20


def test_consensus_bonus():
    ensemble = EnsembleConfig()
    assert consensus_bonus([], ensemble) == 0.0
    assert consensus_bonus([0.4, 0.4], ensemble) == pytest.approx(0.10)
    assert consensus_bonus([0.0, 1.0], ensemble) == pytest.approx(0.075)


class TestScoreGate:
    """Post-processing business-rule gate."""

    def test_noise_floor(self):
        gate = ScoreGate()
        assert apply_score_gate(7.5, gate) == 0.0
        assert apply_score_gate(9.999, gate) == 0.0
        assert apply_score_gate(10.0, gate) == 10.0
        assert apply_score_gate(45.0, gate) == 45.0

    def test_caps(self):
        gate = ScoreGate()
        assert apply_score_gate(150.0, gate) == 100.0
        assert apply_score_gate(-5.0, gate) == 0.0

    def test_caller_configured_floor(self):
        assert apply_score_gate(7.5, ScoreGate(noise_floor=5.0)) == 7.5
        assert apply_score_gate(60.0, ScoreGate(max_score=50.0)) == 50.0

    def test_disabled_gate_still_bounds(self):
        gate = ScoreGate(enabled=False)
        assert apply_score_gate(7.5, gate) == 7.5
        assert apply_score_gate(180.0, gate) == 100.0

    def test_floor_above_cap_rejected(self):
        with pytest.raises(ValueError):
            ScoreGate(max_score=20.0, noise_floor=30.0)


def test_overall_confidence():
    assert overall_confidence([]) == 0.0
    assert overall_confidence([_component(10.0, 0.5)]) == pytest.approx(0.5 + math.log(2) * 0.1)
    assert overall_confidence([_component(10.0, 0.99)]) == 1.0
    two = [_component(10.0, 0.2), _component(10.0, 0.4, AlgorithmName.SPATIAL)]
    assert overall_confidence(two) == pytest.approx(0.3 + math.log(3) * 0.1)


def test_severity_mapper():
    mapper = SeverityMapper(SeverityThresholds())
    assert mapper.severity(0.0) == AnomalySeverity.NONE
    assert mapper.severity(10.0) == AnomalySeverity.LOW
    assert mapper.severity(49.5) == AnomalySeverity.MEDIUM
    assert mapper.severity(68.75) == AnomalySeverity.HIGH
    assert mapper.severity(100.0) == AnomalySeverity.CRITICAL


def test_severity_thresholds_must_be_ordered():
    with pytest.raises(ValueError):
        SeverityThresholds(low=50.0, medium=30.0)
