"""
Integration tests for the scoring pipeline.

End-to-end scenarios: raw bundle -> signals -> ensemble -> gate -> result.
"""

import json
from datetime import timedelta

import pytest

from anomaly_scoring import AnomalyScoreEngine, Config
from anomaly_scoring.anomaly.cache import CachedScoreEngine, InMemoryScoreCache
from anomaly_scoring.anomaly.schema import AlgorithmName, AnomalySeverity


pytestmark = pytest.mark.integration


def _two_points(t0, lon_b, hours, accuracy=5.0):
    return {
        "location_anomaly": {
            "location_sequence": [
                {"latitude": 0.0, "longitude": 0.0, "timestamp": t0, "accuracy": accuracy},
                {"latitude": 0.0, "longitude": lon_b, "timestamp": t0 + timedelta(hours=hours), "accuracy": accuracy},
            ]
        }
    }


class TestScenarios:
    """Reference scenarios for the scoring scale."""

    def test_scenario_a_deviation_only(self, engine):
        result = engine.evaluate({"deviation": 3.0, "std_dev": 1.0})

        assert len(result.components) == 1
        component = result.components[0]
        assert component.algorithm == AlgorithmName.DEVIATION
        assert component.factors["z_score"] == pytest.approx(3.0)
        assert component.confidence == pytest.approx(0.9987, abs=1e-3)
        assert component.score == pytest.approx(45.0)
        assert result.total_score >= 10.0
        assert result.confidence == 1.0

    def test_scenario_b_frequency_only(self, engine):
        result = engine.evaluate({"frequency_anomaly": {"observed": 100, "expected": 10}})

        component = result.components[0]
        assert component.algorithm == AlgorithmName.FREQUENCY
        assert component.factors["frequency_ratio"] == pytest.approx(10.0)
        assert component.score == pytest.approx(50.0)
        assert result.total_score == pytest.approx(55.0)

    def test_scenario_c_impossible_travel(self, engine, reference_time):
        result = engine.evaluate(_two_points(reference_time, lon_b=18.0, hours=1))

        component = result.components[0]
        assert component.algorithm == AlgorithmName.SPATIAL
        assert component.factors["impossible_travel"] is True
        assert component.score == pytest.approx(62.5)
        assert result.total_score == pytest.approx(68.75)
        assert result.severity == AnomalySeverity.HIGH

    def test_scenario_d_nothing_fires(self, engine, reference_time):
        degenerate = {
            "deviation": 0,
            "frequency_anomaly": {"observed": 12, "expected": 0},
            "velocity_anomaly": {"current_velocity": 40, "baseline_velocity": 0},
            "location_anomaly": {"location_sequence": [
                {"latitude": 1.0, "longitude": 1.0, "timestamp": reference_time},
            ]},
            "device_anomaly": {"historical_devices": []},
        }
        for bundle in ({}, degenerate):
            result = engine.evaluate(bundle)
            assert result.total_score == 0.0
            assert result.components == []
            assert result.confidence == 0.0

    def test_impossible_travel_boundary_is_strict(self, mock_config, reference_time):
        # One degree of equatorial longitude is ~111.195 km. With the limit set
        # exactly at the leg's speed, the leg is not impossible; just below it is.
        leg_kmh = 111.19492664455873
        at_limit = Config(log_level="WARNING", weights={"spatial": {"impossible_travel_kmh": leg_kmh + 1e-6}})
        below = Config(log_level="WARNING", weights={"spatial": {"impossible_travel_kmh": leg_kmh - 1e-3}})
        bundle = _two_points(reference_time, lon_b=1.0, hours=1)

        at_result = AnomalyScoreEngine(at_limit).evaluate(bundle)
        below_result = AnomalyScoreEngine(below).evaluate(bundle)

        assert at_result.components[0].factors["impossible_travel"] is False
        assert below_result.components[0].factors["impossible_travel"] is True


class TestCompromisedAccount:
    """A realistic takeover pattern with every signal present."""

    def test_all_signals(self, engine, full_pattern):
        result = engine.evaluate(full_pattern)

        algorithms = [c.algorithm for c in result.components]
        assert algorithms == [
            AlgorithmName.DEVIATION,
            AlgorithmName.FREQUENCY,
            AlgorithmName.TEMPORAL,
            AlgorithmName.SPATIAL,
            AlgorithmName.VELOCITY,
            AlgorithmName.DEVICE,
        ]
        spatial = result.components[3]
        assert spatial.factors["impossible_travel"] is True
        # Low-confidence signals (the Poisson and burst confidences are tiny)
        # carry little ensemble weight, so the total lands in the medium band.
        assert 30.0 <= result.total_score < 60.0
        assert result.severity == AnomalySeverity.MEDIUM
        assert 0.0 < result.confidence <= 1.0

    def test_result_is_json_auditable(self, engine, full_pattern):
        payload = json.loads(engine.evaluate(full_pattern).model_dump_json())
        assert payload["algorithm_version"] == "2.1.0"
        assert len(payload["components"]) == 6
        assert payload["components"][5]["factors"]["device_fingerprint"]["platform"] == "linux"

    def test_cached_engine_matches_plain_engine(self, engine, full_pattern):
        cached = CachedScoreEngine(engine, InMemoryScoreCache(maxsize=8))
        assert cached.evaluate(full_pattern) == engine.evaluate(full_pattern)
        assert cached.evaluate(full_pattern) == engine.evaluate(full_pattern)

    def test_version_bump_is_reported(self, full_pattern):
        result = AnomalyScoreEngine(Config(log_level="WARNING", algorithm_version="2.2.0")).evaluate(full_pattern)
        assert result.algorithm_version == "2.2.0"
