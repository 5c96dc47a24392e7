"""
Pytest configuration and shared fixtures.

Provides test configuration instances, a fixed reference time, and sample
pattern bundles for unit and integration tests.
"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from anomaly_scoring.anomaly.engine import AnomalyScoreEngine
from anomaly_scoring.anomaly.signals import SignalContext
from anomaly_scoring.core.config import Config


REFERENCE_TIME = datetime(2025, 2, 7, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_config() -> Config:
    """
    Fixture providing a test configuration with production scoring defaults.

    Built explicitly so tests run consistently regardless of .env settings.
    """
    return Config(
        log_level="WARNING",
        log_to_file=False,
        algorithm_version="2.1.0",
    )


@pytest.fixture
def engine(mock_config) -> AnomalyScoreEngine:
    return AnomalyScoreEngine(mock_config)


@pytest.fixture
def reference_time() -> datetime:
    return REFERENCE_TIME


@pytest.fixture
def signal_context(mock_config, reference_time) -> SignalContext:
    return SignalContext(
        weights=mock_config.weights,
        poisson=mock_config.poisson,
        reference_time=reference_time,
    )


@pytest.fixture
def full_pattern(reference_time) -> Dict[str, Any]:
    """
    Fixture providing a bundle in which all six signals fire.

    Values are chosen to look like a compromised account: a large deviation,
    a burst of events at 3am, impossible travel, and an unknown device.
    """
    return {
        "deviation": 4.2,
        "std_dev": 1.0,
        "frequency_anomaly": {"observed": 60, "expected": 8.0},
        "time_anomaly": {
            "current_hour": 3,
            "historical_pattern": {9: 40, 12: 55, 18: 30, 3: 2},
        },
        "location_anomaly": {
            "location_sequence": [
                {
                    "latitude": 51.5074,
                    "longitude": -0.1278,
                    "timestamp": reference_time - timedelta(hours=2),
                    "accuracy": 8.0,
                },
                {
                    "latitude": 40.7128,
                    "longitude": -74.0060,
                    "timestamp": reference_time - timedelta(hours=1),
                    "accuracy": 12.0,
                },
            ]
        },
        "velocity_anomaly": {"current_velocity": 250.0, "baseline_velocity": 5.0},
        "device_anomaly": {
            "device_fingerprint": {
                "user_agent": "curl/8.4.0",
                "ip_address": "203.0.113.9",
                "platform": "linux",
            },
            "historical_devices": [
                {
                    "user_agent": "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0)",
                    "ip_address": "198.51.100.20",
                    "platform": "ios",
                    "last_seen": reference_time - timedelta(days=90),
                }
            ],
        },
        "reference_time": reference_time,
    }


def pytest_configure(config):
    """
    Pytest hook for custom configuration.

    Registers custom markers used throughout tests.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (deferred CI)"
    )
