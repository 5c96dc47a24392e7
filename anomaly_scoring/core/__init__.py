"""
Core module: Configuration, logging, and exception handling.
"""

from .config import Config, ScoreGate, ScoringWeights, config
from .exceptions import (
    AnomalyScoringError,
    ConfigurationError,
    PatternValidationError,
)
from .logging_config import setup_logging

__all__ = [
    "Config",
    "ScoreGate",
    "ScoringWeights",
    "config",
    "AnomalyScoringError",
    "ConfigurationError",
    "PatternValidationError",
    "setup_logging",
]
