"""
Custom exceptions for the anomaly scoring engine.

Missing or insufficient signal data is never an error: the affected signal is
skipped. These exceptions cover malformed input and invalid configuration.
"""

from typing import Any, Dict, List, Optional


class AnomalyScoringError(Exception):
    """Base exception for anomaly scoring failures."""
    pass


class PatternValidationError(AnomalyScoringError):
    """Raised when a pattern bundle has malformed field types."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class ConfigurationError(AnomalyScoringError):
    """Raised when configuration is invalid or missing."""
    pass
